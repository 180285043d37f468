"""Tests for driver error translation (fulfillment_kernel/db/errors.py)."""

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from fulfillment_kernel.db.errors import (
    retryable_reason,
    translate_concurrency_errors,
    violates_constraint,
)
from fulfillment_kernel.exceptions import SerializationConflictError


class _DriverError(Exception):
    """Stand-in for a DBAPI exception carrying a SQLSTATE."""

    def __init__(self, message: str, pgcode: str | None = None):
        super().__init__(message)
        self.pgcode = pgcode


def _dbapi_error(message: str, pgcode: str | None = None) -> DBAPIError:
    return DBAPIError("SELECT 1", {}, _DriverError(message, pgcode))


class TestRetryableReason:

    @pytest.mark.parametrize(
        "pgcode, reason",
        [
            ("40001", "serialization_failure"),
            ("40P01", "deadlock_detected"),
            ("55P03", "lock_not_available"),
        ],
    )
    def test_postgres_codes(self, pgcode, reason):
        assert retryable_reason(_dbapi_error("boom", pgcode)) == reason

    def test_sqlite_busy(self):
        assert retryable_reason(_dbapi_error("database is locked")) == "database_locked"

    def test_permanent_error(self):
        assert retryable_reason(_dbapi_error("syntax error", "42601")) is None


class TestViolatesConstraint:

    def test_matches_on_message_without_diag(self):
        exc = IntegrityError(
            "UPDATE", {}, _DriverError("CHECK constraint failed: ck_stock_nonneg")
        )
        assert violates_constraint(exc, "ck_stock_nonneg")
        assert not violates_constraint(exc, "uq_product_sku")


class TestTranslateConcurrencyErrors:

    def test_stale_version_becomes_conflict(self, captured_logs):
        with pytest.raises(SerializationConflictError) as exc_info:
            with translate_concurrency_errors("Order", "o-1"):
                raise StaleDataError("version mismatch")

        assert exc_info.value.reason == "stale_version"
        assert exc_info.value.entity_id == "o-1"
        assert any(r["message"] == "serialization_conflict" for r in captured_logs())

    def test_lock_timeout_becomes_conflict(self):
        with pytest.raises(SerializationConflictError) as exc_info:
            with translate_concurrency_errors("Order", "o-1"):
                raise _dbapi_error("canceling statement due to lock timeout", "55P03")

        assert exc_info.value.reason == "lock_not_available"
        assert isinstance(exc_info.value.__cause__, DBAPIError)

    def test_other_errors_pass_through(self):
        with pytest.raises(DBAPIError):
            with translate_concurrency_errors("Order", "o-1"):
                raise _dbapi_error("syntax error", "42601")

        with pytest.raises(KeyError):
            with translate_concurrency_errors("Order", "o-1"):
                raise KeyError("x")
