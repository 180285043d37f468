"""
Module: fulfillment_kernel.db.errors
Responsibility: Translate driver-level SQLAlchemy errors into the kernel's
    typed exceptions at the service boundary.
Architecture position: Kernel > DB.  May import from exceptions and
    logging_config only.

Retryable conditions (surfaced as SerializationConflictError):
    40001  serialization_failure    (PostgreSQL)
    40P01  deadlock_detected        (PostgreSQL)
    55P03  lock_not_available       (PostgreSQL lock_timeout / NOWAIT)
    "database is locked"            (SQLite busy timeout)
    StaleDataError                  (ORM version counter mismatch)
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from fulfillment_kernel.exceptions import SerializationConflictError
from fulfillment_kernel.logging_config import get_logger

logger = get_logger("db.errors")

RETRYABLE_PG_CODES: dict[str, str] = {
    "40001": "serialization_failure",
    "40P01": "deadlock_detected",
    "55P03": "lock_not_available",
}


def retryable_reason(exc: DBAPIError) -> str | None:
    """Name of the transient condition behind ``exc``, or None if permanent."""
    pgcode = getattr(exc.orig, "pgcode", None)
    if pgcode in RETRYABLE_PG_CODES:
        return RETRYABLE_PG_CODES[pgcode]
    if "database is locked" in str(exc.orig).lower():
        return "database_locked"
    return None


def violates_constraint(exc: IntegrityError, constraint_name: str) -> bool:
    """True when ``exc`` was raised by the named CHECK/UNIQUE constraint."""
    diag = getattr(exc.orig, "diag", None)
    if diag is not None and getattr(diag, "constraint_name", None):
        return diag.constraint_name == constraint_name
    return constraint_name in str(exc.orig)


@contextmanager
def translate_concurrency_errors(
    entity_type: str, entity_id
) -> Generator[None, None, None]:
    """
    Re-raise lock timeouts, deadlocks, and stale version writes as
    SerializationConflictError.  Everything else propagates unchanged.
    """
    try:
        yield
    except StaleDataError as exc:
        logger.warning(
            "serialization_conflict",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "reason": "stale_version",
            },
        )
        raise SerializationConflictError(
            entity_type, str(entity_id), "stale_version"
        ) from exc
    except DBAPIError as exc:
        reason = retryable_reason(exc)
        if reason is None:
            raise
        logger.warning(
            "serialization_conflict",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "reason": reason,
            },
        )
        raise SerializationConflictError(entity_type, str(entity_id), reason) from exc
