"""
Tests for the frozen domain DTOs (``fulfillment_kernel.domain.dtos``).
"""

from dataclasses import FrozenInstanceError
from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from fulfillment_kernel.domain.clock import DeterministicClock
from fulfillment_kernel.domain.dtos import (
    DeductionResult,
    LedgerPolicy,
    MovementDraft,
    OrderItemSpec,
    ReconciliationResult,
    StockDecrement,
)
from fulfillment_kernel.exceptions import InvalidQuantityError


class TestOrderItemSpec:

    @pytest.mark.parametrize("qty", [0, -1, -100])
    def test_rejects_non_positive_quantity(self, qty):
        with pytest.raises(InvalidQuantityError) as exc_info:
            OrderItemSpec(product_id=uuid4(), qty=qty)
        assert exc_info.value.qty == qty

    def test_variant_and_price_are_optional(self):
        spec = OrderItemSpec(product_id=uuid4(), qty=2)
        assert spec.variant_id is None
        assert spec.price is None

    def test_frozen(self):
        spec = OrderItemSpec(product_id=uuid4(), qty=1)
        with pytest.raises(FrozenInstanceError):
            spec.qty = 5


class TestMovementDraft:

    def test_rejects_zero_delta(self):
        with pytest.raises(ValueError):
            MovementDraft(product_id=uuid4(), delta=0, reason="x")

    def test_defaults_to_stock_applying(self):
        draft = MovementDraft(product_id=uuid4(), delta=-2, reason="x")
        assert draft.applies_to_stock is True


class TestDeductionResult:

    def test_units_deducted_sums_decrements(self):
        product_id = uuid4()
        result = DeductionResult(
            order_id=uuid4(),
            decrements=(
                StockDecrement(uuid4(), product_id, 2, 5, 3),
                StockDecrement(uuid4(), product_id, 1, 1, 0),
            ),
            movements=(),
        )
        assert result.units_deducted == 3

    def test_empty_deduction(self):
        result = DeductionResult(order_id=uuid4(), decrements=(), movements=())
        assert result.units_deducted == 0


class TestReconciliationResult:

    def test_balanced(self):
        result = ReconciliationResult(uuid4(), baseline_stock=10, ledger_net_delta=-3, current_stock=7)
        assert result.expected_stock == 7
        assert result.difference == 0
        assert result.is_balanced

    def test_unbalanced_reports_difference(self):
        result = ReconciliationResult(uuid4(), baseline_stock=10, ledger_net_delta=-3, current_stock=9)
        assert result.difference == 2
        assert not result.is_balanced


class TestLedgerPolicy:

    def test_values(self):
        assert LedgerPolicy("decremented_only") is LedgerPolicy.DECREMENTED_ONLY
        assert LedgerPolicy("mark_unvarianted") is LedgerPolicy.MARK_UNVARIANTED


class TestDeterministicClock:

    def test_fixed_until_advanced(self):
        clock = DeterministicClock(datetime(2024, 3, 1, 9, 0, tzinfo=UTC))
        assert clock.now() == clock.now()
        clock.advance(30)
        assert clock.now() == datetime(2024, 3, 1, 9, 0, 30, tzinfo=UTC)
