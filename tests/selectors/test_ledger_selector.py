"""
Tests for LedgerSelector -- ledger reconstruction and reconciliation.

Covers:
- reconstruct(): seq order, restartable, lazily evaluated, read-only.
- net_delta(): stock-only vs. all rows.
- reconcile(): baseline + ledger == current stock after paid orders, and
  detection of stock changed outside the ledger.
"""

from uuid import uuid4

import pytest

from fulfillment_kernel.domain.dtos import LedgerPolicy, MovementDraft
from fulfillment_kernel.domain.order_status import OrderStatus
from fulfillment_kernel.exceptions import ProductNotFoundError
from fulfillment_kernel.selectors.ledger_selector import MovementHistory
from fulfillment_kernel.services.deduction_engine import DeductionEngine
from fulfillment_kernel.services.inventory_ledger import InventoryLedger
from fulfillment_kernel.services.order_status_service import OrderStatusService


@pytest.fixture
def paid_product(order_status_service, make_product, make_order):
    """Product with stocks [10, 4] and two paid orders against it."""
    product, (v1, v2) = make_product(stocks=[10, 4])
    first = make_order([(product.id, v1.variant_id, 3), (product.id, v2.variant_id, 1)])
    second = make_order([(product.id, v1.variant_id, 2)])
    order_status_service.set_status(first.id, OrderStatus.PAGADO)
    order_status_service.set_status(second.id, OrderStatus.PAGADO)
    return product, (v1, v2), (first, second)


class TestReconstruct:

    def test_history_in_creation_order(self, ledger_selector, paid_product):
        product, _, (first, second) = paid_product
        history = list(ledger_selector.reconstruct(product.id))

        assert [m.delta for m in history] == [-3, -1, -2]
        assert [m.order_id for m in history] == [first.id, first.id, second.id]
        assert [m.seq for m in history] == sorted(m.seq for m in history)

    def test_history_is_restartable(self, ledger_selector, paid_product):
        product, _, _ = paid_product
        history = ledger_selector.reconstruct(product.id)
        assert list(history) == list(history)

    def test_history_is_lazy(self, session, clock, ledger_selector, paid_product):
        """Rows appended after the history object was built still show up."""
        product, (v1, _), _ = paid_product
        history = ledger_selector.reconstruct(product.id)
        assert isinstance(history, MovementHistory)
        before = len(list(history))

        InventoryLedger(session, clock).append(
            MovementDraft(product_id=product.id, variant_id=v1.variant_id, delta=5, reason="Reposicion")
        )

        assert len(list(history)) == before + 1

    def test_small_batches_yield_everything(self, ledger_selector, paid_product):
        product, _, _ = paid_product
        assert len(list(ledger_selector.reconstruct(product.id, batch_size=1))) == 3

    def test_unknown_product_has_empty_history(self, ledger_selector):
        assert list(ledger_selector.reconstruct(uuid4())) == []

    def test_reading_does_not_flush_or_add(self, session, ledger_selector, paid_product):
        product, _, _ = paid_product
        list(ledger_selector.reconstruct(product.id))
        assert not session.new
        assert not session.dirty


class TestNetDelta:

    def test_sum_of_paid_orders(self, ledger_selector, paid_product):
        product, _, _ = paid_product
        assert ledger_selector.net_delta(product.id) == -6

    def test_empty_ledger(self, ledger_selector, make_product):
        product, _ = make_product(stocks=[3])
        assert ledger_selector.net_delta(product.id) == 0

    def test_stock_only_excludes_unvarianted_rows(
        self, session, clock, ledger_selector, make_product, make_order
    ):
        engine = DeductionEngine(session, clock, ledger_policy=LedgerPolicy.MARK_UNVARIANTED)
        service = OrderStatusService(session, clock, deduction_engine=engine)
        product, (variant,) = make_product(stocks=[5])
        order = make_order([(product.id, None, 4), (product.id, variant.variant_id, 1)])
        service.set_status(order.id, OrderStatus.PAGADO)

        assert ledger_selector.net_delta(product.id) == -1
        assert ledger_selector.net_delta(product.id, stock_only=False) == -5
        stock_history = list(ledger_selector.reconstruct(product.id, stock_only=True))
        assert [m.delta for m in stock_history] == [-1]


class TestReconcile:

    def test_balanced_after_paid_orders(self, ledger_selector, paid_product):
        product, _, _ = paid_product
        result = ledger_selector.reconcile(product.id, baseline_stock=14)

        assert result.current_stock == 8
        assert result.ledger_net_delta == -6
        assert result.is_balanced

    def test_balanced_with_marked_unvarianted_rows(
        self, session, clock, ledger_selector, make_product, make_order
    ):
        engine = DeductionEngine(session, clock, ledger_policy=LedgerPolicy.MARK_UNVARIANTED)
        service = OrderStatusService(session, clock, deduction_engine=engine)
        product, (variant,) = make_product(stocks=[5])
        order = make_order([(product.id, None, 2), (product.id, variant.variant_id, 2)])
        service.set_status(order.id, OrderStatus.PAGADO)

        assert ledger_selector.reconcile(product.id, baseline_stock=5).is_balanced

    def test_detects_unledgered_stock_change(
        self, catalog_service, ledger_selector, paid_product
    ):
        product, (v1, _), _ = paid_product
        catalog_service.adjust_stock(v1.variant_id, 7)

        result = ledger_selector.reconcile(product.id, baseline_stock=14)

        assert not result.is_balanced
        assert result.difference == 7

    def test_unknown_product(self, ledger_selector):
        with pytest.raises(ProductNotFoundError):
            ledger_selector.reconcile(uuid4(), baseline_stock=0)
