"""
Hypothesis-based fuzzing of the paid-deduction boundary.

Random catalogs (one to four variants, small stocks) and random orders
(repeated variants, unvarianted lines, quantities around the available
stock) are pushed through ``set_status(order, pagado)``.  Whatever the
input, the following must hold:

- Stock never goes negative.
- The deduction happens in full or not at all.
- A successful deduction subtracts exactly the ordered quantities.
- baseline stock + ledger net delta == current stock.

Every example creates a fresh product, so examples sharing the
rollback-isolated session do not interfere.
"""

from collections import Counter

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from fulfillment_kernel.domain.order_status import OrderStatus
from fulfillment_kernel.exceptions import StockViolationError

FUZZ_SETTINGS = settings(
    max_examples=40,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)


@st.composite
def catalog_and_order(draw):
    """(stocks, lines) where each line is (variant_index or None, qty)."""
    stocks = draw(st.lists(st.integers(min_value=0, max_value=6), min_size=1, max_size=4))
    variant_index = st.one_of(
        st.none(),
        st.integers(min_value=0, max_value=len(stocks) - 1),
    )
    lines = draw(
        st.lists(
            st.tuples(variant_index, st.integers(min_value=1, max_value=5)),
            min_size=1,
            max_size=6,
        )
    )
    return stocks, lines


def _demand(lines) -> Counter:
    demand: Counter = Counter()
    for index, qty in lines:
        if index is not None:
            demand[index] += qty
    return demand


class TestPaidDeductionFuzzing:

    @FUZZ_SETTINGS
    @given(case=catalog_and_order())
    def test_stock_never_negative_and_ledger_reconciles(
        self,
        case,
        make_product,
        make_order,
        order_status_service,
        order_service,
        catalog_service,
        ledger_selector,
    ):
        stocks, lines = case
        product, variants = make_product(stocks=stocks)
        order = make_order([
            (product.id, variants[index].variant_id if index is not None else None, qty)
            for index, qty in lines
        ])
        demand = _demand(lines)
        fits = all(demand[i] <= stock for i, stock in enumerate(stocks))

        try:
            result = order_status_service.set_status(order.id, OrderStatus.PAGADO)
        except StockViolationError:
            assert not fits
            paid = False
        else:
            assert fits
            assert result.deducted
            assert result.deduction.units_deducted == sum(demand.values())
            paid = True

        after = [catalog_service.get_variant_stock(v.variant_id).stock for v in variants]
        assert all(s >= 0 for s in after)
        if paid:
            assert after == [stock - demand[i] for i, stock in enumerate(stocks)]
        else:
            assert after == stocks
            assert ledger_selector.movements_for_order(order.id) == []

        reloaded = order_service.get_order(order.id, include_items=False)
        assert reloaded.status == (OrderStatus.PAGADO if paid else OrderStatus.NUEVO)
        assert reloaded.is_stock_deducted is paid

        reconciliation = ledger_selector.reconcile(product.id, baseline_stock=sum(stocks))
        assert reconciliation.is_balanced

    @FUZZ_SETTINGS
    @given(
        stock=st.integers(min_value=0, max_value=10),
        qty=st.integers(min_value=1, max_value=10),
        repeats=st.integers(min_value=2, max_value=4),
    )
    def test_repeated_paid_transition_deducts_once(
        self, stock, qty, repeats, make_product, make_order, order_status_service,
        catalog_service,
    ):
        product, (variant,) = make_product(stocks=[stock])
        order = make_order([(product.id, variant.variant_id, qty)])

        if qty > stock:
            with pytest.raises(StockViolationError):
                order_status_service.set_status(order.id, OrderStatus.PAGADO)
            assert catalog_service.get_variant_stock(variant.variant_id).stock == stock
            return

        for _ in range(repeats):
            order_status_service.set_status(order.id, OrderStatus.PAGADO)

        assert catalog_service.get_variant_stock(variant.variant_id).stock == stock - qty
