"""
Threaded payment confirmation on whichever backend the suite runs against.

Each thread confirms through its own session from ``session_factory``.
On SQLite writers serialize on BEGIN IMMEDIATE; on PostgreSQL on the order
row lock.  Either way the order is deducted exactly once.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from fulfillment_kernel.domain.dtos import OrderItemSpec
from fulfillment_kernel.domain.order_status import OrderStatus
from fulfillment_kernel.selectors.ledger_selector import LedgerSelector
from fulfillment_kernel.services.catalog_service import CatalogService
from fulfillment_kernel.services.order_service import OrderService
from fulfillment_kernel.services.payment_confirmation import (
    ConfirmationStatus,
    PaymentConfirmationService,
)
from tests.factories import create_product_with_variants

THREADS = 6


@pytest.fixture
def payments(session_factory):
    return PaymentConfirmationService(
        session_factory,
        max_attempts=10,
        retry_backoff_seconds=0.01,
    )


def test_same_order_confirmed_once_across_threads(session_factory, payments):
    with session_factory() as s:
        product, (variant,) = create_product_with_variants(CatalogService(s), [10])
        order = OrderService(s).create_order(
            [OrderItemSpec(product_id=product.id, variant_id=variant.variant_id, qty=3)]
        )
        s.commit()

    barrier = Barrier(THREADS)

    def _confirm(_):
        barrier.wait()
        return payments.confirm(order.id)

    with ThreadPoolExecutor(max_workers=THREADS) as pool:
        results = list(pool.map(_confirm, range(THREADS)))

    statuses = [r.status for r in results]
    assert statuses.count(ConfirmationStatus.CONFIRMED) == 1
    assert statuses.count(ConfirmationStatus.ALREADY_PAID) == THREADS - 1
    assert all(r.is_success for r in results)

    with session_factory() as s:
        reloaded = OrderService(s).get_order(order.id, include_items=False)
        assert reloaded.status == OrderStatus.PAGADO
        assert CatalogService(s).get_variant_stock(variant.variant_id).stock == 7
        movements = LedgerSelector(s).movements_for_order(order.id)
        assert [m.delta for m in movements] == [-3]
        s.rollback()
