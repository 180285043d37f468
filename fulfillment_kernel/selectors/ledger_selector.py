"""
Module: fulfillment_kernel.selectors.ledger_selector
Responsibility: Read paths over the inventory ledger for audit -- stream a
    product's movement history, sum its deltas, and reconcile it against
    current variant stock.
Architecture position: Kernel > Selectors.

Invariants enforced:
    LEDGER_APPEND_ONLY -- read-only; histories are rebuilt from the ledger
        rows every time, never cached or stored.
    - History order is ``seq`` order, i.e. creation order.

Audit relevance:
    reconcile() is the check that baseline stock plus the sum of
    stock-applying deltas equals the sum of the product's variant stock.
    A non-zero difference means stock moved without a ledger entry.
"""

from collections.abc import Iterator
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from fulfillment_kernel.domain.dtos import MovementRecord, ReconciliationResult
from fulfillment_kernel.exceptions import ProductNotFoundError
from fulfillment_kernel.models.catalog import Product, ProductVariant
from fulfillment_kernel.models.inventory import InventoryMovement
from fulfillment_kernel.selectors.base import BaseSelector


class MovementHistory:
    """
    Restartable, lazily-streamed movement history of one product.

    Each ``iter()`` issues a fresh query and streams rows in batches, so the
    history can be walked any number of times and reflects rows committed
    in between.
    """

    def __init__(
        self,
        session: Session,
        product_id: UUID,
        stock_only: bool = False,
        batch_size: int = 500,
    ):
        self._session = session
        self.product_id = product_id
        self.stock_only = stock_only
        self._batch_size = batch_size

    def _statement(self):
        stmt = select(InventoryMovement).where(
            InventoryMovement.product_id == self.product_id
        )
        if self.stock_only:
            stmt = stmt.where(InventoryMovement.applies_to_stock.is_(True))
        return stmt.order_by(InventoryMovement.seq)

    def __iter__(self) -> Iterator[MovementRecord]:
        result = self._session.execute(
            self._statement().execution_options(yield_per=self._batch_size)
        )
        try:
            for movement in result.scalars():
                yield MovementRecord.from_model(movement)
        finally:
            result.close()

    def __repr__(self) -> str:
        return f"<MovementHistory product={self.product_id} stock_only={self.stock_only}>"


class LedgerSelector(BaseSelector[InventoryMovement]):
    """Audit queries over inventory movements."""

    def reconstruct(
        self,
        product_id: UUID,
        stock_only: bool = False,
        batch_size: int = 500,
    ) -> MovementHistory:
        """Ordered, restartable history of every movement of the product."""
        return MovementHistory(self.session, product_id, stock_only, batch_size)

    def movements_for_order(self, order_id: UUID) -> list[MovementRecord]:
        """All movements written for one order, in seq order."""
        movements = self.session.execute(
            select(InventoryMovement)
            .where(InventoryMovement.order_id == order_id)
            .order_by(InventoryMovement.seq)
        ).scalars()
        return [MovementRecord.from_model(m) for m in movements]

    def net_delta(self, product_id: UUID, stock_only: bool = True) -> int:
        """Sum of deltas for a product; by default only stock-applying rows."""
        stmt = select(func.coalesce(func.sum(InventoryMovement.delta), 0)).where(
            InventoryMovement.product_id == product_id
        )
        if stock_only:
            stmt = stmt.where(InventoryMovement.applies_to_stock.is_(True))
        return int(self.session.execute(stmt).scalar_one())

    def current_stock(self, product_id: UUID) -> int:
        """Sum of stock across the product's variants."""
        if self.session.get(Product, product_id) is None:
            raise ProductNotFoundError(str(product_id))
        total = self.session.execute(
            select(func.coalesce(func.sum(ProductVariant.stock), 0)).where(
                ProductVariant.product_id == product_id
            )
        ).scalar_one()
        return int(total)

    def reconcile(self, product_id: UUID, baseline_stock: int) -> ReconciliationResult:
        """
        Compare ``baseline_stock + net_delta`` with current variant stock.

        ``baseline_stock`` is the product's total variant stock at the point
        the ledger started (or at the last audited snapshot).
        """
        return ReconciliationResult(
            product_id=product_id,
            baseline_stock=baseline_stock,
            ledger_net_delta=self.net_delta(product_id, stock_only=True),
            current_stock=self.current_stock(product_id),
        )
