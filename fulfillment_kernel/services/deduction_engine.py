"""
DeductionEngine -- converts a paid order into stock decrements and ledger rows.

Responsibility:
    Performs the side effect of the ``nuevo -> pagado`` transition: for
    every item of the order that references a variant, decrement that
    variant's stock by the item quantity and append a ledger movement.
    Items without a variant change no stock; whether they leave a ledger
    row is governed by the configured LedgerPolicy.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by OrderStatusService inside the SAVEPOINT that carries the
    status write, so status, stock, and ledger commit or roll back
    together.  Never called on its own by external code paths.

Invariants enforced:
    SINGLE_DEDUCTION -- refuses to run when the order already carries
        stock_deducted_at, and stamps it on success.
    ATOMIC_DEDUCTION -- all decrements and movements for an order are
        written inside one SAVEPOINT; any failure rolls the SAVEPOINT back
        and re-raises, leaving no partial deduction behind.
    NON_NEGATIVE_STOCK -- via CatalogService.adjust_stock.
    ROW_SERIALIZATION -- the order row and all referenced variant rows are
        locked, variants in ascending id order.

Failure modes:
    - OrderNotFoundError: unknown order id.
    - DeductionAlreadyAppliedError: stock was already deducted.
    - StockViolationError: an item asks for more than is in stock.

Audit relevance:
    Emits ``paid_deduction_applied`` with unit and movement counts, and
    ``paid_deduction_rolled_back`` with the failing error code.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from fulfillment_kernel.domain.clock import Clock, SystemClock
from fulfillment_kernel.domain.dtos import (
    SALE_CONFIRMED_REASON,
    UNVARIANTED_SALE_REASON,
    DeductionResult,
    LedgerPolicy,
    MovementDraft,
    MovementRecord,
    StockDecrement,
)
from fulfillment_kernel.exceptions import (
    DeductionAlreadyAppliedError,
    FulfillmentKernelError,
    OrderNotFoundError,
)
from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.models.order import Order, OrderItem
from fulfillment_kernel.services.base import BaseService
from fulfillment_kernel.services.catalog_service import CatalogService
from fulfillment_kernel.services.inventory_ledger import InventoryLedger

logger = get_logger("services.deduction")


class DeductionEngine(BaseService[Order]):
    """
    Applies the paid-order stock deduction.

    Contract:
        ``apply_paid_deduction(order_id)`` runs inside the caller's
        transaction, which is moving the order into ``pagado``.  The
        stock_deducted_at stamp is left unflushed; the caller's status write
        carries it to the database in the same UPDATE.
        Returns a frozen DeductionResult.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ledger_policy: LedgerPolicy = LedgerPolicy.DECREMENTED_ONLY,
        sale_reason: str = SALE_CONFIRMED_REASON,
        unvarianted_reason: str = UNVARIANTED_SALE_REASON,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._ledger_policy = LedgerPolicy(ledger_policy)
        self._sale_reason = sale_reason
        self._unvarianted_reason = unvarianted_reason
        self._catalog = CatalogService(session, self._clock)
        self._ledger = InventoryLedger(session, self._clock)

    @property
    def ledger_policy(self) -> LedgerPolicy:
        return self._ledger_policy

    def _lock_order(self, order_id: UUID) -> Order:
        order = self.session.execute(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return order

    def _load_items(self, order_id: UUID) -> list[OrderItem]:
        return list(
            self.session.execute(
                select(OrderItem)
                .where(OrderItem.order_id == order_id)
                .order_by(OrderItem.line_number)
            ).scalars()
        )

    def apply_paid_deduction(self, order_id: UUID) -> DeductionResult:
        """
        Decrement stock for every variant-bearing item of the order and
        record the decrements in the ledger.

        Preconditions:
            - The caller is inside the transaction that moves the order
              into ``pagado`` and flushes the status after this call.

        Postconditions (on success):
            - Each referenced variant's stock is reduced by the sum of the
              quantities of the items that reference it.
            - One ledger row per decremented item (plus one per variant-less
              item under MARK_UNVARIANTED).
            - order.stock_deducted_at is set (pending until the next flush).

        Postconditions (on failure):
            - No stock, ledger, or stock_deducted_at change survives.

        Raises:
            OrderNotFoundError, DeductionAlreadyAppliedError,
            StockViolationError.
        """
        order = self._lock_order(order_id)
        if order.stock_deducted_at is not None:
            logger.warning(
                "paid_deduction_already_applied",
                extra={
                    "invariant": "single_deduction",
                    "order_id": str(order_id),
                    "deducted_at": order.stock_deducted_at,
                },
            )
            raise DeductionAlreadyAppliedError(
                str(order_id), order.stock_deducted_at.isoformat()
            )

        items = self._load_items(order.id)
        decrements: list[StockDecrement] = []
        movements: list[MovementRecord] = []

        try:
            with self.session.begin_nested():
                self._catalog.lock_variants(
                    i.variant_id for i in items if i.variant_id is not None
                )

                for item in items:
                    if item.variant_id is None:
                        if self._ledger_policy is LedgerPolicy.MARK_UNVARIANTED:
                            movements.append(
                                self._ledger.append(
                                    MovementDraft(
                                        product_id=item.product_id,
                                        delta=-item.qty,
                                        reason=self._unvarianted_reason,
                                        order_id=order.id,
                                        applies_to_stock=False,
                                    )
                                )
                            )
                        continue

                    after = self._catalog.adjust_stock(
                        item.variant_id, -item.qty, order_id=order.id
                    )
                    decrements.append(
                        StockDecrement(
                            variant_id=after.variant_id,
                            product_id=after.product_id,
                            quantity=item.qty,
                            stock_before=after.stock + item.qty,
                            stock_after=after.stock,
                        )
                    )
                    movements.append(
                        self._ledger.append(
                            MovementDraft(
                                product_id=after.product_id,
                                delta=-item.qty,
                                reason=self._sale_reason,
                                variant_id=after.variant_id,
                                order_id=order.id,
                            )
                        )
                    )

                self.session.flush()
        except FulfillmentKernelError as exc:
            logger.warning(
                "paid_deduction_rolled_back",
                extra={"order_id": str(order_id), "error_code": exc.code},
            )
            raise

        # Left pending so it reaches the orders row in the same UPDATE as the
        # caller's status write (one version bump per transition).
        order.stock_deducted_at = self._clock.now()

        result = DeductionResult(
            order_id=order.id,
            decrements=tuple(decrements),
            movements=tuple(movements),
        )
        logger.info(
            "paid_deduction_applied",
            extra={
                "order_id": str(order.id),
                "item_count": len(items),
                "units_deducted": result.units_deducted,
                "movement_count": len(movements),
                "ledger_policy": self._ledger_policy.value,
            },
        )
        return result
