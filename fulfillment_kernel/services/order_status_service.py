"""
OrderStatusService -- the order state machine's write path.

Responsibility:
    The single entry point for changing an order's status (``SetStatus``).
    Validates the move against ORDER_TRANSITIONS under a row lock and, on
    the qualifying ``-> pagado`` transition, runs the DeductionEngine in the
    same SAVEPOINT as the status write.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by PaymentConfirmationService and by any actor that moves an
    order along its lifecycle (admin tools, shipping integrations).

Invariants enforced:
    TRANSITION_LEGALITY -- only moves listed in ORDER_TRANSITIONS are
        written; values outside the OrderStatus set are rejected before any
        write.
    SINGLE_DEDUCTION -- re-writing the current status is an idempotent
        no-op, so a repeated ``pagado`` never deducts twice.
    ATOMIC_DEDUCTION -- status write + deduction share one SAVEPOINT.
    ROW_SERIALIZATION -- the order row is read with ``SELECT ... FOR
        UPDATE`` and written under its ORM version counter.

Failure modes:
    - OrderNotFoundError: unknown order id.
    - InvalidTransitionError: unknown status value or unreachable target.
    - StockViolationError: deduction refused; nothing was written.
    - SerializationConflictError: lock timeout, deadlock, or stale
      version.  Safe to retry from the top.

Audit relevance:
    Logs ``order_status_changed`` (from/to, deducted) for every real
    transition and ``order_status_unchanged`` for idempotent re-writes.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from fulfillment_kernel.db.errors import translate_concurrency_errors
from fulfillment_kernel.domain.clock import Clock, SystemClock
from fulfillment_kernel.domain.dtos import OrderInfo, TransitionResult
from fulfillment_kernel.domain.order_status import (
    OrderStatus,
    is_paid_transition,
    parse_status,
    validate_transition,
)
from fulfillment_kernel.exceptions import InvalidTransitionError, OrderNotFoundError
from fulfillment_kernel.logging_config import LogContext, get_logger
from fulfillment_kernel.models.order import Order
from fulfillment_kernel.services.base import BaseService
from fulfillment_kernel.services.deduction_engine import DeductionEngine

logger = get_logger("services.order_status")


class OrderStatusService(BaseService[Order]):
    """
    Applies status transitions to orders.

    Contract:
        ``set_status`` flushes within the caller's transaction and returns a
        frozen TransitionResult.  The caller commits.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        deduction_engine: DeductionEngine | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._deduction_engine = deduction_engine or DeductionEngine(
            session, self._clock
        )

    def _get_order_for_update(self, order_id: UUID) -> Order:
        order = self.session.execute(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return order

    def set_status(
        self,
        order_id: UUID,
        new_status: OrderStatus | str,
        actor_id: UUID | None = None,
    ) -> TransitionResult:
        """
        Move an order to ``new_status``.

        Postconditions:
            - changed=False and nothing written when new_status equals the
              current status.
            - Otherwise the status is written and, when the move is the
              paid transition, the deduction has been applied.
            - On any error nothing from this call survives.
        """
        with LogContext.bind(
            order_id=str(order_id),
            actor_id=str(actor_id) if actor_id else None,
        ):
            with translate_concurrency_errors("Order", order_id):
                return self._set_status(order_id, new_status)

    def _set_status(self, order_id: UUID, new_status: OrderStatus | str) -> TransitionResult:
        order = self._get_order_for_update(order_id)
        previous = order.status_enum

        target = parse_status(new_status)
        if target is None:
            logger.warning(
                "order_status_rejected",
                extra={
                    "invariant": "transition_legality",
                    "from_status": previous.value,
                    "to_status": str(new_status),
                },
            )
            raise InvalidTransitionError(str(order_id), previous.value, str(new_status))

        if target == previous:
            logger.info(
                "order_status_unchanged",
                extra={"status": previous.value},
            )
            return TransitionResult(
                order=OrderInfo.from_model(order),
                previous_status=previous,
                changed=False,
            )

        try:
            validate_transition(order.id, previous, target)
        except InvalidTransitionError:
            logger.warning(
                "order_status_rejected",
                extra={
                    "invariant": "transition_legality",
                    "from_status": previous.value,
                    "to_status": target.value,
                },
            )
            raise

        deduction = None
        with self.session.begin_nested():
            if is_paid_transition(previous, target):
                deduction = self._deduction_engine.apply_paid_deduction(order.id)
            # status and stock_deducted_at go out in one UPDATE
            order.status = target.value
            self.session.flush()

        logger.info(
            "order_status_changed",
            extra={
                "from_status": previous.value,
                "to_status": target.value,
                "deducted": deduction is not None,
            },
        )
        return TransitionResult(
            order=OrderInfo.from_model(order),
            previous_status=previous,
            changed=True,
            deduction=deduction,
        )
