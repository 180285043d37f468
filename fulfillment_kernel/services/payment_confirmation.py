"""
PaymentConfirmationService -- transactional entry point for the payment flow.

Responsibility:
    Turns "payment for order X succeeded" into a committed ``pagado``
    transition (with its stock deduction), owning the transaction, bounding
    lock waits, and retrying transient conflicts.  Reports the outcome as a
    ConfirmationResult instead of raising, so the payment flow can route
    stock failures to refund / manual review.

Architecture position:
    Kernel > Services -- transaction-owning orchestrator.  Unlike the other
    services it creates its own sessions from a session factory and
    commits them.  Everything it writes goes through OrderStatusService.

Invariants enforced:
    ATOMIC_DEDUCTION -- one session per attempt; any failure rolls the
        whole attempt back before the next one starts.
    SINGLE_DEDUCTION -- a retry after a conflict re-reads the order, so an
        attempt that sees ``pagado`` reports ALREADY_PAID and deducts
        nothing.

Failure modes:
    Reported, not raised: order_not_found, invalid_transition,
    stock_unavailable, conflict (retries exhausted).  Unexpected errors
    propagate after rollback.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from fulfillment_kernel.db.engine import apply_lock_timeout
from fulfillment_kernel.db.errors import translate_concurrency_errors
from fulfillment_kernel.domain.clock import Clock, SystemClock
from fulfillment_kernel.domain.dtos import (
    SALE_CONFIRMED_REASON,
    UNVARIANTED_SALE_REASON,
    LedgerPolicy,
    TransitionResult,
)
from fulfillment_kernel.domain.order_status import OrderStatus
from fulfillment_kernel.exceptions import (
    InvalidTransitionError,
    OrderNotFoundError,
    SerializationConflictError,
    StockViolationError,
)
from fulfillment_kernel.logging_config import LogContext, get_logger
from fulfillment_kernel.services.deduction_engine import DeductionEngine
from fulfillment_kernel.services.order_status_service import OrderStatusService

logger = get_logger("services.payment_confirmation")


class ConfirmationStatus(str, Enum):
    """Outcome of a payment confirmation."""

    CONFIRMED = "confirmed"
    ALREADY_PAID = "already_paid"
    STOCK_UNAVAILABLE = "stock_unavailable"
    ORDER_NOT_FOUND = "order_not_found"
    INVALID_TRANSITION = "invalid_transition"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class ConfirmationResult:
    """Result of PaymentConfirmationService.confirm()."""

    status: ConfirmationStatus
    order_id: UUID
    attempts: int
    transition: TransitionResult | None = None
    error_code: str | None = None
    message: str | None = None

    @property
    def is_success(self) -> bool:
        """True when the order is paid (including idempotent success)."""
        return self.status in (ConfirmationStatus.CONFIRMED, ConfirmationStatus.ALREADY_PAID)

    @property
    def needs_manual_review(self) -> bool:
        """Payment was taken but the order cannot be fulfilled from stock."""
        return self.status == ConfirmationStatus.STOCK_UNAVAILABLE


class PaymentConfirmationService:
    """
    Confirms payments against orders.

    Transaction boundary:
        Each attempt opens a session from ``session_factory``, applies the
        lock timeout, calls set_status(order_id, pagado), and commits.  A
        SerializationConflictError rolls the attempt back and retries after
        ``retry_backoff_seconds * attempt``, up to ``max_attempts``.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        max_attempts: int = 3,
        retry_backoff_seconds: float = 0.05,
        lock_timeout_ms: int | None = 5000,
        ledger_policy: LedgerPolicy = LedgerPolicy.DECREMENTED_ONLY,
        sale_reason: str = SALE_CONFIRMED_REASON,
        unvarianted_reason: str = UNVARIANTED_SALE_REASON,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._max_attempts = max_attempts
        self._retry_backoff_seconds = retry_backoff_seconds
        self._lock_timeout_ms = lock_timeout_ms
        self._ledger_policy = LedgerPolicy(ledger_policy)
        self._sale_reason = sale_reason
        self._unvarianted_reason = unvarianted_reason
        self._sleep = sleep

    def _status_service(self, session: Session) -> OrderStatusService:
        engine = DeductionEngine(
            session,
            self._clock,
            ledger_policy=self._ledger_policy,
            sale_reason=self._sale_reason,
            unvarianted_reason=self._unvarianted_reason,
        )
        return OrderStatusService(session, self._clock, deduction_engine=engine)

    def _attempt(self, order_id: UUID, actor_id: UUID | None) -> TransitionResult:
        session = self._session_factory()
        try:
            with translate_concurrency_errors("Order", order_id):
                apply_lock_timeout(session, self._lock_timeout_ms)
                result = self._status_service(session).set_status(
                    order_id, OrderStatus.PAGADO, actor_id=actor_id
                )
                session.commit()
            return result
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def confirm(self, order_id: UUID, actor_id: UUID | None = None) -> ConfirmationResult:
        """Mark the order paid, deducting stock exactly once."""
        with LogContext.bind(
            order_id=str(order_id),
            actor_id=str(actor_id) if actor_id else None,
        ):
            last_conflict: SerializationConflictError | None = None

            for attempt in range(1, self._max_attempts + 1):
                try:
                    transition = self._attempt(order_id, actor_id)
                except SerializationConflictError as exc:
                    last_conflict = exc
                    logger.warning(
                        "payment_confirmation_conflict",
                        extra={
                            "attempt": attempt,
                            "max_attempts": self._max_attempts,
                            "reason": exc.reason,
                        },
                    )
                    if attempt < self._max_attempts:
                        self._sleep(self._retry_backoff_seconds * attempt)
                    continue
                except StockViolationError as exc:
                    logger.error(
                        "payment_confirmation_stock_unavailable",
                        extra={
                            "variant_id": exc.variant_id,
                            "requested": exc.requested,
                            "available": exc.available,
                        },
                    )
                    return ConfirmationResult(
                        status=ConfirmationStatus.STOCK_UNAVAILABLE,
                        order_id=order_id,
                        attempts=attempt,
                        error_code=exc.code,
                        message=str(exc),
                    )
                except OrderNotFoundError as exc:
                    logger.warning("payment_confirmation_order_not_found")
                    return ConfirmationResult(
                        status=ConfirmationStatus.ORDER_NOT_FOUND,
                        order_id=order_id,
                        attempts=attempt,
                        error_code=exc.code,
                        message=str(exc),
                    )
                except InvalidTransitionError as exc:
                    logger.warning(
                        "payment_confirmation_invalid_transition",
                        extra={"from_status": exc.from_status},
                    )
                    return ConfirmationResult(
                        status=ConfirmationStatus.INVALID_TRANSITION,
                        order_id=order_id,
                        attempts=attempt,
                        error_code=exc.code,
                        message=str(exc),
                    )

                status = (
                    ConfirmationStatus.CONFIRMED
                    if transition.changed
                    else ConfirmationStatus.ALREADY_PAID
                )
                logger.info(
                    "payment_confirmed",
                    extra={
                        "result_status": status.value,
                        "attempt": attempt,
                        "units_deducted": (
                            transition.deduction.units_deducted
                            if transition.deduction
                            else 0
                        ),
                    },
                )
                return ConfirmationResult(
                    status=status,
                    order_id=order_id,
                    attempts=attempt,
                    transition=transition,
                )

            logger.error(
                "payment_confirmation_gave_up",
                extra={"attempts": self._max_attempts},
            )
            return ConfirmationResult(
                status=ConfirmationStatus.CONFLICT,
                order_id=order_id,
                attempts=self._max_attempts,
                error_code=last_conflict.code if last_conflict else None,
                message=str(last_conflict) if last_conflict else None,
            )
