"""Pure domain layer: order state machine, clock, DTOs."""

from fulfillment_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from fulfillment_kernel.domain.dtos import (
    SALE_CONFIRMED_REASON,
    UNVARIANTED_SALE_REASON,
    DeductionResult,
    LedgerPolicy,
    MovementDraft,
    MovementRecord,
    OrderInfo,
    OrderItemInfo,
    OrderItemSpec,
    ProductInfo,
    ProductStatus,
    ReconciliationResult,
    StockDecrement,
    TransitionResult,
    VariantStock,
)
from fulfillment_kernel.domain.order_status import (
    ORDER_TRANSITIONS,
    TERMINAL_ORDER_STATUSES,
    OrderStatus,
    is_paid_transition,
    is_valid_transition,
    validate_transition,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "OrderStatus",
    "ORDER_TRANSITIONS",
    "TERMINAL_ORDER_STATUSES",
    "is_paid_transition",
    "is_valid_transition",
    "validate_transition",
    "SALE_CONFIRMED_REASON",
    "UNVARIANTED_SALE_REASON",
    "LedgerPolicy",
    "ProductStatus",
    "ProductInfo",
    "VariantStock",
    "OrderItemSpec",
    "OrderItemInfo",
    "OrderInfo",
    "StockDecrement",
    "MovementDraft",
    "MovementRecord",
    "DeductionResult",
    "TransitionResult",
    "ReconciliationResult",
]
