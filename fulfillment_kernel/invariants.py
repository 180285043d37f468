"""
Kernel Invariants Contract.

These invariants are structural law. They are enforced at the deduction
boundary, by database constraints, and by the immutability listeners.
No setting in fulfillment_config may switch them off.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across CatalogService, OrderStatusService,
DeductionEngine, InventoryLedger, and db/immutability.py.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    NON_NEGATIVE_STOCK = "non_negative_stock"
    """variant.stock >= 0 after every committed transaction. Enforced by
    CatalogService.adjust_stock and the ck_stock_nonneg check constraint."""

    TRANSITION_LEGALITY = "transition_legality"
    """Order status moves only along ORDER_TRANSITIONS. Enforced by
    OrderStatusService and the ck_order_status_allowed check constraint."""

    SINGLE_DEDUCTION = "single_deduction"
    """Stock deduction fires at most once per order, only on the transition
    into pagado. Enforced by is_paid_transition, the order row lock, and
    Order.stock_deducted_at."""

    ATOMIC_DEDUCTION = "atomic_deduction"
    """Status write, every decrement, and every ledger row for an order
    commit or roll back together. Enforced by savepoints in
    OrderStatusService and DeductionEngine."""

    LEDGER_APPEND_ONLY = "ledger_append_only"
    """InventoryMovement and OrderItem rows are never updated or deleted.
    Enforced by ORM listeners and PostgreSQL triggers."""

    ROW_SERIALIZATION = "row_serialization"
    """Concurrent transitions on one order, and concurrent decrements on one
    variant, serialize on row locks. Enforced with SELECT ... FOR UPDATE."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "fulfillment_config",
)
