"""
ORM-Level Immutability Enforcement (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

The inventory ledger is an audit trail: once a movement is written it is
never changed or removed, and the order items it was derived from are
equally fixed.  Corrections are new movements, never edits.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications through Python/SQLAlchemy code
    - Fires BEFORE the SQL is sent to the database
    - Active on every backend (PostgreSQL and SQLite)

  Layer 2: db/sql/*.sql (PostgreSQL triggers)
    - Catches raw SQL, bulk UPDATE statements, direct psql access

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | When Immutable                  | Why
--------------------|---------------------------------|----------------------------------
InventoryMovement   | ALWAYS (from creation)          | Write-once ledger
OrderItem           | ALWAYS (from creation); removed | Deduction input, price snapshot
                    | only by the orders FK cascade   |
Order               | All columns except status,      | Checkout data is fixed; only the
                    | stock_deducted_at, version,     | lifecycle fields move
                    | updated_at                      |
Order               | stock_deducted_at once set      | Deduction happens at most once

===============================================================================
USAGE
===============================================================================

Called once at application startup (bridges.init_engine does it):

    from fulfillment_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
    # ... do forbidden operation ...
    register_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from fulfillment_kernel.exceptions import ImmutabilityViolationError
from fulfillment_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Order columns that may change after checkout.
ORDER_MUTABLE_FIELDS = frozenset({"status", "stock_deducted_at", "version", "updated_at"})


def _blocked(entity_type: str, entity_id, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "invariant": "ledger_append_only",
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_movement_update(mapper, connection, target):
    """Inventory movements are never modified."""
    _blocked(
        "InventoryMovement", target.id, "UPDATE",
        "Inventory movements are immutable and cannot be modified",
    )


def _check_movement_delete(mapper, connection, target):
    """Inventory movements are never deleted."""
    _blocked(
        "InventoryMovement", target.id, "DELETE",
        "Inventory movements cannot be deleted",
    )


def _check_order_item_update(mapper, connection, target):
    """Order items are fixed at checkout."""
    _blocked(
        "OrderItem", target.id, "UPDATE",
        "Order items are immutable once created",
    )


def _check_order_item_delete(mapper, connection, target):
    """
    Order items are fixed at checkout.

    Deleting the parent order never reaches this listener: Order.items uses
    passive_deletes="all", so the rows go through the FK cascade, which the
    PostgreSQL trigger allows as well.
    """
    _blocked(
        "OrderItem", target.id, "DELETE",
        "Order items cannot be deleted",
    )


def _check_order_immutability(mapper, connection, target):
    """
    Allow only lifecycle columns to change on an order, and
    stock_deducted_at only from NULL to a value.
    """
    for attr in mapper.column_attrs:
        key = attr.key
        history = get_history(target, key)
        if not history.has_changes():
            continue
        if key not in ORDER_MUTABLE_FIELDS:
            _blocked(
                "Order", target.id, "UPDATE",
                f"Field '{key}' is fixed at checkout",
            )
        if key == "stock_deducted_at" and history.deleted and history.deleted[0] is not None:
            _blocked(
                "Order", target.id, "UPDATE",
                "stock_deducted_at cannot change once set",
            )


_LISTENERS = (
    ("InventoryMovement", "before_update", _check_movement_update),
    ("InventoryMovement", "before_delete", _check_movement_delete),
    ("OrderItem", "before_update", _check_order_item_update),
    ("OrderItem", "before_delete", _check_order_item_delete),
    ("Order", "before_update", _check_order_immutability),
)


def _targets():
    from fulfillment_kernel.models import InventoryMovement, Order, OrderItem

    return {
        "InventoryMovement": InventoryMovement,
        "OrderItem": OrderItem,
        "Order": Order,
    }


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners (idempotent).

    Call this after all models are imported but before any database
    operations begin.
    """
    targets = _targets()
    for name, identifier, fn in _LISTENERS:
        if not event.contains(targets[name], identifier, fn):
            event.listen(targets[name], identifier, fn)
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove all immutability listeners. TESTS ONLY."""
    targets = _targets()
    for name, identifier, fn in _LISTENERS:
        if event.contains(targets[name], identifier, fn):
            event.remove(targets[name], identifier, fn)
    logger.debug("immutability_listeners_unregistered")
