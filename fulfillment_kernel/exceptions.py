"""
Typed Exception Hierarchy for the Fulfillment Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the engine (payment callbacks, admin tools, audit jobs) must be
able to tell a hard inventory failure from a transient lock conflict without
parsing messages. Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (not just a message string)

Example - RIGHT way:
    try:
        status_service.set_status(order_id, OrderStatus.PAGADO)
    except StockViolationError as e:
        flag_for_manual_review(e.variant_id, e.requested, e.available)
    except SerializationConflictError:
        retry()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FulfillmentKernelError (base)
    |
    +-- OrderError
    |   +-- OrderNotFoundError
    |   +-- InvalidTransitionError
    |
    +-- CatalogError
    |   +-- ProductNotFoundError
    |   +-- VariantNotFoundError
    |   +-- VariantProductMismatchError
    |
    +-- OrderItemError
    |   +-- InvalidQuantityError
    |
    +-- StockError
    |   +-- StockViolationError
    |
    +-- DeductionError
    |   +-- DeductionAlreadyAppliedError
    |
    +-- ConcurrencyError
    |   +-- SerializationConflictError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Order           | ORDER_NOT_FOUND             | Order ID doesn't exist
                | INVALID_TRANSITION          | Target status not reachable
----------------|-----------------------------|-----------------------------------------
Catalog         | PRODUCT_NOT_FOUND           | Product ID doesn't exist
                | VARIANT_NOT_FOUND           | Variant ID doesn't exist
                | VARIANT_PRODUCT_MISMATCH    | Variant belongs to another product
----------------|-----------------------------|-----------------------------------------
Order item      | INVALID_QUANTITY            | qty <= 0
----------------|-----------------------------|-----------------------------------------
Stock           | STOCK_VIOLATION             | Decrement would make stock negative
----------------|-----------------------------|-----------------------------------------
Deduction       | DEDUCTION_ALREADY_APPLIED   | Order stock was already deducted
----------------|-----------------------------|-----------------------------------------
Concurrency     | SERIALIZATION_CONFLICT      | Lock timeout / deadlock / stale row
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying a ledger row or order item

===============================================================================
HANDLING PATTERNS
===============================================================================

1. StockViolationError is a HARD failure. The payment succeeded but the
   order cannot be fulfilled; the payment flow reports a failed
   confirmation and routes the order to refund / manual review.

2. SerializationConflictError is TRANSIENT. Retry the whole operation from
   the top (re-read status, re-check transition). PaymentConfirmationService
   does this automatically.

3. InvalidTransitionError and OrderNotFoundError are never retried.
"""


class FulfillmentKernelError(Exception):
    """
    Base exception for all fulfillment kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FULFILLMENT_KERNEL_ERROR"


# Order-related exceptions


class OrderError(FulfillmentKernelError):
    """Base exception for order-related errors."""

    code: str = "ORDER_ERROR"


class OrderNotFoundError(OrderError):
    """Order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class InvalidTransitionError(OrderError):
    """Requested status is not reachable from the order's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, order_id: str, from_status: str, to_status: str):
        self.order_id = order_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Order {order_id}: transition {from_status!r} -> {to_status!r} "
            "is not allowed"
        )


# Catalog-related exceptions


class CatalogError(FulfillmentKernelError):
    """Base exception for catalog-related errors."""

    code: str = "CATALOG_ERROR"


class ProductNotFoundError(CatalogError):
    """Product with given ID was not found."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class VariantNotFoundError(CatalogError):
    """Variant with given ID was not found."""

    code: str = "VARIANT_NOT_FOUND"

    def __init__(self, variant_id: str):
        self.variant_id = variant_id
        super().__init__(f"Variant not found: {variant_id}")


class VariantProductMismatchError(CatalogError):
    """Variant does not belong to the product it was ordered against."""

    code: str = "VARIANT_PRODUCT_MISMATCH"

    def __init__(self, variant_id: str, product_id: str, actual_product_id: str):
        self.variant_id = variant_id
        self.product_id = product_id
        self.actual_product_id = actual_product_id
        super().__init__(
            f"Variant {variant_id} belongs to product {actual_product_id}, "
            f"not {product_id}"
        )


# Order item exceptions


class OrderItemError(FulfillmentKernelError):
    """Base exception for order item errors."""

    code: str = "ORDER_ITEM_ERROR"


class InvalidQuantityError(OrderItemError):
    """Order item quantity must be strictly positive."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, qty: int):
        self.qty = qty
        super().__init__(f"Order item quantity must be > 0, got {qty}")


# Stock-related exceptions


class StockError(FulfillmentKernelError):
    """Base exception for stock-related errors."""

    code: str = "STOCK_ERROR"


class StockViolationError(StockError):
    """
    A stock change would drive a variant below zero.

    Raised before the write when detected in application code, and
    translated from the ck_stock_nonneg check constraint otherwise.
    Inside a deduction, the whole order's deduction is rolled back.
    """

    code: str = "STOCK_VIOLATION"

    def __init__(
        self,
        variant_id: str,
        available: int | None,
        requested: int,
        order_id: str | None = None,
    ):
        self.variant_id = variant_id
        self.available = available
        self.requested = requested
        self.order_id = order_id
        detail = f" for order {order_id}" if order_id else ""
        super().__init__(
            f"Insufficient stock on variant {variant_id}{detail}: "
            f"requested {requested}, available {available}"
        )


# Deduction-related exceptions


class DeductionError(FulfillmentKernelError):
    """Base exception for deduction engine errors."""

    code: str = "DEDUCTION_ERROR"


class DeductionAlreadyAppliedError(DeductionError):
    """Stock for this order has already been deducted."""

    code: str = "DEDUCTION_ALREADY_APPLIED"

    def __init__(self, order_id: str, deducted_at: str):
        self.order_id = order_id
        self.deducted_at = deducted_at
        super().__init__(
            f"Stock for order {order_id} was already deducted at {deducted_at}"
        )


# Concurrency-related exceptions


class ConcurrencyError(FulfillmentKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class SerializationConflictError(ConcurrencyError):
    """
    A concurrent transaction holds or changed the row we need.

    Covers lock timeouts, deadlocks, serialization failures, and stale
    optimistic-version writes. Safe to retry the whole operation.
    """

    code: str = "SERIALIZATION_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Serialization conflict on {entity_type} {entity_id}: {reason}"
        )


# Immutability-related exceptions


class ImmutabilityError(FulfillmentKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    InventoryMovement rows and OrderItem rows are write-once.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
