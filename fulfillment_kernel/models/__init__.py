"""ORM models.  Importing this package registers every table on Base.metadata."""

from fulfillment_kernel.models.catalog import Product, ProductVariant
from fulfillment_kernel.models.inventory import InventoryMovement
from fulfillment_kernel.models.order import Order, OrderItem
from fulfillment_kernel.models.sequence import SequenceCounter

__all__ = [
    "Product",
    "ProductVariant",
    "Order",
    "OrderItem",
    "InventoryMovement",
    "SequenceCounter",
]
