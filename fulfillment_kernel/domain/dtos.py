"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures returned by services and selectors:
    catalog views (ProductInfo, VariantStock), order views (OrderInfo,
    OrderItemInfo), checkout input (OrderItemSpec), deduction output
    (StockDecrement, DeductionResult), ledger rows (MovementDraft,
    MovementRecord), and audit output (ReconciliationResult).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from the service and selector layers.

Invariants enforced:
    - Services and selectors return DTOs, never ORM entities.
    - MovementDraft rejects a zero delta.
    - OrderItemSpec rejects a non-positive quantity.

Data flow:
    OrderItemSpec -> OrderItem -> StockDecrement + MovementDraft
        -> MovementRecord -> ReconciliationResult
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from fulfillment_kernel.domain.order_status import OrderStatus
from fulfillment_kernel.exceptions import InvalidQuantityError

if TYPE_CHECKING:
    from fulfillment_kernel.models.catalog import Product as ProductModel
    from fulfillment_kernel.models.catalog import ProductVariant as VariantModel
    from fulfillment_kernel.models.inventory import (
        InventoryMovement as MovementModel,
    )
    from fulfillment_kernel.models.order import Order as OrderModel
    from fulfillment_kernel.models.order import OrderItem as OrderItemModel


SALE_CONFIRMED_REASON = "Venta confirmada"
UNVARIANTED_SALE_REASON = "Venta confirmada (sin variante)"


class ProductStatus(str, Enum):
    """Catalog lifecycle of a product."""

    DRAFT = "draft"
    PENDING = "pending"
    PUBLISHED = "published"
    HIDDEN = "hidden"


class LedgerPolicy(str, Enum):
    """
    Which order items produce a ledger row on payment.

    DECREMENTED_ONLY:
        Only items that decremented a variant's stock are recorded.
        Items without a variant leave no trace in the ledger.
    MARK_UNVARIANTED:
        Every item is recorded.  Items without a variant get
        ``applies_to_stock=False`` and a distinct reason, and are
        excluded from stock reconciliation.
    """

    DECREMENTED_ONLY = "decremented_only"
    MARK_UNVARIANTED = "mark_unvarianted"


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProductInfo:
    id: UUID
    sku: str
    name: str
    price: Decimal
    price_offer: Decimal | None
    status: ProductStatus
    published_at: datetime | None = None

    @classmethod
    def from_model(cls, product: ProductModel) -> ProductInfo:
        return cls(
            id=product.id,
            sku=product.sku,
            name=product.name,
            price=product.price,
            price_offer=product.price_offer,
            status=ProductStatus(product.status),
            published_at=product.published_at,
        )


@dataclass(frozen=True)
class VariantStock:
    """Current stock of one variant."""

    variant_id: UUID
    product_id: UUID
    stock: int
    sku: str | None = None
    name: str | None = None
    price: Decimal | None = None

    @classmethod
    def from_model(cls, variant: VariantModel) -> VariantStock:
        return cls(
            variant_id=variant.id,
            product_id=variant.product_id,
            stock=variant.stock,
            sku=variant.sku,
            name=variant.name,
            price=variant.price,
        )


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrderItemSpec:
    """
    One line of a checkout request.

    ``price`` is the snapshot to record; when None the order store takes it
    from the catalog at creation time.
    """

    product_id: UUID
    qty: int
    variant_id: UUID | None = None
    price: Decimal | None = None

    def __post_init__(self) -> None:
        if self.qty <= 0:
            raise InvalidQuantityError(self.qty)


@dataclass(frozen=True)
class OrderItemInfo:
    id: UUID
    order_id: UUID
    line_number: int
    product_id: UUID
    variant_id: UUID | None
    qty: int
    price: Decimal

    @classmethod
    def from_model(cls, item: OrderItemModel) -> OrderItemInfo:
        return cls(
            id=item.id,
            order_id=item.order_id,
            line_number=item.line_number,
            product_id=item.product_id,
            variant_id=item.variant_id,
            qty=item.qty,
            price=item.price,
        )


@dataclass(frozen=True)
class OrderInfo:
    id: UUID
    owner: UUID | None
    status: OrderStatus
    customer_email: str | None
    customer_name: str | None
    shipping_address: str | None
    stock_deducted_at: datetime | None
    version: int
    items: tuple[OrderItemInfo, ...] = ()

    @property
    def is_stock_deducted(self) -> bool:
        return self.stock_deducted_at is not None

    @classmethod
    def from_model(
        cls, order: OrderModel, include_items: bool = False
    ) -> OrderInfo:
        items: tuple[OrderItemInfo, ...] = ()
        if include_items:
            items = tuple(OrderItemInfo.from_model(i) for i in order.items)
        return cls(
            id=order.id,
            owner=order.owner,
            status=order.status_enum,
            customer_email=order.customer_email,
            customer_name=order.customer_name,
            shipping_address=order.shipping_address,
            stock_deducted_at=order.stock_deducted_at,
            version=order.version,
            items=items,
        )


# ---------------------------------------------------------------------------
# Deduction
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StockDecrement:
    """A single applied stock change on a variant."""

    variant_id: UUID
    product_id: UUID
    quantity: int
    stock_before: int
    stock_after: int


@dataclass(frozen=True)
class MovementDraft:
    """A ledger row to be appended."""

    product_id: UUID
    delta: int
    reason: str
    variant_id: UUID | None = None
    order_id: UUID | None = None
    applies_to_stock: bool = True

    def __post_init__(self) -> None:
        if self.delta == 0:
            raise ValueError("Inventory movement delta must be non-zero")


@dataclass(frozen=True)
class MovementRecord:
    """A persisted ledger row."""

    id: UUID
    seq: int
    product_id: UUID
    variant_id: UUID | None
    order_id: UUID | None
    delta: int
    reason: str | None
    applies_to_stock: bool
    created_at: datetime

    @classmethod
    def from_model(cls, movement: MovementModel) -> MovementRecord:
        return cls(
            id=movement.id,
            seq=movement.seq,
            product_id=movement.product_id,
            variant_id=movement.variant_id,
            order_id=movement.order_id,
            delta=movement.delta,
            reason=movement.reason,
            applies_to_stock=movement.applies_to_stock,
            created_at=movement.created_at,
        )


@dataclass(frozen=True)
class DeductionResult:
    """Everything one paid-order deduction changed."""

    order_id: UUID
    decrements: tuple[StockDecrement, ...]
    movements: tuple[MovementRecord, ...]

    @property
    def units_deducted(self) -> int:
        return sum(d.quantity for d in self.decrements)


@dataclass(frozen=True)
class TransitionResult:
    """
    Outcome of OrderStatusService.set_status().

    ``changed`` is False for an idempotent re-write of the current status;
    ``deduction`` is set only when the write was the qualifying transition.
    """

    order: OrderInfo
    previous_status: OrderStatus
    changed: bool
    deduction: DeductionResult | None = None

    @property
    def deducted(self) -> bool:
        return self.deduction is not None


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReconciliationResult:
    """
    baseline_stock + ledger_net_delta must equal current_stock.

    Differences indicate stock adjustments made outside the deduction
    engine (restocks, manual corrections) or tampering.
    """

    product_id: UUID
    baseline_stock: int
    ledger_net_delta: int
    current_stock: int

    @property
    def expected_stock(self) -> int:
        return self.baseline_stock + self.ledger_net_delta

    @property
    def difference(self) -> int:
        return self.current_stock - self.expected_stock

    @property
    def is_balanced(self) -> bool:
        return self.difference == 0
