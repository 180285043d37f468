"""
Module: fulfillment_kernel.models.order
Responsibility: ORM persistence for orders and their line items.
Architecture position: Kernel > Models.  May import from db/base.py and domain/.

Invariants enforced:
    TRANSITION_LEGALITY -- ck_order_status_allowed restricts orders.status to
        the closed OrderStatus set.  Transition legality itself lives in
        domain/order_status.py and is enforced by OrderStatusService.
    SINGLE_DEDUCTION -- stock_deducted_at is written exactly once, by the
        deduction engine, in the same transaction as the PAGADO write.
    ROW_SERIALIZATION -- ``version`` is the ORM version counter; a write
        based on a stale read fails with StaleDataError.
    LEDGER_APPEND_ONLY -- OrderItem rows are immutable once inserted
        (db/immutability.py, db/sql/02_order_item.sql).
    - order_items.qty > 0 (ck_order_item_qty_positive).

Failure modes:
    - IntegrityError on an out-of-set status, non-positive qty, or
      duplicate line_number within an order.
    - StaleDataError when the version counter moved underneath a write.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fulfillment_kernel.db.base import Base, TrackedBase, UUIDString
from fulfillment_kernel.domain.order_status import (
    ALLOWED_STATUS_VALUES,
    ORDER_TRANSITIONS,
    TERMINAL_ORDER_STATUSES,
    OrderStatus,
)

_ORDER_STATUS_VALUES = ", ".join(f"'{v}'" for v in ALLOWED_STATUS_VALUES)


class Order(TrackedBase):
    """
    Customer order.

    Guarantees:
        - status is always one of the OrderStatus values.
        - Only status, stock_deducted_at, and version change after checkout.
    """

    __tablename__ = "orders"

    __table_args__ = (
        CheckConstraint(
            f"status IN ({_ORDER_STATUS_VALUES})",
            name="ck_order_status_allowed",
        ),
        Index("idx_orders_status", "status"),
        Index("idx_orders_owner", "owner"),
    )

    # Null for guest checkout
    owner: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=OrderStatus.NUEVO.value,
        server_default=OrderStatus.NUEVO.value,
        nullable=False,
    )

    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    shipping_address: Mapped[str | None] = mapped_column(Text, nullable=True)

    stock_deducted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    items: Mapped[list[OrderItem]] = relationship(
        back_populates="order",
        order_by="OrderItem.line_number",
        cascade="save-update, merge",
        # items go with their order through ON DELETE CASCADE only
        passive_deletes="all",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def status_enum(self) -> OrderStatus:
        """Return status as OrderStatus enum (normalizes raw DB strings)."""
        if isinstance(self.status, OrderStatus):
            return self.status
        return OrderStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.status_enum in TERMINAL_ORDER_STATUSES

    @property
    def allowed_targets(self) -> frozenset[OrderStatus]:
        return ORDER_TRANSITIONS.get(self.status_enum, frozenset())

    def __repr__(self) -> str:
        return f"<Order {self.id}: {self.status_enum.value}>"


class OrderItem(Base):
    """
    One line of an order, written at checkout and never changed.

    variant_id is nullable: an item may reference a product without a
    specific variant, in which case no stock is decremented for it.
    price is the snapshot at purchase time, independent of the catalog.
    """

    __tablename__ = "order_items"

    __table_args__ = (
        UniqueConstraint("order_id", "line_number", name="uq_order_item_line"),
        CheckConstraint("qty > 0", name="ck_order_item_qty_positive"),
        Index("idx_order_items_order_id", "order_id"),
        Index("idx_order_items_variant_id", "variant_id"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )

    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    variant_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("product_variants.id"),
        nullable=True,
    )

    qty: Mapped[int] = mapped_column(Integer, nullable=False)

    price: Mapped[Decimal] = mapped_column(nullable=False)

    order: Mapped[Order] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<OrderItem {self.order_id}#{self.line_number} qty={self.qty}>"
