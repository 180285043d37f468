"""
Module: fulfillment_kernel.models.inventory
Responsibility: ORM persistence for the append-only inventory ledger.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    LEDGER_APPEND_ONLY -- rows are never updated or deleted
        (db/immutability.py, db/sql/01_inventory_movement.sql).
    - seq is unique and strictly increasing in insertion order; it is
      allocated from the "inventory_movement" sequence counter.
    - delta is non-zero (ck_inventory_movement_delta_nonzero).

Failure modes:
    - ImmutabilityViolationError on any ORM update/delete.
    - IntegrityError on duplicate seq or a zero delta.

Audit relevance:
    For a product, baseline stock plus the sum of deltas of rows with
    applies_to_stock=True reconciles with the sum of its variants' stock.
    Rows with applies_to_stock=False record sales of items that carried no
    variant reference and therefore moved no stock.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from fulfillment_kernel.db.base import Base, UUIDString


class InventoryMovement(Base):
    """One signed stock delta.  Negative for sales."""

    __tablename__ = "inventory_movements"

    __table_args__ = (
        UniqueConstraint("seq", name="uq_inventory_movement_seq"),
        CheckConstraint("delta <> 0", name="ck_inventory_movement_delta_nonzero"),
        Index("idx_inventory_movements_product_seq", "product_id", "seq"),
        Index("idx_inventory_movements_order_id", "order_id"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

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

    order_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("orders.id"),
        nullable=True,
    )

    delta: Mapped[int] = mapped_column(Integer, nullable=False)

    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    applies_to_stock: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<InventoryMovement #{self.seq} {self.product_id} {self.delta:+d}>"
