"""
Module: fulfillment_kernel.models.catalog
Responsibility: ORM persistence for the catalog entries the deduction engine
    touches -- products and their stock-carrying variants.
Architecture position: Kernel > Models.  May import from db/base.py and domain/.

Invariants enforced:
    NON_NEGATIVE_STOCK -- ck_stock_nonneg CHECK (stock >= 0) on
        product_variants.  A violating UPDATE raises IntegrityError and
        aborts the enclosing transaction.
    - products.sku is unique (uq_product_sku).
    - products.status is one of draft|pending|published|hidden.

Failure modes:
    - IntegrityError on duplicate SKU or a negative stock write.

Audit relevance:
    ProductVariant.stock is the only column the deduction engine mutates.
    Its value, together with the inventory ledger, must reconcile.
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

from fulfillment_kernel.db.base import TrackedBase, UUIDString
from fulfillment_kernel.domain.dtos import ProductStatus

_PRODUCT_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in ProductStatus)


class Product(TrackedBase):
    """
    Catalog entry.  Owns zero or more variants; a product without variants
    has no stock for the deduction engine to decrement.
    """

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_product_sku"),
        CheckConstraint(
            f"status IN ({_PRODUCT_STATUS_VALUES})",
            name="ck_product_status_allowed",
        ),
        Index("idx_products_status", "status"),
        Index("idx_products_name", "name"),
    )

    sku: Mapped[str] = mapped_column(String(100), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    price: Mapped[Decimal] = mapped_column(nullable=False)

    price_offer: Mapped[Decimal | None] = mapped_column(nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=ProductStatus.DRAFT.value,
        nullable=False,
    )

    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    variants: Mapped[list[ProductVariant]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Product {self.sku}: {self.status}>"


class ProductVariant(TrackedBase):
    """
    Sellable unit of a product.  Carries its own stock counter.

    name, sku, and price are optional overrides of the parent product.
    """

    __tablename__ = "product_variants"

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_stock_nonneg"),
        Index("idx_product_variants_product_id", "product_id"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )

    name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    sku: Mapped[str | None] = mapped_column(String(100), nullable=True)

    price: Mapped[Decimal | None] = mapped_column(nullable=True)

    stock: Mapped[int] = mapped_column(
        Integer,
        default=0,
        server_default="0",
        nullable=False,
    )

    product: Mapped[Product] = relationship(back_populates="variants")

    def __repr__(self) -> str:
        return f"<ProductVariant {self.id} stock={self.stock}>"
