"""
CatalogService -- the catalog store contract used by the deduction engine.

Responsibility:
    Reads and changes variant stock under row locks, and offers the small
    set of catalog-management writes that collaborators (and tests) need
    to put products and variants in place.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by DeductionEngine (lock_variants, adjust_stock) and by catalog
    administration code (create_product, add_variant, publish_product).

Invariants enforced:
    NON_NEGATIVE_STOCK -- adjust_stock() refuses a change that would take
        stock below zero, and translates a ck_stock_nonneg violation from
        the database into the same StockViolationError.
    ROW_SERIALIZATION -- every stock change reads the variant with
        ``SELECT ... FOR UPDATE`` first.

Failure modes:
    - ProductNotFoundError / VariantNotFoundError for unknown ids.
    - StockViolationError when stock would go negative.
    - ValueError on a zero adjustment or a negative initial stock.

Audit relevance:
    Every stock change is logged (``stock_adjusted``) with variant id,
    delta, and before/after values.  Refusals log ``stock_violation``.
"""

from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fulfillment_kernel.db.errors import violates_constraint
from fulfillment_kernel.domain.clock import Clock, SystemClock
from fulfillment_kernel.domain.dtos import ProductInfo, ProductStatus, VariantStock
from fulfillment_kernel.exceptions import (
    ProductNotFoundError,
    StockViolationError,
    VariantNotFoundError,
)
from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.models.catalog import Product, ProductVariant
from fulfillment_kernel.services.base import BaseService

logger = get_logger("services.catalog")

STOCK_CONSTRAINT = "ck_stock_nonneg"


class CatalogService(BaseService[ProductVariant]):
    """
    Service over products and their stock-carrying variants.

    Contract:
        Returns frozen ``ProductInfo`` / ``VariantStock`` DTOs.  Writes flush
        within the caller's transaction.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _get_product(self, product_id: UUID) -> Product:
        product = self.session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def _get_variant(self, variant_id: UUID, for_update: bool = False) -> ProductVariant:
        stmt = select(ProductVariant).where(ProductVariant.id == variant_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        variant = self.session.execute(stmt).scalar_one_or_none()
        if variant is None:
            raise VariantNotFoundError(str(variant_id))
        return variant

    def get_product(self, product_id: UUID) -> ProductInfo:
        return ProductInfo.from_model(self._get_product(product_id))

    def get_variant_stock(self, variant_id: UUID) -> VariantStock:
        """Current stock of a variant, as committed or flushed in this session."""
        return VariantStock.from_model(self._get_variant(variant_id))

    def list_variants(self, product_id: UUID) -> list[VariantStock]:
        """All variants of a product, ordered by id."""
        self._get_product(product_id)
        variants = self.session.execute(
            select(ProductVariant)
            .where(ProductVariant.product_id == product_id)
            .order_by(ProductVariant.id)
        ).scalars().all()
        return [VariantStock.from_model(v) for v in variants]

    # ------------------------------------------------------------------
    # Stock
    # ------------------------------------------------------------------

    def lock_variants(self, variant_ids: Iterable[UUID]) -> list[VariantStock]:
        """
        Lock the given variant rows in ascending id order.

        Every caller locking more than one variant goes through here, so two
        transactions touching overlapping variants always acquire the locks
        in the same order and cannot deadlock on each other.

        Raises:
            VariantNotFoundError: If any id does not exist.
        """
        ordered = sorted(set(variant_ids))
        if not ordered:
            return []

        variants = self.session.execute(
            select(ProductVariant)
            .where(ProductVariant.id.in_(ordered))
            .order_by(ProductVariant.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()

        found = {v.id for v in variants}
        for variant_id in ordered:
            if variant_id not in found:
                raise VariantNotFoundError(str(variant_id))

        logger.debug("variants_locked", extra={"variant_count": len(variants)})
        return [VariantStock.from_model(v) for v in variants]

    def adjust_stock(
        self,
        variant_id: UUID,
        delta: int,
        order_id: UUID | None = None,
    ) -> VariantStock:
        """
        Add ``delta`` (signed) to a variant's stock under a row lock.

        Postconditions:
            - The variant row is locked until the transaction ends.
            - stock_after == stock_before + delta and stock_after >= 0.

        Raises:
            VariantNotFoundError: Unknown variant.
            StockViolationError: stock_before + delta < 0.  Nothing is written.
            ValueError: delta == 0.
        """
        if delta == 0:
            raise ValueError("Stock adjustment delta must be non-zero")

        variant = self._get_variant(variant_id, for_update=True)
        stock_before = variant.stock
        stock_after = stock_before + delta

        if stock_after < 0:
            logger.warning(
                "stock_violation",
                extra={
                    "invariant": "non_negative_stock",
                    "variant_id": str(variant_id),
                    "order_id": str(order_id) if order_id else None,
                    "available": stock_before,
                    "requested": -delta,
                },
            )
            raise StockViolationError(
                str(variant_id),
                available=stock_before,
                requested=-delta,
                order_id=str(order_id) if order_id else None,
            )

        variant.stock = stock_after
        try:
            self.session.flush()
        except IntegrityError as exc:
            if not violates_constraint(exc, STOCK_CONSTRAINT):
                raise
            logger.warning(
                "stock_violation",
                extra={
                    "invariant": "non_negative_stock",
                    "variant_id": str(variant_id),
                    "order_id": str(order_id) if order_id else None,
                    "requested": -delta,
                    "source": "database",
                },
            )
            raise StockViolationError(
                str(variant_id),
                available=None,
                requested=-delta,
                order_id=str(order_id) if order_id else None,
            ) from exc

        logger.info(
            "stock_adjusted",
            extra={
                "variant_id": str(variant_id),
                "delta": delta,
                "stock_before": stock_before,
                "stock_after": stock_after,
            },
        )
        return VariantStock.from_model(variant)

    # ------------------------------------------------------------------
    # Catalog management
    # ------------------------------------------------------------------

    def create_product(
        self,
        sku: str,
        name: str,
        price: Decimal,
        price_offer: Decimal | None = None,
        description: str | None = None,
    ) -> ProductInfo:
        """Create a product in ``draft`` status."""
        product = Product(
            sku=sku,
            name=name,
            price=price,
            price_offer=price_offer,
            description=description,
            status=ProductStatus.DRAFT.value,
        )
        self.session.add(product)
        self.session.flush()

        logger.info(
            "product_created",
            extra={"product_id": str(product.id), "sku": sku},
        )
        return ProductInfo.from_model(product)

    def add_variant(
        self,
        product_id: UUID,
        stock: int = 0,
        name: str | None = None,
        sku: str | None = None,
        price: Decimal | None = None,
    ) -> VariantStock:
        """Attach a variant with an initial stock count to a product."""
        if stock < 0:
            raise ValueError(f"Initial stock must be >= 0, got {stock}")

        product = self._get_product(product_id)
        variant = ProductVariant(
            product_id=product.id,
            stock=stock,
            name=name,
            sku=sku,
            price=price,
        )
        self.session.add(variant)
        self.session.flush()

        logger.info(
            "variant_created",
            extra={
                "product_id": str(product.id),
                "variant_id": str(variant.id),
                "stock": stock,
            },
        )
        return VariantStock.from_model(variant)

    def publish_product(self, product_id: UUID) -> ProductInfo:
        """Mark a product published, stamping published_at on first publish."""
        product = self._get_product(product_id)
        product.status = ProductStatus.PUBLISHED.value
        if product.published_at is None:
            product.published_at = self._clock.now()
        self.session.flush()

        logger.info("product_published", extra={"product_id": str(product.id)})
        return ProductInfo.from_model(product)
