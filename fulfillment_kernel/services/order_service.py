"""
OrderService -- the order store used by checkout.

Responsibility:
    Creates orders in ``nuevo`` together with their immutable items, and
    exposes read access to them as DTOs.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by the checkout collaborator.  Status changes go through
    OrderStatusService, never through this service.

Invariants enforced:
    - Every order starts in ``nuevo`` with stock_deducted_at unset.
    - qty > 0, the product exists, and a given variant belongs to the
      given product.
    - Each item carries a price snapshot taken at creation time: explicit
      price, else variant price, else product price_offer, else price.
    LEDGER_APPEND_ONLY -- items are inserted once and never updated.

Failure modes:
    - InvalidQuantityError, ProductNotFoundError, VariantNotFoundError,
      VariantProductMismatchError.
    - ValueError on an empty item list.
    - OrderNotFoundError from the read methods.
"""

from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from fulfillment_kernel.domain.dtos import OrderInfo, OrderItemInfo, OrderItemSpec
from fulfillment_kernel.domain.order_status import OrderStatus
from fulfillment_kernel.exceptions import (
    InvalidQuantityError,
    OrderNotFoundError,
    ProductNotFoundError,
    VariantNotFoundError,
    VariantProductMismatchError,
)
from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.models.catalog import Product, ProductVariant
from fulfillment_kernel.models.order import Order, OrderItem
from fulfillment_kernel.services.base import BaseService

logger = get_logger("services.order")


class OrderService(BaseService[Order]):
    """Creates and reads orders.  Triggers no stock side effect."""

    def _get_order(self, order_id: UUID) -> Order:
        order = self.session.get(Order, order_id)
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return order

    def _price_snapshot(
        self,
        spec: OrderItemSpec,
        product: Product,
        variant: ProductVariant | None,
    ) -> Decimal:
        if spec.price is not None:
            return spec.price
        if variant is not None and variant.price is not None:
            return variant.price
        if product.price_offer is not None:
            return product.price_offer
        return product.price

    def _resolve(self, spec: OrderItemSpec) -> tuple[Product, ProductVariant | None]:
        if spec.qty <= 0:
            raise InvalidQuantityError(spec.qty)

        product = self.session.get(Product, spec.product_id)
        if product is None:
            raise ProductNotFoundError(str(spec.product_id))

        if spec.variant_id is None:
            return product, None

        variant = self.session.get(ProductVariant, spec.variant_id)
        if variant is None:
            raise VariantNotFoundError(str(spec.variant_id))
        if variant.product_id != product.id:
            raise VariantProductMismatchError(
                str(variant.id), str(product.id), str(variant.product_id)
            )
        return product, variant

    def create_order(
        self,
        items: Sequence[OrderItemSpec],
        owner: UUID | None = None,
        customer_email: str | None = None,
        customer_name: str | None = None,
        shipping_address: str | None = None,
    ) -> OrderInfo:
        """
        Create an order in ``nuevo`` with the given items.

        Items get line numbers 1..n in the order given.  All items are
        validated before anything is written.
        """
        if not items:
            raise ValueError("An order needs at least one item")

        resolved = [(spec, *self._resolve(spec)) for spec in items]

        order = Order(
            owner=owner,
            status=OrderStatus.NUEVO.value,
            customer_email=customer_email,
            customer_name=customer_name,
            shipping_address=shipping_address,
        )
        self.session.add(order)
        self.session.flush()

        for line_number, (spec, product, variant) in enumerate(resolved, start=1):
            self.session.add(
                OrderItem(
                    order_id=order.id,
                    line_number=line_number,
                    product_id=product.id,
                    variant_id=variant.id if variant is not None else None,
                    qty=spec.qty,
                    price=self._price_snapshot(spec, product, variant),
                )
            )
        self.session.flush()
        self.session.refresh(order, ["items"])

        logger.info(
            "order_created",
            extra={
                "order_id": str(order.id),
                "item_count": len(resolved),
                "owner": str(owner) if owner else None,
            },
        )
        return OrderInfo.from_model(order, include_items=True)

    def get_order(self, order_id: UUID, include_items: bool = True) -> OrderInfo:
        return OrderInfo.from_model(self._get_order(order_id), include_items=include_items)

    def list_items(self, order_id: UUID) -> list[OrderItemInfo]:
        """Items of an order in line order."""
        self._get_order(order_id)
        items = self.session.execute(
            select(OrderItem)
            .where(OrderItem.order_id == order_id)
            .order_by(OrderItem.line_number)
        ).scalars()
        return [OrderItemInfo.from_model(i) for i in items]
