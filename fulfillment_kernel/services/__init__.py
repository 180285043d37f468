"""Kernel services -- the imperative shell over the domain core."""

from fulfillment_kernel.services.catalog_service import CatalogService
from fulfillment_kernel.services.deduction_engine import DeductionEngine
from fulfillment_kernel.services.inventory_ledger import InventoryLedger
from fulfillment_kernel.services.order_service import OrderService
from fulfillment_kernel.services.order_status_service import OrderStatusService
from fulfillment_kernel.services.payment_confirmation import (
    ConfirmationResult,
    ConfirmationStatus,
    PaymentConfirmationService,
)
from fulfillment_kernel.services.sequence_service import SequenceService

__all__ = [
    "CatalogService",
    "DeductionEngine",
    "InventoryLedger",
    "OrderService",
    "OrderStatusService",
    "PaymentConfirmationService",
    "ConfirmationResult",
    "ConfirmationStatus",
    "SequenceService",
]
