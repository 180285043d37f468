"""
Config -> Kernel Bridges.

Functions that turn FulfillmentSettings into kernel objects.  They live in
fulfillment_config (the producer) because the kernel must NEVER import
fulfillment_config.

Usage:
    from fulfillment_config import get_settings
    from fulfillment_config.bridges import init_engine, build_payment_confirmation_service

    settings = get_settings()
    init_engine(settings)
    payments = build_payment_confirmation_service(settings)
    payments.confirm(order_id)
"""

from __future__ import annotations

import logging

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from fulfillment_config.schema import FulfillmentSettings
from fulfillment_kernel.db.engine import get_session_factory, init_engine_from_url
from fulfillment_kernel.db.immutability import register_immutability_listeners
from fulfillment_kernel.domain.clock import Clock
from fulfillment_kernel.logging_config import configure_logging
from fulfillment_kernel.services.deduction_engine import DeductionEngine
from fulfillment_kernel.services.order_status_service import OrderStatusService
from fulfillment_kernel.services.payment_confirmation import PaymentConfirmationService


def init_engine(settings: FulfillmentSettings) -> Engine:
    """Configure logging, create the engine, and register ORM guards."""
    configure_logging(level=logging.getLevelName(settings.logging.level))
    db = settings.database
    engine = init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_pre_ping=db.pool_pre_ping,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )
    register_immutability_listeners()
    return engine


def build_deduction_engine(
    session: Session,
    settings: FulfillmentSettings,
    clock: Clock | None = None,
) -> DeductionEngine:
    return DeductionEngine(
        session,
        clock,
        ledger_policy=settings.engine.ledger_policy,
        sale_reason=settings.engine.sale_reason,
        unvarianted_reason=settings.engine.unvarianted_reason,
    )


def build_order_status_service(
    session: Session,
    settings: FulfillmentSettings,
    clock: Clock | None = None,
) -> OrderStatusService:
    return OrderStatusService(
        session,
        clock,
        deduction_engine=build_deduction_engine(session, settings, clock),
    )


def build_payment_confirmation_service(
    settings: FulfillmentSettings,
    session_factory: sessionmaker[Session] | None = None,
    clock: Clock | None = None,
) -> PaymentConfirmationService:
    """Uses the kernel's session factory unless one is given."""
    return PaymentConfirmationService(
        session_factory or get_session_factory(),
        clock,
        max_attempts=settings.payment.max_attempts,
        retry_backoff_seconds=settings.payment.retry_backoff_seconds,
        lock_timeout_ms=settings.payment.lock_timeout_ms,
        ledger_policy=settings.engine.ledger_policy,
        sale_reason=settings.engine.sale_reason,
        unvarianted_reason=settings.engine.unvarianted_reason,
    )
