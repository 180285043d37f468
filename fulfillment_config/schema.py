"""
Settings schema.

Frozen dataclasses produced by the loader from YAML.  Field defaults
mirror defaults.yaml so the types are usable on their own in tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from fulfillment_kernel.domain.dtos import (
    SALE_CONFIRMED_REASON,
    UNVARIANTED_SALE_REASON,
    LedgerPolicy,
)


class ConfigError(ValueError):
    """A settings value is missing, malformed, or out of range."""


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection and pool settings for the SQLAlchemy engine."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_pre_ping: bool = True
    pool_timeout: int = 30
    pool_recycle: int = 1800


@dataclass(frozen=True)
class EngineSettings:
    """Deduction engine behaviour."""

    ledger_policy: LedgerPolicy = LedgerPolicy.DECREMENTED_ONLY
    sale_reason: str = SALE_CONFIRMED_REASON
    unvarianted_reason: str = UNVARIANTED_SALE_REASON


@dataclass(frozen=True)
class PaymentSettings:
    """Retry and lock-wait bounds for payment confirmation."""

    max_attempts: int = 3
    retry_backoff_seconds: float = 0.05
    lock_timeout_ms: int | None = 5000


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class FulfillmentSettings:
    database: DatabaseSettings
    engine: EngineSettings = field(default_factory=EngineSettings)
    payment: PaymentSettings = field(default_factory=PaymentSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
