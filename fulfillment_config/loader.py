"""
Settings loader (``fulfillment_config.loader``).

Responsibility
--------------
Reads YAML settings files and parses them into the frozen dataclasses of
``fulfillment_config.schema``.  Runtime callers use
``fulfillment_config.get_settings()``; this module is its implementation.

Invariants enforced
-------------------
* Every parse error raises ``ConfigError`` naming the offending key.
* A settings file is merged over the packaged defaults key by key, so a
  file only needs the values it changes.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section, wrong type, or out-of-range value  -> ``ConfigError``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from fulfillment_config.schema import (
    ConfigError,
    DatabaseSettings,
    EngineSettings,
    FulfillmentSettings,
    LoggingSettings,
    PaymentSettings,
)
from fulfillment_kernel.domain.dtos import LedgerPolicy

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

_SECTIONS = ("database", "engine", "payment", "logging")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def merge_settings(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Section-by-section merge of ``override`` over ``base``."""
    merged = {section: dict(base.get(section) or {}) for section in _SECTIONS}
    for section, values in override.items():
        if section not in _SECTIONS:
            raise ConfigError(f"Unknown settings section: {section!r}")
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ConfigError(f"Settings section {section!r} must be a mapping")
        merged[section].update(values)
    return merged


def _int(section: str, data: dict[str, Any], key: str, minimum: int = 0) -> int:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{section}.{key} must be an integer, got {value!r}")
    if value < minimum:
        raise ConfigError(f"{section}.{key} must be >= {minimum}, got {value}")
    return value


def _bool(section: str, data: dict[str, Any], key: str) -> bool:
    value = data[key]
    if not isinstance(value, bool):
        raise ConfigError(f"{section}.{key} must be true or false, got {value!r}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    url = data.get("url")
    if not url or not isinstance(url, str):
        raise ConfigError("database.url is required")
    return DatabaseSettings(
        url=url,
        echo=_bool("database", data, "echo"),
        pool_size=_int("database", data, "pool_size", minimum=1),
        max_overflow=_int("database", data, "max_overflow"),
        pool_pre_ping=_bool("database", data, "pool_pre_ping"),
        pool_timeout=_int("database", data, "pool_timeout", minimum=1),
        pool_recycle=_int("database", data, "pool_recycle"),
    )


def parse_engine(data: dict[str, Any]) -> EngineSettings:
    try:
        policy = LedgerPolicy(data["ledger_policy"])
    except ValueError:
        allowed = ", ".join(p.value for p in LedgerPolicy)
        raise ConfigError(
            f"engine.ledger_policy must be one of {allowed}, got {data['ledger_policy']!r}"
        ) from None
    return EngineSettings(
        ledger_policy=policy,
        sale_reason=str(data["sale_reason"]),
        unvarianted_reason=str(data["unvarianted_reason"]),
    )


def parse_payment(data: dict[str, Any]) -> PaymentSettings:
    backoff = data["retry_backoff_seconds"]
    if isinstance(backoff, bool) or not isinstance(backoff, (int, float)) or backoff < 0:
        raise ConfigError(
            f"payment.retry_backoff_seconds must be a number >= 0, got {backoff!r}"
        )
    lock_timeout_ms = data.get("lock_timeout_ms")
    if lock_timeout_ms is not None:
        lock_timeout_ms = _int("payment", data, "lock_timeout_ms")
    return PaymentSettings(
        max_attempts=_int("payment", data, "max_attempts", minimum=1),
        retry_backoff_seconds=float(backoff),
        lock_timeout_ms=lock_timeout_ms,
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    level = str(data["level"]).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigError(f"logging.level is not a logging level: {data['level']!r}")
    return LoggingSettings(level=level)


def parse_settings(data: dict[str, Any]) -> FulfillmentSettings:
    """Build FulfillmentSettings from a fully merged dict."""
    try:
        return FulfillmentSettings(
            database=parse_database(data["database"]),
            engine=parse_engine(data["engine"]),
            payment=parse_payment(data["payment"]),
            logging=parse_logging(data["logging"]),
        )
    except KeyError as exc:
        raise ConfigError(f"Missing settings key: {exc.args[0]!r}") from exc


def load_settings(
    path: Path | None = None,
    database_url: str | None = None,
) -> FulfillmentSettings:
    """Defaults, then ``path`` merged over them, then the URL override."""
    data = merge_settings({}, load_yaml_file(DEFAULTS_PATH))
    if path is not None:
        data = merge_settings(data, load_yaml_file(path))
    if database_url:
        data["database"]["url"] = database_url
    return parse_settings(data)
