"""
fulfillment_config -- single public entrypoint for kernel settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_settings()``.  No kernel component reads configuration files or
    environment variables directly.

Architecture position:
    Configuration -- sits above ``fulfillment_kernel``.  The kernel MUST
    NEVER import from ``fulfillment_config``; ``bridges`` translates
    settings into kernel objects.

Failure modes:
    - ``FileNotFoundError`` -- the given settings file does not exist.
    - ``ConfigError`` (a ``ValueError``) -- invalid settings values.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from fulfillment_config.loader import load_settings
from fulfillment_config.schema import (
    ConfigError,
    DatabaseSettings,
    EngineSettings,
    FulfillmentSettings,
    LoggingSettings,
    PaymentSettings,
)

_logger = logging.getLogger("fulfillment_kernel.config")

DATABASE_URL_ENV = "FULFILLMENT_DATABASE_URL"


def get_settings(
    path: Path | str | None = None,
    environ: dict[str, str] | None = None,
) -> FulfillmentSettings:
    """The ONLY public settings entrypoint.

    Args:
        path: Optional YAML file merged over the packaged defaults.
        environ: Environment mapping (defaults to ``os.environ``).  When it
            holds ``FULFILLMENT_DATABASE_URL`` that URL wins over any file.
    """
    env = os.environ if environ is None else environ
    settings = load_settings(
        Path(path) if path is not None else None,
        database_url=env.get(DATABASE_URL_ENV),
    )
    _logger.info(
        "settings_loaded",
        extra={
            "settings_path": str(path) if path is not None else None,
            "ledger_policy": settings.engine.ledger_policy.value,
            "database_url_from_env": DATABASE_URL_ENV in env,
        },
    )
    return settings


__all__ = [
    "get_settings",
    "ConfigError",
    "FulfillmentSettings",
    "DatabaseSettings",
    "EngineSettings",
    "PaymentSettings",
    "LoggingSettings",
    "DATABASE_URL_ENV",
]
