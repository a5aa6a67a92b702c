"""
burnwise_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration.  Sits above ``burnwise_kernel``; the kernel MUST NEVER
    import from ``burnwise_config``.  ``bridges`` translates settings into
    kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- the requested settings file does not exist.
    - ``ValueError`` -- validation failures (unknown currency, tolerance
      not below one minor unit, unknown payment method).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from burnwise_config.loader import load_yaml_file, parse_settings
from burnwise_config.schema import DatabaseSettings, KernelSettings

_logger = logging.getLogger("burnwise_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_ENV_VAR = "BURNWISE_CONFIG"


def get_active_settings(config_path: Path | str | None = None) -> KernelSettings:
    """The ONLY public settings entrypoint.

    Resolution order: ``config_path``, then the file named by the
    ``BURNWISE_CONFIG`` environment variable, then the packaged defaults.

    Guarantees:
        - The returned ``KernelSettings`` has passed validation.
        - A ``burnwise_config_loaded`` log entry is emitted on every call.
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR) or DEFAULTS_PATH
    path = Path(config_path)

    settings = parse_settings(load_yaml_file(path))
    _logger.info(
        "burnwise_config_loaded",
        extra={
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "path": str(path),
            "base_currency": settings.base_currency,
        },
    )
    return settings


__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULTS_PATH",
    "DatabaseSettings",
    "KernelSettings",
    "get_active_settings",
]
