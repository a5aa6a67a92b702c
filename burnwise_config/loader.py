"""
Settings loader (``burnwise_config.loader``).

Loads a YAML settings file and parses it into ``KernelSettings``.  Callers
go through ``burnwise_config.get_active_settings()``; this module is the
parsing step behind it.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid values (unknown currency, tolerance too large)  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from burnwise_config.schema import DatabaseSettings, KernelSettings
from burnwise_kernel.domain.currency import CurrencyRegistry


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Decimal from a YAML scalar; floats go through str() to keep their digits."""
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field_name}: cannot parse {value!r} as a decimal") from exc


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    return DatabaseSettings(
        url=data.get("url", DatabaseSettings.url),
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", DatabaseSettings.pool_size)),
        max_overflow=int(data.get("max_overflow", DatabaseSettings.max_overflow)),
        sqlite_busy_timeout=float(
            data.get("sqlite_busy_timeout", DatabaseSettings.sqlite_busy_timeout)
        ),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed settings document."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_settings(data: dict[str, Any]) -> KernelSettings:
    """
    Parse a settings document into ``KernelSettings``.

    Preconditions:
        - ``data`` has a ``ledger`` section with at least ``base_currency``.
    Raises:
        KeyError: if required keys are missing.
        ValueError: unknown currency codes, or a tolerance that is not
            below one minor unit of the base currency.
    """
    ledger = data["ledger"]
    base_currency = str(ledger["base_currency"]).upper()
    if not CurrencyRegistry.is_valid(base_currency):
        raise ValueError(f"ledger.base_currency: unknown currency {base_currency!r}")
    supported_raw = (data.get("currencies") or {}).get("supported") or [base_currency]

    supported: list[str] = []
    for code in supported_raw:
        if not CurrencyRegistry.is_valid(str(code)):
            raise ValueError(f"currencies.supported: unknown currency {code!r}")
        supported.append(CurrencyRegistry.normalize(str(code)))

    tolerance = parse_decimal(ledger.get("tolerance", "0.005"), "ledger.tolerance")
    base_unit = CurrencyRegistry.get(base_currency).minor_unit
    if tolerance >= base_unit:
        raise ValueError(
            f"ledger.tolerance {tolerance} must be below one {base_currency} minor unit ({base_unit})"
        )

    return KernelSettings(
        config_id=str(data.get("config_id", "unnamed")),
        version=int(data.get("version", 1)),
        base_currency=base_currency,
        supported_currencies=tuple(supported),
        tolerance=tolerance,
        upcoming_window_days=int(ledger.get("upcoming_window_days", 30)),
        payment_methods=tuple(str(m) for m in ledger.get("payment_methods", ("cash", "bank", "card", "other"))),
        database=parse_database(data.get("database") or {}),
        checksum=compute_checksum(data),
    )
