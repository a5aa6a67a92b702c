"""
Configuration schema (``burnwise_config.schema``).

Frozen dataclasses that a parsed YAML settings file is turned into.  The
kernel never sees these types; ``burnwise_config.bridges`` converts them
into kernel inputs (``LedgerPolicy``) and engine arguments.

Invariants enforced
-------------------
* base_currency is one of supported_currencies.
* 0 <= tolerance < one minor unit of every supported currency.
* payment_methods is non-empty and drawn from the known methods.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

KNOWN_PAYMENT_METHODS = ("cash", "bank", "card", "other")


@dataclass(frozen=True)
class DatabaseSettings:
    """Engine arguments for ``burnwise_kernel.db.init_engine_from_url``."""

    url: str = "sqlite:///burnwise.db"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    sqlite_busy_timeout: float = 30.0

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url must not be empty")
        if self.pool_size < 1:
            raise ValueError(f"database.pool_size must be >= 1, got {self.pool_size}")


@dataclass(frozen=True)
class KernelSettings:
    """Validated runtime settings for the ledger kernel."""

    config_id: str
    version: int
    base_currency: str
    supported_currencies: tuple[str, ...]
    tolerance: Decimal
    upcoming_window_days: int
    payment_methods: tuple[str, ...]
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    checksum: str = ""

    def __post_init__(self) -> None:
        if self.base_currency not in self.supported_currencies:
            raise ValueError(
                f"base_currency {self.base_currency!r} is not in supported_currencies"
            )
        if self.tolerance < 0:
            raise ValueError(f"tolerance must not be negative, got {self.tolerance}")
        if self.upcoming_window_days < 0:
            raise ValueError(
                f"upcoming_window_days must be >= 0, got {self.upcoming_window_days}"
            )
        if not self.payment_methods:
            raise ValueError("payment_methods must not be empty")
        unknown = set(self.payment_methods) - set(KNOWN_PAYMENT_METHODS)
        if unknown:
            raise ValueError(f"unknown payment methods: {sorted(unknown)}")
