"""
LedgerPolicy -- the kernel's view of runtime settings.

The kernel never reads configuration files.  ``burnwise_config`` builds a
``LedgerPolicy`` from YAML and callers hand it to the services; services
fall back to ``DEFAULT_POLICY`` when none is given.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from burnwise_kernel.domain.currency import CurrencyRegistry


@dataclass(frozen=True)
class LedgerPolicy:
    """
    Settings consumed by the ledger and aggregation services.

    Guarantees:
        - base_currency is a known currency code.
        - 0 <= tolerance < 0.01.
        - upcoming_window_days >= 0.
    """

    base_currency: str = "TRY"
    tolerance: Decimal = Decimal("0.005")
    upcoming_window_days: int = 30
    payment_methods: tuple[str, ...] = ("cash", "bank", "card", "other")

    def __post_init__(self) -> None:
        if not CurrencyRegistry.is_valid(self.base_currency):
            raise ValueError(f"Unknown base currency: {self.base_currency!r}")
        if not (Decimal("0") <= self.tolerance < Decimal("0.01")):
            raise ValueError(
                f"tolerance must be >= 0 and below 0.01, got {self.tolerance}"
            )
        if self.upcoming_window_days < 0:
            raise ValueError(
                f"upcoming_window_days must be >= 0, got {self.upcoming_window_days}"
            )
        if not self.payment_methods:
            raise ValueError("payment_methods must not be empty")


DEFAULT_POLICY = LedgerPolicy()
