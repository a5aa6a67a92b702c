"""
Config -> Kernel bridges.

Functions that turn ``KernelSettings`` into kernel inputs.  They live in
burnwise_config (the producer) because the kernel must never import
burnwise_config.

Usage:
    from burnwise_config import get_active_settings
    from burnwise_config.bridges import build_ledger_policy, init_engine_from_settings

    settings = get_active_settings()
    init_engine_from_settings(settings)
    policy = build_ledger_policy(settings)
"""

from __future__ import annotations

from sqlalchemy.engine import Engine

from burnwise_config.schema import KernelSettings
from burnwise_kernel.db.engine import init_engine_from_url
from burnwise_kernel.domain.policy import LedgerPolicy


def build_ledger_policy(settings: KernelSettings) -> LedgerPolicy:
    """LedgerPolicy carrying the configured base currency, tolerance and methods."""
    return LedgerPolicy(
        base_currency=settings.base_currency,
        tolerance=settings.tolerance,
        upcoming_window_days=settings.upcoming_window_days,
        payment_methods=settings.payment_methods,
    )


def init_engine_from_settings(settings: KernelSettings, database_url: str | None = None) -> Engine:
    """Initialize the kernel engine; ``database_url`` overrides the configured URL."""
    db = settings.database
    return init_engine_from_url(
        database_url or db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        sqlite_busy_timeout=db.sqlite_busy_timeout,
    )
