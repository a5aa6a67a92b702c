"""Selectors for the ledger kernel (read side)."""

from burnwise_kernel.selectors.debt_selector import DebtSelector, ObligationLine
from burnwise_kernel.selectors.exchange_rate_selector import ExchangeRateTable, RateQuote
from burnwise_kernel.selectors.payment_selector import PaymentInfo, PaymentSelector

__all__ = [
    "DebtSelector",
    "ObligationLine",
    "ExchangeRateTable",
    "RateQuote",
    "PaymentInfo",
    "PaymentSelector",
]
