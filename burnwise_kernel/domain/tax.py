"""
Tax breakdown of an income or expense amount.

VAT is added on top of the gross amount.  Withholding is computed on the
gross amount and deducted only where the transaction says so (income:
the customer withholds and pays it to the tax office on our behalf).
Each derived amount is rounded half-up to the currency's precision.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from burnwise_kernel.domain.currency import round_money
from burnwise_kernel.exceptions import ValidationError

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class TaxBreakdown:
    amount: Decimal
    vat_amount: Decimal
    withholding_amount: Decimal
    net_amount: Decimal


def _check_rate(field: str, rate: Decimal) -> None:
    if rate < 0 or rate > _HUNDRED:
        raise ValidationError(field, f"must be between 0 and 100, got {rate}")


def compute_breakdown(
    amount: Decimal,
    currency: str,
    vat_rate: Decimal = Decimal("0"),
    withholding_rate: Decimal = Decimal("0"),
    deduct_withholding: bool = True,
) -> TaxBreakdown:
    """
    Split ``amount`` into VAT, withholding and the net amount that moves.

    Raises:
        ValidationError: a rate outside [0, 100].
    """
    _check_rate("vat_rate", vat_rate)
    _check_rate("withholding_rate", withholding_rate)
    vat = round_money(amount * vat_rate / _HUNDRED, currency)
    withholding = round_money(amount * withholding_rate / _HUNDRED, currency)
    net = amount + vat - (withholding if deduct_withholding else Decimal("0"))
    return TaxBreakdown(
        amount=amount,
        vat_amount=vat,
        withholding_amount=withholding,
        net_amount=round_money(net, currency),
    )
