"""Currency -- ISO 4217 registry and precision-derived rounding."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import ClassVar

from burnwise_kernel.exceptions import InvalidCurrencyError


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def minor_unit(self) -> Decimal:
        """Smallest representable amount (0.01 for TRY, 1 for JPY)."""
        return Decimal(1).scaleb(-self.decimal_places)

    @property
    def quantize_string(self) -> str:
        """String for Decimal.quantize() to round to this currency's precision."""
        if self.decimal_places == 0:
            return "1"
        return "0." + "0" * self.decimal_places


class CurrencyRegistry:
    """Registry of the ISO 4217 currencies the back-office books in."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "TRY": CurrencyInfo("TRY", 2, "Turkish Lira"),
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling"),
        "CHF": CurrencyInfo("CHF", 2, "Swiss Franc"),
        "CAD": CurrencyInfo("CAD", 2, "Canadian Dollar"),
        "AUD": CurrencyInfo("AUD", 2, "Australian Dollar"),
        "DKK": CurrencyInfo("DKK", 2, "Danish Krone"),
        "SEK": CurrencyInfo("SEK", 2, "Swedish Krona"),
        "NOK": CurrencyInfo("NOK", 2, "Norwegian Krone"),
        "SAR": CurrencyInfo("SAR", 2, "Saudi Riyal"),
        "AED": CurrencyInfo("AED", 2, "UAE Dirham"),
        "RUB": CurrencyInfo("RUB", 2, "Russian Ruble"),
        "CNY": CurrencyInfo("CNY", 2, "Chinese Yuan"),
        "AZN": CurrencyInfo("AZN", 2, "Azerbaijan Manat"),
        "RON": CurrencyInfo("RON", 2, "Romanian Leu"),
        "BGN": CurrencyInfo("BGN", 2, "Bulgarian Lev"),
        "PKR": CurrencyInfo("PKR", 2, "Pakistani Rupee"),
        "QAR": CurrencyInfo("QAR", 2, "Qatari Riyal"),
        "IRR": CurrencyInfo("IRR", 2, "Iranian Rial"),
        # Zero decimal currencies
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen"),
        "KRW": CurrencyInfo("KRW", 0, "South Korean Won"),
        # Three decimal currencies
        "KWD": CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
        "BHD": CurrencyInfo("BHD", 3, "Bahraini Dinar"),
        "JOD": CurrencyInfo("JOD", 3, "Jordanian Dinar"),
        # Gold, quoted against TRY by the kapali-carsi source
        "XAU": CurrencyInfo("XAU", 3, "Gold (troy ounce)"),
        "GR": CurrencyInfo("GR", 3, "Gold (gram)"),
    }

    @classmethod
    def get(cls, code: str) -> CurrencyInfo:
        """Look up a currency, raising InvalidCurrencyError when unknown."""
        info = cls._CURRENCIES.get(code.upper().strip() if isinstance(code, str) else code)
        if info is None:
            raise InvalidCurrencyError(str(code))
        return info

    @classmethod
    def is_valid(cls, code: str) -> bool:
        return isinstance(code, str) and code.upper().strip() in cls._CURRENCIES

    @classmethod
    def normalize(cls, code: str) -> str:
        """Return the canonical upper-case code, validating it."""
        return cls.get(code).code

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        return cls.get(code).decimal_places

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)


def has_currency_precision(amount: Decimal, currency: str) -> bool:
    """True iff ``amount`` has no more decimal places than ``currency`` allows."""
    info = CurrencyRegistry.get(currency)
    return amount == amount.quantize(Decimal(info.quantize_string), rounding=ROUND_HALF_UP)


def round_money(amount: Decimal, currency: str) -> Decimal:
    """Round half-up to the currency's precision.  Display boundary only."""
    info = CurrencyRegistry.get(currency)
    return amount.quantize(Decimal(info.quantize_string), rounding=ROUND_HALF_UP)
