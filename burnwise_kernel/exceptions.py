"""
Typed Exception Hierarchy for the BurnWise ledger kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Payment reconciliation errors have to reach the web layer as specific,
machine-readable reasons ("over-payment on installment X", "no USD rate on or
before 2025-06-01").  Callers catch by type and read structured attributes;
nobody parses message strings.

Every exception:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes

Example:
    try:
        recorder.record(...)
    except OverPaymentError as e:
        return failure(e)   # {"success": False, "code": "OVER_PAYMENT", ...}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BurnwiseKernelError (base)
    |
    +-- ValidationError
    |   +-- CurrencyMismatchError
    |   +-- InvalidCurrencyError
    |
    +-- LedgerError
    |   +-- OverPaymentError
    |   +-- ScheduleMismatchError
    |   +-- InconsistentStateError
    |
    +-- ConversionError
    |   +-- ExchangeRateNotFoundError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError
    |
    +-- NotFoundError
        +-- PartyNotFoundError
        +-- DebtNotFoundError
        +-- InstallmentNotFoundError
        +-- ProjectNotFoundError
        +-- MilestoneNotFoundError
        +-- GrantNotFoundError
        +-- PaymentNotFoundError
        +-- TransactionNotFoundError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|--------------------------------------
Validation   | VALIDATION_ERROR          | Bad input (amount <= 0, bad method)
             | CURRENCY_MISMATCH         | Payment currency != entity currency
             | INVALID_CURRENCY          | Not a known ISO 4217 code
-------------|---------------------------|--------------------------------------
Ledger       | OVER_PAYMENT              | paid + amount exceeds amount due
             | SCHEDULE_MISMATCH         | Schedule does not match principal
             | INCONSISTENT_STATE        | Reversal would go negative
-------------|---------------------------|--------------------------------------
Conversion   | CONVERSION_ERROR          | Amount cannot be valued in base
             | EXCHANGE_RATE_NOT_FOUND   | No rate on or before the date
-------------|---------------------------|--------------------------------------
Concurrency  | CONCURRENT_MODIFICATION   | Version check failed twice
-------------|---------------------------|--------------------------------------
Not found    | *_NOT_FOUND               | Row with given id does not exist

Storage and connectivity failures (SQLAlchemy errors) are not wrapped.
"""

from datetime import date
from decimal import Decimal


class BurnwiseKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BURNWISE_KERNEL_ERROR"


# Validation exceptions


class ValidationError(BurnwiseKernelError):
    """Input rejected at the boundary. Never retried automatically."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class CurrencyMismatchError(ValidationError):
    """Payment currency differs from the currency of the entity it settles."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, received: str):
        self.expected = expected
        self.received = received
        super().__init__("currency", f"expected {expected}, received {received}")


class InvalidCurrencyError(ValidationError):
    """Currency code is not a known ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__("currency", f"unknown ISO 4217 code {currency!r}")


# Ledger rule violations


class LedgerError(BurnwiseKernelError):
    """Base exception for ledger domain-rule violations."""

    code: str = "LEDGER_ERROR"


class OverPaymentError(LedgerError):
    """
    Applying the payment would push paid_amount above the amount due.

    The payment is never capped to the remaining amount.
    """

    code: str = "OVER_PAYMENT"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        amount_due: Decimal,
        paid_amount: Decimal,
        attempted: Decimal,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.amount_due = amount_due
        self.paid_amount = paid_amount
        self.attempted = attempted
        super().__init__(
            f"Over-payment on {entity_type} {entity_id}: "
            f"paid {paid_amount} + {attempted} exceeds {amount_due}"
        )


class ScheduleMismatchError(LedgerError):
    """A schedule does not reconcile with the principal or contract it splits."""

    code: str = "SCHEDULE_MISMATCH"

    def __init__(self, owner_id: str, expected: Decimal, actual: Decimal, reason: str):
        self.owner_id = owner_id
        self.expected = expected
        self.actual = actual
        self.reason = reason
        super().__init__(
            f"Schedule mismatch for {owner_id}: {reason} "
            f"(expected {expected}, got {actual})"
        )


class InconsistentStateError(LedgerError):
    """
    Reversal would drive paid_amount negative.

    Indicates broken caller bookkeeping. Fatal, not retried.
    """

    code: str = "INCONSISTENT_STATE"

    def __init__(self, entity_type: str, entity_id: str, paid_amount: Decimal, reversal: Decimal):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.paid_amount = paid_amount
        self.reversal = reversal
        super().__init__(
            f"Inconsistent state on {entity_type} {entity_id}: "
            f"cannot reverse {reversal} from paid {paid_amount}"
        )


# Conversion exceptions


class ConversionError(BurnwiseKernelError):
    """An amount cannot be valued in the base currency."""

    code: str = "CONVERSION_ERROR"

    MISSING_RATE = "MISSING_RATE"

    def __init__(self, currency: str, on_date: date, reason: str, message: str | None = None):
        self.currency = currency
        self.on_date = on_date
        self.reason = reason
        super().__init__(message or f"Cannot convert {currency} on {on_date}: {reason}")


class ExchangeRateNotFoundError(ConversionError):
    """No exchange rate exists for the currency on or before the date."""

    code: str = "EXCHANGE_RATE_NOT_FOUND"

    def __init__(self, currency: str, base_currency: str, on_date: date):
        self.base_currency = base_currency
        super().__init__(
            currency,
            on_date,
            ConversionError.MISSING_RATE,
            f"No exchange rate found for {currency}/{base_currency} on or before {on_date}",
        )


# Concurrency exceptions


class ConcurrencyError(BurnwiseKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """The row changed underneath us on the first attempt and again on the retry."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Concurrent modification on {entity_type} {entity_id}: "
            "retry the request"
        )


# Lookup exceptions


class NotFoundError(BurnwiseKernelError):
    """Base exception for missing rows."""

    code: str = "NOT_FOUND"
    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type.capitalize()} not found: {entity_id}")


class PartyNotFoundError(NotFoundError):
    code: str = "PARTY_NOT_FOUND"
    entity_type = "party"


class DebtNotFoundError(NotFoundError):
    code: str = "DEBT_NOT_FOUND"
    entity_type = "debt"


class InstallmentNotFoundError(NotFoundError):
    code: str = "INSTALLMENT_NOT_FOUND"
    entity_type = "installment"


class ProjectNotFoundError(NotFoundError):
    code: str = "PROJECT_NOT_FOUND"
    entity_type = "project"


class MilestoneNotFoundError(NotFoundError):
    code: str = "MILESTONE_NOT_FOUND"
    entity_type = "milestone"


class GrantNotFoundError(NotFoundError):
    code: str = "GRANT_NOT_FOUND"
    entity_type = "grant"


class PaymentNotFoundError(NotFoundError):
    code: str = "PAYMENT_NOT_FOUND"
    entity_type = "payment"


class TransactionNotFoundError(NotFoundError):
    code: str = "TRANSACTION_NOT_FOUND"
    entity_type = "transaction"
