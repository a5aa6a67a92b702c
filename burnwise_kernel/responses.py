"""
Response envelopes for the web layer.

Every backend in front of the kernel answers with the same shape:

    {"success": True, "data": ...}
    {"success": False, "message": "...", "code": "OVER_PAYMENT",
     "http_status": 409, "details": {...}}

``failure`` maps kernel error classes to an HTTP status so the routing
layer does not need to know the hierarchy.
"""

from __future__ import annotations

from typing import Any

from burnwise_kernel.exceptions import (
    BurnwiseKernelError,
    ConcurrencyError,
    ConversionError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from burnwise_kernel.services.audit_service import to_jsonable

_STATUS_BY_TYPE: tuple[tuple[type[BurnwiseKernelError], int], ...] = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (LedgerError, 409),
    (ConcurrencyError, 409),
    (ConversionError, 422),
)


def http_status_for(exc: BurnwiseKernelError) -> int:
    for error_type, status in _STATUS_BY_TYPE:
        if isinstance(exc, error_type):
            return status
    return 500


def success(data: Any = None, message: str | None = None) -> dict[str, Any]:
    envelope: dict[str, Any] = {"success": True}
    if data is not None:
        envelope["data"] = to_jsonable(data)
    if message is not None:
        envelope["message"] = message
    return envelope


def failure(exc: BurnwiseKernelError) -> dict[str, Any]:
    """Envelope for a kernel error, with its structured attributes as details."""
    details = {key: value for key, value in vars(exc).items() if not key.startswith("_")}
    return {
        "success": False,
        "message": str(exc),
        "code": exc.code,
        "http_status": http_status_for(exc),
        "details": to_jsonable(details),
    }
