"""CLI utilities: formatting, logging mute/restore."""

import logging
from decimal import ROUND_HALF_UP, Decimal


def fmt_amount(v, currency: str = "") -> str:
    """Format amount for display (e.g. 1,234.50 TRY)."""
    d = Decimal(str(v)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{d:,.2f} {currency}".rstrip()


def enable_quiet_logging():
    """Mute console handlers so CLI output stays clean. Returns list to pass to restore_logging."""
    bw_logger = logging.getLogger("burnwise_kernel")
    muted = []
    for h in bw_logger.handlers:
        if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler):
            muted.append((h, h.level))
            h.setLevel(logging.CRITICAL + 1)
    return muted


def restore_logging(muted):
    """Restore muted handlers after a quiet-logging section."""
    for h, orig_level in muted:
        h.setLevel(orig_level)
