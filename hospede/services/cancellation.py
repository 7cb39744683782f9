"""Refund policy for cancelled reservations."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

FULL_REFUND_PERCENT = 100
PARTIAL_REFUND_PERCENT = 50
NO_REFUND_PERCENT = 0

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class RefundQuote:
    percentage: int
    amount: Decimal


def refund_percentage(check_in_at: datetime, cancelled_at: datetime, free_window_hours: int) -> int:
    """Refund tier for a cancellation made at ``cancelled_at``.

    Full refund when at least ``free_window_hours`` remain before check-in,
    half when cancelling inside the window, nothing once check-in has passed.
    Both instants must be timezone-aware.
    """
    time_until_check_in = check_in_at - cancelled_at
    if time_until_check_in >= timedelta(hours=free_window_hours):
        return FULL_REFUND_PERCENT
    if time_until_check_in >= timedelta(0):
        return PARTIAL_REFUND_PERCENT
    return NO_REFUND_PERCENT


def compute_refund(
    total_price: Decimal,
    check_in_at: datetime,
    cancelled_at: datetime,
    free_window_hours: int,
) -> RefundQuote:
    """Refund percentage and amount (rounded half-up to cents) for a cancellation."""
    percentage = refund_percentage(check_in_at, cancelled_at, free_window_hours)
    amount = (Decimal(total_price) * percentage / 100).quantize(_CENTS, rounding=ROUND_HALF_UP)
    return RefundQuote(percentage=percentage, amount=amount)
