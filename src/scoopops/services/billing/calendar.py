"""Calendar and billing-cycle arithmetic.

All functions work on calendar dates. ``datetime`` inputs are truncated to their
date so time-of-day never changes a day count.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime

from ...errors import InvalidBillingCycle
from ...models.domain import Subscription
from .models import BillingCycle


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def days_between(start: date | datetime, end: date | datetime) -> int:
    """Absolute number of days between two dates (ceiling, never negative)."""
    return abs((_as_date(end) - _as_date(start)).days)


def last_day_of_month(value: date | datetime) -> date:
    day = _as_date(value)
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def days_remaining_in_month(value: date | datetime) -> int:
    return days_between(value, last_day_of_month(value))


def billing_cycle_of(subscription: Subscription) -> BillingCycle:
    """Return the subscription's current billing cycle.

    Raises:
        InvalidBillingCycle: if the persisted period ends before it starts.
    """
    start = _as_date(subscription.current_period_start)
    end = _as_date(subscription.current_period_end)
    if end < start:
        raise InvalidBillingCycle(
            f"Subscription '{subscription.id}' billing period ends ({end}) before it starts ({start})"
        )
    return BillingCycle(start=start, end=end)


def cycle_length(cycle: BillingCycle) -> int:
    """Total days in the cycle; zero-length cycles cannot carry a per-day rate."""
    total = days_between(cycle.start, cycle.end)
    if total <= 0:
        raise InvalidBillingCycle(f"Billing cycle {cycle.start} - {cycle.end} has no length")
    return total
