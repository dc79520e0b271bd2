from datetime import date, datetime, timezone
from typing import Any, Optional

from dateutil.relativedelta import relativedelta


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_utc_date(value: datetime) -> date:
    """Normalize a timestamp to its UTC calendar date (naive values are taken as UTC)"""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


def month_start(now: Optional[datetime] = None) -> date:
    """First day of the current UTC month"""
    today = _to_utc_date(now or _utc_now())
    return date(today.year, today.month, 1)


def current_period_start(subscription: Any = None, now: Optional[datetime] = None) -> date:
    """
    Bucket key for usage counters.

    Uses the Stripe-confirmed period start when the subscription has one,
    otherwise the first day of the current UTC month.
    """
    period_start = getattr(subscription, "current_period_start", None)
    if period_start is not None:
        return _to_utc_date(period_start)
    return month_start(now)


def current_period_end(subscription: Any = None, now: Optional[datetime] = None) -> date:
    """Exclusive end of the current period"""
    period_start = getattr(subscription, "current_period_start", None)
    period_end = getattr(subscription, "current_period_end", None)
    if period_start is not None and period_end is not None:
        return _to_utc_date(period_end)
    return current_period_start(subscription, now) + relativedelta(months=1)
