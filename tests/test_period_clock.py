"""
Tests for billing period bucketing.
"""

from datetime import date, datetime, timedelta, timezone

from renderlab.services.entitlements import SubscriptionState
from renderlab.models.subscription import SubscriptionStatus, Tier
from renderlab.services.period_clock import current_period_end, current_period_start, month_start


def _sub(start=None, end=None):
    return SubscriptionState(
        tier=Tier.PRO,
        status=SubscriptionStatus.ACTIVE,
        current_period_start=start,
        current_period_end=end,
    )


class TestMonthStart:
    def test_first_of_month(self):
        assert month_start(datetime(2026, 10, 19, 12, tzinfo=timezone.utc)) == date(2026, 10, 1)

    def test_uses_utc_calendar(self):
        # 23:30 on Oct 31 in UTC-5 is already November in UTC
        local = datetime(2026, 10, 31, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert month_start(local) == date(2026, 11, 1)

    def test_naive_is_treated_as_utc(self):
        assert month_start(datetime(2026, 2, 28, 23, 59)) == date(2026, 2, 1)


class TestCurrentPeriod:
    def test_no_subscription_uses_calendar_month(self):
        now = datetime(2026, 12, 31, 23, 59, tzinfo=timezone.utc)
        assert current_period_start(None, now) == date(2026, 12, 1)
        assert current_period_end(None, now) == date(2027, 1, 1)

    def test_subscription_without_stripe_period(self):
        now = datetime(2026, 10, 19, tzinfo=timezone.utc)
        assert current_period_start(_sub(), now) == date(2026, 10, 1)
        assert current_period_end(_sub(), now) == date(2026, 11, 1)

    def test_stripe_period_wins(self):
        sub = _sub(
            start=datetime(2026, 10, 15, 8, tzinfo=timezone.utc),
            end=datetime(2026, 11, 15, 8, tzinfo=timezone.utc),
        )
        now = datetime(2026, 10, 19, tzinfo=timezone.utc)
        assert current_period_start(sub, now) == date(2026, 10, 15)
        assert current_period_end(sub, now) == date(2026, 11, 15)

    def test_missing_stripe_end_is_one_month_later(self):
        sub = _sub(start=datetime(2026, 1, 31, tzinfo=timezone.utc))
        assert current_period_end(sub) == date(2026, 2, 28)

    def test_same_instant_same_bucket(self):
        now = datetime(2026, 10, 19, 12, tzinfo=timezone.utc)
        assert current_period_start(None, now) == current_period_start(None, now + timedelta(hours=11))
