"""
Usage metering for transform actions.

Soft caps: nothing here ever refuses an action for quota reasons. A request is
classified (under cap / overage) before it runs, counted after it succeeds,
billed to the overage ledger when it ran at or over the limit, and may trigger
one 80% or 100% threshold email per action type per period.

All state lives in the database; the service holds no counters in memory, so
any number of workers can meter the same user concurrently.
"""
import logging
from datetime import datetime, time, timezone
from decimal import Decimal
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from renderlab.crud import (
    demo_usage_crud,
    overage_event_crud,
    subscription_crud,
    usage_alert_crud,
    usage_period_crud,
)
from renderlab.models.usage_alert import ALERT_THRESHOLDS
from renderlab.models.usage_period import ActionType, COUNTER_COLUMNS
from renderlab.schemas.billing import (
    ActionUsage,
    CurrentUsageResponse,
    DemoCreditCheck,
    OverageEventCreate,
    UsageCheckResult,
)
from renderlab.services.entitlements import (
    DEFAULT_SUBSCRIPTION,
    get_entitlement_profile,
    limit_for,
)
from renderlab.services.notification_service import NotificationService, notification_service
from renderlab.services.period_clock import current_period_end, current_period_start

logger = logging.getLogger(__name__)


def alert_threshold(new_count: int, limit: int) -> Optional[int]:
    """Highest threshold reached by new_count; 100 wins over 80"""
    if limit <= 0:
        return max(ALERT_THRESHOLDS) if new_count > 0 else None
    percentage = new_count / limit * 100
    for threshold in sorted(ALERT_THRESHOLDS, reverse=True):
        if percentage >= threshold:
            return threshold
    return None


def _percentage(count: int, limit: int) -> float:
    if limit <= 0:
        return 100.0 if count > 0 else 0.0
    return round(count / limit * 100, 2)


class MeteringService:
    """Entitlement checks, atomic counters, overage ledger and threshold alerts"""

    def __init__(
        self,
        notifier: Optional[NotificationService] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.notifier = notifier or notification_service
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def get_subscription(self, db: AsyncSession, user_id: str) -> Any:
        """Subscription row for the user, or the documented starter/trialing default"""
        subscription = await subscription_crud.get_by_user_id(db, user_id)
        return subscription if subscription is not None else DEFAULT_SUBSCRIPTION

    async def check_usage(self, db: AsyncSession, user_id: str, action_type: ActionType) -> UsageCheckResult:
        """
        Classify the next action against the user's limit. Read-only.

        is_overage is computed on the count before the action is applied. The
        limit comes from the period's snapshot when the period row exists,
        otherwise from the tier's profile.
        """
        action_type = ActionType(action_type)
        subscription = await self.get_subscription(db, user_id)
        profile = get_entitlement_profile(subscription.tier)
        period_start = current_period_start(subscription, self._clock())

        counter = await usage_period_crud.get_for_period(db, user_id, period_start)
        count_column, limit_column = COUNTER_COLUMNS[action_type]
        if counter is None:
            current_count = 0
            limit = limit_for(profile, action_type)
        else:
            current_count = getattr(counter, count_column)
            limit = getattr(counter, limit_column)

        return UsageCheckResult(
            is_overage=current_count >= limit,
            current_count=current_count,
            limit=limit,
            overage_rate=profile.overage_rate,
            tier=subscription.tier,
            period_start=period_start,
        )

    async def increment(self, db: AsyncSession, user_id: str, action_type: ActionType) -> int:
        """Count one completed action; returns the post-increment count"""
        action_type = ActionType(action_type)
        subscription = await self.get_subscription(db, user_id)
        profile = get_entitlement_profile(subscription.tier)
        now = self._clock()
        return await usage_period_crud.increment(
            db,
            user_id=user_id,
            period_start=current_period_start(subscription, now),
            period_end=current_period_end(subscription, now),
            action_type=action_type,
            profile=profile,
        )

    async def log_overage(self, db: AsyncSession, user_id: str, action_type: ActionType, rate: Decimal) -> None:
        """Append one billable overage event. Every call is a distinct event."""
        await overage_event_crud.append(
            db,
            obj_in=OverageEventCreate(
                user_id=user_id,
                action_type=ActionType(action_type),
                rate=Decimal(str(rate)),
            )
        )
        logger.info("Overage logged for user %s: %s at %s", user_id, ActionType(action_type).value, rate)

    async def maybe_alert(
        self,
        db: AsyncSession,
        user_id: str,
        email: str,
        action_type: ActionType,
        new_count: int,
        limit: int,
        overage_rate: Decimal
    ) -> Optional[int]:
        """
        Send the 80% or 100% usage email once per period.

        The dedup row is written after the send attempt whether or not the
        email went out, so a failing transport never causes repeat sends.
        Returns the threshold that was alerted, or None.
        """
        action_type = ActionType(action_type)
        threshold = alert_threshold(new_count, limit)
        if threshold is None:
            return None

        subscription = await self.get_subscription(db, user_id)
        period_start = current_period_start(subscription, self._clock())

        already_sent = await usage_alert_crud.exists(
            db,
            user_id=user_id,
            action_type=action_type,
            period_start=period_start,
            threshold=threshold,
        )
        if already_sent:
            return None

        delivered = False
        try:
            delivered = await self.notifier.send_usage_alert(
                email, action_type, threshold, new_count, limit, overage_rate
            )
        except Exception:
            logger.exception("Usage alert send failed for user %s (%s at %s%%)", user_id, action_type.value, threshold)

        await usage_alert_crud.record(
            db,
            user_id=user_id,
            action_type=action_type,
            period_start=period_start,
            threshold=threshold,
            email_delivered=delivered,
        )

        if delivered:
            logger.info("Alert sent to %s: %s at %s%%", email, action_type.value, threshold)
        else:
            logger.warning("Alert for user %s recorded without delivery: %s at %s%%", user_id, action_type.value, threshold)
        return threshold

    async def check_demo_credits(self, db: AsyncSession, user_id: str) -> DemoCreditCheck:
        """Demo credits are a hard cap with no overage billing"""
        subscription = await self.get_subscription(db, user_id)
        profile = get_entitlement_profile(subscription.tier)
        period_start = current_period_start(subscription, self._clock())

        usage = await demo_usage_crud.get_for_period(db, user_id, period_start)
        credits_used = usage.credits_used if usage else 0
        credits_limit = profile.demo_credits

        return DemoCreditCheck(
            allowed=credits_used < credits_limit,
            credits_used=credits_used,
            credits_limit=credits_limit,
            credits_remaining=max(0, credits_limit - credits_used),
            period_start=period_start,
        )

    async def consume_demo_credit(self, db: AsyncSession, user_id: str) -> int:
        subscription = await self.get_subscription(db, user_id)
        profile = get_entitlement_profile(subscription.tier)
        return await demo_usage_crud.increment(
            db,
            user_id=user_id,
            period_start=current_period_start(subscription, self._clock()),
            credits_limit=profile.demo_credits,
        )

    async def get_current_usage(self, db: AsyncSession, user_id: str) -> CurrentUsageResponse:
        """Read-only summary of the open period"""
        subscription = await self.get_subscription(db, user_id)
        profile = get_entitlement_profile(subscription.tier)
        now = self._clock()
        period_start = current_period_start(subscription, now)
        period_end = current_period_end(subscription, now)

        counter = await usage_period_crud.get_for_period(db, user_id, period_start)
        usage = []
        for action_type, (count_column, limit_column) in COUNTER_COLUMNS.items():
            count = getattr(counter, count_column) if counter else 0
            limit = getattr(counter, limit_column) if counter else limit_for(profile, action_type)
            usage.append(ActionUsage(
                action_type=action_type,
                count=count,
                limit=limit,
                percentage_used=_percentage(count, limit),
            ))

        overage_units, overage_amount = await overage_event_crud.sum_for_period(
            db,
            user_id,
            datetime.combine(period_start, time.min, tzinfo=timezone.utc),
            datetime.combine(period_end, time.min, tzinfo=timezone.utc),
        )

        return CurrentUsageResponse(
            tier=subscription.tier,
            status=subscription.status,
            period_start=period_start,
            period_end=period_end,
            usage=usage,
            overage_units=overage_units,
            overage_amount=overage_amount,
        )


# Create singleton instance
metering_service = MeteringService()
