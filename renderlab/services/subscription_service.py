"""
Subscription state driven by verified Stripe events.

    trialing -> active                 checkout.session.completed
    active   -> past_due               invoice.payment_failed
    *        -> canceled               customer.subscription.deleted
    *        -> mapped status + tier   customer.subscription.updated

A plan change also re-applies the new tier's limits to the open usage period,
so upgrades and downgrades take effect immediately without resetting counts.
Each event's writes, including the processed-event record, commit together.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from renderlab.crud import stripe_webhook_crud, subscription_crud, usage_period_crud
from renderlab.crud.stripe_webhook import StripeWebhookCreate
from renderlab.models.subscription import Subscription, SubscriptionStatus
from renderlab.schemas.billing import SubscriptionCreate
from renderlab.services.entitlements import DEFAULT_SUBSCRIPTION, get_entitlement_profile
from renderlab.services.period_clock import current_period_end, current_period_start
from renderlab.services.stripe_service import StripeService, stripe_service

logger = logging.getLogger(__name__)


class SubscriptionService:
    def __init__(self, stripe: Optional[StripeService] = None, clock: Optional[Callable[[], datetime]] = None):
        self.stripe = stripe or stripe_service
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def get_subscription(self, db: AsyncSession, user_id: str) -> Any:
        subscription = await subscription_crud.get_by_user_id(db, user_id)
        return subscription if subscription is not None else DEFAULT_SUBSCRIPTION

    async def apply_event(self, db: AsyncSession, event: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply one verified Stripe event. Replays of an already processed
        event id are acknowledged without writing anything.
        """
        event_id = event.get("id")
        if event_id and await stripe_webhook_crud.get_by_event_id(db, event_id):
            return {"action": "duplicate_event", "event_id": event_id}

        parsed = await self.stripe.parse_event(event)
        action = parsed["action"]

        try:
            if action == "checkout_completed":
                subscription = await self._apply_checkout(db, parsed)
            elif action == "subscription_updated":
                subscription = await self._apply_plan_change(db, parsed)
            elif action == "subscription_deleted":
                subscription = await self._apply_cancellation(db, parsed)
            elif action == "payment_failed":
                subscription = await self._apply_payment_failed(db, parsed)
            else:
                subscription = None

            if event_id:
                await stripe_webhook_crud.create_with_extra(
                    db,
                    obj_in=StripeWebhookCreate(
                        event_id=event_id,
                        event_type=event.get("type", ""),
                        user_id=subscription.user_id if subscription else None,
                        stripe_customer_id=parsed.get("customer_id"),
                        tier=subscription.tier.value if subscription else None,
                        subscription_status=subscription.status.value if subscription else None,
                        action=action,
                    ),
                    extra_data={"processed_at": self._clock()},
                    commit=False,
                )
            await db.commit()
        except IntegrityError:
            await db.rollback()
            # Concurrent delivery of the same event won the insert
            if event_id and await stripe_webhook_crud.get_by_event_id(db, event_id):
                return {"action": "duplicate_event", "event_id": event_id}
            raise
        except Exception:
            await db.rollback()
            raise

        result = {"action": action, "event_id": event_id}
        if subscription is not None:
            result.update(
                user_id=subscription.user_id,
                tier=subscription.tier,
                status=subscription.status,
            )
        return result

    async def _resnapshot_open_period(self, db: AsyncSession, subscription: Subscription, *, open_if_missing: bool) -> None:
        profile = get_entitlement_profile(subscription.tier)
        now = self._clock()
        period_start = current_period_start(subscription, now)
        if open_if_missing:
            await usage_period_crud.ensure_period(
                db,
                user_id=subscription.user_id,
                period_start=period_start,
                period_end=current_period_end(subscription, now),
                profile=profile,
            )
        await usage_period_crud.resnapshot_limits(
            db,
            user_id=subscription.user_id,
            period_start=period_start,
            profile=profile,
        )

    async def _apply_checkout(self, db: AsyncSession, parsed: Dict[str, Any]) -> Optional[Subscription]:
        user_id = parsed.get("user_id")
        tier = parsed.get("tier")
        if not user_id or not tier:
            logger.error("Checkout session missing user_id or tier metadata (customer %s)", parsed.get("customer_id"))
            return None

        subscription = await subscription_crud.upsert_for_user(
            db,
            obj_in=SubscriptionCreate(
                user_id=user_id,
                tier=tier,
                status=SubscriptionStatus.ACTIVE,
                current_period_start=parsed.get("current_period_start"),
                current_period_end=parsed.get("current_period_end"),
                stripe_customer_id=parsed.get("customer_id"),
                stripe_subscription_id=parsed.get("subscription_id"),
            ),
            commit=False,
        )
        await self._resnapshot_open_period(db, subscription, open_if_missing=True)
        logger.info("Checkout complete for user %s, tier: %s", user_id, tier.value)
        return subscription

    async def _find_by_customer(self, db: AsyncSession, parsed: Dict[str, Any]) -> Optional[Subscription]:
        customer_id = parsed.get("customer_id")
        subscription = await subscription_crud.get_by_customer_id(db, customer_id) if customer_id else None
        if subscription is None:
            logger.error("No subscription found for customer: %s", customer_id)
        return subscription

    async def _apply_plan_change(self, db: AsyncSession, parsed: Dict[str, Any]) -> Optional[Subscription]:
        subscription = await self._find_by_customer(db, parsed)
        if subscription is None:
            return None

        update_data = {"tier": parsed["tier"], "status": parsed["status"]}
        if parsed.get("current_period_start") is not None:
            update_data["current_period_start"] = parsed["current_period_start"]
            update_data["current_period_end"] = parsed.get("current_period_end")
        if parsed.get("subscription_id"):
            update_data["stripe_subscription_id"] = parsed["subscription_id"]

        subscription = await subscription_crud.update(db, db_obj=subscription, obj_in=update_data, commit=False)
        await self._resnapshot_open_period(db, subscription, open_if_missing=False)
        logger.info(
            "Subscription updated for user %s, tier: %s, status: %s",
            subscription.user_id, subscription.tier.value, subscription.status.value
        )
        return subscription

    async def _apply_cancellation(self, db: AsyncSession, parsed: Dict[str, Any]) -> Optional[Subscription]:
        subscription = await self._find_by_customer(db, parsed)
        if subscription is None:
            return None
        subscription = await subscription_crud.update(
            db,
            db_obj=subscription,
            obj_in={"status": SubscriptionStatus.CANCELED, "stripe_subscription_id": None},
            commit=False,
        )
        logger.info("Subscription canceled for user %s", subscription.user_id)
        return subscription

    async def _apply_payment_failed(self, db: AsyncSession, parsed: Dict[str, Any]) -> Optional[Subscription]:
        subscription = await self._find_by_customer(db, parsed)
        if subscription is None:
            return None
        if subscription.status == SubscriptionStatus.CANCELED:
            logger.info("Payment failure ignored for canceled subscription of user %s", subscription.user_id)
            return subscription
        subscription = await subscription_crud.update(
            db, db_obj=subscription, obj_in={"status": SubscriptionStatus.PAST_DUE}, commit=False
        )
        logger.info("Payment failed for user %s", subscription.user_id)
        return subscription


# Create singleton instance
subscription_service = SubscriptionService()
