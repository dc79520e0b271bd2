import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

import stripe

from renderlab.core.config import settings
from renderlab.core.exceptions import InvalidSignatureError, UnknownTierError
from renderlab.models.subscription import SubscriptionStatus, Tier
from renderlab.services.entitlements import coerce_tier

logger = logging.getLogger(__name__)

# Stripe subscription statuses folded onto ours
STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIALING,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "incomplete": SubscriptionStatus.PAST_DUE,
    "paused": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "incomplete_expired": SubscriptionStatus.CANCELED,
}


def _from_timestamp(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _period_bounds(subscription: Dict[str, Any]):
    """Billing period of a Stripe subscription (newer API versions keep it on the items)"""
    start = subscription.get('current_period_start')
    end = subscription.get('current_period_end')
    if start is None:
        items = (subscription.get('items') or {}).get('data') or []
        if items:
            start = items[0].get('current_period_start')
            end = items[0].get('current_period_end')
    return _from_timestamp(start), _from_timestamp(end)


class StripeService:
    def __init__(self):
        if settings.stripe_secret:
            stripe.api_key = settings.stripe_secret

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify the Stripe-Signature header and return the decoded event"""
        if not signature:
            raise InvalidSignatureError("Missing Stripe signature")
        if not settings.stripe_webhook_secret:
            raise InvalidSignatureError("Stripe webhook secret not configured")
        try:
            stripe.Webhook.construct_event(payload, signature, settings.stripe_webhook_secret)
        except (stripe.SignatureVerificationError, ValueError) as e:
            raise InvalidSignatureError(str(e)) from e
        return json.loads(payload)

    def tier_from_price_id(self, price_id: Optional[str]) -> Tier:
        """Map a Stripe price id onto a tier; unknown prices are a catalog drift error"""
        price_map = {
            settings.stripe_price_starter: Tier.STARTER,
            settings.stripe_price_pro: Tier.PRO,
            settings.stripe_price_agency: Tier.AGENCY,
        }
        price_map.pop("", None)
        if price_id and price_id in price_map:
            return price_map[price_id]
        raise UnknownTierError(price_id)

    def _extract_tier_from_subscription(self, subscription: Dict[str, Any]) -> Tier:
        """Extract tier from a Stripe subscription object's first price"""
        items = (subscription.get('items') or {}).get('data') or []
        price = items[0].get('price') if items else None
        price_id = price.get('id') if price else None
        return self.tier_from_price_id(price_id)

    async def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        """Fetch a subscription as plain dicts; StripeObject is not a dict on current SDKs"""
        subscription = await asyncio.to_thread(stripe.Subscription.retrieve, subscription_id)
        return subscription.to_dict()

    async def parse_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """Normalize a handled Stripe event into the fields the subscription sync needs"""
        event_type = event['type']
        obj = event['data']['object']

        if event_type == 'checkout.session.completed':
            metadata = obj.get('metadata') or {}
            subscription_id = obj.get('subscription')
            tier = metadata.get('tier')
            period_start = period_end = None
            if subscription_id:
                sub = await self.retrieve_subscription(subscription_id)
                period_start, period_end = _period_bounds(sub)
                if not tier:
                    tier = self._extract_tier_from_subscription(sub)
            return {
                "action": "checkout_completed",
                "user_id": metadata.get('user_id') or obj.get('client_reference_id'),
                "customer_id": obj.get('customer'),
                "subscription_id": subscription_id,
                "tier": coerce_tier(tier) if tier else None,
                "status": SubscriptionStatus.ACTIVE,
                "current_period_start": period_start,
                "current_period_end": period_end,
            }

        elif event_type == 'customer.subscription.updated':
            period_start, period_end = _period_bounds(obj)
            return {
                "action": "subscription_updated",
                "customer_id": obj.get('customer'),
                "subscription_id": obj.get('id'),
                "tier": self._extract_tier_from_subscription(obj),
                "status": STATUS_MAP.get(obj.get('status'), SubscriptionStatus.PAST_DUE),
                "current_period_start": period_start,
                "current_period_end": period_end,
            }

        elif event_type == 'customer.subscription.deleted':
            return {
                "action": "subscription_deleted",
                "customer_id": obj.get('customer'),
                "subscription_id": obj.get('id'),
                "status": SubscriptionStatus.CANCELED,
            }

        elif event_type == 'invoice.payment_failed':
            return {
                "action": "payment_failed",
                "customer_id": obj.get('customer'),
                "subscription_id": obj.get('subscription'),
                "status": SubscriptionStatus.PAST_DUE,
            }

        logger.info("Unhandled Stripe event type: %s", event_type)
        return {"action": "unhandled_event", "event_type": event_type}


# Create a singleton instance
stripe_service = StripeService()
