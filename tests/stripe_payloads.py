"""Stripe payload builders shared by the webhook tests."""

from datetime import datetime, timezone

import stripe

PERIOD_START = datetime(2026, 10, 15, tzinfo=timezone.utc)
PERIOD_END = datetime(2026, 11, 15, tzinfo=timezone.utc)


def stripe_subscription(price_id="price_pro", items_only_period=False):
    """A Subscription as returned by stripe.Subscription.retrieve"""
    item = {"id": "si_1", "object": "subscription_item", "price": {"id": price_id, "object": "price"}}
    values = {
        "id": "sub_1",
        "object": "subscription",
        "customer": "cus_1",
        "status": "active",
        "items": {"object": "list", "data": [item]},
    }
    bounds = {
        "current_period_start": int(PERIOD_START.timestamp()),
        "current_period_end": int(PERIOD_END.timestamp()),
    }
    if items_only_period:
        item.update(bounds)
    else:
        values.update(bounds)
    return stripe.Subscription.construct_from(values, "sk_test")


def checkout_event(metadata=None):
    return {
        "id": "evt_checkout",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": "cs_1",
                "object": "checkout.session",
                "customer": "cus_1",
                "subscription": "sub_1",
                "client_reference_id": "user-1",
                "metadata": metadata or {},
            }
        },
    }
