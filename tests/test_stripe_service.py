"""
Tests for Stripe event normalisation against real SDK objects.
"""

from unittest.mock import patch

import pytest
import stripe

from renderlab.core.config import settings
from renderlab.core.exceptions import UnknownTierError
from renderlab.models.subscription import SubscriptionStatus, Tier
from renderlab.services.stripe_service import StripeService

from stripe_payloads import PERIOD_END, PERIOD_START, checkout_event, stripe_subscription


@pytest.fixture(autouse=True)
def price_ids(monkeypatch):
    monkeypatch.setattr(settings, "stripe_price_starter", "price_starter")
    monkeypatch.setattr(settings, "stripe_price_pro", "price_pro")
    monkeypatch.setattr(settings, "stripe_price_agency", "price_agency")


class TestCheckoutParsing:
    @pytest.mark.asyncio
    async def test_reads_sdk_subscription(self):
        with patch.object(stripe.Subscription, "retrieve", return_value=stripe_subscription()) as retrieve:
            parsed = await StripeService().parse_event(checkout_event())

        retrieve.assert_called_once_with("sub_1")
        assert parsed["action"] == "checkout_completed"
        assert parsed["user_id"] == "user-1"
        assert parsed["customer_id"] == "cus_1"
        assert parsed["tier"] is Tier.PRO
        assert parsed["status"] is SubscriptionStatus.ACTIVE
        assert parsed["current_period_start"] == PERIOD_START
        assert parsed["current_period_end"] == PERIOD_END

    @pytest.mark.asyncio
    async def test_period_on_items_only(self):
        subscription = stripe_subscription(items_only_period=True)
        with patch.object(stripe.Subscription, "retrieve", return_value=subscription):
            parsed = await StripeService().parse_event(checkout_event())

        assert parsed["current_period_start"] == PERIOD_START
        assert parsed["current_period_end"] == PERIOD_END

    @pytest.mark.asyncio
    async def test_metadata_tier_wins_over_price(self):
        with patch.object(stripe.Subscription, "retrieve", return_value=stripe_subscription("price_pro")):
            parsed = await StripeService().parse_event(checkout_event({"tier": "agency", "user_id": "user-9"}))

        assert parsed["tier"] is Tier.AGENCY
        assert parsed["user_id"] == "user-9"

    @pytest.mark.asyncio
    async def test_unknown_price(self):
        with patch.object(stripe.Subscription, "retrieve", return_value=stripe_subscription("price_legacy")):
            with pytest.raises(UnknownTierError):
                await StripeService().parse_event(checkout_event())

    @pytest.mark.asyncio
    async def test_retrieve_returns_plain_dicts(self):
        with patch.object(stripe.Subscription, "retrieve", return_value=stripe_subscription()):
            subscription = await StripeService().retrieve_subscription("sub_1")

        assert type(subscription) is dict
        assert type(subscription["items"]["data"][0]) is dict


class TestSubscriptionUpdated:
    @pytest.mark.asyncio
    async def test_status_mapping(self):
        obj = stripe_subscription("price_starter").to_dict()
        obj["status"] = "unpaid"
        parsed = await StripeService().parse_event(
            {"id": "evt_1", "type": "customer.subscription.updated", "data": {"object": obj}}
        )

        assert parsed["tier"] is Tier.STARTER
        assert parsed["status"] is SubscriptionStatus.PAST_DUE
        assert parsed["current_period_start"] == PERIOD_START

    @pytest.mark.asyncio
    async def test_unhandled_event(self):
        parsed = await StripeService().parse_event({"id": "evt_2", "type": "invoice.paid", "data": {"object": {}}})
        assert parsed == {"action": "unhandled_event", "event_type": "invoice.paid"}
