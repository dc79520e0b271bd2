"""
Tests for run_metered_action: the account-standing gate and the
check -> action -> count -> ledger -> alert sequence around a transform.
"""

from datetime import date
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from renderlab.core.billing_middleware import ensure_subscription_active, run_metered_action
from renderlab.core.exceptions import ForbiddenError, TransientStoreError
from renderlab.crud import subscription_crud, usage_period_crud
from renderlab.models import OverageEvent
from renderlab.models.subscription import SubscriptionStatus, Tier
from renderlab.models.usage_period import ActionType
from renderlab.schemas.auth import TokenData
from renderlab.schemas.billing import SubscriptionCreate

PERIOD = date(2026, 10, 1)
USER = TokenData(user_id="user-1", email="owner@example.com")


async def _set_status(db, status):
    await subscription_crud.create(
        db, obj_in=SubscriptionCreate(user_id="user-1", tier=Tier.PRO, status=status)
    )


class TestAccountStanding:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [SubscriptionStatus.PAST_DUE, SubscriptionStatus.CANCELED])
    async def test_inactive_accounts_are_refused(self, db, metering, status):
        await _set_status(db, status)
        action = AsyncMock(return_value="ok")

        with pytest.raises(ForbiddenError) as exc_info:
            await run_metered_action(db, USER, ActionType.ENHANCEMENT, action, service=metering)

        assert exc_info.value.status_code == 403
        action.assert_not_awaited()
        assert await usage_period_crud.get_for_period(db, "user-1", PERIOD) is None

    @pytest.mark.asyncio
    async def test_no_subscription_row_is_allowed(self, db, metering):
        await ensure_subscription_active(db, "someone-new", metering)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING])
    async def test_active_and_trialing_are_allowed(self, db, metering, status):
        await _set_status(db, status)
        assert await run_metered_action(db, USER, ActionType.ENHANCEMENT, AsyncMock(return_value=1), service=metering) == 1


class TestSequence:
    @pytest.mark.asyncio
    async def test_success_is_counted(self, db, metering):
        await run_metered_action(db, USER, ActionType.CONSULTATION, AsyncMock(return_value="ok"), service=metering)

        row = await usage_period_crud.get_for_period(db, "user-1", PERIOD)
        assert row.consultation_count == 1
        assert row.enhancement_count == 0

    @pytest.mark.asyncio
    async def test_failed_action_is_not_counted(self, db, metering, notifier):
        action = AsyncMock(side_effect=ValueError("render failed"))

        with pytest.raises(ValueError):
            await run_metered_action(db, USER, ActionType.ENHANCEMENT, action, service=metering)

        assert await usage_period_crud.get_for_period(db, "user-1", PERIOD) is None
        notifier.send_usage_alert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_outage_before_action_allows_it(self, db, metering):
        with patch.object(metering, "check_usage", AsyncMock(side_effect=TransientStoreError("db down"))):
            result = await run_metered_action(db, USER, ActionType.ENHANCEMENT, AsyncMock(return_value="ok"), service=metering)

        assert result == "ok"
        # Counted for reconciliation, but without a pre-check nothing is billed
        row = await usage_period_crud.get_for_period(db, "user-1", PERIOD)
        assert row.enhancement_count == 1
        assert (await db.execute(select(OverageEvent))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_store_outage_after_action_keeps_result(self, db, metering):
        with patch.object(metering, "increment", AsyncMock(side_effect=TransientStoreError("db down"))):
            result = await run_metered_action(db, USER, ActionType.ENHANCEMENT, AsyncMock(return_value="ok"), service=metering)

        assert result == "ok"

    @pytest.mark.asyncio
    async def test_alert_failure_keeps_result(self, db, metering):
        with patch.object(metering, "maybe_alert", AsyncMock(side_effect=RuntimeError("sendgrid"))):
            result = await run_metered_action(db, USER, ActionType.ENHANCEMENT, AsyncMock(return_value="ok"), service=metering)

        assert result == "ok"
