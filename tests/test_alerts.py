"""
Tests for the threshold alert gate: one email per threshold per period,
100% taking precedence over 80%, and dedup rows written even when delivery fails.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from renderlab.crud import usage_alert_crud
from renderlab.models import UsageAlert
from renderlab.models.usage_period import ActionType

PERIOD = date(2026, 10, 1)
RATE = Decimal("0.25")


async def _alerts(db):
    return (await db.execute(select(UsageAlert).order_by(UsageAlert.threshold))).scalars().all()


class TestDedup:
    @pytest.mark.asyncio
    async def test_below_80_sends_nothing(self, db, metering, notifier):
        assert await metering.maybe_alert(db, "user-1", "a@example.com", ActionType.ENHANCEMENT, 159, 200, RATE) is None
        notifier.send_usage_alert.assert_not_awaited()
        assert await _alerts(db) == []

    @pytest.mark.asyncio
    async def test_80_sent_once(self, db, metering, notifier):
        first = await metering.maybe_alert(db, "user-1", "a@example.com", ActionType.ENHANCEMENT, 160, 200, RATE)
        second = await metering.maybe_alert(db, "user-1", "a@example.com", ActionType.ENHANCEMENT, 161, 200, RATE)

        assert first == 80
        assert second is None
        notifier.send_usage_alert.assert_awaited_once()
        alerts = await _alerts(db)
        assert [a.threshold for a in alerts] == [80]
        assert alerts[0].email_delivered is True
        assert alerts[0].period_start == PERIOD

    @pytest.mark.asyncio
    async def test_80_then_100(self, db, metering, notifier):
        await metering.maybe_alert(db, "user-1", "a@example.com", ActionType.ENHANCEMENT, 160, 200, RATE)
        await metering.maybe_alert(db, "user-1", "a@example.com", ActionType.ENHANCEMENT, 200, 200, RATE)
        await metering.maybe_alert(db, "user-1", "a@example.com", ActionType.ENHANCEMENT, 210, 200, RATE)

        assert notifier.send_usage_alert.await_count == 2
        assert [a.threshold for a in await _alerts(db)] == [80, 100]

    @pytest.mark.asyncio
    async def test_jump_past_both_thresholds_sends_only_100(self, db, metering, notifier):
        # 70% -> 105% in one step
        assert await metering.maybe_alert(db, "user-1", "a@example.com", ActionType.CONSULTATION, 35, 50, RATE) is None
        assert await metering.maybe_alert(db, "user-1", "a@example.com", ActionType.CONSULTATION, 53, 50, RATE) == 100

        notifier.send_usage_alert.assert_awaited_once()
        assert notifier.send_usage_alert.await_args.args[2] == 100
        assert [a.threshold for a in await _alerts(db)] == [100]

    @pytest.mark.asyncio
    async def test_action_types_are_independent(self, db, metering, notifier):
        await metering.maybe_alert(db, "user-1", "a@example.com", ActionType.ENHANCEMENT, 160, 200, RATE)
        await metering.maybe_alert(db, "user-1", "a@example.com", ActionType.CONSULTATION, 40, 50, RATE)

        assert notifier.send_usage_alert.await_count == 2


class TestDeliveryFailure:
    @pytest.mark.asyncio
    async def test_failed_send_is_still_recorded(self, db, metering, notifier):
        notifier.send_usage_alert.return_value = False

        assert await metering.maybe_alert(db, "user-1", "a@example.com", ActionType.ENHANCEMENT, 200, 200, RATE) == 100
        assert await metering.maybe_alert(db, "user-1", "a@example.com", ActionType.ENHANCEMENT, 201, 200, RATE) is None

        notifier.send_usage_alert.assert_awaited_once()
        alerts = await _alerts(db)
        assert len(alerts) == 1
        assert alerts[0].email_delivered is False

    @pytest.mark.asyncio
    async def test_notifier_exception_does_not_propagate(self, db, metering, notifier):
        notifier.send_usage_alert.side_effect = RuntimeError("smtp down")

        assert await metering.maybe_alert(db, "user-1", "a@example.com", ActionType.ENHANCEMENT, 160, 200, RATE) == 80
        alerts = await _alerts(db)
        assert len(alerts) == 1
        assert alerts[0].email_delivered is False


class TestRecord:
    @pytest.mark.asyncio
    async def test_insert_if_absent(self, db):
        key = dict(user_id="user-1", action_type=ActionType.ENHANCEMENT, period_start=PERIOD, threshold=80)

        assert await usage_alert_crud.record(db, email_delivered=True, **key) is True
        assert await usage_alert_crud.record(db, email_delivered=False, **key) is False
        assert await usage_alert_crud.exists(db, **key) is True

        alerts = await _alerts(db)
        assert len(alerts) == 1
        assert alerts[0].email_delivered is True
