import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from renderlab.core.exceptions import ForbiddenError, MeteringError, TransientStoreError
from renderlab.models.subscription import SubscriptionStatus
from renderlab.models.usage_period import ActionType
from renderlab.schemas.auth import TokenData
from renderlab.schemas.billing import UsageCheckResult
from renderlab.services.metering_service import MeteringService, metering_service

logger = logging.getLogger(__name__)

T = TypeVar("T")

ALLOWED_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING)


async def ensure_subscription_active(
    db: AsyncSession,
    user_id: str,
    service: Optional[MeteringService] = None
) -> None:
    """
    Refuse metered actions for accounts whose billing is not in good standing.
    This is the only hard denial; quota never blocks.
    """
    service = service or metering_service
    subscription = await service.get_subscription(db, user_id)
    if subscription.status not in ALLOWED_STATUSES:
        raise ForbiddenError("Your subscription is not active")


async def run_metered_action(
    db: AsyncSession,
    current_user: TokenData,
    action_type: ActionType,
    action: Callable[[], Awaitable[T]],
    service: Optional[MeteringService] = None
) -> T:
    """
    Run a transform and meter it.

    check -> action -> increment -> overage ledger -> threshold alert.
    Nothing is counted when the action fails. Metering problems after a
    successful action are logged and never fail the request.
    """
    service = service or metering_service
    user_id = current_user.user_id

    try:
        await ensure_subscription_active(db, user_id, service)
    except TransientStoreError as e:
        logger.warning("Subscription lookup unavailable for user %s, allowing action: %s", user_id, e)
        await db.rollback()

    usage_check: Optional[UsageCheckResult] = None
    try:
        usage_check = await service.check_usage(db, user_id, action_type)
    except TransientStoreError as e:
        logger.warning("Usage check unavailable for user %s; action allowed, flag for reconciliation: %s", user_id, e)
        await db.rollback()
    except MeteringError:
        logger.exception("Usage check failed for user %s; action allowed, flag for reconciliation", user_id)

    result = await action()

    try:
        new_count = await service.increment(db, user_id, action_type)
        if usage_check is None:
            logger.warning(
                "Metered %s for user %s without a pre-check (count now %s); flag for reconciliation",
                ActionType(action_type).value, user_id, new_count
            )
            return result

        if usage_check.is_overage:
            await service.log_overage(db, user_id, action_type, usage_check.overage_rate)

        if current_user.email:
            await service.maybe_alert(
                db,
                user_id,
                current_user.email,
                action_type,
                new_count,
                usage_check.limit,
                usage_check.overage_rate,
            )
    except Exception:
        logger.exception("Metering failed after %s for user %s; flag for reconciliation", ActionType(action_type).value, user_id)

    return result
