from fastapi import APIRouter, HTTPException, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from renderlab.core.auth import get_current_user
from renderlab.core.database import get_db
from renderlab.core.exceptions import TransientStoreError
from renderlab.models.usage_period import ActionType
from renderlab.schemas.auth import TokenData
from renderlab.schemas.billing import CurrentUsageResponse, UsageCheckResult
from renderlab.services.metering_service import metering_service

router = APIRouter()


@router.get("/current", response_model=CurrentUsageResponse)
async def get_current_usage(
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Counts, limits and overage totals for the open billing period"""
    try:
        return await metering_service.get_current_usage(db, current_user.user_id)
    except TransientStoreError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Usage data temporarily unavailable"
        )


@router.get("/{action_type}", response_model=UsageCheckResult)
async def check_usage(
    action_type: ActionType,
    current_user: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Whether the next action of this type would be billed as overage"""
    try:
        return await metering_service.check_usage(db, current_user.user_id, action_type)
    except TransientStoreError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Usage data temporarily unavailable"
        )
