from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime, date
from decimal import Decimal

from renderlab.models.subscription import SubscriptionStatus, Tier
from renderlab.models.usage_period import ActionType

# Subscription Schemas
class SubscriptionCreate(BaseModel):
    user_id: str
    tier: Tier = Tier.STARTER
    status: SubscriptionStatus = SubscriptionStatus.TRIALING
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None

class SubscriptionUpdate(BaseModel):
    tier: Optional[Tier] = None
    status: Optional[SubscriptionStatus] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None

# Overage ledger
class OverageEventCreate(BaseModel):
    user_id: str
    action_type: ActionType
    rate: Decimal

# Metering results
class UsageCheckResult(BaseModel):
    """Classification of a metered action against the soft cap"""
    is_overage: bool
    current_count: int
    limit: int
    overage_rate: Decimal
    tier: Tier
    period_start: date

class DemoCreditCheck(BaseModel):
    allowed: bool
    credits_used: int
    credits_limit: int
    credits_remaining: int
    period_start: date

class ActionUsage(BaseModel):
    action_type: ActionType
    count: int
    limit: int
    percentage_used: float = Field(..., description="count / limit * 100, rounded to 2 decimals")

class CurrentUsageResponse(BaseModel):
    tier: Tier
    status: SubscriptionStatus
    period_start: date
    period_end: date
    usage: List[ActionUsage]
    overage_units: int
    overage_amount: Decimal

# Webhooks
class WebhookResponse(BaseModel):
    success: bool
    message: str
    action: Optional[str] = None
    event_id: Optional[str] = None
