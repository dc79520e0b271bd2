# Database models package

from .base import Base
from .subscription import Subscription, SubscriptionStatus, Tier
from .usage_period import UsagePeriodCounter, ActionType, COUNTER_COLUMNS
from .overage_event import OverageEvent
from .usage_alert import UsageAlert, ALERT_THRESHOLDS
from .demo_usage import DemoUsage
from .stripe_webhook import StripeWebhook

__all__ = [
    'Base',
    'Subscription',
    'SubscriptionStatus',
    'Tier',
    'UsagePeriodCounter',
    'ActionType',
    'COUNTER_COLUMNS',
    'OverageEvent',
    'UsageAlert',
    'ALERT_THRESHOLDS',
    'DemoUsage',
    'StripeWebhook',
]
