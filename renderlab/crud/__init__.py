# CRUD operations package

from .subscription import subscription_crud
from .usage_period import usage_period_crud
from .overage_event import overage_event_crud
from .usage_alert import usage_alert_crud
from .demo_usage import demo_usage_crud
from .stripe_webhook import stripe_webhook_crud

__all__ = [
    'subscription_crud',
    'usage_period_crud',
    'overage_event_crud',
    'usage_alert_crud',
    'demo_usage_crud',
    'stripe_webhook_crud'
]
