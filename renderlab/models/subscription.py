from sqlalchemy import Column, String, DateTime, Uuid, Enum as SQLEnum
import uuid
import enum
from .base import Base, TimestampMixin

class Tier(str, enum.Enum):
    """Subscription plans sold through Stripe"""
    STARTER = "starter"
    PRO = "pro"
    AGENCY = "agency"

class SubscriptionStatus(str, enum.Enum):
    """Subscription status enum, driven only by Stripe webhooks"""
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"

class Subscription(Base, TimestampMixin):
    """One row per user; absence means the default starter/trialing entitlement"""
    __tablename__ = "subscriptions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(String, nullable=False, unique=True, index=True)  # References user in Supabase
    tier = Column(SQLEnum(Tier), default=Tier.STARTER, nullable=False)
    status = Column(SQLEnum(SubscriptionStatus), default=SubscriptionStatus.TRIALING, nullable=False)

    # Billing cycle boundaries confirmed by Stripe
    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)

    # Stripe-related fields
    stripe_customer_id = Column(String(255), nullable=True, index=True)
    stripe_subscription_id = Column(String(255), nullable=True)
