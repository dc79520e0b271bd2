from sqlalchemy import Column, String, DateTime, Uuid
import uuid
from .base import Base, TimestampMixin


class StripeWebhook(Base, TimestampMixin):
    __tablename__ = "stripe_webhooks"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    # Stripe event id for idempotency
    event_id = Column(String(255), nullable=False, unique=True, index=True)
    event_type = Column(String(100), nullable=False)

    # Resulting state, for audit
    user_id = Column(String, nullable=True, index=True)
    stripe_customer_id = Column(String(255), nullable=True, index=True)
    tier = Column(String(50), nullable=True)
    subscription_status = Column(String(50), nullable=True)

    # Audit of webhook handling
    action = Column(String(100), nullable=True)  # action name from webhook handler
    processed_at = Column(DateTime(timezone=True), nullable=True)
