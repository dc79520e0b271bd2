from sqlalchemy import Column, String, Integer, Date, Boolean, DateTime, Uuid, Enum as SQLEnum, UniqueConstraint, func
import uuid
from .base import Base
from .usage_period import ActionType

ALERT_THRESHOLDS = (80, 100)

class UsageAlert(Base):
    """Existence of a row means the threshold email was already attempted this period"""
    __tablename__ = "usage_alerts"
    __table_args__ = (
        UniqueConstraint("user_id", "action_type", "period_start", "threshold", name="uq_usage_alerts_key"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(String, nullable=False, index=True)
    action_type = Column(SQLEnum(ActionType), nullable=False)
    period_start = Column(Date, nullable=False)
    threshold = Column(Integer, nullable=False)  # 80 | 100
    email_delivered = Column(Boolean, default=False, nullable=False)  # False rows are candidates for manual resend
    created_at = Column(DateTime(timezone=True), default=func.now(), nullable=False)
