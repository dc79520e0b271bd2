from sqlalchemy import Column, String, Integer, Date, Uuid, UniqueConstraint
import uuid
import enum
from .base import Base, TimestampMixin

class ActionType(str, enum.Enum):
    """Metered actions"""
    ENHANCEMENT = "enhancement"
    CONSULTATION = "consultation"  # widget transforms

class UsagePeriodCounter(Base, TimestampMixin):
    """Per-user counters for one billing period, with the limits in effect for it"""
    __tablename__ = "usage_periods"
    __table_args__ = (
        UniqueConstraint("user_id", "period_start", name="uq_usage_periods_user_period"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(String, nullable=False, index=True)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=True)

    enhancement_count = Column(Integer, default=0, nullable=False)
    consultation_count = Column(Integer, default=0, nullable=False)

    # Snapshot of the tier limits, taken when the period opens or the plan changes
    enhancement_limit = Column(Integer, nullable=False)
    consultation_limit = Column(Integer, nullable=False)

COUNTER_COLUMNS = {
    ActionType.ENHANCEMENT: ("enhancement_count", "enhancement_limit"),
    ActionType.CONSULTATION: ("consultation_count", "consultation_limit"),
}
