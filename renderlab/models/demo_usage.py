from sqlalchemy import Column, String, Integer, Date, Uuid, UniqueConstraint
import uuid
from .base import Base, TimestampMixin

class DemoUsage(Base, TimestampMixin):
    """Sales-demo transform credits, counted separately from billable usage"""
    __tablename__ = "demo_usage"
    __table_args__ = (
        UniqueConstraint("user_id", "period_start", name="uq_demo_usage_user_period"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(String, nullable=False, index=True)
    period_start = Column(Date, nullable=False)
    credits_used = Column(Integer, default=0, nullable=False)
    credits_limit = Column(Integer, nullable=False)
