from sqlalchemy import Column, String, Numeric, DateTime, Uuid, Enum as SQLEnum, func
import uuid
from .base import Base
from .usage_period import ActionType

class OverageEvent(Base):
    """Append-only ledger of billable actions performed at or over the limit"""
    __tablename__ = "overage_events"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(String, nullable=False, index=True)
    action_type = Column(SQLEnum(ActionType), nullable=False)
    rate = Column(Numeric(10, 2), nullable=False)  # currency per unit
    occurred_at = Column(DateTime(timezone=True), default=func.now(), nullable=False, index=True)
