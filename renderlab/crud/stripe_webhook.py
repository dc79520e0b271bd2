from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional

from renderlab.crud.base import CRUDBase
from renderlab.models.stripe_webhook import StripeWebhook
from pydantic import BaseModel


class StripeWebhookCreate(BaseModel):
    event_id: str
    event_type: str
    user_id: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    tier: Optional[str] = None
    subscription_status: Optional[str] = None
    action: Optional[str] = None
    # processed_at set server-side by handler when saving


class CRUDStripeWebhook(CRUDBase[StripeWebhook, StripeWebhookCreate, BaseModel]):
    async def get_by_event_id(self, db: AsyncSession, event_id: str) -> Optional[StripeWebhook]:
        result = await db.execute(
            select(self.model).where(self.model.event_id == event_id)
        )
        return result.scalar_one_or_none()


stripe_webhook_crud = CRUDStripeWebhook(StripeWebhook)
