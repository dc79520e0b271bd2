from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from renderlab.crud.base import CRUDBase
from renderlab.core.exceptions import translate_store_errors
from renderlab.models.subscription import Subscription
from renderlab.schemas.billing import SubscriptionCreate, SubscriptionUpdate


class CRUDSubscription(CRUDBase[Subscription, SubscriptionCreate, SubscriptionUpdate]):
    @translate_store_errors
    async def get_by_user_id(self, db: AsyncSession, user_id: str) -> Optional[Subscription]:
        """Get the subscription row for a user, if one exists"""
        result = await db.execute(
            select(self.model).where(self.model.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_by_customer_id(self, db: AsyncSession, stripe_customer_id: str) -> Optional[Subscription]:
        """Get the subscription row for a Stripe customer"""
        result = await db.execute(
            select(self.model)
            .where(self.model.stripe_customer_id == stripe_customer_id)
            .order_by(self.model.updated_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def upsert_for_user(
        self,
        db: AsyncSession,
        *,
        obj_in: SubscriptionCreate,
        commit: bool = True
    ) -> Subscription:
        """Create the user's subscription row or overwrite it with the given fields"""
        existing = await self.get_by_user_id(db, obj_in.user_id)
        if existing is None:
            return await self.create(db, obj_in=obj_in, commit=commit)
        update_data = obj_in.model_dump(exclude_unset=True, exclude={"user_id"})
        return await self.update(db, db_obj=existing, obj_in=update_data, commit=commit)


subscription_crud = CRUDSubscription(Subscription)
