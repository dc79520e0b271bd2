from datetime import date
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func

from renderlab.crud.base import upsert_insert
from renderlab.core.exceptions import translate_store_errors
from renderlab.models.usage_alert import UsageAlert
from renderlab.models.usage_period import ActionType


class CRUDUsageAlert:
    def __init__(self, model=UsageAlert):
        self.model = model

    @translate_store_errors
    async def exists(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        action_type: ActionType,
        period_start: date,
        threshold: int
    ) -> bool:
        result = await db.execute(
            select(func.count(self.model.id)).where(
                and_(
                    self.model.user_id == user_id,
                    self.model.action_type == action_type,
                    self.model.period_start == period_start,
                    self.model.threshold == threshold
                )
            )
        )
        return (result.scalar() or 0) > 0

    @translate_store_errors
    async def record(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        action_type: ActionType,
        period_start: date,
        threshold: int,
        email_delivered: bool
    ) -> bool:
        """Insert the dedup row if absent. Returns False when it already existed."""
        stmt = upsert_insert(db, self.model).values(
            user_id=user_id,
            action_type=action_type,
            period_start=period_start,
            threshold=threshold,
            email_delivered=email_delivered,
        ).on_conflict_do_nothing(
            index_elements=[
                self.model.user_id,
                self.model.action_type,
                self.model.period_start,
                self.model.threshold,
            ]
        ).returning(self.model.id)
        result = await db.execute(stmt)
        inserted = result.scalar_one_or_none() is not None
        await db.commit()
        return inserted


usage_alert_crud = CRUDUsageAlert()
