from datetime import date
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func

from renderlab.crud.base import upsert_insert
from renderlab.core.exceptions import translate_store_errors
from renderlab.models.demo_usage import DemoUsage


class CRUDDemoUsage:
    def __init__(self, model=DemoUsage):
        self.model = model

    @translate_store_errors
    async def get_for_period(self, db: AsyncSession, user_id: str, period_start: date) -> Optional[DemoUsage]:
        result = await db.execute(
            select(self.model).where(
                and_(
                    self.model.user_id == user_id,
                    self.model.period_start == period_start
                )
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @translate_store_errors
    async def increment(self, db: AsyncSession, *, user_id: str, period_start: date, credits_limit: int) -> int:
        """Atomically consume one demo credit and return the credits used this period"""
        stmt = upsert_insert(db, self.model).values(
            user_id=user_id,
            period_start=period_start,
            credits_used=1,
            credits_limit=credits_limit,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[self.model.user_id, self.model.period_start],
            set_={"credits_used": self.model.credits_used + 1, "updated_at": func.now()},
        ).returning(self.model.credits_used)
        result = await db.execute(stmt)
        credits_used = result.scalar_one()
        await db.commit()
        return credits_used


demo_usage_crud = CRUDDemoUsage()
