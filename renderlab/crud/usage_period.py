from datetime import date
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_, func

from renderlab.crud.base import upsert_insert
from renderlab.core.exceptions import translate_store_errors
from renderlab.models.usage_period import UsagePeriodCounter, ActionType, COUNTER_COLUMNS
from renderlab.services.entitlements import EntitlementProfile


def _limit_snapshot(profile: EntitlementProfile) -> dict:
    return {
        "enhancement_limit": profile.enhancement_limit,
        "consultation_limit": profile.consultation_limit,
    }


class CRUDUsagePeriod:
    """Counter rows keyed by (user_id, period_start).

    Counters only ever grow inside a row; a new period is a new row.
    """

    def __init__(self, model=UsagePeriodCounter):
        self.model = model

    @translate_store_errors
    async def get_for_period(
        self,
        db: AsyncSession,
        user_id: str,
        period_start: date
    ) -> Optional[UsagePeriodCounter]:
        result = await db.execute(
            select(self.model).where(
                and_(
                    self.model.user_id == user_id,
                    self.model.period_start == period_start
                )
            )
            # counters move through Core statements, never trust the identity map
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @translate_store_errors
    async def increment(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        period_start: date,
        period_end: Optional[date],
        action_type: ActionType,
        profile: EntitlementProfile
    ) -> int:
        """
        Atomically add one to the action's counter and return the new value.

        Single INSERT .. ON CONFLICT DO UPDATE statement: the row is created
        with the profile's limits if absent, otherwise only the counter moves.
        """
        count_column, _ = COUNTER_COLUMNS[action_type]
        counter = getattr(self.model, count_column)

        values = {
            "user_id": user_id,
            "period_start": period_start,
            "period_end": period_end,
            "enhancement_count": 0,
            "consultation_count": 0,
            **_limit_snapshot(profile),
        }
        values[count_column] = 1

        stmt = upsert_insert(db, self.model).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[self.model.user_id, self.model.period_start],
            set_={count_column: counter + 1, "updated_at": func.now()},
        ).returning(counter)

        result = await db.execute(stmt)
        new_count = result.scalar_one()
        await db.commit()
        return new_count

    async def ensure_period(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        period_start: date,
        period_end: Optional[date],
        profile: EntitlementProfile
    ) -> None:
        """Open the period row if it does not exist; existing counts are left untouched"""
        stmt = upsert_insert(db, self.model).values(
            user_id=user_id,
            period_start=period_start,
            period_end=period_end,
            enhancement_count=0,
            consultation_count=0,
            **_limit_snapshot(profile),
        ).on_conflict_do_nothing(index_elements=[self.model.user_id, self.model.period_start])
        await db.execute(stmt)

    async def resnapshot_limits(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        period_start: date,
        profile: EntitlementProfile
    ) -> int:
        """Apply a tier's limits to an open period without touching its counters"""
        result = await db.execute(
            update(self.model)
            .where(
                and_(
                    self.model.user_id == user_id,
                    self.model.period_start == period_start
                )
            )
            .values(updated_at=func.now(), **_limit_snapshot(profile))
        )
        return result.rowcount


usage_period_crud = CRUDUsagePeriod()
