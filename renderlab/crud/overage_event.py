from datetime import datetime
from decimal import Decimal
from typing import Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func

from renderlab.core.exceptions import translate_store_errors
from renderlab.models.overage_event import OverageEvent
from renderlab.schemas.billing import OverageEventCreate


class CRUDOverageEvent:
    """Append-only ledger: rows are inserted and summed, never updated or deleted"""

    def __init__(self, model=OverageEvent):
        self.model = model

    @translate_store_errors
    async def append(self, db: AsyncSession, *, obj_in: OverageEventCreate) -> OverageEvent:
        db_obj = self.model(**obj_in.model_dump())
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    @translate_store_errors
    async def sum_for_period(
        self,
        db: AsyncSession,
        user_id: str,
        start: datetime,
        end: datetime
    ) -> Tuple[int, Decimal]:
        """Count and total amount of overage events in [start, end)"""
        result = await db.execute(
            select(
                func.count(self.model.id).label('units'),
                func.sum(self.model.rate).label('amount')
            ).where(
                and_(
                    self.model.user_id == user_id,
                    self.model.occurred_at >= start,
                    self.model.occurred_at < end
                )
            )
        )
        row = result.first()
        return row.units or 0, Decimal(str(row.amount or 0))


overage_event_crud = CRUDOverageEvent()
