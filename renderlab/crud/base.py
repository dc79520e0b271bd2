from typing import Any, Dict, Generic, Type, TypeVar, Union
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects import postgresql, sqlite
from renderlab.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


def upsert_insert(db: AsyncSession, model: Type[Base]):
    """INSERT construct supporting ON CONFLICT for the session's dialect"""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite.insert(model)
    return postgresql.insert(model)


def _schema_to_dict(obj_in: Any) -> Dict[str, Any]:
    # model_dump() preserves Python types (date, datetime, Decimal)
    if hasattr(obj_in, 'model_dump'):
        return obj_in.model_dump(exclude_unset=True)
    if isinstance(obj_in, dict):
        return dict(obj_in)
    return jsonable_encoder(obj_in)


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    def __init__(self, model: Type[ModelType]):
        self.model = model

    async def create(self, db: AsyncSession, *, obj_in: CreateSchemaType, commit: bool = True) -> ModelType:
        """Create a new record"""
        db_obj = self.model(**_schema_to_dict(obj_in))
        db.add(db_obj)
        if commit:
            await db.commit()
            await db.refresh(db_obj)
        else:
            await db.flush()
        return db_obj

    async def create_with_extra(
        self,
        db: AsyncSession,
        *,
        obj_in: CreateSchemaType,
        extra_data: Dict[str, Any],
        commit: bool = True
    ) -> ModelType:
        """Create a new record with additional fields"""
        obj_in_data = _schema_to_dict(obj_in)
        obj_in_data.update(extra_data)
        db_obj = self.model(**obj_in_data)
        db.add(db_obj)
        if commit:
            await db.commit()
            await db.refresh(db_obj)
        else:
            await db.flush()
        return db_obj

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: Union[UpdateSchemaType, Dict[str, Any]],
        commit: bool = True
    ) -> ModelType:
        """Update a record"""
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)

        for field, value in update_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        db.add(db_obj)
        if commit:
            await db.commit()
            await db.refresh(db_obj)
        else:
            await db.flush()
        return db_obj
