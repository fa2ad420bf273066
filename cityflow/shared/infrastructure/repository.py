"""
SQLAlchemy Repository Base
===========================

Id conversion and the get/query/upsert/delete helpers shared by every
SQLAlchemy repository. Database errors surface as RepositoryException.
"""

from typing import Any, List, Optional, Type
from uuid import UUID, uuid4

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cityflow.core import RepositoryException


def to_uuid(value: Optional[str]) -> Optional[UUID]:
    """Parse an id, returning None for anything that is not a UUID."""
    if value is None:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


def from_uuid(value: Optional[UUID]) -> Optional[str]:
    return str(value) if value is not None else None


class SQLAlchemyRepository:
    """Base class holding the request session."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _get(self, model_cls: Type[Any], entity_id: Optional[str]) -> Optional[Any]:
        key = to_uuid(entity_id)
        if key is None:
            return None
        try:
            return await self._session.get(model_cls, key)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load {model_cls.__tablename__} row: {e}")

    async def _all(self, stmt) -> List[Any]:
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Query failed: {e}")
        return list(result.scalars().all())

    async def _upsert(self, model_cls: Type[Any], entity_id: str, values: dict) -> Any:
        """Insert when entity_id is empty, otherwise update the existing row."""
        if entity_id:
            model = await self._get(model_cls, entity_id)
            if model is None:
                raise RepositoryException(f"{model_cls.__tablename__} row {entity_id} not found")
            for key, value in values.items():
                setattr(model, key, value)
        else:
            model = model_cls(id=uuid4(), **values)
            self._session.add(model)

        try:
            await self._session.flush()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to save {model_cls.__tablename__} row: {e}")
        return model

    async def _delete(self, model_cls: Type[Any], entity_id: str) -> bool:
        key = to_uuid(entity_id)
        if key is None:
            return False
        try:
            result = await self._session.execute(delete(model_cls).where(model_cls.id == key))
            await self._session.flush()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to delete {model_cls.__tablename__} row: {e}")
        return result.rowcount > 0
