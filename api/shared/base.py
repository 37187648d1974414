"""Base repository shared by the feature repositories."""
from abc import ABC
from typing import Any, Generic, Iterable, List, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.shared.entities.base import BaseEntity

T = TypeVar("T", bound=BaseEntity)


class BaseRepository(ABC, Generic[T]):
    """Common async CRUD operations over a single entity type.

    Repositories only flush; committing is the caller's responsibility so a
    service can group several writes into one transaction.
    """

    model: Type[T]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, entity: T) -> T:
        """Create new entity."""
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def get_one_by_field(self, field_name: str, value: Any) -> Optional[T]:
        """Get the single entity whose field equals value."""
        field = getattr(self.model, field_name)
        stmt = select(self.model).where(field == value).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_field_in(
        self, field_name: str, values: Iterable[Any]
    ) -> List[T]:
        """Get entities whose field value is one of values."""
        values = list(values)
        if not values:
            return []
        field = getattr(self.model, field_name)
        stmt = select(self.model).where(field.in_(values))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def update(self, entity: T) -> T:
        """Flush pending changes on an attached entity and reload it."""
        await self.session.flush()
        await self.session.refresh(entity)
        return entity
