"""
Base Repository Pattern

Purpose
-------
Type-safe, generic data access following SQLAlchemy 2.0 async patterns.
Repositories encapsulate queries; services own transactions and rules.

Design Notes
------------
This base repository provides:
- Type-safe CRUD operations
- Pessimistic locking support (``get_for_update``, ``for_update=True``)
- Ordered and limited multi-row queries
- Existence/counting utilities
- Structured debug logging for every query

What this class does NOT do:
- Manage transactions (``DatabaseService`` handles that)
- Contain business logic

Usage
-----
    class RaidRepository(BaseRepository[DungeonRaid]):
        async def find_live(self, session, hunter_id):
            return await self.find_one_where(
                session,
                DungeonRaid.hunter_id == hunter_id,
                DungeonRaid.status.in_(LIVE_STATUSES),
            )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select

from hunterfit.core.database.service import DatabaseService

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic base repository.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    async def get(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """Get a single record by primary key (no lock)."""
        instance = await session.get(self.model_class, id_value)

        self.log.debug(
            f"Repository.get: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "id": id_value,
                "found": instance is not None,
            },
        )
        return instance

    async def get_for_update(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """Get a single record by primary key with SELECT FOR UPDATE."""
        instance = await DatabaseService.get_locked_entity(session, self.model_class, id_value)

        self.log.debug(
            f"Repository.get_for_update: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "id": id_value,
                "found": instance is not None,
                "locked": True,
            },
        )
        return instance

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        for_update: bool = False,
    ) -> Optional[T]:
        """
        First record matching conditions, or None.

        With ``order_by`` the first row in that order is returned; without it
        the query expects at most one match.
        """
        stmt = select(self.model_class).where(*conditions)

        if for_update:
            stmt = stmt.with_for_update()

        if order_by:
            stmt = stmt.order_by(*order_by).limit(1)
            result = await session.execute(stmt)
            instance = result.scalars().first()
        else:
            result = await session.execute(stmt)
            instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.find_one_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found": instance is not None,
                "locked": for_update,
            },
        )
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        for_update: bool = False,
        limit: Optional[int] = None,
    ) -> List[T]:
        """Records matching conditions, optionally ordered, locked and limited."""
        stmt = select(self.model_class).where(*conditions)

        if for_update:
            stmt = stmt.with_for_update()

        if order_by:
            stmt = stmt.order_by(*order_by)

        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found_count": len(instances),
                "locked": for_update,
                "limit": limit,
            },
        )
        return instances

    async def exists(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> bool:
        return await self.count(session, *conditions) > 0

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        count = result.scalar_one()

        self.log.debug(
            f"Repository.count: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "count": count},
        )
        return count

    def add(self, session: AsyncSession, instance: T) -> T:
        session.add(instance)
        self.log.debug(
            f"Repository.add: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__},
        )
        return instance

    def add_many(self, session: AsyncSession, instances: Sequence[T]) -> List[T]:
        session.add_all(instances)
        self.log.debug(
            f"Repository.add_many: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "count": len(instances)},
        )
        return list(instances)

    async def delete(self, session: AsyncSession, instance: T) -> None:
        await session.delete(instance)
        self.log.debug(
            f"Repository.delete: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__},
        )

    async def flush(self, session: AsyncSession) -> None:
        await session.flush()

    async def refresh(
        self,
        session: AsyncSession,
        instance: T,
        attribute_names: Optional[List[str]] = None,
    ) -> T:
        await session.refresh(instance, attribute_names=attribute_names)
        return instance
