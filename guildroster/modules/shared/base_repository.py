"""
Base Repository Pattern

Purpose
-------
Type-safe, generic data access for roster models following SQLAlchemy 2.0
async conventions. Repositories hold no business rules; services decide
what to read, what to lock and what to write.

Design Notes
------------
- Every method takes the caller's session; transactions are owned by
  DatabaseService.get_transaction().
- `for_update=True` issues SELECT ... FOR UPDATE for rows that gate an
  invariant.
- Every call logs one debug line with the model name.

Usage
-----
    class TagRepository(BaseRepository[Tag]):
        async def find_by_name(self, session, guild_id, name):
            return await self.find_one_where(
                session, Tag.guild_id == guild_id, Tag.name == name
            )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.orm import selectinload

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic repository for one SQLAlchemy model.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    @property
    def _model_name(self) -> str:
        return self.model_class.__name__

    async def get(
        self,
        session: AsyncSession,
        id_value: Any,
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Get a single record by primary key.

        Args:
            session: Database session
            id_value: Primary key value
            for_update: If True, lock the row until the transaction ends

        Returns:
            Model instance or None if not found
        """
        instance = await session.get(
            self.model_class,
            id_value,
            with_for_update=for_update or None,
            populate_existing=for_update,
        )

        self.log.debug(
            f"Repository.get: {self._model_name}",
            extra={
                "model": self._model_name,
                "id": id_value,
                "found": instance is not None,
                "locked": for_update,
            },
        )

        return instance

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Find a single record matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            for_update: If True, use SELECT FOR UPDATE

        Returns:
            Model instance or None if not found
        """
        stmt = select(self.model_class).where(*conditions)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.find_one_where: {self._model_name}",
            extra={
                "model": self._model_name,
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
        eager_load: Optional[List[InstrumentedAttribute]] = None,
        for_update: bool = False,
        limit: Optional[int] = None,
    ) -> List[T]:
        """
        Find multiple records matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            order_by: Optional ordering clauses
            eager_load: Optional list of relationships to eagerly load
            for_update: If True, use SELECT FOR UPDATE
            limit: Optional maximum number of results

        Returns:
            List of model instances
        """
        stmt = select(self.model_class).where(*conditions)

        if order_by:
            stmt = stmt.order_by(*order_by)
        if eager_load:
            for relationship in eager_load:
                stmt = stmt.options(selectinload(relationship))
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self._model_name}",
            extra={
                "model": self._model_name,
                "found_count": len(instances),
                "locked": for_update,
                "limit": limit,
            },
        )

        return instances

    async def exists(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> bool:
        """True if at least one record matches the conditions."""
        return await self.count(session, *conditions) > 0

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        """Count records matching conditions."""
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        count = result.scalar_one()

        self.log.debug(
            f"Repository.count: {self._model_name}",
            extra={"model": self._model_name, "count": count},
        )

        return count

    def add(self, session: AsyncSession, instance: T) -> T:
        """Add a new instance to the session."""
        session.add(instance)
        self.log.debug(f"Repository.add: {self._model_name}", extra={"model": self._model_name})
        return instance

    async def delete(self, session: AsyncSession, instance: T) -> None:
        """Delete an instance from the database."""
        await session.delete(instance)
        self.log.debug(
            f"Repository.delete: {self._model_name}", extra={"model": self._model_name}
        )

    async def delete_where(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        """
        Bulk-delete records matching conditions.

        Returns:
            Number of deleted rows
        """
        result = await session.execute(
            delete(self.model_class)
            .where(*conditions)
            .execution_options(synchronize_session=False)
        )
        deleted = result.rowcount or 0

        self.log.debug(
            f"Repository.delete_where: {self._model_name}",
            extra={"model": self._model_name, "deleted": deleted},
        )

        return deleted

    async def flush(self, session: AsyncSession) -> None:
        """Flush pending changes so constraint violations surface inside the transaction."""
        await session.flush()
        self.log.debug(f"Repository.flush: {self._model_name}", extra={"model": self._model_name})
