"""
Base CRUD operations for SQLAlchemy models.

Provides generic Create, Read, Update, Delete operations that can be
inherited and extended by model-specific CRUD classes. Updates are
expressed as conditional UPDATE ... RETURNING statements so callers can
guard state transitions in a single round trip.

Dependencies: sqlalchemy, uuid
System role: Foundation for all database CRUD operations
"""

from typing import Any, Generic, Sequence, TypeVar
from uuid import UUID

from sqlalchemy import ColumnElement, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from livedesk.boundary.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseCRUD(Generic[ModelT]):
    """
    Generic base class for CRUD operations.

    Type Parameters:
        ModelT: SQLAlchemy model class inheriting from Base

    Attributes:
        model: The SQLAlchemy model class to operate on
    """

    def __init__(self, model: type[ModelT]) -> None:
        self.model = model

    async def create(self, session: AsyncSession, **kwargs: Any) -> ModelT:
        """
        Insert a new row and flush it so generated columns are populated.

        Args:
            session: Async database session
            **kwargs: Model field values

        Returns:
            Created model instance with generated ID and timestamps
        """
        instance = self.model(**kwargs)
        session.add(instance)
        await session.flush()
        await session.refresh(instance)
        return instance

    async def get_by_id(self, session: AsyncSession, id: UUID) -> ModelT | None:
        """Retrieve a single record by primary key, or None."""
        stmt = select(self.model).where(self.model.id == id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def update_where(
        self,
        session: AsyncSession,
        *criteria: ColumnElement[bool],
        **values: Any,
    ) -> Sequence[ModelT]:
        """
        Update every row matching criteria and return the new versions.

        Args:
            session: Async database session
            *criteria: WHERE clauses, ANDed together
            **values: Columns to set

        Returns:
            Updated model instances (empty if nothing matched)
        """
        stmt = (
            update(self.model)
            .where(*criteria)
            .values(**values)
            .returning(self.model)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def update_by_id(
        self,
        session: AsyncSession,
        id: UUID,
        *criteria: ColumnElement[bool],
        **values: Any,
    ) -> ModelT | None:
        """
        Update a record by primary key, optionally guarded by extra criteria.

        Returns:
            Updated model instance, None if not found or a guard failed
        """
        rows = await self.update_where(session, self.model.id == id, *criteria, **values)
        return rows[0] if rows else None

    async def delete_where(
        self,
        session: AsyncSession,
        *criteria: ColumnElement[bool],
    ) -> int:
        """Delete rows matching criteria; returns the number removed."""
        stmt = delete(self.model).where(*criteria)
        result = await session.execute(stmt)
        return result.rowcount or 0
