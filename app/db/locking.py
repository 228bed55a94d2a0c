"""Row loading and commit helpers for guarded status transitions.

Every aggregate maps an integer ``version`` as SQLAlchemy's ``version_id_col``,
so each flushed UPDATE carries ``WHERE id = :id AND version = :seen``. Together
with the row lock taken on load this is the compare-and-swap on status: a writer
that lost the race gets ``ConcurrencyConflict`` instead of overwriting.
"""

from typing import Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ConcurrencyConflict, NotFound

T = TypeVar("T")


async def get_or_404(db: AsyncSession, model: Type[T], entity_id: UUID, entity: str) -> T:
    obj = await db.get(model, entity_id)
    if obj is None:
        raise NotFound(entity, entity_id)
    return obj


async def load_for_update(db: AsyncSession, model: Type[T], entity_id: UUID, entity: str) -> T:
    """Load a row for mutation: row lock on PostgreSQL, fresh state from the database."""
    result = await db.execute(
        select(model)
        .where(model.id == entity_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    obj: Optional[T] = result.scalar_one_or_none()
    if obj is None:
        raise NotFound(entity, entity_id)
    return obj


async def commit_or_conflict(db: AsyncSession, entity: str, entity_id: UUID) -> None:
    """Commit the unit of work; a stale version means another writer won."""
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        raise ConcurrencyConflict(entity, entity_id)
