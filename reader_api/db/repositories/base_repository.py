"""
Base repository - shared statement shapes for every entity (SOLID: Interface Segregation, Dependency Inversion).
Challenge: Consistent data access, one place for update/soft-delete/existence SQL.
"""

from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import Table, func, select, update
from sqlalchemy.sql import Executable

from reader_api.core.exceptions import InvalidQueryError
from reader_api.db.database import Database, Params, Row

ResponseType = TypeVar("ResponseType", bound=BaseModel)


class BaseRepository(Generic[ResponseType]):
    """Generic async repository over one table. Subclasses define entity-specific methods."""

    table: ClassVar[Table]
    response_model: ClassVar[type[BaseModel]]
    # Tables with an is_active flag: deletes flip it, reads and updates skip inactive rows
    soft_delete: ClassVar[bool] = True

    def __init__(self, db: Database):
        self.db = db

    def _format(self, row: Row) -> ResponseType:
        return self.response_model.model_validate(row)

    async def _fetch_one(self, stmt: Executable, params: Params = None) -> Row | None:
        rows = await self.db.execute_query(stmt, params)
        return rows[0] if rows else None

    async def _scalar_count(self, stmt: Executable) -> int:
        rows = await self.db.execute_query(stmt)
        return int(rows[0]["total"]) if rows else 0

    async def _exists(
        self,
        column: str,
        value: Any,
        exclude_id: int | None = None,
        *,
        active_only: bool = True,
    ) -> bool:
        """Existence probe used before create/update to pre-empt unique violations."""
        t = self.table
        stmt = select(t.c.id).where(t.c[column] == value)
        if active_only and self.soft_delete:
            stmt = stmt.where(t.c.is_active.is_(True))
        if exclude_id is not None:
            stmt = stmt.where(t.c.id != exclude_id)
        return await self._fetch_one(stmt.limit(1)) is not None

    async def _update_row(self, id: int, values: dict[str, Any]) -> Row | None:
        """UPDATE only the given columns and stamp updated_at. None when no (active) row matched."""
        if not values:
            raise InvalidQueryError("No fields provided for update")
        t = self.table
        stmt = update(t).where(t.c.id == id)
        if self.soft_delete:
            stmt = stmt.where(t.c.is_active.is_(True))
        stmt = stmt.values(**values, updated_at=func.now()).returning(*t.c)
        return await self._fetch_one(stmt)

    async def _soft_delete(self, id: int) -> bool:
        """Flip is_active on an active row. False when nothing was active to flip."""
        t = self.table
        stmt = (
            update(t)
            .where(t.c.id == id, t.c.is_active.is_(True))
            .values(is_active=False, updated_at=func.now())
            .returning(t.c.id)
        )
        return await self._fetch_one(stmt) is not None
