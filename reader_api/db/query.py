"""
Query-building helpers shared by the repositories.
SQLAlchemy Core expressions carry their own bind parameters, so conditions can be
appended in any order without positional-parameter bookkeeping.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import Select, Table, and_, or_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.sql.dml import Insert
from sqlalchemy.sql.elements import ColumnElement

from reader_api.core.exceptions import InvalidQueryError


def apply_filters(stmt: Select, conditions: Iterable[ColumnElement[bool]]) -> Select:
    conditions = list(conditions)
    if conditions:
        stmt = stmt.where(and_(*conditions))
    return stmt


def order_clauses(
    sortable: Mapping[str, ColumnElement[Any]],
    order_by: str,
    direction: str,
    tiebreaker: ColumnElement[Any],
) -> list[ColumnElement[Any]]:
    """ORDER BY a whitelisted column. The tiebreaker keeps LIMIT/OFFSET pages stable."""
    column = sortable.get(order_by)
    if column is None:
        allowed = ", ".join(sorted(sortable))
        raise InvalidQueryError(f"Cannot order by {order_by!r}; expected one of: {allowed}")
    if direction == "desc":
        return [column.desc(), tiebreaker.desc()]
    return [column.asc(), tiebreaker.asc()]


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains_ci(columns: Iterable[ColumnElement[Any]], term: str) -> ColumnElement[bool]:
    """Case-insensitive substring match of `term` against any of `columns`."""
    pattern = f"%{escape_like(term)}%"
    return or_(*(column.ilike(pattern, escape="\\") for column in columns))


def insert_ignoring_conflicts(dialect_name: str, table: Table, values: Mapping[str, Any]) -> Insert:
    """INSERT ... ON CONFLICT DO NOTHING for the dialects we run on."""
    if dialect_name == "postgresql":
        return pg_insert(table).values(**values).on_conflict_do_nothing()
    if dialect_name == "sqlite":
        return sqlite_insert(table).values(**values).on_conflict_do_nothing()
    raise InvalidQueryError(f"Upsert is not supported on dialect {dialect_name!r}")
