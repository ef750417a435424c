"""
Persistence collaborator interface.

The engine talks to a row-oriented store through a small generic
select / count / insert / update / delete API with equality and
containment filters. Any hosted database client can be adapted to
:class:`PersistenceClient`; :class:`InMemoryPersistence` is a complete
in-process implementation used for tests, fixtures and the CLI.
"""

import copy
from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from typing import Any, Protocol, runtime_checkable

import structlog
from pydantic import BaseModel, ConfigDict

from segengine.core.values import ABSENT, deep_equal, resolve

logger = structlog.get_logger()

Row = dict[str, Any]


class FilterOp(Enum):
    """Filter operators understood by persistence clients."""

    EQ = "eq"  # Column equals value
    CONTAINS = "cs"  # Array column contains every element of value


class Filter(BaseModel):
    """
    A single row filter.

    ``column`` may be a dotted path into a JSON column, e.g.
    ``context.segments``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    column: str
    op: FilterOp = FilterOp.EQ
    value: Any = None

    @classmethod
    def eq(cls, column: str, value: Any) -> "Filter":
        return cls(column=column, op=FilterOp.EQ, value=value)

    @classmethod
    def contains(cls, column: str, *values: Any) -> "Filter":
        return cls(column=column, op=FilterOp.CONTAINS, value=list(values))

    def matches(self, row: Mapping[str, Any]) -> bool:
        """Evaluate this filter against a row."""
        actual = resolve(row, self.column)
        match self.op:
            case FilterOp.EQ:
                return actual is not ABSENT and deep_equal(actual, self.value)
            case FilterOp.CONTAINS:
                if not isinstance(actual, Sequence) or isinstance(actual, str):
                    return False
                return all(
                    any(deep_equal(item, wanted) for item in actual) for wanted in self.value
                )
        return False


@runtime_checkable
class PersistenceClient(Protocol):
    """Async row store consumed by the engine."""

    async def select(
        self,
        table: str,
        *,
        filters: Sequence[Filter] = (),
        columns: Sequence[str] | None = None,
    ) -> list[Row]:
        """Return rows of ``table`` matching every filter."""
        ...

    async def count(self, table: str, *, filters: Sequence[Filter] = ()) -> int:
        """Count rows of ``table`` matching every filter."""
        ...

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        """Insert a row and return it as stored."""
        ...

    async def update(
        self,
        table: str,
        values: Mapping[str, Any],
        *,
        filters: Sequence[Filter],
    ) -> list[Row]:
        """Update matching rows and return them as stored."""
        ...

    async def delete(self, table: str, *, filters: Sequence[Filter]) -> int:
        """Delete matching rows and return how many were removed."""
        ...


class InMemoryPersistence:
    """
    Dict-backed :class:`PersistenceClient`.

    Rows are deep-copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self, tables: Mapping[str, Iterable[Mapping[str, Any]]] | None = None) -> None:
        self._tables: dict[str, list[Row]] = {}
        self._log = logger.bind(component="in_memory_persistence")
        for table, rows in (tables or {}).items():
            self.seed(table, rows)

    def seed(self, table: str, rows: Iterable[Mapping[str, Any]]) -> None:
        """Append rows to a table, creating it if needed."""
        self._tables.setdefault(table, []).extend(copy.deepcopy(dict(r)) for r in rows)

    def table(self, name: str) -> list[Row]:
        """Snapshot of a table's rows."""
        return copy.deepcopy(self._tables.get(name, []))

    def _matching(self, table: str, filters: Sequence[Filter]) -> list[Row]:
        return [r for r in self._tables.get(table, []) if all(f.matches(r) for f in filters)]

    async def select(
        self,
        table: str,
        *,
        filters: Sequence[Filter] = (),
        columns: Sequence[str] | None = None,
    ) -> list[Row]:
        rows = self._matching(table, filters)
        if columns is not None:
            rows = [{c: r.get(c) for c in columns} for r in rows]
        return copy.deepcopy(rows)

    async def count(self, table: str, *, filters: Sequence[Filter] = ()) -> int:
        return len(self._matching(table, filters))

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        stored = copy.deepcopy(dict(row))
        rows = self._tables.setdefault(table, [])
        if "id" in stored and any(r.get("id") == stored["id"] for r in rows):
            raise ValueError(f"Duplicate id '{stored['id']}' in table '{table}'")
        rows.append(stored)
        self._log.debug("row_inserted", table=table, row_id=stored.get("id"))
        return copy.deepcopy(stored)

    async def update(
        self,
        table: str,
        values: Mapping[str, Any],
        *,
        filters: Sequence[Filter],
    ) -> list[Row]:
        updated = self._matching(table, filters)
        for row in updated:
            row.update(copy.deepcopy(dict(values)))
        self._log.debug("rows_updated", table=table, count=len(updated))
        return copy.deepcopy(updated)

    async def delete(self, table: str, *, filters: Sequence[Filter]) -> int:
        rows = self._tables.get(table, [])
        kept = [r for r in rows if not all(f.matches(r) for f in filters)]
        removed = len(rows) - len(kept)
        self._tables[table] = kept
        self._log.debug("rows_deleted", table=table, count=removed)
        return removed
