"""Document store interface shared by the SQLite and DynamoDB backends."""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol, runtime_checkable


class Table(str, Enum):
    """Logical table names.  Backends map these to physical names."""

    LABS = "labs"
    JOBS = "jobs"
    USERS = "users"
    APPLICATIONS = "applications"


@runtime_checkable
class DocumentStore(Protocol):
    """Key/value document store keyed by ``id``.

    Every document carries an integer ``version`` that the store bumps on
    each ``update``.  Passing ``expected_version`` turns an update into a
    compare-and-swap that raises ``ConcurrentUpdateError`` when another
    writer got there first.
    """

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def get(self, table: str, key: str) -> dict[str, Any] | None: ...

    async def put(self, table: str, item: dict[str, Any]) -> None: ...

    async def update(
        self,
        table: str,
        key: str,
        changes: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> dict[str, Any] | None: ...

    async def delete(self, table: str, key: str) -> dict[str, Any] | None: ...

    async def scan(
        self, table: str, filters: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]: ...


def resolve_table(table: str | Table) -> Table:
    """Validate *table* against the logical table names."""
    try:
        return Table(table)
    except ValueError:
        msg = f"Unknown table '{table}'"
        raise ValueError(msg) from None


def matches_filters(item: dict[str, Any], filters: dict[str, Any] | None) -> bool:
    """Equality match; a ``None`` filter value matches a missing or null attribute."""
    if not filters:
        return True
    for name, expected in filters.items():
        if expected is None:
            if item.get(name) is not None:
                return False
        elif item.get(name) != expected:
            return False
    return True
