"""
Entity store for users, goals, transactions, notifications and insights.

The store is ownership-agnostic: it persists rows and hands out copies.
Ownership checks and business rules live in the service layer.

- every collection assigns ids from its own monotonic counter (never reused)
- multi-entity writes go through `atomic()` and become visible all at once
- `entity_lock()` gives callers a per-entity mutex for read-modify-write flows
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from .errors import NotFound

Row = dict[str, Any]


def _now() -> datetime:
    """Wrapper for deterministic tests."""
    return datetime.now(timezone.utc)


class Collection(Protocol):
    name: str

    async def create(self, data: Row) -> Row:
        ...

    async def get(self, entity_id: int) -> Row:
        ...

    async def list(self, *, limit: int | None = None, **filters: Any) -> list[Row]:
        ...

    async def find_one(self, **filters: Any) -> Row | None:
        ...

    async def update(self, entity_id: int, changes: Row) -> Row:
        ...

    async def delete(self, entity_id: int) -> None:
        ...


class UnitOfWork(Protocol):
    def get(self, collection: Collection, entity_id: int) -> Row:
        ...

    def find_one(self, collection: Collection, **filters: Any) -> Row | None:
        ...

    def create(self, collection: Collection, data: Row) -> Row:
        ...

    def update(self, collection: Collection, entity_id: int, changes: Row) -> Row:
        ...


class EntityStore(Protocol):
    users: Collection
    goals: Collection
    transactions: Collection
    notifications: Collection
    insights: Collection

    def atomic(self) -> AbstractAsyncContextManager[UnitOfWork]:
        ...

    def entity_lock(self, collection: str, entity_id: int) -> asyncio.Lock:
        ...

    def release_entity_lock(self, collection: str, entity_id: int) -> None:
        ...


class MemoryCollection:
    """One keyed collection. Public methods take the store-wide lock."""

    def __init__(
        self,
        name: str,
        lock: asyncio.Lock,
        *,
        newest_first_by: tuple[str, ...] | None = None,
    ) -> None:
        self.name = name
        self._lock = lock
        self._newest_first_by = newest_first_by
        self._rows: dict[int, Row] = {}
        self._ids = itertools.count(1)

    def _reserve_id(self) -> int:
        return next(self._ids)

    def _build(self, data: Row) -> Row:
        row = dict(data)
        row["id"] = self._reserve_id()
        row.setdefault("created_at", _now())
        return row

    def _insert(self, row: Row) -> None:
        self._rows[row["id"]] = row

    def _get(self, entity_id: int) -> Row:
        row = self._rows.get(entity_id)
        if row is None:
            raise NotFound(f"{self.name[:-1].capitalize()} not found")
        return row

    def _apply_update(self, entity_id: int, changes: Row) -> Row:
        row = self._get(entity_id)
        row.update({key: value for key, value in changes.items() if key != "id"})
        return row

    def _select(self, limit: int | None, filters: dict[str, Any]) -> list[Row]:
        rows = [
            row
            for row in self._rows.values()
            if all(row.get(key) == value for key, value in filters.items())
        ]
        if self._newest_first_by:
            fields = self._newest_first_by
            rows.sort(key=lambda row: tuple(row[field] for field in fields), reverse=True)
        if limit is not None:
            rows = rows[: max(limit, 0)]
        return [dict(row) for row in rows]

    async def create(self, data: Row) -> Row:
        async with self._lock:
            row = self._build(data)
            self._insert(row)
            return dict(row)

    async def get(self, entity_id: int) -> Row:
        async with self._lock:
            return dict(self._get(entity_id))

    async def list(self, *, limit: int | None = None, **filters: Any) -> list[Row]:
        async with self._lock:
            return self._select(limit, filters)

    async def find_one(self, **filters: Any) -> Row | None:
        async with self._lock:
            rows = self._select(1, filters)
        return rows[0] if rows else None

    async def update(self, entity_id: int, changes: Row) -> Row:
        async with self._lock:
            return dict(self._apply_update(entity_id, changes))

    async def delete(self, entity_id: int) -> None:
        async with self._lock:
            self._get(entity_id)
            del self._rows[entity_id]


@dataclass
class _StagedWrite:
    collection: MemoryCollection
    entity_id: int
    row: Row | None = None
    changes: Row | None = None


class MemoryUnitOfWork:
    """
    Staged writes applied together when the surrounding `atomic()` block exits.

    Reads see committed rows overlaid with writes staged earlier in this unit.
    """

    def __init__(self) -> None:
        self._staged: list[_StagedWrite] = []

    def get(self, collection: MemoryCollection, entity_id: int) -> Row:
        current: Row | None = None
        try:
            current = dict(collection._get(entity_id))
        except NotFound:
            current = None

        for write in self._staged:
            if write.collection is not collection or write.entity_id != entity_id:
                continue
            if write.row is not None:
                current = dict(write.row)
            elif current is not None and write.changes:
                current.update(write.changes)

        if current is None:
            raise NotFound(f"{collection.name[:-1].capitalize()} not found")
        return current

    def find_one(self, collection: MemoryCollection, **filters: Any) -> Row | None:
        """First committed or staged-new row matching every filter."""
        committed = collection._select(1, filters)
        if committed:
            return committed[0]

        for write in self._staged:
            if write.collection is collection and write.row is not None and all(
                write.row.get(key) == value for key, value in filters.items()
            ):
                return dict(write.row)
        return None

    def create(self, collection: MemoryCollection, data: Row) -> Row:
        row = collection._build(data)
        self._staged.append(_StagedWrite(collection, row["id"], row=row))
        return dict(row)

    def update(self, collection: MemoryCollection, entity_id: int, changes: Row) -> Row:
        current = self.get(collection, entity_id)
        clean = {key: value for key, value in changes.items() if key != "id"}
        self._staged.append(_StagedWrite(collection, entity_id, changes=clean))
        return {**current, **clean}

    def _commit(self) -> None:
        for write in self._staged:
            if write.row is not None:
                write.collection._insert(write.row)
            else:
                write.collection._apply_update(write.entity_id, write.changes or {})
        self._staged.clear()


class MemoryStore:
    """Process-wide in-memory implementation of `EntityStore`."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._entity_locks: dict[tuple[str, int], asyncio.Lock] = {}
        self.users = MemoryCollection("users", self._lock)
        self.goals = MemoryCollection("goals", self._lock)
        self.transactions = MemoryCollection(
            "transactions", self._lock, newest_first_by=("occurred_on", "id"))
        self.notifications = MemoryCollection(
            "notifications", self._lock, newest_first_by=("created_at", "id"))
        self.insights = MemoryCollection(
            "insights", self._lock, newest_first_by=("created_at", "id"))

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[MemoryUnitOfWork]:
        """Hold the store lock and commit staged writes only on clean exit."""
        async with self._lock:
            unit = MemoryUnitOfWork()
            yield unit
            unit._commit()

    def entity_lock(self, collection: str, entity_id: int) -> asyncio.Lock:
        key = (collection, entity_id)
        lock = self._entity_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._entity_locks[key] = lock
        return lock

    def release_entity_lock(self, collection: str, entity_id: int) -> None:
        """Forget the lock of an entity that no longer exists."""
        self._entity_locks.pop((collection, entity_id), None)
