"""Exclusivity scopes for contended workflow transitions."""

import asyncio
from collections.abc import AsyncGenerator, Hashable
from contextlib import asynccontextmanager
from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.models.base import BaseModel

ModelT = TypeVar("ModelT", bound=BaseModel)


class ExclusivityScopes:
    """
    Keyed asyncio locks serializing writers inside one process.

    Row locks taken with ``lock_row`` serialize writers across processes on
    PostgreSQL; this registry makes the same guarantee hold for concurrent
    coroutines sharing an event loop, whatever the backend.
    """

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, *key: Hashable) -> AsyncGenerator[None, None]:
        """Hold the scope identified by ``key`` for the duration of the block."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def active_keys(self) -> list[Hashable]:
        """Keys currently held or waited on."""
        return list(self._locks)


async def lock_row(db: AsyncSession, model: type[ModelT], row_id: int) -> ModelT | None:
    """Load a row with ``SELECT ... FOR UPDATE``, refreshing any cached copy."""
    result = await db.execute(
        select(model)
        .where(model.id == row_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# Global registry instance
scopes = ExclusivityScopes()
