"""
Async execution store.

Wraps the synchronous storage functions so the workflow engine can await
persistence without blocking the event loop. Each call runs in a worker
thread with its own connection; an in-memory database shares one
connection guarded by a lock, since it cannot be reopened.
"""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, TypeVar

from .cache import DEFAULT_TTL_SECONDS, clear_expired_cache, get_cache_value, set_cache_value
from .connection import init_db
from .executions import (
    ExecutionRecord,
    WorkflowRecord,
    create_execution,
    create_workflow,
    get_all_executions,
    get_execution,
    get_workflow,
    update_execution,
)
from .schema import StorageError

T = TypeVar("T")


class SQLiteStore:
    """SQLite-backed store for executions, workflows and the plan cache."""

    def __init__(self, path: str):
        self.path = path
        self._shared: sqlite3.Connection | None = None
        self._lock = threading.Lock()

        # Create the schema once up front
        conn = init_db(path, check_same_thread=False)
        if path == ":memory:":
            self._shared = conn
        else:
            conn.close()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        if self._shared is not None:
            with self._lock:
                yield self._shared
            return

        conn = sqlite3.connect(self.path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
        finally:
            conn.close()

    def _call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            with self._connect() as conn:
                return fn(conn, *args, **kwargs)
        except sqlite3.Error as e:
            raise StorageError(f"{fn.__name__} failed: {e}") from e

    async def _run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(self._call, fn, *args, **kwargs)

    # -- executions ----------------------------------------------------------

    async def create_execution(self, record: dict[str, Any]) -> ExecutionRecord:
        return await self._run(create_execution, record)

    async def update_execution(self, execution_id: str, fields: dict[str, Any]) -> ExecutionRecord | None:
        return await self._run(update_execution, execution_id, fields)

    async def get_execution(self, execution_id: str) -> ExecutionRecord | None:
        return await self._run(get_execution, execution_id)

    async def get_all_executions(self, limit: int | None = None) -> list[ExecutionRecord]:
        return await self._run(get_all_executions, limit=limit)

    # -- workflows -----------------------------------------------------------

    async def create_workflow(self, record: dict[str, Any]) -> WorkflowRecord:
        return await self._run(create_workflow, record)

    async def get_workflow(self, workflow_id: str) -> WorkflowRecord | None:
        return await self._run(get_workflow, workflow_id)

    # -- cache ---------------------------------------------------------------

    async def get_cache_value(self, key: str) -> Any | None:
        return await self._run(get_cache_value, key)

    async def set_cache_value(
        self,
        key: str,
        value: Any,
        ttl_seconds: float | None = DEFAULT_TTL_SECONDS,
    ) -> None:
        await self._run(set_cache_value, key, value, ttl_seconds)

    async def clear_expired_cache(self) -> int:
        return await self._run(clear_expired_cache)

    def close(self) -> None:
        if self._shared is not None:
            self._shared.close()
            self._shared = None
