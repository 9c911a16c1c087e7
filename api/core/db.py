"""
Async database access helpers (raw SQL) using asyncpg.

`Database` owns the connection pool. The app factory creates one instance,
FastAPI opens it on startup and closes it on shutdown (see `api/main.py`).
Route handlers receive it through `get_database`.

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
"""

from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import asyncpg
from fastapi import Request

from . import settings


# Store failures are explicit and separable from other runtime errors.
class DatabaseError(RuntimeError):
    pass


class DuplicateKeyError(DatabaseError):
    """
    A unique constraint rejected the statement.
    """


# Failures that mean "the store could not answer", as opposed to bugs.
_STORE_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)


def _sanitize_database_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def database_url() -> str:
    url = os.environ.get("DATABASE_URL", "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL is not set.")
    return _sanitize_database_url(url)


def _record_to_dict(record: asyncpg.Record) -> dict[str, Any]:
    return dict(record)


class Database:
    def __init__(
        self,
        dsn: str | None = None,
        *,
        min_size: int | None = None,
        max_size: int | None = None,
        command_timeout: float | None = None,
    ) -> None:
        # The DSN is resolved at connect time so the app can be built without it.
        self._dsn = dsn
        self._min_size = settings.db_pool_min_size() if min_size is None else min_size
        self._max_size = settings.db_pool_max_size() if max_size is None else max_size
        self._command_timeout = (
            settings.db_command_timeout_s() if command_timeout is None else command_timeout
        )
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        if self._pool is not None:
            return None
        dsn = _sanitize_database_url(self._dsn) if self._dsn else database_url()
        self._pool = await asyncpg.create_pool(
            dsn=dsn,
            min_size=min(self._min_size, self._max_size),
            max_size=self._max_size,
            command_timeout=self._command_timeout,
        )

    async def close(self) -> None:
        if self._pool is None:
            return None
        await self._pool.close()
        self._pool = None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("DB pool is not initialized. Call connect() on startup.")
        return self._pool

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Borrow a pooled connection; it goes back to the pool on every exit path.
        """
        async with self.pool.acquire() as conn:
            yield conn

    async def fetch_one(self, sql: str, *args: Any) -> dict[str, Any] | None:
        """
        Run a query and return a single row as a dict (or None).
        """
        try:
            async with self.connection() as conn:
                row = await conn.fetchrow(sql, *args)
        except asyncpg.UniqueViolationError as exc:
            raise DuplicateKeyError(str(exc)) from exc
        except _STORE_ERRORS as exc:
            raise DatabaseError(str(exc) or type(exc).__name__) from exc
        return _record_to_dict(row) if row is not None else None


def get_database(request: Request) -> Database:
    return request.app.state.database
