"""
Database connection bootstrap.

Opens a connection for the configured URL and proves it usable with a
ping before handing it to the service. SQLite (aiosqlite) is used for
local development and tests, PostgreSQL (asyncpg) in production.
Queries use ``?`` placeholders on both backends.
"""

import logging
import re
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\?")


class DatabaseError(Exception):
    """The database could not be opened or used."""


@runtime_checkable
class Database(Protocol):
    """Connection handle returned by connect_database."""

    async def connect(self) -> None: ...
    async def disconnect(self) -> None: ...
    async def ping(self) -> None: ...
    async def execute(self, query: str, params: tuple[Any, ...] | None = None) -> Any: ...
    async def fetch_one(
        self, query: str, params: tuple[Any, ...] | None = None
    ) -> dict[str, Any] | None: ...
    async def fetch_all(
        self, query: str, params: tuple[Any, ...] | None = None
    ) -> list[dict[str, Any]]: ...
    def transaction(self) -> Any: ...


class SQLiteDatabase:
    """Async SQLite connection."""

    def __init__(self, db_path: str | Path):
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        self._connection: Any = None

    async def connect(self) -> None:
        import aiosqlite

        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row
        await self._connection.execute("PRAGMA foreign_keys = ON")

    async def disconnect(self) -> None:
        if self._connection:
            await self._connection.close()
            self._connection = None

    def _require_connection(self) -> Any:
        if not self._connection:
            raise DatabaseError("database not connected")
        return self._connection

    async def ping(self) -> None:
        await self.fetch_one("SELECT 1")

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[Any, None]:
        """Commit on success, roll back on error."""
        connection = self._require_connection()

        try:
            yield connection
            await connection.commit()
        except Exception:
            await connection.rollback()
            raise

    async def execute(
        self, query: str, params: tuple[Any, ...] | None = None
    ) -> Any:
        connection = self._require_connection()
        return await connection.execute(query, params or ())

    async def fetch_one(
        self, query: str, params: tuple[Any, ...] | None = None
    ) -> dict[str, Any] | None:
        cursor = await self.execute(query, params)
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def fetch_all(
        self, query: str, params: tuple[Any, ...] | None = None
    ) -> list[dict[str, Any]]:
        cursor = await self.execute(query, params)
        return [dict(row) for row in await cursor.fetchall()]


class PostgresDatabase:
    """Async PostgreSQL connection pool."""

    def __init__(self, database_url: str, min_size: int = 2, max_size: int = 10):
        self.database_url = database_url
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Any = None

    async def connect(self) -> None:
        import asyncpg

        self._pool = await asyncpg.create_pool(
            self.database_url, min_size=self.min_size, max_size=self.max_size
        )

    async def disconnect(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None

    def _require_pool(self) -> Any:
        if not self._pool:
            raise DatabaseError("database not connected")
        return self._pool

    async def ping(self) -> None:
        async with self._require_pool().acquire() as conn:
            await conn.fetchval("SELECT 1")

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[Any, None]:
        async with self._require_pool().acquire() as conn:
            async with conn.transaction():
                yield conn

    async def execute(
        self, query: str, params: tuple[Any, ...] | None = None
    ) -> Any:
        async with self._require_pool().acquire() as conn:
            return await conn.execute(self.convert_placeholders(query), *(params or ()))

    async def fetch_one(
        self, query: str, params: tuple[Any, ...] | None = None
    ) -> dict[str, Any] | None:
        async with self._require_pool().acquire() as conn:
            row = await conn.fetchrow(self.convert_placeholders(query), *(params or ()))
        return dict(row) if row else None

    async def fetch_all(
        self, query: str, params: tuple[Any, ...] | None = None
    ) -> list[dict[str, Any]]:
        async with self._require_pool().acquire() as conn:
            rows = await conn.fetch(self.convert_placeholders(query), *(params or ()))
        return [dict(row) for row in rows]

    @staticmethod
    def convert_placeholders(query: str) -> str:
        """
        Rewrite ? placeholders as $1, $2, ...

        Every ? is rewritten, including ones inside string literals and the
        JSONB ? operator. Queries that need those must use $n directly.
        """
        counter = iter(range(1, query.count("?") + 1))
        return _PLACEHOLDER.sub(lambda _: f"${next(counter)}", query)


def create_database(database_url: str) -> SQLiteDatabase | PostgresDatabase:
    """Pick a backend for the URL without opening it."""
    if database_url.startswith(("postgres://", "postgresql://")):
        return PostgresDatabase(database_url)

    if database_url == ":memory:":
        return SQLiteDatabase(":memory:")

    if database_url.startswith("sqlite"):
        scheme, sep, path = database_url.partition(":///")
        if scheme in ("sqlite", "sqlite+aiosqlite") and sep and path:
            return SQLiteDatabase(path)
        if database_url in ("sqlite://", "sqlite+aiosqlite://"):
            return SQLiteDatabase(":memory:")

    raise DatabaseError(f"unsupported database url: {database_url!r}")


async def connect_database(database_url: str) -> SQLiteDatabase | PostgresDatabase:
    """
    Open a database and check it answers.

    Raises DatabaseError if the database cannot be opened or pinged.
    """
    database = create_database(database_url)

    try:
        await database.connect()
    except Exception as e:
        logger.error(f"Failed to open database: {e}")
        await database.disconnect()
        raise DatabaseError("failed to open database") from e

    try:
        await database.ping()
    except Exception as e:
        logger.error(f"Failed to connect to database: {e}")
        await database.disconnect()
        raise DatabaseError("failed to connect to database") from e

    return database
