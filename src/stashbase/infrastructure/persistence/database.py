"""Database engine management using SQLAlchemy 2.0 async.

One DatabaseManager owns the engine for one database file and the lock
that serializes writes to it. Every SQLiteStorageAdapter built on the same
manager shares both.
"""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from stashbase.core.logging import get_logger

logger = get_logger(__name__)


class DatabaseManager:
    """Async engine plus write lock for a SQLite database.

    Example:
        database = DatabaseManager("sqlite+aiosqlite:///./sb_data/stashbase.db")
        async with database.write() as conn:
            await conn.execute(text("..."))
        await database.disconnect()
    """

    def __init__(self, database_url: str, echo: bool = False) -> None:
        self.database_url = database_url
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._write_lock = asyncio.Lock()

    @property
    def engine(self) -> AsyncEngine:
        """Get or create the database engine."""
        if self._engine is None:
            self._ensure_directory()
            self._engine = create_async_engine(
                self.database_url,
                echo=self.echo,
                connect_args={"check_same_thread": False},
            )
            event.listen(self._engine.sync_engine, "connect", _set_sqlite_pragmas)
            logger.info(
                "Database engine created",
                database_url=self._engine.url.render_as_string(hide_password=True),
            )
        return self._engine

    def _ensure_directory(self) -> None:
        """Create the parent directory of a file-backed SQLite database."""
        database = make_url(self.database_url).database
        if database and database != ":memory:" and not database.startswith("file:"):
            Path(database).parent.mkdir(parents=True, exist_ok=True)

    @asynccontextmanager
    async def read(self) -> AsyncIterator[AsyncConnection]:
        """Open a connection for reads."""
        async with self.engine.connect() as conn:
            yield conn

    @asynccontextmanager
    async def write(self) -> AsyncIterator[AsyncConnection]:
        """Open a transaction, holding the write lock until it commits."""
        async with self._write_lock:
            async with self.engine.begin() as conn:
                yield conn

    async def disconnect(self) -> None:
        """Close the database engine and all connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info("Database engine disposed")


def _set_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()
