"""SQLite storage adapter.

Stores each collection in its own table of JSON documents. Raw SQL is used
because collection tables are created on demand and are not ORM mapped.

Unique fields are SQLite expression indexes over ``json_extract`` so that
the duplicate check happens inside the INSERT/UPDATE statement itself.
Writes for every collection sharing a DatabaseManager are serialized by
its write lock.
"""

import re
from contextlib import contextmanager
from typing import Any, AsyncIterator, Iterator

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from stashbase.core.exceptions import StorageIOError, UniqueConstraintError
from stashbase.core.logging import get_logger
from stashbase.domain.entities.record import ID_KEY
from stashbase.infrastructure.persistence import serialization
from stashbase.infrastructure.persistence.base import StorageAdapter
from stashbase.infrastructure.persistence.database import DatabaseManager

logger = get_logger(__name__)

NAME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")
TABLE_PREFIX = "sb_"


class SQLiteStorageAdapter(StorageAdapter):
    """Storage adapter for a collection kept in a local SQLite file."""

    def __init__(self, database: DatabaseManager, collection: str) -> None:
        if not NAME_PATTERN.match(collection):
            raise ValueError(
                "Collection name must start with a letter and contain only alphanumeric characters and underscores"
            )
        self.database = database
        self.collection = collection
        self.table_name = f"{TABLE_PREFIX}{collection}"
        self._unique_indexes: dict[str, str] = {}
        self._table_ready = False

    async def connect(self) -> None:
        await self._ensure_table()

    async def _ensure_table(self) -> None:
        if self._table_ready:
            return
        create_sql = f'''
            CREATE TABLE IF NOT EXISTS "{self.table_name}" (
                "seq" INTEGER PRIMARY KEY AUTOINCREMENT,
                "id" TEXT NOT NULL UNIQUE,
                "data" TEXT NOT NULL
            )
        '''
        with self._translate_errors():
            async with self.database.write() as conn:
                await conn.execute(text(create_sql))
        self._table_ready = True
        logger.debug("Collection table ready", table_name=self.table_name)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, doc: dict[str, Any]) -> dict[str, Any]:
        await self._ensure_table()
        doc_id = doc.get(ID_KEY) or serialization.new_id()
        data = serialization.dumps(_body(doc))

        with self._translate_errors():
            async with self.database.write() as conn:
                await conn.execute(
                    text(f'INSERT INTO "{self.table_name}" ("id", "data") VALUES (:id, :data)'),
                    {"id": doc_id, "data": data},
                )

        logger.debug("Document inserted", table_name=self.table_name, record_id=doc_id)
        return _to_document(doc_id, data)

    async def update(self, doc_id: str, doc: dict[str, Any]) -> dict[str, Any] | None:
        await self._ensure_table()
        data = serialization.dumps(_body(doc))

        with self._translate_errors():
            async with self.database.write() as conn:
                result = await conn.execute(
                    text(f'UPDATE "{self.table_name}" SET "data" = :data WHERE "id" = :id'),
                    {"id": doc_id, "data": data},
                )

        if result.rowcount == 0:
            return None
        logger.debug("Document updated", table_name=self.table_name, record_id=doc_id)
        return _to_document(doc_id, data)

    async def delete(self, doc_id: str) -> int:
        await self._ensure_table()
        with self._translate_errors():
            async with self.database.write() as conn:
                result = await conn.execute(
                    text(f'DELETE FROM "{self.table_name}" WHERE "id" = :id'),
                    {"id": doc_id},
                )
        return result.rowcount

    async def delete_all(self, filter: dict[str, Any]) -> int:
        await self._ensure_table()
        where_clause, params = self._build_where(filter)
        with self._translate_errors():
            async with self.database.write() as conn:
                result = await conn.execute(
                    text(f'DELETE FROM "{self.table_name}" WHERE {where_clause}'),
                    params,
                )
        return result.rowcount

    async def ensure_unique_index(self, field: str) -> None:
        if not NAME_PATTERN.match(field):
            raise ValueError(f"Invalid field name for unique index: {field!r}")
        await self._ensure_table()

        index_name = f"ux_{self.table_name}_{field}"
        # Expression indexes cannot take bound parameters; field is validated above.
        # json_extract maps true/false to 1/0, so the boolean flag keeps them apart
        # from numbers while 1 and 1.0 still collide.
        path = f"'$.{field}'"
        index_sql = (
            f'CREATE UNIQUE INDEX IF NOT EXISTS "{index_name}" '
            f'ON "{self.table_name}" ('
            f'json_type("data", {path}) IN (\'true\', \'false\'), '
            f'json_extract("data", {path}))'
        )
        self._unique_indexes[index_name] = field
        with self._translate_errors():
            async with self.database.write() as conn:
                await conn.execute(text(index_sql))
        logger.info("Unique index ensured", table_name=self.table_name, field=field)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_by_id(self, doc_id: str) -> dict[str, Any] | None:
        await self._ensure_table()
        with self._translate_errors():
            async with self.database.read() as conn:
                result = await conn.execute(
                    text(f'SELECT "id", "data" FROM "{self.table_name}" WHERE "id" = :id'),
                    {"id": doc_id},
                )
                row = result.fetchone()
        if row is None:
            return None
        return _to_document(row.id, row.data)

    async def query(
        self,
        filter: dict[str, Any],
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        await self._ensure_table()
        where_clause, params = self._build_where(filter)
        params["limit"] = -1 if limit is None else limit
        params["skip"] = skip

        select_sql = f'''
            SELECT "id", "data" FROM "{self.table_name}"
            WHERE {where_clause}
            ORDER BY "seq"
            LIMIT :limit OFFSET :skip
        '''
        with self._translate_errors():
            async with self.database.read() as conn:
                result = await conn.execute(text(select_sql), params)
                rows = result.fetchall()
        return [_to_document(row.id, row.data) for row in rows]

    async def count(self, filter: dict[str, Any]) -> int:
        await self._ensure_table()
        where_clause, params = self._build_where(filter)
        with self._translate_errors():
            async with self.database.read() as conn:
                result = await conn.execute(
                    text(f'SELECT COUNT(*) FROM "{self.table_name}" WHERE {where_clause}'),
                    params,
                )
                return result.scalar_one()

    async def stream_query(self, filter: dict[str, Any]) -> AsyncIterator[dict[str, Any]]:
        """Yield matching documents one by one.

        Each document is read with its own keyset query, so no connection is
        held and nothing is fetched while the consumer is busy.
        """
        await self._ensure_table()
        where_clause, params = self._build_where(filter)
        select_sql = f'''
            SELECT "seq", "id", "data" FROM "{self.table_name}"
            WHERE ({where_clause}) AND "seq" > :last_seq
            ORDER BY "seq"
            LIMIT 1
        '''
        last_seq = 0
        while True:
            with self._translate_errors():
                async with self.database.read() as conn:
                    result = await conn.execute(text(select_sql), {**params, "last_seq": last_seq})
                    row = result.fetchone()
            if row is None:
                return
            last_seq = row.seq
            yield _to_document(row.id, row.data)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_where(self, filter: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        """Compile a structural equality filter into a WHERE clause."""
        clauses: list[str] = []
        params: dict[str, Any] = {}

        for index, (key, raw_value) in enumerate((filter or {}).items()):
            value = serialization.normalize(raw_value)
            value_param = f"v{index}"

            if key == ID_KEY:
                if value is None:
                    clauses.append('"id" IS NULL')
                else:
                    clauses.append(f'"id" = :{value_param}')
                    params[value_param] = value
                continue

            path_param = f"p{index}"
            params[path_param] = '$."' + str(key).replace('"', '\\"') + '"'
            extract = f'json_extract("data", :{path_param})'
            json_type = f'json_type("data", :{path_param})'

            if value is None:
                clauses.append(f"{extract} IS NULL")
            elif isinstance(value, bool):
                clauses.append(f"{json_type} = :{value_param}")
                params[value_param] = "true" if value else "false"
            elif isinstance(value, (int, float)):
                clauses.append(f"{json_type} IN ('integer', 'real') AND {extract} = :{value_param}")
                params[value_param] = value
            elif isinstance(value, str):
                clauses.append(f"{json_type} = 'text' AND {extract} = :{value_param}")
                params[value_param] = value
            else:
                clauses.append(
                    f"{json_type} IN ('object', 'array') AND {extract} = json(:{value_param})"
                )
                params[value_param] = serialization.dumps(value)

        where_clause = " AND ".join(f"({c})" for c in clauses) if clauses else "1 = 1"
        return where_clause, params

    @contextmanager
    def _translate_errors(self) -> Iterator[None]:
        """Map SQLAlchemy errors onto the engine's error taxonomy."""
        try:
            yield
        except IntegrityError as e:
            message = str(e.orig) if e.orig is not None else str(e)
            if "UNIQUE constraint failed" not in message:
                raise StorageIOError(f"Integrity error in '{self.collection}': {message}") from e
            field = self._field_for_violation(message)
            logger.info(
                "Unique constraint violated",
                table_name=self.table_name,
                field=field,
            )
            raise UniqueConstraintError(self.collection, field) from e
        except SQLAlchemyError as e:
            logger.error("Database operation failed", table_name=self.table_name, error=str(e))
            raise StorageIOError(f"Database operation failed for '{self.collection}': {e}") from e

    def _field_for_violation(self, message: str) -> str | None:
        if f"{self.table_name}.id" in message:
            return ID_KEY
        for index_name, field in self._unique_indexes.items():
            if index_name in message:
                return field
        return None


def _body(doc: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in doc.items() if k != ID_KEY}


def _to_document(doc_id: str, data: str) -> dict[str, Any]:
    return {ID_KEY: doc_id, **serialization.loads(data)}
