"""MongoDB storage adapter.

Documents are stored as-is with the record id as the native ``_id``.
Uniqueness is delegated to native unique indexes, which MongoDB checks
atomically with every write.
"""

from contextlib import contextmanager
from typing import Any, AsyncIterator, Iterator

from pymongo import AsyncMongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from stashbase.core.exceptions import StorageIOError, UniqueConstraintError
from stashbase.core.logging import get_logger
from stashbase.domain.entities.record import ID_KEY
from stashbase.infrastructure.persistence import serialization
from stashbase.infrastructure.persistence.base import StorageAdapter

logger = get_logger(__name__)

INDEX_PREFIX = "ux_"


class MongoStorageAdapter(StorageAdapter):
    """Storage adapter for a collection in a MongoDB database.

    The client is shared between every adapter created from the same
    factory; ``owns_client`` marks the adapter that closes it.
    """

    def __init__(
        self,
        client: AsyncMongoClient,
        database_name: str,
        collection: str,
        owns_client: bool = False,
    ) -> None:
        self.client = client
        self.database_name = database_name
        self.collection = collection
        self.owns_client = owns_client
        self._collection = client[database_name][collection]

    async def connect(self) -> None:
        with self._translate_errors():
            await self.client.admin.command("ping")
        logger.info("MongoDB connection verified", database=self.database_name, collection=self.collection)

    async def close(self) -> None:
        if self.owns_client:
            await self.client.close()
            logger.info("MongoDB client closed", database=self.database_name)

    async def insert(self, doc: dict[str, Any]) -> dict[str, Any]:
        document = serialization.normalize(doc)
        document[ID_KEY] = doc.get(ID_KEY) or serialization.new_id()
        with self._translate_errors():
            await self._collection.insert_one(document)
        logger.debug("Document inserted", collection=self.collection, record_id=document[ID_KEY])
        return document

    async def find_by_id(self, doc_id: str) -> dict[str, Any] | None:
        with self._translate_errors():
            return await self._collection.find_one({ID_KEY: doc_id})

    async def query(
        self,
        filter: dict[str, Any],
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        cursor = self._collection.find(
            serialization.normalize(filter or {}),
            skip=skip,
            limit=limit or 0,
        )
        with self._translate_errors():
            return [doc async for doc in cursor]

    async def count(self, filter: dict[str, Any]) -> int:
        with self._translate_errors():
            return await self._collection.count_documents(serialization.normalize(filter or {}))

    async def update(self, doc_id: str, doc: dict[str, Any]) -> dict[str, Any] | None:
        document = serialization.normalize(doc)
        document[ID_KEY] = doc_id
        with self._translate_errors():
            result = await self._collection.replace_one({ID_KEY: doc_id}, document)
        if result.matched_count == 0:
            return None
        logger.debug("Document updated", collection=self.collection, record_id=doc_id)
        return document

    async def delete(self, doc_id: str) -> int:
        with self._translate_errors():
            result = await self._collection.delete_one({ID_KEY: doc_id})
        return result.deleted_count

    async def delete_all(self, filter: dict[str, Any]) -> int:
        with self._translate_errors():
            result = await self._collection.delete_many(serialization.normalize(filter or {}))
        return result.deleted_count

    async def ensure_unique_index(self, field: str) -> None:
        # sparse: records without the field do not collide with each other
        with self._translate_errors():
            await self._collection.create_index(
                field,
                unique=True,
                sparse=True,
                name=f"{INDEX_PREFIX}{field}",
            )
        logger.info("Unique index ensured", collection=self.collection, field=field)

    async def stream_query(self, filter: dict[str, Any]) -> AsyncIterator[dict[str, Any]]:
        # One document per round trip: nothing is fetched before the consumer asks
        cursor = self._collection.find(serialization.normalize(filter or {}), batch_size=1)
        try:
            while True:
                with self._translate_errors():
                    try:
                        doc = await cursor.next()
                    except StopAsyncIteration:
                        return
                yield doc
        finally:
            await cursor.close()

    @contextmanager
    def _translate_errors(self) -> Iterator[None]:
        """Map pymongo errors onto the engine's error taxonomy."""
        try:
            yield
        except DuplicateKeyError as e:
            field = _field_for_violation(e)
            logger.info("Unique constraint violated", collection=self.collection, field=field)
            raise UniqueConstraintError(self.collection, field) from e
        except PyMongoError as e:
            logger.error("MongoDB operation failed", collection=self.collection, error=str(e))
            raise StorageIOError(f"MongoDB operation failed for '{self.collection}': {e}") from e


def _field_for_violation(error: DuplicateKeyError) -> str | None:
    details = error.details or {}
    key_pattern = details.get("keyPattern") or {}
    if key_pattern:
        return next(iter(key_pattern))
    message = str(error)
    marker = f"index: {INDEX_PREFIX}"
    if marker in message:
        return message.split(marker, 1)[1].split(" ", 1)[0]
    return None
