"""Resource manager: named registry of Resources sharing one set of backends."""

from typing import Any, Mapping, Optional

from pymongo import AsyncMongoClient

from stashbase.core.config import Settings, get_settings
from stashbase.core.logging import get_logger
from stashbase.domain.entities.schema import Schema
from stashbase.infrastructure import stores
from stashbase.infrastructure.persistence.database import DatabaseManager
from stashbase.infrastructure.storage.base import BlobStore
from stashbase.application.services.resource import Resource

logger = get_logger(__name__)


class ResourceManager:
    """Creates and tracks Resources by name.

    Every Resource of one manager shares the manager's database engine (or
    MongoDB client) and blob store.

    Example:
        async with ResourceManager(settings) as manager:
            people = manager.resource("person", {"fields": {"firstname": "string"}})
            await people.create({"firstname": "John"})
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.blob_store: BlobStore = stores.create_blob_store(self.settings)
        self._backend: DatabaseManager | AsyncMongoClient | None = None
        self._resources: dict[str, Resource] = {}

    def _shared_backend(self) -> DatabaseManager | AsyncMongoClient:
        if self._backend is None:
            if self.settings.datastore_adapter == "mongo":
                self._backend = stores.create_mongo_client(self.settings)
            else:
                self._backend = stores.create_database(self.settings)
        return self._backend

    def resource(
        self,
        name: str,
        schema: Schema | Mapping[str, Any] | None = None,
    ) -> Optional[Resource]:
        """Get a registered resource, or register a new one.

        Args:
            name: Resource name, also used as the collection name.
            schema: Schema (or schema definition) for a new resource. When
                omitted the registered resource is returned, or None.

        Raises:
            ValueError: If a resource with this name is already registered.
            SchemaError: If a schema definition is invalid.
        """
        if schema is None:
            return self._resources.get(name)
        if name in self._resources:
            raise ValueError(f"Resource '{name}' is already registered")

        if not isinstance(schema, Schema):
            schema = Schema(schema)

        adapter = stores.create_storage_adapter(self.settings, name, self._shared_backend())
        resource = Resource(name, schema, adapter, self.blob_store)
        self._resources[name] = resource

        logger.info(
            "Resource registered",
            resource=name,
            datastore_adapter=self.settings.datastore_adapter,
            fields=list(schema.fields),
        )
        return resource

    def schema_of(self, name: str) -> Optional[Schema]:
        """Get the schema of a registered resource."""
        resource = self._resources.get(name)
        return resource.schema if resource is not None else None

    @property
    def resources(self) -> list[str]:
        """Names of the registered resources."""
        return list(self._resources)

    async def initialize(self) -> None:
        """Connect the blob store and the adapters of every registered resource."""
        await self.blob_store.connect()
        for resource in self._resources.values():
            await resource.adapter.connect()
        logger.info("Resource manager initialized", resources=self.resources)

    async def close(self) -> None:
        """Close every adapter, the shared backend and the blob store."""
        for resource in self._resources.values():
            await resource.adapter.close()

        if isinstance(self._backend, DatabaseManager):
            await self._backend.disconnect()
        elif self._backend is not None:
            await self._backend.close()
        self._backend = None

        await self.blob_store.close()
        logger.info("Resource manager closed")

    async def __aenter__(self) -> "ResourceManager":
        await self.initialize()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
