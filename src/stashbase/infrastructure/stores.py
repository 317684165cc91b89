"""Factories selecting storage adapters and blob stores from Settings."""

from pymongo import AsyncMongoClient

from stashbase.core.config import Settings
from stashbase.core.logging import get_logger
from stashbase.infrastructure.persistence.base import StorageAdapter
from stashbase.infrastructure.persistence.database import DatabaseManager
from stashbase.infrastructure.persistence.mongo_adapter import MongoStorageAdapter
from stashbase.infrastructure.persistence.sqlite_adapter import SQLiteStorageAdapter
from stashbase.infrastructure.storage.base import BlobStore
from stashbase.infrastructure.storage.local_blob_store import LocalBlobStore
from stashbase.infrastructure.storage.s3_blob_store import S3BlobStore, S3BlobStoreSettings

logger = get_logger(__name__)


def create_database(settings: Settings) -> DatabaseManager:
    """Create the DatabaseManager shared by every SQLite adapter."""
    return DatabaseManager(settings.database_url, echo=settings.db_echo)


def create_mongo_client(settings: Settings) -> AsyncMongoClient:
    """Create the client shared by every MongoDB adapter."""
    return AsyncMongoClient(settings.mongo_url)


def create_storage_adapter(
    settings: Settings,
    collection: str,
    database: DatabaseManager | AsyncMongoClient | None = None,
) -> StorageAdapter:
    """Create the storage adapter configured by ``datastore_adapter``.

    Args:
        settings: Application settings.
        collection: Collection name.
        database: Shared DatabaseManager (sqlite) or AsyncMongoClient (mongo).
            A new one is created and owned by the adapter when omitted.

    Raises:
        ValueError: If the configured adapter is unknown.
    """
    if settings.datastore_adapter == "sqlite":
        if database is None:
            database = create_database(settings)
        logger.debug("Creating SQLite storage adapter", collection=collection)
        return SQLiteStorageAdapter(database, collection)

    if settings.datastore_adapter == "mongo":
        owns_client = database is None
        client = create_mongo_client(settings) if database is None else database
        logger.debug("Creating MongoDB storage adapter", collection=collection)
        return MongoStorageAdapter(
            client,
            settings.mongo_db_name,
            collection,
            owns_client=owns_client,
        )

    raise ValueError(f"Unknown datastore adapter: {settings.datastore_adapter}")


def create_blob_store(settings: Settings) -> BlobStore:
    """Create the blob store configured by ``blobstore_adapter``.

    Raises:
        ValueError: If the configured blob store is unknown.
    """
    if settings.blobstore_adapter == "local":
        return LocalBlobStore(settings.storage_path, chunk_size=settings.stream_chunk_size)

    if settings.blobstore_adapter == "s3":
        return S3BlobStore(
            S3BlobStoreSettings(
                bucket=settings.s3_bucket,
                region=settings.s3_region,
                access_key_id=settings.s3_access_key_id,
                secret_access_key=settings.s3_secret_access_key,
                endpoint_url=settings.s3_endpoint_url,
                object_prefix=settings.s3_object_prefix,
                chunk_size=settings.stream_chunk_size,
            )
        )

    raise ValueError(f"Unknown blob store adapter: {settings.blobstore_adapter}")
