"""Pytest configuration for all tests."""

from pathlib import Path
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio

from stashbase.application.services.resource import Resource
from stashbase.core.config import Settings
from stashbase.domain.entities.schema import Schema
from stashbase.infrastructure.persistence.database import DatabaseManager
from stashbase.infrastructure.persistence.sqlite_adapter import SQLiteStorageAdapter
from stashbase.infrastructure.storage.local_blob_store import LocalBlobStore


def person_definition() -> dict[str, Any]:
    """Schema definition shared by the resource tests."""

    def nickname(record: dict[str, Any]) -> str:
        if not record.get("firstname"):
            return "unnamed"
        return "little " + record["firstname"].lower()

    return {
        "additional_properties": False,
        "fields": {
            "firstname": "string",
            "lastname": "string",
            "age": {"type": "number"},
            "username": {"type": "string", "index": {"unique": True}},
            "nickname": {"type": "string", "computed": True, "compute": nickname},
        },
    }


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing every backend at the test's temporary directory."""
    return Settings(
        _env_file=None,
        environment="testing",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'stashbase.db'}",
        storage_path=str(tmp_path / "files"),
        datastore_adapter="sqlite",
        blobstore_adapter="local",
    )


@pytest_asyncio.fixture
async def database(settings: Settings) -> AsyncGenerator[DatabaseManager, None]:
    """Create a database manager on a temporary SQLite file."""
    manager = DatabaseManager(settings.database_url)
    yield manager
    await manager.disconnect()


@pytest.fixture
def blob_store(settings: Settings) -> LocalBlobStore:
    return LocalBlobStore(settings.storage_path)


@pytest.fixture
def person_schema() -> Schema:
    return Schema(person_definition())


@pytest.fixture
def resource(
    database: DatabaseManager,
    blob_store: LocalBlobStore,
    person_schema: Schema,
) -> Resource:
    """A 'person' resource on SQLite and the local blob store."""
    return Resource(
        "person",
        person_schema,
        SQLiteStorageAdapter(database, "person"),
        blob_store,
    )


@pytest.fixture
def sample_file(tmp_path: Path) -> Path:
    """A small binary file to attach."""
    path = tmp_path / "sample_image.png"
    path.write_bytes(b"\x89PNG\r\n\x1a\n" + bytes(range(256)) * 40)
    return path
