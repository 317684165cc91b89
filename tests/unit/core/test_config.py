"""Unit tests for Settings."""

import pytest
from pydantic import ValidationError

from stashbase.core.config import Settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.datastore_adapter == "sqlite"
    assert settings.blobstore_adapter == "local"
    assert settings.database_url.startswith("sqlite+aiosqlite://")
    assert settings.stream_chunk_size == 64 * 1024


def test_reads_prefixed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STASHBASE_DATASTORE_ADAPTER", "mongo")
    monkeypatch.setenv("STASHBASE_MONGO_DB_NAME", "records")

    settings = Settings(_env_file=None)

    assert settings.datastore_adapter == "mongo"
    assert settings.mongo_db_name == "records"


def test_s3_requires_bucket() -> None:
    with pytest.raises(ValidationError, match="s3_bucket"):
        Settings(_env_file=None, blobstore_adapter="s3")


def test_s3_with_bucket_is_accepted() -> None:
    settings = Settings(_env_file=None, blobstore_adapter="s3", s3_bucket="attachments")

    assert settings.s3_bucket == "attachments"


def test_chunk_size_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, stream_chunk_size=0)


def test_environment_flags() -> None:
    settings = Settings(_env_file=None, environment="testing")

    assert settings.is_testing is True
    assert settings.is_production is False
    assert settings.is_development is False
