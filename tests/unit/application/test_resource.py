"""Unit tests for Resource CRUD, pagination and computed fields.

Run against the SQLite adapter and the local blob store.
"""

import asyncio
from datetime import datetime

import pytest

from stashbase.application.services.resource import Resource
from stashbase.core.exceptions import NotFoundError, UniqueConstraintError, ValidationError
from stashbase.domain.entities.record import PageMeta
from stashbase.domain.entities.schema import Schema
from stashbase.infrastructure.persistence.database import DatabaseManager
from stashbase.infrastructure.persistence.sqlite_adapter import SQLiteStorageAdapter
from stashbase.infrastructure.storage.local_blob_store import LocalBlobStore


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_assigns_id(self, resource: Resource) -> None:
        record = await resource.create({"firstname": "John"})

        assert isinstance(record["_id"], str)
        assert record["_attachments"] == []

    @pytest.mark.asyncio
    async def test_get_returns_created_record(self, resource: Resource) -> None:
        created = await resource.create({"firstname": "John", "age": 30})

        fetched = await resource.get(created["_id"], skip_computation=True)

        assert fetched == {
            "_id": created["_id"],
            "firstname": "John",
            "age": 30,
            "_attachments": [],
        }

    @pytest.mark.asyncio
    async def test_invalid_record_is_not_written(self, resource: Resource) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await resource.create({"firstname": "John", "bad": "property"})

        assert [e.field for e in exc_info.value.errors] == ["bad"]
        assert await resource.find({}) == []

    @pytest.mark.asyncio
    async def test_wrong_type_is_rejected(self, resource: Resource) -> None:
        with pytest.raises(ValidationError):
            await resource.create({"firstname": "John", "age": "thirty"})

    @pytest.mark.asyncio
    async def test_unique_field_collision(self, resource: Resource) -> None:
        await resource.create({"firstname": "Cedric", "username": "KebabLover69"})

        with pytest.raises(UniqueConstraintError) as exc_info:
            await resource.create({"firstname": "Marcel", "username": "KebabLover69"})

        assert exc_info.value.field == "username"
        assert len(await resource.find({})) == 1

    @pytest.mark.asyncio
    async def test_system_and_computed_keys_are_ignored(self, resource: Resource) -> None:
        record = await resource.create(
            {"_id": "forced", "_attachments": [{"id": "x"}], "firstname": "John", "nickname": "big"}
        )

        assert record["_id"] != "forced"
        assert record["_attachments"] == []
        assert record["nickname"] == "little john"

    @pytest.mark.asyncio
    async def test_defaults_are_applied(
        self, database: DatabaseManager, blob_store: LocalBlobStore
    ) -> None:
        schema = Schema({"title": "string", "status": {"type": "string", "default": "draft"}})
        posts = Resource("posts", schema, SQLiteStorageAdapter(database, "posts"), blob_store)

        record = await posts.create({"title": "Hello"})

        assert record["status"] == "draft"

    @pytest.mark.asyncio
    async def test_dates_are_returned_as_iso_strings(
        self, database: DatabaseManager, blob_store: LocalBlobStore
    ) -> None:
        schema = Schema({"title": "string", "published": "date"})
        posts = Resource("posts", schema, SQLiteStorageAdapter(database, "posts"), blob_store)

        created = await posts.create(
            {"title": "Hello", "published": datetime(2024, 1, 2, 12, 30)}
        )

        assert created["published"] == "2024-01-02T12:30:00"
        assert await posts.get(created["_id"]) == created


class TestRead:
    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, resource: Resource) -> None:
        assert await resource.get("missing") is None

    @pytest.mark.asyncio
    async def test_find_by_properties(self, resource: Resource) -> None:
        await resource.create({"firstname": "John"})
        await resource.create({"firstname": "Jane"})

        records = await resource.find({"firstname": "John"})

        assert len(records) == 1
        assert records.meta is None

    @pytest.mark.asyncio
    async def test_find_one(self, resource: Resource) -> None:
        created = await resource.create({"firstname": "John"})

        assert (await resource.find_one({"_id": created["_id"]}))["firstname"] == "John"
        assert await resource.find_one({"firstname": "Nobody"}) is None

    @pytest.mark.asyncio
    async def test_computed_fields(self, resource: Resource) -> None:
        data = await resource.create({"firstname": "John"})
        assert data["nickname"] == "little john"

        fetched = await resource.find_one({"_id": data["_id"]})
        assert fetched["nickname"] == "little john"

        raw = await resource.find_one({"_id": data["_id"]}, skip_computation=True)
        assert "nickname" not in raw

    @pytest.mark.asyncio
    async def test_computed_fields_are_not_stored(self, resource: Resource) -> None:
        data = await resource.create({"firstname": "John"})

        stored = await resource.adapter.find_by_id(data["_id"])

        assert "nickname" not in stored

    @pytest.mark.asyncio
    async def test_pagination(self, resource: Resource) -> None:
        for i in range(10):
            await resource.create({"username": f"random {i}"})

        page1 = await resource.find({}, page=1, page_size=6)
        assert len(page1) == 6
        assert page1.meta == PageMeta(page=1, page_size=6, total_pages=2)

        page2 = await resource.find({}, page=2, page_size=6)
        assert len(page2) == 4
        assert page2.meta == PageMeta(page=2, page_size=6, total_pages=2)

        paged_ids = [r["_id"] for r in page1 + page2]
        assert set(paged_ids) == {r["_id"] for r in await resource.find({})}
        assert len(paged_ids) == 10

    @pytest.mark.asyncio
    async def test_page_size_alone_means_first_page(self, resource: Resource) -> None:
        for i in range(3):
            await resource.create({"username": f"user {i}"})

        records = await resource.find({}, page_size=2)

        assert len(records) == 2
        assert records.meta.page == 1

    @pytest.mark.asyncio
    async def test_invalid_page_raises(self, resource: Resource) -> None:
        with pytest.raises(ValueError):
            await resource.find({}, page=0, page_size=6)

    @pytest.mark.asyncio
    async def test_each_streams_every_record(self, resource: Resource) -> None:
        for i in range(10):
            await resource.create({"username": f"John {i}"})

        seen: list[str] = []

        async def collect(record):
            await asyncio.sleep(0)
            seen.append(record["username"])

        count = await resource.each({}, collect)

        assert count == 10
        assert seen == [f"John {i}" for i in range(10)]

    @pytest.mark.asyncio
    async def test_each_accepts_plain_callbacks_and_filters(self, resource: Resource) -> None:
        await resource.create({"firstname": "John"})
        await resource.create({"firstname": "Jane"})

        seen: list[dict] = []
        await resource.each({"firstname": "Jane"}, seen.append)

        assert [r["firstname"] for r in seen] == ["Jane"]
        assert seen[0]["nickname"] == "little jane"


class TestUpdate:
    @pytest.mark.asyncio
    async def test_merge_one(self, resource: Resource) -> None:
        created = await resource.create({"firstname": "John", "lastname": "Smith"})
        record = await resource.get(created["_id"])
        record["lastname"] = "Doe"

        merged = await resource.merge_one(record["_id"], record)

        assert merged["lastname"] == "Doe"
        assert merged["firstname"] == "John"
        assert merged["_id"] == created["_id"]

    @pytest.mark.asyncio
    async def test_merge_one_is_idempotent(self, resource: Resource) -> None:
        created = await resource.create({"firstname": "John", "lastname": "Smith"})

        first = await resource.merge_one(created["_id"], {"lastname": "Doe"})
        second = await resource.merge_one(created["_id"], {"lastname": "Doe"})

        assert first == second

    @pytest.mark.asyncio
    async def test_merge_one_missing_raises(self, resource: Resource) -> None:
        with pytest.raises(NotFoundError):
            await resource.merge_one("missing", {"lastname": "Doe"})

    @pytest.mark.asyncio
    async def test_invalid_merge_leaves_record_untouched(self, resource: Resource) -> None:
        created = await resource.create({"firstname": "John"})

        with pytest.raises(ValidationError):
            await resource.merge_one(created["_id"], {"age": "old"})

        assert "age" not in await resource.get(created["_id"])

    @pytest.mark.asyncio
    async def test_merge_unique_collision(self, resource: Resource) -> None:
        await resource.create({"username": "taken"})
        other = await resource.create({"username": "free"})

        with pytest.raises(UniqueConstraintError):
            await resource.merge_one(other["_id"], {"username": "taken"})

    @pytest.mark.asyncio
    async def test_upsert_one(self, resource: Resource) -> None:
        record = await resource.upsert_one({"firstname": "Fred"}, {"firstname": "Fred", "lastname": "Page"})
        assert "_id" in record

        updated = await resource.upsert_one({"firstname": "Fred"}, {"firstname": "Jimmy"})

        assert updated["_id"] == record["_id"]
        assert updated["firstname"] == "Jimmy"
        assert updated["lastname"] == "Page"

    @pytest.mark.asyncio
    async def test_concurrent_upserts_create_once(self, resource: Resource) -> None:
        results = await asyncio.gather(
            *(resource.upsert_one({"firstname": "Fred"}, {"firstname": "Fred", "age": i}) for i in range(5))
        )

        assert len({r["_id"] for r in results}) == 1
        assert len(await resource.find({"firstname": "Fred"})) == 1


class TestRemove:
    @pytest.mark.asyncio
    async def test_remove_one(self, resource: Resource) -> None:
        created = await resource.create({"firstname": "John"})

        assert await resource.remove_one(created["_id"]) == 1
        assert await resource.get(created["_id"]) is None

    @pytest.mark.asyncio
    async def test_remove_missing_returns_zero(self, resource: Resource) -> None:
        assert await resource.remove_one("missing") == 0

    @pytest.mark.asyncio
    async def test_drop(self, resource: Resource) -> None:
        for i in range(3):
            await resource.create({"username": f"user {i}"})

        assert await resource.drop() == 3
        assert await resource.find({}) == []

    @pytest.mark.asyncio
    async def test_unique_value_reusable_after_remove(self, resource: Resource) -> None:
        created = await resource.create({"username": "KebabLover69"})
        await resource.remove_one(created["_id"])

        again = await resource.create({"username": "KebabLover69"})

        assert again["_id"] != created["_id"]
