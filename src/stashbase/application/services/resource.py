"""Resource service: the data-access surface for one record collection.

A Resource binds one Schema to one StorageAdapter and one BlobStore. Every
operation validates input against the Schema, runs the Schema's before and
after hooks around the adapter call, and resolves computed fields on the
records it hands back.
"""

import asyncio
import inspect
from typing import Any, AsyncIterator, Callable, Optional

from stashbase.core.exceptions import NotFoundError, ValidationError
from stashbase.core.hooks import HookEvent, HookPhase
from stashbase.core.locks import KeyedLock, fingerprint
from stashbase.core.logging import LoggingContext, get_logger
from stashbase.domain.entities.hook_context import HookContext
from stashbase.domain.entities.record import ATTACHMENTS_KEY, ID_KEY, Attachment, RecordList
from stashbase.domain.entities.schema import Schema
from stashbase.domain.services.pagination import paginate
from stashbase.infrastructure.persistence.base import StorageAdapter
from stashbase.infrastructure.storage.base import BlobSource, BlobStore

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 30

Record = dict[str, Any]


class Resource:
    """Validated CRUD access to the records of one collection.

    Example:
        resource = Resource("person", schema, adapter, blob_store)
        person = await resource.create({"firstname": "John"})
        page = await resource.find({}, page=1, page_size=6)
        page.meta.total_pages
    """

    def __init__(
        self,
        name: str,
        schema: Schema,
        adapter: StorageAdapter,
        blob_store: BlobStore,
    ) -> None:
        """Initialize the resource.

        Args:
            name: Resource (collection) name.
            schema: Schema describing the records.
            adapter: Storage adapter holding the records.
            blob_store: Blob store holding attachment content.
        """
        self.name = name
        self.schema = schema
        self.adapter = adapter
        self.blob_store = blob_store
        self._ready = False
        self._ready_lock = asyncio.Lock()
        self._upsert_locks = KeyedLock()
        # Serializes read-modify-write sequences on one record
        self._record_locks = KeyedLock()

    def __repr__(self) -> str:
        return f"Resource(name={self.name!r}, adapter={type(self.adapter).__name__})"

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    async def _ensure_ready(self) -> None:
        """Create the unique indexes declared by the schema, once."""
        if self._ready:
            return
        async with self._ready_lock:
            if self._ready:
                return
            for field in self.schema.unique_fields:
                await self.adapter.ensure_unique_index(field)
            self._ready = True

    def _context(self, context: Optional[HookContext]) -> HookContext:
        if context is None:
            return HookContext(resource=self.name)
        if not context.resource:
            context.resource = self.name
        return context

    async def _trigger(
        self,
        phase: str,
        event: str,
        payload: dict[str, Any],
        context: HookContext,
    ) -> dict[str, Any]:
        return await self.schema.hooks.trigger(phase, event, payload, context)

    def _present(self, record: Record, skip_computation: bool = False) -> Record:
        if skip_computation:
            return record
        return self.schema.compute(record)

    # ------------------------------------------------------------------
    # Create / update
    # ------------------------------------------------------------------

    async def create(self, data: Record, *, context: Optional[HookContext] = None) -> Record:
        """Validate and insert a new record.

        Records are stored as JSON documents: ``date`` and ``datetime``
        values are written, and returned by this and every later read, as
        ISO 8601 strings.

        Args:
            data: Field values. ``_id``, ``_attachments`` and computed keys are ignored.
            context: Hook context shared by every hook of this call.

        Returns:
            The stored record with computed fields resolved.

        Raises:
            ValidationError: If the record does not satisfy the schema.
            UniqueConstraintError: If a unique field value is already used.
        """
        ctx = self._context(context)
        with LoggingContext(resource=self.name, request_id=ctx.request_id):
            await self._ensure_ready()

            record = self.schema.apply_defaults(self.schema.user_data(data))
            record = await self._validate(record, ctx)
            record[ATTACHMENTS_KEY] = []

            payload = await self._trigger(HookPhase.BEFORE, HookEvent.CREATE, {"record": record}, ctx)
            payload = await self._trigger(
                HookPhase.BEFORE, HookEvent.SAVE, {"record": payload["record"]}, ctx
            )

            written = await self.adapter.insert(self.schema.strip(payload["record"]))

            payload = await self._trigger(HookPhase.AFTER, HookEvent.CREATE, {"record": written}, ctx)
            payload = await self._trigger(
                HookPhase.AFTER, HookEvent.SAVE, {"record": payload["record"]}, ctx
            )

            logger.info("Record created", record_id=written[ID_KEY])
            return self._present(payload["record"])

    async def merge_one(
        self,
        id: str,
        patch: Record,
        *,
        context: Optional[HookContext] = None,
    ) -> Record:
        """Shallow-merge ``patch`` over an existing record and persist it.

        The ``update`` before hooks run first and may rewrite both the query
        and the operations; the merge applies what they leave behind.

        Args:
            id: Record id.
            patch: Field values to overwrite. ``_id`` and ``_attachments`` are ignored.
            context: Hook context shared by every hook of this call.

        Returns:
            The updated record with computed fields resolved.

        Raises:
            NotFoundError: If no record matches.
            ValidationError: If the merged record does not satisfy the schema.
            UniqueConstraintError: If a unique field value is already used.
        """
        ctx = self._context(context)
        with LoggingContext(resource=self.name, request_id=ctx.request_id):
            await self._ensure_ready()

            payload = await self._trigger(
                HookPhase.BEFORE,
                HookEvent.UPDATE,
                {"query": {ID_KEY: id}, "operations": self.schema.user_data(patch)},
                ctx,
            )
            target_id = await self._resolve_target(payload["query"])

            async with self._record_locks.acquire(target_id):
                existing = await self.adapter.find_by_id(target_id)
                if existing is None:
                    raise NotFoundError(f"Record '{target_id}' not found in '{self.name}'")

                operations = self.schema.user_data(payload["operations"])
                merged = {**self.schema.strip(existing), **operations}
                merged = await self._validate(merged, ctx)
                saved = await self._save(target_id, merged, ctx)

            await self._trigger(
                HookPhase.AFTER,
                HookEvent.UPDATE,
                {"query": payload["query"], "operations": operations},
                ctx,
            )
            saved = await self._trigger(HookPhase.AFTER, HookEvent.SAVE, {"record": saved}, ctx)

            logger.info("Record updated", record_id=target_id)
            return self._present(saved["record"])

    async def _resolve_target(self, query: dict[str, Any]) -> str:
        """Return the id of the first record matching ``query``.

        Raises:
            NotFoundError: If nothing matches.
        """
        matches = await self.adapter.query(query, limit=1)
        if not matches:
            raise NotFoundError(f"No record in '{self.name}' matches {query!r}")
        return matches[0][ID_KEY]

    async def upsert_one(
        self,
        match_query: dict[str, Any],
        data: Record,
        *,
        context: Optional[HookContext] = None,
    ) -> Record:
        """Merge ``data`` into the first record matching ``match_query``, or create it.

        Concurrent calls with the same match query run one after the other,
        so they never both take the create branch.

        Returns:
            The merged or created record.
        """
        ctx = self._context(context)
        async with self._upsert_locks.acquire(fingerprint(match_query)):
            with LoggingContext(resource=self.name, request_id=ctx.request_id):
                await self._ensure_ready()
                matches = await self.adapter.query(match_query, limit=1)

            if matches:
                return await self.merge_one(matches[0][ID_KEY], data, context=ctx)
            return await self.create(data, context=ctx)

    async def _validate(self, record: Record, ctx: HookContext) -> Record:
        """Run the validate hooks around schema validation.

        Returns:
            The record as left by the hooks.

        Raises:
            ValidationError: If errors remain after the after-validate hooks.
        """
        payload = await self._trigger(
            HookPhase.BEFORE,
            HookEvent.VALIDATE,
            {"record": record, "schema": self.schema},
            ctx,
        )
        result = self.schema.validate(payload["record"])
        payload = await self._trigger(
            HookPhase.AFTER,
            HookEvent.VALIDATE,
            {"record": payload["record"], "schema": self.schema, "errors": result.errors},
            ctx,
        )
        if payload["errors"]:
            logger.info(
                "Record validation failed",
                fields=[e.field for e in payload["errors"]],
            )
            raise ValidationError(payload["errors"])
        return payload["record"]

    async def _save(self, id: str, record: Record, ctx: HookContext) -> Record:
        """Run the before-save hooks and replace the stored record.

        The after-save hooks are left to the caller so that they run after
        the operation's own after hooks.
        """
        payload = await self._trigger(HookPhase.BEFORE, HookEvent.SAVE, {"record": record}, ctx)
        written = await self.adapter.update(id, self.schema.strip(payload["record"]))
        if written is None:
            raise NotFoundError(f"Record '{id}' not found in '{self.name}'")
        return written

    async def _save_and_notify(self, id: str, record: Record, ctx: HookContext) -> Record:
        written = await self._save(id, record, ctx)
        payload = await self._trigger(HookPhase.AFTER, HookEvent.SAVE, {"record": written}, ctx)
        return payload["record"]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, id: str, *, skip_computation: bool = False) -> Optional[Record]:
        """Get a record by id, or None when it does not exist."""
        with LoggingContext(resource=self.name):
            await self._ensure_ready()
            doc = await self.adapter.find_by_id(id)
            if doc is None:
                logger.debug("Record not found", record_id=id)
                return None
            return self._present(doc, skip_computation)

    async def find(
        self,
        query: Optional[dict[str, Any]] = None,
        *,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        skip_computation: bool = False,
        context: Optional[HookContext] = None,
    ) -> RecordList:
        """Find the records whose fields equal every value in ``query``.

        Passing ``page`` or ``page_size`` paginates the result; the returned
        list then carries a PageMeta in ``meta``.

        Args:
            query: Field values to match. Empty or None matches everything.
            page: 1-based page number (default 1 when paginating).
            page_size: Records per page (default 30 when paginating).
            skip_computation: Return records without computed fields.
            context: Hook context shared by every hook of this call.

        Raises:
            ValueError: If page or page_size is smaller than 1.
        """
        ctx = self._context(context)
        with LoggingContext(resource=self.name, request_id=ctx.request_id):
            await self._ensure_ready()
            paginated = page is not None or page_size is not None
            if paginated:
                page = 1 if page is None else page
                page_size = DEFAULT_PAGE_SIZE if page_size is None else page_size
                if page < 1 or page_size < 1:
                    raise ValueError("page and page_size must be at least 1")

            payload = await self._trigger(
                HookPhase.BEFORE, HookEvent.FIND, {"query": dict(query or {})}, ctx
            )
            filter = payload["query"]

            meta = None
            if paginated:
                total = await self.adapter.count(filter)
                window = paginate(total, page=page, page_size=page_size)
                docs = await self.adapter.query(filter, skip=window.skip, limit=window.limit)
                meta = window.meta
            else:
                docs = await self.adapter.query(filter)

            return await self._finish_find(docs, meta, skip_computation, ctx)

    async def find_one(
        self,
        query: Optional[dict[str, Any]] = None,
        *,
        skip_computation: bool = False,
        context: Optional[HookContext] = None,
    ) -> Optional[Record]:
        """Find the first record matching ``query``, or None.

        Fires the same ``find`` hooks as find(); the after hooks receive a
        list of at most one record.
        """
        ctx = self._context(context)
        with LoggingContext(resource=self.name, request_id=ctx.request_id):
            await self._ensure_ready()
            payload = await self._trigger(
                HookPhase.BEFORE, HookEvent.FIND, {"query": dict(query or {})}, ctx
            )
            docs = await self.adapter.query(payload["query"], limit=1)
            records = await self._finish_find(docs, None, skip_computation, ctx)
            return records[0] if records else None

    async def _finish_find(
        self,
        docs: list[Record],
        meta: Any,
        skip_computation: bool,
        ctx: HookContext,
    ) -> RecordList:
        payload = await self._trigger(HookPhase.AFTER, HookEvent.FIND, {"records": docs}, ctx)
        records = [self._present(doc, skip_computation) for doc in payload["records"]]
        logger.debug("Records found", count=len(records))
        return RecordList(records, meta=meta)

    async def each(
        self,
        query: Optional[dict[str, Any]],
        callback: Callable[[Record], Any],
    ) -> int:
        """Stream matching records to ``callback`` one at a time.

        The next record is fetched only after the callback (awaited when it
        is a coroutine function) has returned.

        Returns:
            The number of records delivered.
        """
        with LoggingContext(resource=self.name):
            await self._ensure_ready()
            delivered = 0
            async for doc in self.adapter.stream_query(dict(query or {})):
                result = callback(self._present(doc))
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            logger.debug("Records streamed", count=delivered)
            return delivered

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    async def remove_one(
        self,
        id: str,
        options: Optional[dict[str, Any]] = None,
        *,
        context: Optional[HookContext] = None,
    ) -> int:
        """Remove a record and the blob content of its attachments.

        Args:
            id: Record id.
            options: Caller options passed through to the remove hooks.
            context: Hook context shared by every hook of this call.

        Returns:
            The number of records removed (0 or 1).
        """
        ctx = self._context(context)
        with LoggingContext(resource=self.name, request_id=ctx.request_id):
            await self._ensure_ready()
            payload = await self._trigger(
                HookPhase.BEFORE,
                HookEvent.REMOVE,
                {"query": {ID_KEY: id}, "options": dict(options or {})},
                ctx,
            )

            # A before hook may have rewritten the query
            targets = await self.adapter.query(payload["query"], limit=1)
            removed_count = 0
            if targets:
                target_id = targets[0][ID_KEY]
                async with self._record_locks.acquire(target_id):
                    # Re-read so blobs attached meanwhile are deleted too
                    target = await self.adapter.find_by_id(target_id)
                    if target is not None:
                        removed_count = await self.adapter.delete(target_id)
                if removed_count:
                    await self._delete_blobs(target)
                    logger.info("Record removed", record_id=target_id)

            await self._trigger(
                HookPhase.AFTER,
                HookEvent.REMOVE,
                {
                    "query": payload["query"],
                    "options": payload["options"],
                    "removed_count": removed_count,
                },
                ctx,
            )
            return removed_count

    async def drop(self) -> int:
        """Remove every record of the collection and its attachment blobs.

        Returns:
            The number of records removed.
        """
        with LoggingContext(resource=self.name):
            await self._ensure_ready()
            blob_ids: list[str] = []
            async for doc in self.adapter.stream_query({}):
                blob_ids.extend(a["id"] for a in doc.get(ATTACHMENTS_KEY) or [])

            removed = await self.adapter.delete_all({})
            for blob_id in blob_ids:
                await self._delete_blob(blob_id)

            logger.info("Collection dropped", removed_count=removed, blob_count=len(blob_ids))
            return removed

    async def _delete_blobs(self, doc: Record) -> None:
        for attachment in doc.get(ATTACHMENTS_KEY) or []:
            await self._delete_blob(attachment["id"])

    async def _delete_blob(self, blob_id: str) -> None:
        try:
            await self.blob_store.delete(blob_id)
        except NotFoundError:
            logger.warning("Attachment blob already missing", blob_id=blob_id)

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    async def attach(
        self,
        id: str,
        name: str,
        source: BlobSource,
        *,
        context: Optional[HookContext] = None,
    ) -> Record:
        """Store ``source`` as a blob and append it to the record's attachments.

        Args:
            id: Record id.
            name: Label of the attachment (need not be unique).
            source: File path or readable binary stream.
            context: Hook context passed to the save hooks.

        Returns:
            The updated record.

        Raises:
            NotFoundError: If the record or the source file does not exist.
        """
        ctx = self._context(context)
        with LoggingContext(resource=self.name, request_id=ctx.request_id):
            await self._ensure_ready()

            async with self._record_locks.acquire(id):
                # 1. Resolve the record before touching the blob store
                doc = await self.adapter.find_by_id(id)
                if doc is None:
                    raise NotFoundError(f"Record '{id}' not found in '{self.name}'")

                # 2. Store the content
                blob_id = await self.blob_store.put(source)
                attachment = Attachment(
                    id=blob_id, name=name, file=self.blob_store.locator(blob_id)
                )

                # 3. Persist the new attachment list
                record = dict(doc)
                record[ATTACHMENTS_KEY] = [
                    *(doc.get(ATTACHMENTS_KEY) or []),
                    attachment.to_dict(),
                ]
                try:
                    saved = await self._save_and_notify(id, record, ctx)
                except Exception:
                    await self._delete_blob(blob_id)
                    raise

            logger.info("Attachment stored", record_id=id, attachment_id=blob_id, name=name)
            return self._present(saved)

    async def read_attachment(self, attachment_id: str) -> AsyncIterator[bytes]:
        """Open the content of an attachment.

        Every call returns a new iterator that reads the blob from the start.

        Raises:
            NotFoundError: If no blob has this id.
        """
        with LoggingContext(resource=self.name):
            logger.debug("Attachment read", attachment_id=attachment_id)
            return await self.blob_store.get(attachment_id)

    async def delete_attachment(
        self,
        id: str,
        attachment_id: str,
        *,
        context: Optional[HookContext] = None,
    ) -> Record:
        """Remove an attachment from a record and delete its blob.

        Returns:
            The updated record.

        Raises:
            NotFoundError: If the record does not exist or has no such attachment.
        """
        ctx = self._context(context)
        with LoggingContext(resource=self.name, request_id=ctx.request_id):
            await self._ensure_ready()

            async with self._record_locks.acquire(id):
                doc = await self.adapter.find_by_id(id)
                if doc is None:
                    raise NotFoundError(f"Record '{id}' not found in '{self.name}'")

                attachments = list(doc.get(ATTACHMENTS_KEY) or [])
                remaining = [a for a in attachments if a.get("id") != attachment_id]
                if len(remaining) == len(attachments):
                    raise NotFoundError(
                        f"Attachment '{attachment_id}' not found on record '{id}'"
                    )

                record = dict(doc)
                record[ATTACHMENTS_KEY] = remaining
                saved = await self._save_and_notify(id, record, ctx)
            await self._delete_blob(attachment_id)

            logger.info("Attachment deleted", record_id=id, attachment_id=attachment_id)
            return self._present(saved)
