"""Local filesystem blob store."""

import asyncio
import os
import re
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import AsyncIterator, BinaryIO

from stashbase.core.exceptions import NotFoundError, StorageIOError
from stashbase.core.logging import get_logger
from stashbase.infrastructure.storage.base import BlobSource, BlobStore

logger = get_logger(__name__)

BLOB_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")
DEFAULT_CHUNK_SIZE = 64 * 1024


class LocalBlobStore(BlobStore):
    """Blob store keeping each blob as a file under ``storage_path``.

    Blobs live at ``<storage_path>/<id[:2]>/<id>``. Blocking file I/O runs
    in worker threads.
    """

    def __init__(self, storage_path: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.storage_path = Path(storage_path)
        self.chunk_size = chunk_size

    async def connect(self) -> None:
        await asyncio.to_thread(self.storage_path.mkdir, parents=True, exist_ok=True)

    def locator(self, blob_id: str) -> str:
        return f"{blob_id[:2]}/{blob_id}"

    def _blob_path(self, blob_id: str) -> Path:
        if not isinstance(blob_id, str) or not BLOB_ID_PATTERN.match(blob_id):
            raise NotFoundError(f"Blob not found: {blob_id}")
        return self.storage_path / self.locator(blob_id)

    async def put(self, source: BlobSource) -> str:
        blob_id = uuid.uuid4().hex
        target = self.storage_path / self.locator(blob_id)
        size = await asyncio.to_thread(self._write_blob, source, target)
        logger.info("Blob stored", blob_id=blob_id, size=size)
        return blob_id

    def _write_blob(self, source: BlobSource, target: Path) -> int:
        if isinstance(source, (str, os.PathLike)):
            source_path = Path(source)
            if not source_path.is_file():
                raise NotFoundError(f"Source file not found: {source_path}")
            try:
                with open(source_path, "rb") as stream:
                    return self._copy_stream(stream, target)
            except StorageIOError:
                raise
            except OSError as e:
                raise StorageIOError(f"Failed to read source file {source_path}: {e}") from e
        return self._copy_stream(source, target)

    def _copy_stream(self, stream: BinaryIO, target: Path) -> int:
        """Copy into a temp file, then move it into place in one step."""
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".tmp-")
            try:
                with os.fdopen(fd, "wb") as out:
                    shutil.copyfileobj(stream, out, self.chunk_size)
                    size = out.tell()
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageIOError(f"Failed to store blob: {e}") from e
        return size

    async def exists(self, blob_id: str) -> bool:
        try:
            path = self._blob_path(blob_id)
        except NotFoundError:
            return False
        return await asyncio.to_thread(path.is_file)

    async def get(self, blob_id: str) -> AsyncIterator[bytes]:
        path = self._blob_path(blob_id)
        if not await asyncio.to_thread(path.is_file):
            raise NotFoundError(f"Blob not found: {blob_id}")
        return self._iter_file(path)

    async def _iter_file(self, path: Path) -> AsyncIterator[bytes]:
        try:
            stream = await asyncio.to_thread(open, path, "rb")
        except FileNotFoundError as e:
            raise NotFoundError(f"Blob not found: {path.name}") from e
        try:
            while True:
                chunk = await asyncio.to_thread(stream.read, self.chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            await asyncio.to_thread(stream.close)

    async def delete(self, blob_id: str) -> None:
        path = self._blob_path(blob_id)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError as e:
            raise NotFoundError(f"Blob not found: {blob_id}") from e
        except OSError as e:
            raise StorageIOError(f"Failed to delete blob {blob_id}: {e}") from e
        logger.info("Blob deleted", blob_id=blob_id)
