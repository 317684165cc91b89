"""Amazon S3 blob store."""

import asyncio
import os
import uuid
from pathlib import Path
from typing import Any, AsyncIterator

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ConfigDict

from stashbase.core.exceptions import NotFoundError, StorageIOError
from stashbase.core.logging import get_logger
from stashbase.infrastructure.storage.base import BlobSource, BlobStore

logger = get_logger(__name__)

S3_PREFIX = "s3/"
MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


class S3BlobStoreSettings(BaseModel):
    """Configuration settings for the S3 blob store."""

    model_config = ConfigDict(from_attributes=True)

    bucket: str
    region: str = "us-east-1"
    access_key_id: str | None = None
    secret_access_key: str | None = None
    endpoint_url: str | None = None
    object_prefix: str = ""
    chunk_size: int = 64 * 1024


def _is_missing(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code", "Unknown") in MISSING_KEY_CODES


class S3BlobStore(BlobStore):
    """Blob store keeping each blob as an object in one bucket.

    Objects are keyed ``<object_prefix><blob id>``. boto3 calls block, so
    they run in worker threads.
    """

    def __init__(self, settings: S3BlobStoreSettings) -> None:
        self.settings = settings
        self._client = None

    def _get_client(self):
        """Get or create the S3 client."""
        if self._client is None:
            client_kwargs: dict[str, Any] = {"region_name": self.settings.region}
            if self.settings.access_key_id and self.settings.secret_access_key:
                client_kwargs["aws_access_key_id"] = self.settings.access_key_id
                client_kwargs["aws_secret_access_key"] = self.settings.secret_access_key
            if self.settings.endpoint_url:
                client_kwargs["endpoint_url"] = self.settings.endpoint_url

            self._client = boto3.client("s3", **client_kwargs)
        return self._client

    def _key(self, blob_id: str) -> str:
        return f"{self.settings.object_prefix}{blob_id}"

    def locator(self, blob_id: str) -> str:
        return f"{S3_PREFIX}{self._key(blob_id)}"

    async def connect(self) -> None:
        try:
            await asyncio.to_thread(self._get_client().head_bucket, Bucket=self.settings.bucket)
        except (ClientError, BotoCoreError) as e:
            raise StorageIOError(
                f"S3 bucket '{self.settings.bucket}' is not accessible: {str(e)}"
            ) from e

    async def put(self, source: BlobSource) -> str:
        blob_id = uuid.uuid4().hex
        key = self._key(blob_id)

        try:
            if isinstance(source, (str, os.PathLike)):
                source_path = Path(source)
                if not source_path.is_file():
                    raise NotFoundError(f"Source file not found: {source_path}")
                await asyncio.to_thread(
                    self._get_client().upload_file,
                    str(source_path),
                    self.settings.bucket,
                    key,
                )
            else:
                await asyncio.to_thread(
                    self._get_client().upload_fileobj,
                    source,
                    self.settings.bucket,
                    key,
                )
        except (ClientError, BotoCoreError) as e:
            raise StorageIOError(f"Failed to upload blob to S3: {str(e)}") from e

        logger.info("Blob stored", blob_id=blob_id, bucket=self.settings.bucket, key=key)
        return blob_id

    async def exists(self, blob_id: str) -> bool:
        try:
            await asyncio.to_thread(
                self._get_client().head_object,
                Bucket=self.settings.bucket,
                Key=self._key(blob_id),
            )
        except ClientError as e:
            if _is_missing(e):
                return False
            raise StorageIOError(f"Failed to check blob in S3: {str(e)}") from e
        except BotoCoreError as e:
            raise StorageIOError(f"Failed to check blob in S3: {str(e)}") from e
        return True

    async def get(self, blob_id: str) -> AsyncIterator[bytes]:
        try:
            response = await asyncio.to_thread(
                self._get_client().get_object,
                Bucket=self.settings.bucket,
                Key=self._key(blob_id),
            )
        except ClientError as e:
            if _is_missing(e):
                raise NotFoundError(f"Blob not found: {blob_id}") from e
            raise StorageIOError(f"Failed to fetch blob from S3: {str(e)}") from e
        except BotoCoreError as e:
            raise StorageIOError(f"Failed to fetch blob from S3: {str(e)}") from e

        body_stream = response.get("Body")
        if body_stream is None:
            raise NotFoundError(f"Blob not found: {blob_id}")
        return self._iter_body(body_stream)

    async def _iter_body(self, body_stream) -> AsyncIterator[bytes]:
        try:
            while True:
                try:
                    chunk = await asyncio.to_thread(body_stream.read, self.settings.chunk_size)
                except (ClientError, BotoCoreError) as e:
                    raise StorageIOError(f"Failed to read blob from S3: {str(e)}") from e
                if not chunk:
                    break
                yield chunk
        finally:
            body_stream.close()

    async def delete(self, blob_id: str) -> None:
        key = self._key(blob_id)

        try:
            await asyncio.to_thread(
                self._get_client().head_object,
                Bucket=self.settings.bucket,
                Key=key,
            )
            await asyncio.to_thread(
                self._get_client().delete_object,
                Bucket=self.settings.bucket,
                Key=key,
            )
        except ClientError as e:
            if _is_missing(e):
                raise NotFoundError(f"Blob not found: {blob_id}") from e
            raise StorageIOError(f"Failed to delete blob from S3: {str(e)}") from e
        except BotoCoreError as e:
            raise StorageIOError(f"Failed to delete blob from S3: {str(e)}") from e

        logger.info("Blob deleted", blob_id=blob_id, bucket=self.settings.bucket, key=key)

    async def close(self) -> None:
        self._client = None
