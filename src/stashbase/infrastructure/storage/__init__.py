"""Blob stores for attachment binaries."""

from stashbase.infrastructure.storage.base import BlobSource, BlobStore
from stashbase.infrastructure.storage.local_blob_store import LocalBlobStore
from stashbase.infrastructure.storage.s3_blob_store import S3BlobStore, S3BlobStoreSettings

__all__ = [
    "BlobSource",
    "BlobStore",
    "LocalBlobStore",
    "S3BlobStore",
    "S3BlobStoreSettings",
]
