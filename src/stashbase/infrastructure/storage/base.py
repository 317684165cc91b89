"""Base abstractions for blob stores."""

import os
from abc import ABC, abstractmethod
from typing import AsyncIterator, BinaryIO, Union

BlobSource = Union[str, "os.PathLike[str]", BinaryIO]


class BlobStore(ABC):
    """Content store for attachment binaries.

    Blobs are immutable once stored and addressed by opaque ids. ``get``
    checks that the blob exists before returning, then produces its bytes
    lazily; every call returns a fresh iterator.
    """

    async def connect(self) -> None:
        """Prepare the backend."""

    async def close(self) -> None:
        """Release backend resources."""

    @abstractmethod
    async def put(self, source: BlobSource) -> str:
        """Store the content of a file path or binary stream and return its id.

        Raises:
            NotFoundError: If a source path does not exist.
            StorageIOError: If the source cannot be read or the blob written.
        """
        ...

    @abstractmethod
    async def get(self, blob_id: str) -> AsyncIterator[bytes]:
        """Return an iterator over the blob's bytes.

        Raises:
            NotFoundError: If the blob does not exist.
        """
        ...

    @abstractmethod
    async def delete(self, blob_id: str) -> None:
        """Delete a blob.

        Raises:
            NotFoundError: If the blob does not exist.
        """
        ...

    @abstractmethod
    async def exists(self, blob_id: str) -> bool:
        """Check whether a blob is stored."""
        ...

    @abstractmethod
    def locator(self, blob_id: str) -> str:
        """Backend-specific location string recorded on the attachment."""
        ...
