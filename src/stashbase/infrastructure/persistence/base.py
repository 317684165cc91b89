"""Base abstraction for record storage adapters."""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator


class StorageAdapter(ABC):
    """Contract between a Resource and the backend holding its records.

    One adapter instance serves one collection. Documents are dicts with a
    string ``_id``. Filters are structural equality matches: every key in
    the filter must equal the document's value for that key.

    ``insert`` and ``update`` must raise UniqueConstraintError when a
    unique-indexed value collides with another live document, and the check
    must be atomic with the write.
    """

    collection: str

    async def connect(self) -> None:
        """Prepare the backend (create tables, open clients)."""

    async def close(self) -> None:
        """Release backend resources owned by this adapter."""

    @abstractmethod
    async def insert(self, doc: dict[str, Any]) -> dict[str, Any]:
        """Insert a document, assigning ``_id`` when missing, and return it."""
        ...

    @abstractmethod
    async def find_by_id(self, doc_id: str) -> dict[str, Any] | None:
        """Get a document by ``_id``."""
        ...

    @abstractmethod
    async def query(
        self,
        filter: dict[str, Any],
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Get matching documents in adapter-native order."""
        ...

    @abstractmethod
    async def count(self, filter: dict[str, Any]) -> int:
        """Count matching documents."""
        ...

    @abstractmethod
    async def update(self, doc_id: str, doc: dict[str, Any]) -> dict[str, Any] | None:
        """Replace a stored document. Returns None when ``doc_id`` is unknown."""
        ...

    @abstractmethod
    async def delete(self, doc_id: str) -> int:
        """Delete one document. Returns the number removed (0 or 1)."""
        ...

    @abstractmethod
    async def delete_all(self, filter: dict[str, Any]) -> int:
        """Delete every matching document. Returns the number removed."""
        ...

    @abstractmethod
    async def ensure_unique_index(self, field: str) -> None:
        """Make the backend reject duplicate values of ``field``."""
        ...

    @abstractmethod
    def stream_query(self, filter: dict[str, Any]) -> AsyncIterator[dict[str, Any]]:
        """Yield matching documents one at a time, fetching lazily."""
        ...
