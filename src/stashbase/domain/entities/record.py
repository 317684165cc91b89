"""Record-side value objects: attachments and pagination metadata.

Records themselves are plain dicts holding the field values plus the
system keys ``_id`` and ``_attachments``.
"""

from dataclasses import asdict, dataclass
from typing import Any, Iterable, Optional

ID_KEY = "_id"
ATTACHMENTS_KEY = "_attachments"
SYSTEM_KEYS = frozenset({ID_KEY, ATTACHMENTS_KEY})


@dataclass
class Attachment:
    """Descriptor linking a record to blob content.

    Attributes:
        id: Blob identifier in the BlobStore.
        name: Caller-supplied label (not unique).
        file: Backend-specific locator of the blob.
    """

    id: str
    name: str
    file: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name, "file": self.file}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Attachment":
        return cls(id=str(data["id"]), name=str(data["name"]), file=str(data["file"]))


@dataclass(frozen=True)
class PageMeta:
    """Pagination metadata attached to a paged find() result."""

    page: int
    page_size: int
    total_pages: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class RecordList(list):
    """A list of records carrying optional pagination metadata."""

    def __init__(self, records: Iterable[dict[str, Any]] = (), meta: Optional[PageMeta] = None):
        super().__init__(records)
        self.meta = meta
