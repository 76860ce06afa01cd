"""
Storage interfaces shared by all backends.

A paste is split across two stores: the content store keeps the raw bytes and
the metadata store keeps the bookkeeping (deletion key, TTL, creation time).
Both are keyed by the paste ID and must be safe for concurrent use.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional


@dataclass(frozen=True)
class PasteRecord:
    """Metadata row of a single paste."""

    paste_id: str
    key: str
    ttl_seconds: int
    created_at: int

    @property
    def expires_at(self) -> int:
        return self.created_at + self.ttl_seconds

    def is_live(self, now: float) -> bool:
        return now < self.expires_at

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class ContentStore(ABC):
    """Persists raw paste bytes by ID."""

    @abstractmethod
    def put(self, paste_id: str, data: bytes) -> None:
        """Store data under paste_id. Raises PasteConflict if the ID is taken."""

    @abstractmethod
    def get(self, paste_id: str) -> bytes:
        """Return the stored bytes. Raises PasteNotFound."""

    @abstractmethod
    def delete(self, paste_id: str) -> bool:
        """Remove the content. Returns False if nothing was there."""

    @abstractmethod
    def exists(self, paste_id: str) -> bool:
        pass

    @abstractmethod
    def list_ids(self) -> Iterator[str]:
        """Lazily yield every stored paste ID."""

    def modified_at(self, paste_id: str) -> Optional[float]:
        """Epoch seconds at which the content was written, None if unknown."""
        return None

    def purge_leftovers(self, older_than: float) -> int:
        """Remove partial writes last touched before older_than. Returns the count."""
        return 0

    def ping(self) -> bool:
        return True


class MetadataStore(ABC):
    """Persists paste bookkeeping by ID."""

    @abstractmethod
    def create(self, record: PasteRecord) -> None:
        """Insert a new record. Raises PasteConflict if the ID is taken."""

    @abstractmethod
    def find_by_id(self, paste_id: str) -> PasteRecord:
        """Return the record. Raises PasteNotFound."""

    @abstractmethod
    def delete_by_id(self, paste_id: str) -> bool:
        """Remove the record with exactly this ID. Returns False if absent."""

    @abstractmethod
    def list_all(self) -> Iterator[PasteRecord]:
        """Lazily yield every record, page by page."""

    def ping(self) -> bool:
        return True
