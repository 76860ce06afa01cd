"""
In-memory stores for development/testing (when Redis or the database is unavailable).
"""
import threading
import time
from typing import Callable, Dict, Iterator, Optional, Tuple

from pastebin.errors import PasteConflict, PasteNotFound
from pastebin.storage.base import ContentStore, MetadataStore, PasteRecord


class InMemoryContentStore(ContentStore):
    """Simple in-memory content store."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._store: Dict[str, Tuple[bytes, float]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def put(self, paste_id: str, data: bytes) -> None:
        with self._lock:
            if paste_id in self._store:
                raise PasteConflict(f"Paste {paste_id} already exists")
            self._store[paste_id] = (bytes(data), self._clock())

    def get(self, paste_id: str) -> bytes:
        with self._lock:
            entry = self._store.get(paste_id)
        if entry is None:
            raise PasteNotFound()
        return entry[0]

    def delete(self, paste_id: str) -> bool:
        with self._lock:
            return self._store.pop(paste_id, None) is not None

    def exists(self, paste_id: str) -> bool:
        with self._lock:
            return paste_id in self._store

    def list_ids(self) -> Iterator[str]:
        # Copy the keys so writers are never blocked by a running sweep
        with self._lock:
            ids = list(self._store)
        return iter(ids)

    def modified_at(self, paste_id: str) -> Optional[float]:
        with self._lock:
            entry = self._store.get(paste_id)
        return entry[1] if entry else None


class InMemoryMetadataStore(MetadataStore):
    """Simple in-memory metadata store."""

    def __init__(self):
        self._records: Dict[str, PasteRecord] = {}
        self._lock = threading.Lock()

    def create(self, record: PasteRecord) -> None:
        with self._lock:
            if record.paste_id in self._records:
                raise PasteConflict(f"Paste {record.paste_id} already exists")
            self._records[record.paste_id] = record

    def find_by_id(self, paste_id: str) -> PasteRecord:
        with self._lock:
            record = self._records.get(paste_id)
        if record is None:
            raise PasteNotFound()
        return record

    def delete_by_id(self, paste_id: str) -> bool:
        with self._lock:
            return self._records.pop(paste_id, None) is not None

    def list_all(self) -> Iterator[PasteRecord]:
        with self._lock:
            records = list(self._records.values())
        return iter(records)
