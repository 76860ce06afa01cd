"""
Paste service.
Orchestrates ID/key generation and both stores for create, retrieve and delete.
"""
import hmac
import logging
import time
from dataclasses import dataclass
from typing import Callable, Union

from pastebin import ids
from pastebin.config import DEFAULT_MAX_PASTE_BYTES, DEFAULT_TTL_SECONDS
from pastebin.errors import (
    PasteAuthorizationError,
    PasteConflict,
    PasteNotFound,
    PasteValidationError,
    PayloadTooLarge,
)
from pastebin.storage.base import ContentStore, MetadataStore, PasteRecord

logger = logging.getLogger(__name__)

# Compared against when the ID is unknown so both paths cost the same
_DUMMY_KEY = "0" * ids.KEY_LENGTH


@dataclass(frozen=True)
class CreatedPaste:
    paste_id: str
    key: str
    ttl: int
    link: str


@dataclass(frozen=True)
class Paste:
    """A live paste as seen by readers. Never carries the deletion key."""

    paste_id: str
    content: bytes
    created_at: int
    expires_at: int


class PasteService:
    """
    The only entry point request handlers use.

    Args:
        content_store: Store for raw paste bytes
        metadata_store: Store for key, TTL and creation time
        ttl_seconds: TTL given to every new paste
        max_content_bytes: Size ceiling for paste content
        base_url: Prefix of the public link returned on create
        clock: Returns the current time in epoch seconds
        max_attempts: ID regenerations allowed on collision
    """

    def __init__(
        self,
        content_store: ContentStore,
        metadata_store: MetadataStore,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_content_bytes: int = DEFAULT_MAX_PASTE_BYTES,
        base_url: str = "",
        clock: Callable[[], float] = time.time,
        max_attempts: int = 5,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self.content_store = content_store
        self.metadata_store = metadata_store
        self.ttl_seconds = ttl_seconds
        self.max_content_bytes = max_content_bytes
        self.base_url = base_url.rstrip("/")
        self.clock = clock
        self.max_attempts = max_attempts

    def _check_id(self, paste_id: str) -> None:
        if not ids.is_valid_id(paste_id):
            raise PasteValidationError(f"Invalid paste ID: {paste_id!r}")

    def create(self, content: Union[bytes, str]) -> CreatedPaste:
        """
        Store a new paste.

        Content is written before metadata, so an interrupted create leaves
        orphaned content for the sweeper rather than metadata without content.

        Raises:
            PasteValidationError: If content is empty
            PayloadTooLarge: If content exceeds the size ceiling
            PasteConflict: If no free ID was found after max_attempts
        """
        if isinstance(content, str):
            content = content.encode("utf-8")
        if not content:
            raise PasteValidationError("content is required and must be non-empty")
        if len(content) > self.max_content_bytes:
            raise PayloadTooLarge()

        for attempt in range(1, self.max_attempts + 1):
            paste_id = ids.generate_id()
            key = ids.generate_key()
            try:
                self.content_store.put(paste_id, content)
            except PasteConflict:
                logger.warning(f"ID collision on content for {paste_id} (attempt {attempt})")
                continue

            record = PasteRecord(
                paste_id=paste_id,
                key=key,
                ttl_seconds=self.ttl_seconds,
                created_at=int(self.clock()),
            )
            try:
                self.metadata_store.create(record)
            except PasteConflict:
                logger.warning(f"ID collision on metadata for {paste_id} (attempt {attempt})")
                self.content_store.delete(paste_id)
                continue

            logger.info(f"Paste {paste_id} saved successfully ({len(content)} bytes)")
            return CreatedPaste(
                paste_id=paste_id,
                key=key,
                ttl=self.ttl_seconds,
                link=f"{self.base_url}/{paste_id}",
            )

        raise PasteConflict(f"Could not allocate a paste ID after {self.max_attempts} attempts")

    def get(self, paste_id: str) -> Paste:
        """
        Fetch a live paste.

        Raises:
            PasteValidationError: If paste_id is malformed (no store is touched)
            PasteNotFound: If metadata or content is missing, or the paste has expired
        """
        self._check_id(paste_id)
        record = self.metadata_store.find_by_id(paste_id)
        if not record.is_live(self.clock()):
            logger.warning(f"Paste {paste_id} has expired (TTL)")
            raise PasteNotFound()
        content = self.content_store.get(paste_id)
        return Paste(
            paste_id=paste_id,
            content=content,
            created_at=record.created_at,
            expires_at=record.expires_at,
        )

    def retrieve(self, paste_id: str) -> bytes:
        return self.get(paste_id).content

    def delete(self, paste_id: str, key: str) -> bool:
        """
        Delete a paste if key matches its deletion key.

        Returns:
            True if the paste was removed, False if it did not exist (no-op)

        Raises:
            PasteValidationError: If paste_id is malformed
            PasteAuthorizationError: If the key does not match
        """
        self._check_id(paste_id)
        try:
            record = self.metadata_store.find_by_id(paste_id)
        except PasteNotFound:
            hmac.compare_digest(_DUMMY_KEY.encode(), (key or "").encode())
            logger.warning(f"Delete requested for unknown paste {paste_id}")
            return False

        if not hmac.compare_digest(record.key.encode(), (key or "").encode()):
            logger.warning(f"Rejected delete of paste {paste_id}: key mismatch")
            raise PasteAuthorizationError()

        self.content_store.delete(paste_id)
        self.metadata_store.delete_by_id(paste_id)
        logger.info(f"Paste {paste_id} deleted")
        return True
