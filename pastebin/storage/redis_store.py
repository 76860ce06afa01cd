"""
Redis backend for paste content and metadata.
Every write uses SET NX so an existing paste is never overwritten.
"""
import json
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from redis import Redis
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from pastebin.errors import PasteConflict, PasteNotFound, StorageIOError, StorageUnavailable
from pastebin.storage.base import ContentStore, MetadataStore, PasteRecord

logger = logging.getLogger(__name__)

CONTENT_PREFIX = "paste:content:"
META_PREFIX = "paste:meta:"
SCAN_COUNT = 500


class CorruptMetadata(StorageIOError):
    """A metadata document that cannot be decoded."""


def connect(redis_url: str) -> Redis:
    """
    Build a pooled client and check that the server answers.

    Raises:
        StorageUnavailable: If Redis cannot be reached
    """
    logger.info(f"Attempting to connect to Redis: {redis_url[:30]}...")
    client = Redis.from_url(redis_url)
    try:
        client.ping()
    except RedisError as e:
        logger.error(f"❌ Error connecting to Redis: {type(e).__name__}: {str(e)}")
        raise StorageUnavailable() from e
    logger.info("✓ Redis connected successfully")
    return client


@contextmanager
def _translate_errors(action: str):
    try:
        yield
    except (ConnectionError, TimeoutError) as e:
        logger.error(f"Redis unavailable during {action}: {e}")
        raise StorageUnavailable() from e
    except RedisError as e:
        logger.error(f"Redis error during {action}: {e}")
        raise StorageIOError() from e


def _ping(client: Redis) -> bool:
    try:
        client.ping()
        return True
    except Exception as e:
        logger.error(f"Health check failed: {e}")
    return False


def _scan_ids(client: Redis, prefix: str) -> Iterator[str]:
    with _translate_errors("scan"):
        for raw_key in client.scan_iter(match=f"{prefix}*", count=SCAN_COUNT):
            key = raw_key.decode() if isinstance(raw_key, bytes) else raw_key
            yield key[len(prefix):]


class RedisContentStore(ContentStore):
    """
    Paste content as plain Redis strings.

    Args:
        client: Redis client (binary mode, no decode_responses)
        expire_seconds: Optional Redis-side expiry on content keys. Redis does
            not record write time, so this is what ages out content whose
            metadata is lost.
    """

    def __init__(self, client: Redis, expire_seconds: Optional[int] = None):
        self.redis = client
        self.expire_seconds = expire_seconds

    def put(self, paste_id: str, data: bytes) -> None:
        with _translate_errors("content write"):
            created = self.redis.set(
                f"{CONTENT_PREFIX}{paste_id}", bytes(data), nx=True, ex=self.expire_seconds
            )
        if not created:
            raise PasteConflict(f"Paste {paste_id} already exists")

    def get(self, paste_id: str) -> bytes:
        with _translate_errors("content read"):
            data = self.redis.get(f"{CONTENT_PREFIX}{paste_id}")
        if data is None:
            raise PasteNotFound()
        return data.encode() if isinstance(data, str) else data

    def delete(self, paste_id: str) -> bool:
        with _translate_errors("content delete"):
            return self.redis.delete(f"{CONTENT_PREFIX}{paste_id}") > 0

    def exists(self, paste_id: str) -> bool:
        with _translate_errors("content lookup"):
            return self.redis.exists(f"{CONTENT_PREFIX}{paste_id}") > 0

    def list_ids(self) -> Iterator[str]:
        return _scan_ids(self.redis, CONTENT_PREFIX)

    def ping(self) -> bool:
        return _ping(self.redis)


class RedisMetadataStore(MetadataStore):
    """Paste metadata as one JSON document per paste."""

    def __init__(self, client: Redis):
        self.redis = client

    def create(self, record: PasteRecord) -> None:
        payload = json.dumps(
            {
                "key": record.key,
                "ttl": record.ttl_seconds,
                "created": record.created_at,
            }
        )
        with _translate_errors("create"):
            created = self.redis.set(f"{META_PREFIX}{record.paste_id}", payload, nx=True)
        if not created:
            raise PasteConflict(f"Paste {record.paste_id} already exists")

    def _load(self, paste_id: str) -> Optional[PasteRecord]:
        with _translate_errors("lookup"):
            raw = self.redis.get(f"{META_PREFIX}{paste_id}")
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            return PasteRecord(
                paste_id=paste_id,
                key=data["key"],
                ttl_seconds=int(data["ttl"]),
                created_at=int(data["created"]),
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Corrupt metadata for paste {paste_id}: {e}")
            raise CorruptMetadata(f"Corrupt metadata for paste {paste_id}") from e

    def find_by_id(self, paste_id: str) -> PasteRecord:
        record = self._load(paste_id)
        if record is None:
            raise PasteNotFound()
        return record

    def delete_by_id(self, paste_id: str) -> bool:
        with _translate_errors("delete"):
            return self.redis.delete(f"{META_PREFIX}{paste_id}") > 0

    def list_all(self) -> Iterator[PasteRecord]:
        for paste_id in _scan_ids(self.redis, META_PREFIX):
            try:
                record = self._load(paste_id)
            except CorruptMetadata:
                # Already logged; one bad document must not end the listing
                continue
            # Removed between SCAN and GET
            if record is not None:
                yield record

    def ping(self) -> bool:
        return _ping(self.redis)
