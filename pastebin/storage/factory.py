"""
Builds the content and metadata stores selected by configuration.
Falls back to in-memory stores when a backend is unreachable at startup.
"""
import logging
from dataclasses import dataclass

from pastebin.config import Settings
from pastebin.storage import redis_store, sql
from pastebin.storage.base import ContentStore, MetadataStore
from pastebin.storage.files import FileContentStore
from pastebin.storage.memory import InMemoryContentStore, InMemoryMetadataStore

logger = logging.getLogger(__name__)


@dataclass
class Stores:
    content: ContentStore
    metadata: MetadataStore
    using_fallback: bool = False

    def is_healthy(self) -> bool:
        """Check that both backends answer."""
        return self.content.ping() and self.metadata.ping()


class _Connections:
    """Lazily opened shared connections, so both stores reuse one pool."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._engine = None
        self._redis = None

    @property
    def engine(self):
        if self._engine is None:
            self._engine = sql.create_db_engine(self.settings.DATABASE_URL)
        return self._engine

    @property
    def redis(self):
        if self._redis is None:
            self._redis = redis_store.connect(self.settings.REDIS_URL)
        return self._redis


def _build_content(backend: str, settings: Settings, conns: _Connections) -> ContentStore:
    if backend == "file":
        return FileContentStore(settings.UPLOAD_DIR)
    if backend == "sql":
        return sql.SqlContentStore(conns.engine)
    if backend == "redis":
        # Safety net for content whose metadata never got written
        return redis_store.RedisContentStore(conns.redis, expire_seconds=settings.PASTE_TTL_SECONDS * 2)
    return InMemoryContentStore()


def _build_metadata(backend: str, conns: _Connections) -> MetadataStore:
    if backend == "sql":
        return sql.SqlMetadataStore(conns.engine)
    if backend == "redis":
        return redis_store.RedisMetadataStore(conns.redis)
    return InMemoryMetadataStore()


def build_stores(settings: Settings) -> Stores:
    """
    Construct both stores once at startup.

    Args:
        settings: Application settings

    Returns:
        Stores bundle passed to the service and the sweeper
    """
    conns = _Connections(settings)
    try:
        content = _build_content(settings.CONTENT_BACKEND, settings, conns)
        metadata = _build_metadata(settings.METADATA_BACKEND, conns)
    except Exception as e:
        logger.error(f"❌ Could not initialise storage backends: {type(e).__name__}: {str(e)}")
        logger.warning("Using in-memory fallback for development. Data will NOT persist across restarts.")
        return Stores(InMemoryContentStore(), InMemoryMetadataStore(), using_fallback=True)

    logger.info(
        f"Storage ready: content={settings.CONTENT_BACKEND}, metadata={settings.METADATA_BACKEND}"
    )
    return Stores(content, metadata)
