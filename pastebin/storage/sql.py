"""
Relational backend built on SQLAlchemy.
One row per live paste in ``pastes``; content optionally embedded in ``paste_contents``.
"""
import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from sqlalchemy import BigInteger, Column, Integer, LargeBinary, String, create_engine, delete, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from pastebin.errors import PasteConflict, PasteNotFound, StorageIOError, StorageUnavailable
from pastebin.storage.base import ContentStore, MetadataStore, PasteRecord

logger = logging.getLogger(__name__)

Base = declarative_base()

DEFAULT_PAGE_SIZE = 500


class PasteRow(Base):
    __tablename__ = "pastes"

    id = Column(String(24), primary_key=True)
    key = Column(String(16), nullable=False)
    ttl = Column(Integer, nullable=False)
    created = Column(BigInteger, nullable=False)


class PasteContentRow(Base):
    __tablename__ = "paste_contents"

    id = Column(String(24), primary_key=True)
    content = Column(LargeBinary, nullable=False)
    stored = Column(BigInteger, nullable=False)


def create_db_engine(database_url: str) -> Engine:
    """Create the pooled engine and make sure both tables exist."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Sessions are used from the request threadpool and the sweeper thread
        connect_args["check_same_thread"] = False
    engine = create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)
    Base.metadata.create_all(engine)
    return engine


@contextmanager
def _translate_errors(action: str):
    try:
        yield
    except IntegrityError as e:
        raise PasteConflict() from e
    except OperationalError as e:
        logger.error(f"Database unavailable during {action}: {e}")
        raise StorageUnavailable() from e
    except SQLAlchemyError as e:
        logger.error(f"Database error during {action}: {e}")
        raise StorageIOError() from e


def _ping(engine: Engine) -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return False


class SqlMetadataStore(MetadataStore):
    """Paste metadata in the ``pastes`` table."""

    def __init__(self, engine: Engine, page_size: int = DEFAULT_PAGE_SIZE):
        self.engine = engine
        self.page_size = page_size
        self._sessions = sessionmaker(bind=engine)

    @staticmethod
    def _to_record(row: PasteRow) -> PasteRecord:
        return PasteRecord(
            paste_id=row.id,
            key=row.key,
            ttl_seconds=row.ttl,
            created_at=row.created,
        )

    def create(self, record: PasteRecord) -> None:
        row = PasteRow(
            id=record.paste_id,
            key=record.key,
            ttl=record.ttl_seconds,
            created=record.created_at,
        )
        with _translate_errors("create"), self._sessions.begin() as session:
            session.add(row)

    def find_by_id(self, paste_id: str) -> PasteRecord:
        with _translate_errors("lookup"), self._sessions() as session:
            row = session.get(PasteRow, paste_id)
            if row is None:
                raise PasteNotFound()
            return self._to_record(row)

    def delete_by_id(self, paste_id: str) -> bool:
        # Exact primary key match, never LIKE
        with _translate_errors("delete"), self._sessions.begin() as session:
            result = session.execute(delete(PasteRow).where(PasteRow.id == paste_id))
            return result.rowcount > 0

    def list_all(self) -> Iterator[PasteRecord]:
        # Keyset pagination: each page is its own short transaction
        last_id = ""
        while True:
            with _translate_errors("scan"), self._sessions() as session:
                rows = session.scalars(
                    select(PasteRow)
                    .where(PasteRow.id > last_id)
                    .order_by(PasteRow.id)
                    .limit(self.page_size)
                ).all()
                page = [self._to_record(row) for row in rows]
            if not page:
                return
            yield from page
            last_id = page[-1].paste_id

    def ping(self) -> bool:
        return _ping(self.engine)


class SqlContentStore(ContentStore):
    """Paste content embedded in the database, in ``paste_contents``."""

    def __init__(
        self,
        engine: Engine,
        page_size: int = DEFAULT_PAGE_SIZE,
        clock: Callable[[], float] = time.time,
    ):
        self.engine = engine
        self.page_size = page_size
        self._clock = clock
        self._sessions = sessionmaker(bind=engine)

    def put(self, paste_id: str, data: bytes) -> None:
        row = PasteContentRow(id=paste_id, content=bytes(data), stored=int(self._clock()))
        with _translate_errors("content write"), self._sessions.begin() as session:
            session.add(row)

    def get(self, paste_id: str) -> bytes:
        with _translate_errors("content read"), self._sessions() as session:
            content = session.scalar(
                select(PasteContentRow.content).where(PasteContentRow.id == paste_id)
            )
        if content is None:
            raise PasteNotFound()
        return bytes(content)

    def delete(self, paste_id: str) -> bool:
        with _translate_errors("content delete"), self._sessions.begin() as session:
            result = session.execute(delete(PasteContentRow).where(PasteContentRow.id == paste_id))
            return result.rowcount > 0

    def exists(self, paste_id: str) -> bool:
        with _translate_errors("content lookup"), self._sessions() as session:
            found = session.scalar(
                select(PasteContentRow.id).where(PasteContentRow.id == paste_id)
            )
        return found is not None

    def list_ids(self) -> Iterator[str]:
        last_id = ""
        while True:
            with _translate_errors("content scan"), self._sessions() as session:
                page = list(
                    session.scalars(
                        select(PasteContentRow.id)
                        .where(PasteContentRow.id > last_id)
                        .order_by(PasteContentRow.id)
                        .limit(self.page_size)
                    )
                )
            if not page:
                return
            yield from page
            last_id = page[-1]

    def modified_at(self, paste_id: str) -> Optional[float]:
        with _translate_errors("content lookup"), self._sessions() as session:
            stored = session.scalar(
                select(PasteContentRow.stored).where(PasteContentRow.id == paste_id)
            )
        return float(stored) if stored is not None else None

    def ping(self) -> bool:
        return _ping(self.engine)
