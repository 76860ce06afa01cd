"""
Background expiry sweeper.

Periodically scans the metadata store, removes expired pastes from both
stores and reconciles zombies (an entry whose counterpart in the other store
is missing).
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from pastebin.config import DEFAULT_TTL_SECONDS
from pastebin.errors import PasteError, PasteNotFound, StorageUnavailable
from pastebin.storage.base import ContentStore, MetadataStore, PasteRecord

logger = logging.getLogger(__name__)

IDLE = "idle"
SCANNING = "scanning"


@dataclass
class SweepReport:
    expired: int = 0
    zombies: int = 0
    orphans: int = 0
    # Half-written uploads, not counted as pastes
    leftovers: int = 0

    @property
    def removed(self) -> int:
        return self.expired + self.zombies + self.orphans


class ExpirySweeper:
    """
    Self-scheduling expiry task.

    Args:
        content_store: Store holding paste bytes
        metadata_store: Store holding paste bookkeeping
        interval_seconds: Pause between two cycles
        default_ttl_seconds: TTL assumed for content that has no metadata
        clock: Returns the current time in epoch seconds
    """

    def __init__(
        self,
        content_store: ContentStore,
        metadata_store: MetadataStore,
        interval_seconds: float = 60,
        default_ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.content_store = content_store
        self.metadata_store = metadata_store
        self.interval_seconds = interval_seconds
        self.default_ttl_seconds = default_ttl_seconds
        self.clock = clock
        self.state = IDLE
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> SweepReport:
        """Run a single sweep cycle and return what was removed."""
        self.state = SCANNING
        try:
            report = SweepReport()
            scan_started = self.clock()
            self._sweep_metadata(scan_started, report)
            self._sweep_orphan_content(scan_started, report)
        finally:
            self.state = IDLE
        if report.removed:
            logger.info(
                f"Sweep removed {report.expired} expired, {report.zombies} zombie "
                f"and {report.orphans} orphaned pastes"
            )
        if report.leftovers:
            logger.info(f"Sweep removed {report.leftovers} stale partial uploads")
        return report

    def _sweep_metadata(self, scan_started: float, report: SweepReport) -> None:
        for record in self.metadata_store.list_all():
            # Written after the scan began; its age says nothing yet
            if record.created_at > scan_started:
                continue
            try:
                self._sweep_record(record, scan_started, report)
            except StorageUnavailable:
                raise
            except PasteError:
                logger.exception(f"Could not sweep paste {record.paste_id}, skipping")

    def _sweep_record(self, record: PasteRecord, scan_started: float, report: SweepReport) -> None:
        paste_id = record.paste_id
        if not self.content_store.exists(paste_id):
            self.metadata_store.delete_by_id(paste_id)
            report.zombies += 1
            logger.warning(f"Removed zombie paste {paste_id} (metadata without content)")
        elif record.is_expired(scan_started):
            self.content_store.delete(paste_id)
            self.metadata_store.delete_by_id(paste_id)
            report.expired += 1
            logger.info(f"Removed expired paste {paste_id}")

    def _sweep_orphan_content(self, scan_started: float, report: SweepReport) -> None:
        horizon = scan_started - self.default_ttl_seconds
        for paste_id in self.content_store.list_ids():
            try:
                if self._sweep_orphan(paste_id, horizon):
                    report.orphans += 1
            except StorageUnavailable:
                raise
            except PasteError:
                logger.exception(f"Could not check content {paste_id}, skipping")
        report.leftovers = self.content_store.purge_leftovers(horizon)

    def _sweep_orphan(self, paste_id: str, horizon: float) -> bool:
        stored_at = self.content_store.modified_at(paste_id)
        if stored_at is None or stored_at >= horizon:
            return False
        try:
            self.metadata_store.find_by_id(paste_id)
            return False
        except PasteNotFound:
            pass
        if not self.content_store.delete(paste_id):
            return False
        logger.warning(f"Removed orphaned content {paste_id} (content without metadata)")
        return True

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("Sweep failed, retrying next interval")
            self._stop.wait(self.interval_seconds)

    def start(self) -> None:
        """Launch the sweeper on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="expiry-sweeper", daemon=True)
        self._thread.start()
        logger.info(f"Expiry sweeper started (interval {self.interval_seconds}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
