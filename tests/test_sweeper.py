import os
import threading

import pytest

from pastebin import ids
from pastebin.errors import PasteNotFound, StorageIOError, StorageUnavailable
from pastebin.service import PasteService
from pastebin.storage.base import PasteRecord
from pastebin.storage.files import FileContentStore
from pastebin.storage.memory import InMemoryContentStore, InMemoryMetadataStore
from pastebin.storage.redis_store import RedisContentStore, RedisMetadataStore
from pastebin.sweeper import IDLE, ExpirySweeper

TTL = 3600


@pytest.fixture
def service(content_store, metadata_store, clock):
    return PasteService(content_store, metadata_store, ttl_seconds=TTL, clock=clock.now)


@pytest.fixture
def sweeper(content_store, metadata_store, clock):
    return ExpirySweeper(
        content_store,
        metadata_store,
        interval_seconds=60,
        default_ttl_seconds=TTL,
        clock=clock.now,
    )


def test_expired_paste_removed_from_both_stores(service, sweeper, content_store, metadata_store, clock):
    created = service.create(b"old")
    clock.advance(TTL + 1)

    report = sweeper.run_once()

    assert report.expired == 1
    assert not content_store.exists(created.paste_id)
    with pytest.raises(PasteNotFound):
        metadata_store.find_by_id(created.paste_id)


def test_paste_at_exact_expiry_is_kept(service, sweeper, content_store, clock):
    created = service.create(b"boundary")
    clock.advance(TTL)

    report = sweeper.run_once()

    assert report.removed == 0
    assert content_store.exists(created.paste_id)


def test_live_paste_untouched(service, sweeper, clock):
    created = service.create(b"fresh")
    clock.advance(TTL // 2)

    sweeper.run_once()

    assert service.retrieve(created.paste_id) == b"fresh"


def test_zombie_metadata_removed_regardless_of_ttl(service, sweeper, content_store, metadata_store):
    created = service.create(b"gone soon")
    content_store.delete(created.paste_id)

    report = sweeper.run_once()

    assert report.zombies == 1
    assert report.expired == 0
    with pytest.raises(PasteNotFound):
        metadata_store.find_by_id(created.paste_id)


def test_records_newer_than_scan_are_skipped(sweeper, content_store, metadata_store, clock):
    paste_id = ids.generate_id()
    # Created "after" the scan starts, and with no content yet
    metadata_store.create(PasteRecord(paste_id, "k" * 16, TTL, int(clock.now()) + 10))

    report = sweeper.run_once()

    assert report.removed == 0
    assert metadata_store.find_by_id(paste_id).paste_id == paste_id


def test_old_orphan_content_removed(sweeper, content_store, clock):
    paste_id = ids.generate_id()
    content_store.put(paste_id, b"no metadata")

    clock.advance(TTL)
    assert sweeper.run_once().orphans == 0
    assert content_store.exists(paste_id)

    clock.advance(1)
    assert sweeper.run_once().orphans == 1
    assert not content_store.exists(paste_id)


def test_orphan_pass_keeps_content_with_metadata(metadata_store, clock):
    # Paste whose own TTL is longer than the default orphan horizon
    content_store = InMemoryContentStore(clock=clock.now)
    sweeper = ExpirySweeper(content_store, metadata_store, default_ttl_seconds=10, clock=clock.now)
    paste_id = ids.generate_id()
    content_store.put(paste_id, b"long lived")
    metadata_store.create(PasteRecord(paste_id, "k" * 16, TTL, int(clock.now())))

    clock.advance(100)
    report = sweeper.run_once()

    assert report.removed == 0
    assert content_store.exists(paste_id)


def test_file_orphan_uses_mtime(tmp_path, clock):
    content_store = FileContentStore(str(tmp_path))
    metadata_store = InMemoryMetadataStore()
    sweeper = ExpirySweeper(content_store, metadata_store, default_ttl_seconds=TTL, clock=clock.now)

    old_id, new_id = ids.generate_id(), ids.generate_id()
    content_store.put(old_id, b"old")
    content_store.put(new_id, b"new")
    now = clock.now()
    os.utime(tmp_path / old_id, (now - TTL - 5, now - TTL - 5))
    os.utime(tmp_path / new_id, (now - 5, now - 5))

    report = sweeper.run_once()

    assert report.orphans == 1
    assert not content_store.exists(old_id)
    assert content_store.exists(new_id)


def test_sweep_racing_a_delete_is_noop(service, sweeper, content_store, metadata_store, clock):
    created = service.create(b"x")
    clock.advance(TTL + 1)

    class RacingMetadata(InMemoryMetadataStore):
        def list_all(racing_self):
            for record in metadata_store.list_all():
                # A user delete lands between the snapshot and the sweeper's delete
                service.delete(created.paste_id, created.key)
                yield record

        def delete_by_id(racing_self, paste_id):
            return metadata_store.delete_by_id(paste_id)

    racing = ExpirySweeper(content_store, RacingMetadata(), default_ttl_seconds=TTL, clock=clock.now)
    racing.run_once()

    assert not content_store.exists(created.paste_id)
    with pytest.raises(PasteNotFound):
        metadata_store.find_by_id(created.paste_id)


def test_failed_scan_propagates_from_run_once(content_store, clock):
    class DownMetadata(InMemoryMetadataStore):
        def list_all(self):
            raise StorageUnavailable()

    sweeper = ExpirySweeper(content_store, DownMetadata(), clock=clock.now)

    with pytest.raises(StorageUnavailable):
        sweeper.run_once()
    assert sweeper.state == IDLE


def test_background_loop_survives_failures(content_store, clock):
    calls = []
    done = threading.Event()

    class FlakyMetadata(InMemoryMetadataStore):
        def list_all(self):
            calls.append(1)
            if len(calls) >= 3:
                done.set()
            if len(calls) == 1:
                raise StorageUnavailable()
            return iter([])

    sweeper = ExpirySweeper(content_store, FlakyMetadata(), interval_seconds=0.01, clock=clock.now)
    sweeper.start()
    try:
        assert done.wait(5)
    finally:
        sweeper.stop(timeout=5)

    assert len(calls) >= 3
    assert sweeper.state == IDLE


def test_interval_must_be_positive(content_store, metadata_store):
    with pytest.raises(ValueError):
        ExpirySweeper(content_store, metadata_store, interval_seconds=0)


def test_corrupt_redis_metadata_does_not_block_expiry(fake_redis, clock):
    content_store = RedisContentStore(fake_redis)
    metadata_store = RedisMetadataStore(fake_redis)
    service = PasteService(content_store, metadata_store, ttl_seconds=TTL, clock=clock.now)
    sweeper = ExpirySweeper(content_store, metadata_store, default_ttl_seconds=TTL, clock=clock.now)

    fake_redis.set(f"paste:meta:{ids.generate_id()}", b"{not json")
    created = service.create(b"old")
    clock.advance(TTL + 90)

    report = sweeper.run_once()

    assert report.expired == 1
    assert not content_store.exists(created.paste_id)


def test_failing_record_is_skipped_and_others_swept(service, metadata_store, clock):
    broken = service.create(b"broken")
    healthy = service.create(b"healthy")
    clock.advance(TTL + 1)

    class OneBadFile(InMemoryContentStore):
        def exists(self, paste_id):
            if paste_id == broken.paste_id:
                raise StorageIOError("disk error")
            return super().exists(paste_id)

    content_store = OneBadFile(clock=clock.now)
    content_store.put(broken.paste_id, b"broken")
    content_store.put(healthy.paste_id, b"healthy")
    sweeper = ExpirySweeper(content_store, metadata_store, default_ttl_seconds=TTL, clock=clock.now)

    report = sweeper.run_once()

    assert report.expired == 1
    assert not content_store.exists(healthy.paste_id)
    assert metadata_store.find_by_id(broken.paste_id).paste_id == broken.paste_id


def test_failing_orphan_stat_is_skipped(metadata_store, clock):
    bad_id, old_id = ids.generate_id(), ids.generate_id()

    class OneBadStat(InMemoryContentStore):
        def modified_at(self, paste_id):
            if paste_id == bad_id:
                raise StorageIOError("stat failed")
            return super().modified_at(paste_id)

    content_store = OneBadStat(clock=clock.now)
    content_store.put(bad_id, b"unreadable")
    content_store.put(old_id, b"orphan")
    sweeper = ExpirySweeper(content_store, metadata_store, default_ttl_seconds=TTL, clock=clock.now)
    clock.advance(TTL + 1)

    report = sweeper.run_once()

    assert report.orphans == 1
    assert content_store.exists(bad_id)
    assert not content_store.exists(old_id)


def test_unreachable_backend_still_aborts_the_cycle(service, metadata_store, clock):
    service.create(b"x")

    class DownContent(InMemoryContentStore):
        def exists(self, paste_id):
            raise StorageUnavailable()

    sweeper = ExpirySweeper(DownContent(clock=clock.now), metadata_store, clock=clock.now)

    with pytest.raises(StorageUnavailable):
        sweeper.run_once()


def test_stale_temp_files_reclaimed(tmp_path, clock):
    content_store = FileContentStore(str(tmp_path))
    sweeper = ExpirySweeper(
        content_store, InMemoryMetadataStore(), default_ttl_seconds=TTL, clock=clock.now
    )
    now = clock.now()
    stale = tmp_path / ".tmp-crashed"
    fresh = tmp_path / ".tmp-in-flight"
    stale.write_bytes(b"partial")
    fresh.write_bytes(b"partial")
    os.utime(stale, (now - TTL - 5, now - TTL - 5))
    os.utime(fresh, (now - 5, now - 5))

    report = sweeper.run_once()

    assert report.leftovers == 1
    assert report.removed == 0
    assert not stale.exists()
    assert fresh.exists()
