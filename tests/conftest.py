"""Pytest configuration shared by all tests."""

import fnmatch
import os
import sys

root = os.path.dirname(os.path.abspath(__file__))
proj = os.path.abspath(os.path.join(root, ".."))
if proj not in sys.path:
    sys.path.insert(0, proj)

# Settings built from the environment stay off disk and without a sweeper thread
os.environ.setdefault("CONTENT_BACKEND", "memory")
os.environ.setdefault("METADATA_BACKEND", "memory")
os.environ.setdefault("SWEEPER_ENABLED", "false")

import pytest  # noqa: E402

from pastebin.storage.memory import InMemoryContentStore, InMemoryMetadataStore  # noqa: E402


class FakeClock:
    def __init__(self, initial: float = 1_700_000_000.0):
        self._value = initial

    def now(self) -> float:
        return self._value

    def advance(self, seconds: float) -> None:
        self._value += seconds


class FakeRedisClient:
    """Binary-mode Redis stand-in covering the commands the stores use."""

    def __init__(self):
        self.db = {}
        self.expiry = {}
        self.down = False

    def _check(self):
        if self.down:
            from redis.exceptions import ConnectionError
            raise ConnectionError("connection refused")

    def ping(self):
        self._check()
        return True

    def set(self, key, value, nx=False, ex=None):
        self._check()
        if nx and key in self.db:
            return None
        self.db[key] = value.encode() if isinstance(value, str) else value
        if ex is not None:
            self.expiry[key] = ex
        return True

    def get(self, key):
        self._check()
        return self.db.get(key)

    def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            if self.db.pop(key, None) is not None:
                removed += 1
            self.expiry.pop(key, None)
        return removed

    def exists(self, *keys):
        self._check()
        return sum(1 for key in keys if key in self.db)

    def scan_iter(self, match=None, count=None):
        self._check()
        for key in list(self.db):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key.encode()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def content_store(clock):
    return InMemoryContentStore(clock=clock.now)


@pytest.fixture
def metadata_store():
    return InMemoryMetadataStore()


@pytest.fixture
def fake_redis():
    return FakeRedisClient()
