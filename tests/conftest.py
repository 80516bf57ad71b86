"""
Pytest configuration and fixtures for ratestore tests.
"""

import asyncio
import hashlib
import logging
import os
import uuid

# Add parent directory to path for imports
import sys
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Optional

import pytest
import redis.asyncio as redis
from prometheus_client import CollectorRegistry
from redis.exceptions import NoScriptError

sys.path.insert(0, str(Path(__file__).parent.parent))

from ratestore import InMemoryStore, Ratelimit, RedisStore  # noqa: E402
from ratestore.backends.redis import REFRESH_SCRIPT  # noqa: E402
from ratestore.metrics import StoreMetrics  # noqa: E402

# Configure logging for tests
logging.basicConfig(level=logging.DEBUG)


def _to_bytes(value) -> bytes:
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")


class FakeRedis:
    """
    In-process stand-in for the hash commands of ``redis.asyncio.Redis``.

    Behaves like a client created with ``decode_responses=False``: values
    come back as bytes. Supports failure injection and a hook that runs
    right after HGET so tests can interleave a concurrent writer.
    """

    def __init__(self):
        self.hashes: Dict[bytes, Dict[bytes, bytes]] = {}
        self.scripts: Dict[str, str] = {}
        self.commands: list = []
        self.fail_with: Optional[Exception] = None
        self.after_hget: Optional[Callable[[str, str], None]] = None
        self.ping_delay: float = 0
        self.closed = False

    def _record(self, command: str) -> None:
        self.commands.append(command)
        if self.fail_with is not None:
            raise self.fail_with

    def _hash(self, name) -> Dict[bytes, bytes]:
        return self.hashes.setdefault(_to_bytes(name), {})

    async def ping(self) -> bool:
        self._record("PING")
        if self.ping_delay:
            await asyncio.sleep(self.ping_delay)
        return True

    async def hget(self, name, key) -> Optional[bytes]:
        self._record("HGET")
        value = self._hash(name).get(_to_bytes(key))
        if self.after_hget is not None:
            self.after_hget(name, key)
        return value

    async def hset(self, name, key, value) -> int:
        self._record("HSET")
        fields = self._hash(name)
        created = _to_bytes(key) not in fields
        fields[_to_bytes(key)] = _to_bytes(value)
        return int(created)

    async def hexists(self, name, key) -> bool:
        self._record("HEXISTS")
        return _to_bytes(key) in self._hash(name)

    async def hdel(self, name, *keys) -> int:
        self._record("HDEL")
        fields = self._hash(name)
        return sum(1 for key in keys if fields.pop(_to_bytes(key), None) is not None)

    async def script_load(self, script: str) -> str:
        self._record("SCRIPT LOAD")
        sha = hashlib.sha1(script.encode("utf-8")).hexdigest()
        self.scripts[sha] = script
        return sha

    async def evalsha(self, sha: str, numkeys: int, *keys_and_args) -> int:
        self._record("EVALSHA")
        if sha not in self.scripts:
            raise NoScriptError("NOSCRIPT No matching script.")
        return self._run_script(self.scripts[sha], numkeys, *keys_and_args)

    async def eval(self, script: str, numkeys: int, *keys_and_args) -> int:
        self._record("EVAL")
        return self._run_script(script, numkeys, *keys_and_args)

    def _run_script(self, script: str, numkeys: int, *keys_and_args) -> int:
        assert script == REFRESH_SCRIPT, "FakeRedis only knows the refresh script"
        assert numkeys == 1
        name, field, expected, payload = keys_and_args
        fields = self._hash(name)
        if fields.get(_to_bytes(field)) == _to_bytes(expected):
            fields[_to_bytes(field)] = _to_bytes(payload)
            return 1
        return 0

    def flush_scripts(self) -> None:
        self.scripts.clear()

    async def aclose(self) -> None:
        self.closed = True

    # Direct inspection helpers (not part of the Redis API)

    def raw(self, name: str, key: str) -> Optional[bytes]:
        return self._hash(name).get(_to_bytes(key))

    def set_raw(self, name: str, key: str, value) -> None:
        self._hash(name)[_to_bytes(key)] = _to_bytes(value)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def store(fake_redis) -> RedisStore:
    """RedisStore with reference behavior over the fake client."""
    return RedisStore(fake_redis)


@pytest.fixture
def atomic_store(fake_redis) -> RedisStore:
    return RedisStore(fake_redis, atomic=True)


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def registry() -> CollectorRegistry:
    """Fresh registry so metric names never collide between tests."""
    return CollectorRegistry()


@pytest.fixture
def metrics(registry) -> StoreMetrics:
    return StoreMetrics(namespace="test", registry=registry)


@pytest.fixture
def reset_time() -> datetime:
    return datetime(2030, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_record(reset_time):
    """Factory fixture to build Ratelimit records."""

    def _make_record(limit: int = 10, remaining: int = 5, reset_at: Optional[datetime] = None):
        return Ratelimit(limit=limit, remaining=remaining, reset_at=reset_at or reset_time)

    return _make_record


@pytest.fixture(scope="session")
def redis_url() -> str:
    """Get Redis URL from environment or use default."""
    return os.getenv("REDIS_URL", "redis://localhost:6379")


@pytest.fixture
async def redis_client(redis_url: str) -> AsyncGenerator[redis.Redis, None]:
    """
    Create a real Redis client for integration tests.

    Skips the test when Redis is not reachable.
    """
    client = redis.from_url(redis_url)

    try:
        await client.ping()
    except Exception as e:
        await client.aclose()
        pytest.skip(f"Redis not available: {e}")

    yield client

    await client.aclose()


@pytest.fixture
async def clean_namespace(redis_client) -> AsyncGenerator[str, None]:
    """
    Unique namespace for one test, deleted afterwards.
    """
    namespace = f"test:{uuid.uuid4().hex[:8]}:ratelimit"
    yield namespace
    await redis_client.delete(namespace)
