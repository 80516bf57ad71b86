"""
Integration tests against a real Redis server.

Set REDIS_URL to point at a test instance; tests are skipped when Redis
is not reachable.
"""

import asyncio

import pytest

from ratestore import ConfigurationError, CorruptDataError, Ratelimit, RedisStore, StoreConfig


@pytest.mark.asyncio
class TestRedisIntegration:
    """End-to-end behaviour of RedisStore on a live server."""

    async def test_scenario(self, redis_client, clean_namespace, reset_time):
        store = RedisStore(redis_client, namespace=clean_namespace)
        record = Ratelimit(limit=10, remaining=5, reset_at=reset_time)

        await store.put("1.2.3.4", record)
        assert await store.get("1.2.3.4") == record

        assert await store.reset("1.2.3.4") is True
        assert await store.get("1.2.3.4") is None
        assert await store.reset("1.2.3.4") is False

    async def test_entries_stored_as_hash_fields(self, redis_client, clean_namespace, make_record):
        store = RedisStore(redis_client, namespace=clean_namespace)

        await store.put("a", make_record())
        await store.put("b", make_record(remaining=1))

        assert await redis_client.type(clean_namespace) == b"hash"
        assert sorted(await redis_client.hkeys(clean_namespace)) == [b"a", b"b"]

    async def test_refresh_rewrites_field(self, redis_client, clean_namespace, make_record):
        store = RedisStore(redis_client, namespace=clean_namespace)
        await redis_client.hset(
            clean_namespace,
            "k",
            '{"limit": 10, "remaining": 5, "reset_at": "2030-01-01T12:00:00Z", "extra": 1}',
        )

        await store.get("k")

        assert await redis_client.hget(clean_namespace, "k") == make_record().to_json().encode()

    async def test_corrupt_field(self, redis_client, clean_namespace):
        store = RedisStore(redis_client, namespace=clean_namespace)
        await redis_client.hset(clean_namespace, "k", "garbage")

        with pytest.raises(CorruptDataError):
            await store.get("k")

    async def test_atomic_mode(self, redis_client, clean_namespace, make_record):
        store = RedisStore(redis_client, namespace=clean_namespace, atomic=True)
        await store.put("k", make_record())

        assert await store.get("k") == make_record()

        await redis_client.script_flush()
        assert await store.get("k") == make_record()

        assert await store.reset("k") is True
        assert await store.reset("k") is False

    async def test_concurrent_puts_leave_one_value(self, redis_client, clean_namespace, make_record):
        store = RedisStore(redis_client, namespace=clean_namespace)

        await asyncio.gather(*(store.put("k", make_record(remaining=i)) for i in range(50)))

        assert (await store.get("k")).remaining in range(50)
        assert await redis_client.hlen(clean_namespace) == 1

    async def test_from_config(self, redis_client, redis_url, clean_namespace, make_record):
        config = StoreConfig(redis_url=redis_url, namespace=clean_namespace)

        async with await RedisStore.from_config(config) as store:
            assert await store.health_check() is True
            await store.put("k", make_record())
            assert await store.get("k") == make_record()


@pytest.mark.asyncio
async def test_from_config_unreachable_server():
    """A server that never answers yields ConfigurationError, not a dead store."""
    config = StoreConfig(
        redis_url="redis://127.0.0.1:1",
        connection_timeout=0.5,
        health_check_timeout=2.0,
    )

    with pytest.raises(ConfigurationError):
        await RedisStore.from_config(config)
