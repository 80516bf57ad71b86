"""
Demonstration of the ratestore contract.

Shows how a rate limiting middleware would use a store: read state with
get(), spend quota and write it back with put(), clear it with reset(),
and pick its own policy when the store is unavailable.

Run with:
    REDIS_URL=redis://localhost:6379 python examples/store_demo.py
"""

import asyncio
import os

# Add parent directory to path
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ratestore import (
    ConfigurationError,
    InMemoryStore,
    Ratelimit,
    RatelimitProvider,
    RatelimitStoreError,
    RedisStore,
    StoreConfig,
)


async def admit(store: RatelimitProvider, key: str, limit: int = 5, fail_open: bool = True) -> bool:
    """Minimal fixed-window consumer of a store."""
    try:
        record = await store.get(key)
        if record is None or record.is_expired():
            record = Ratelimit.new(limit=limit, window_seconds=60)

        if record.exceeded:
            return False

        record.remaining -= 1
        await store.put(key, record)
        return True
    except RatelimitStoreError as e:
        print(f"   ⚠️  store unavailable ({e}); {'allowing' if fail_open else 'denying'}")
        return fail_open


async def run(store: RatelimitProvider):
    print(f"\nUsing {store.name}")
    print("=" * 60)

    key = "1.2.3.4"
    for i in range(7):
        allowed = await admit(store, key)
        print(f"Request {i + 1}: {'✅ Allowed' if allowed else '❌ Denied'}")

    record = await store.get(key)
    print(f"Stored state: remaining={record.remaining} reset_at={record.reset_at.isoformat()}")

    print(f"reset() -> {await store.reset(key)}")
    print(f"reset() again -> {await store.reset(key)}")
    print(f"get() after reset -> {await store.get(key)}")


async def main():
    await run(InMemoryStore())

    redis_url = os.getenv("REDIS_URL", "redis://localhost:6379")
    config = StoreConfig(redis_url=redis_url, namespace="demo_ratelimit", health_check_timeout=5)
    try:
        store = await RedisStore.from_config(config)
    except ConfigurationError as e:
        print(f"\nSkipping Redis demo: {e}")
        return

    async with store:
        await run(store)


if __name__ == "__main__":
    asyncio.run(main())
