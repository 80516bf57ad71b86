"""
Performance benchmarks for ratestore.

Measures read/write latency and throughput of RedisStore, and the cost of
refresh-on-read compared with plain reads and with atomic refresh.
"""

import asyncio
import os
import statistics
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

# Add parent directory to path
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ratestore import Ratelimit, RedisStore, StoreConfig


class PerformanceBenchmark:
    """Performance testing for rate limit stores."""

    def __init__(self, redis_url: str = "redis://localhost:6379"):
        self.redis_url = redis_url
        self.namespace = f"bench:{uuid.uuid4().hex[:8]}"
        self.results: Dict[str, Any] = {}
        self.record = Ratelimit(
            limit=1000,
            remaining=999,
            reset_at=datetime.now(timezone.utc) + timedelta(minutes=1),
        )

    async def setup(self):
        """Setup benchmark environment."""
        config = StoreConfig(redis_url=self.redis_url, namespace=self.namespace)
        self.stores = {
            "refresh": await RedisStore.from_config(config),
            "no-refresh": await RedisStore.from_config(config.with_options(refresh_on_read=False)),
            "atomic": await RedisStore.from_config(config.with_options(atomic=True)),
        }
        print("✅ Connected to Redis")
        print("🔬 Starting performance benchmarks...\n")

    async def teardown(self):
        """Cleanup after benchmarks."""
        store = self.stores["refresh"]
        await store._client.delete(self.namespace)
        for store in self.stores.values():
            await store.close()
        print("\n✅ Benchmarks completed")

    async def benchmark_write_throughput(self, requests: int = 10000):
        """Test put() throughput."""
        print(f"📊 Write Throughput Test ({requests} puts)")
        print("-" * 50)

        store = self.stores["refresh"]

        start = time.perf_counter()
        for i in range(requests):
            await store.put(f"write:seq:{i}", self.record)
        seq_time = time.perf_counter() - start

        start = time.perf_counter()
        await asyncio.gather(*(store.put(f"write:con:{i}", self.record) for i in range(requests)))
        con_time = time.perf_counter() - start

        print(f"Sequential: {requests / seq_time:.1f} ops/s ({seq_time:.2f}s total)")
        print(f"Concurrent: {requests / con_time:.1f} ops/s ({con_time:.2f}s total)\n")

        self.results["write_throughput"] = {
            "sequential": requests / seq_time,
            "concurrent": requests / con_time,
        }

    async def benchmark_read_modes(self, samples: int = 2000):
        """Compare get() latency with and without refresh-on-read."""
        print(f"⏱️  Read Latency by Mode ({samples} samples each)")
        print("-" * 50)

        await self.stores["refresh"].put("read:key", self.record)

        for mode, store in self.stores.items():
            latencies: List[float] = []
            for _ in range(samples):
                start = time.perf_counter()
                await store.get("read:key")
                latencies.append((time.perf_counter() - start) * 1000)

            latencies.sort()
            stats = {
                "median": statistics.median(latencies),
                "p95": latencies[int(len(latencies) * 0.95)],
                "p99": latencies[int(len(latencies) * 0.99)],
            }
            print(
                f"{mode:10} median {stats['median']:.2f}ms  "
                f"p95 {stats['p95']:.2f}ms  p99 {stats['p99']:.2f}ms"
            )
            self.results[f"read_{mode}"] = stats

        print()

    async def benchmark_concurrent_clients(self):
        """Test get/put cycles with a varying number of concurrent clients."""
        print("👥 Concurrent Clients Test")
        print("-" * 50)

        store = self.stores["refresh"]
        client_counts = [1, 10, 50, 100, 500]
        cycles_per_client = 50
        results = []

        for num_clients in client_counts:
            async def client_work(client_id: int):
                """Simulate middleware reading then updating state."""
                key = f"client:{client_id}"
                for _ in range(cycles_per_client):
                    record = await store.get(key) or self.record.clone()
                    record.remaining = max(0, record.remaining - 1)
                    await store.put(key, record)

            start = time.perf_counter()
            await asyncio.gather(*(client_work(i) for i in range(num_clients)))
            elapsed = time.perf_counter() - start

            throughput = num_clients * cycles_per_client / elapsed
            print(f"{num_clients:4} clients: {throughput:8.1f} cycles/s ({elapsed:.2f}s)")
            results.append({"clients": num_clients, "throughput": throughput, "time": elapsed})

        self.results["concurrent_clients"] = results
        print()

    async def run_all(self):
        await self.setup()
        try:
            await self.benchmark_write_throughput()
            await self.benchmark_read_modes()
            await self.benchmark_concurrent_clients()
        finally:
            await self.teardown()


async def main():
    redis_url = os.getenv("REDIS_URL", "redis://localhost:6379")
    benchmark = PerformanceBenchmark(redis_url=redis_url)
    await benchmark.run_all()


if __name__ == "__main__":
    asyncio.run(main())
