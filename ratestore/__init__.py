"""
ratestore - Rate limit state storage for Python
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Pluggable persistence backends that store, retrieve and clear per-key
rate limit state for a rate limiting middleware.

Basic usage:
    >>> from ratestore import RedisStore, StoreConfig, Ratelimit
    >>> store = await RedisStore.from_config(StoreConfig(redis_url="redis://localhost:6379"))
    >>> await store.put("1.2.3.4", Ratelimit.new(limit=100, window_seconds=60))
    >>> record = await store.get("1.2.3.4")
    >>> record.remaining
    100
    >>> await store.reset("1.2.3.4")
    True

Wrapping an existing client:
    >>> import redis.asyncio as redis
    >>> client = redis.from_url("redis://localhost:6379")
    >>> store = RedisStore(client, namespace="api_ratelimit")
"""

from .backends import InMemoryStore, RatelimitProvider, RedisStore
from .exceptions import (
    ConfigurationError,
    CorruptDataError,
    RatelimitStoreError,
    SerializationError,
    StoreConnectionError,
)
from .models import DEFAULT_NAMESPACE, Ratelimit, StoreConfig

__version__ = "0.1.0"

__all__ = [
    "RatelimitProvider",
    "RedisStore",
    "InMemoryStore",
    "Ratelimit",
    "StoreConfig",
    "DEFAULT_NAMESPACE",
    "RatelimitStoreError",
    "ConfigurationError",
    "StoreConnectionError",
    "SerializationError",
    "CorruptDataError",
]
