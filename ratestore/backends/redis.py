"""
Redis backend implementation for rate limit state.
"""

import asyncio
import logging
from typing import Any, Optional, Union

import redis.asyncio as redis
from redis.exceptions import NoScriptError, RedisError

from ..exceptions import (
    ConfigurationError,
    CorruptDataError,
    SerializationError,
    StoreConnectionError,
)
from ..metrics import StoreMetrics, track
from ..models import DEFAULT_NAMESPACE, Ratelimit, StoreConfig
from ..utils import payload_size, validate_key
from .base import RatelimitProvider

logger = logging.getLogger(__name__)

# Rewrites the field only if it still holds the payload that was read.
# Returns 1 when the refresh was written, 0 when another writer got there first
# (including a reset that removed the field).
REFRESH_SCRIPT = """
local current = redis.call('HGET', KEYS[1], ARGV[1])
if current == ARGV[2] then
    redis.call('HSET', KEYS[1], ARGV[1], ARGV[3])
    return 1
end
return 0
"""


class RedisStore(RatelimitProvider):
    """
    Rate limit store backed by a single Redis hash.

    Every entry lives as a field of the hash named after the namespace,
    holding the JSON encoding of a Ratelimit record.

    Reads perform a defensive refresh: the decoded record is cloned and the
    clone is written back before it is returned. This doubles the cost of
    each hit (HGET + HSET) in exchange for handing callers an object they
    own and re-normalizing old payloads to the current schema. Disable it
    with ``refresh_on_read=False`` for read-heavy deployments.

    With ``atomic=False`` (the default) the refresh and ``reset`` are
    check-then-act sequences: a ``reset`` that lands between the HGET and
    the HSET of a refresh is undone. ``atomic=True`` closes both races with
    a compare-and-swap script and a single HDEL.

    Examples:
        >>> store = await RedisStore.from_config(StoreConfig(redis_url="redis://localhost:6379"))
        >>> await store.put("1.2.3.4", Ratelimit.new(limit=5, window_seconds=60))
        >>> record = await store.get("1.2.3.4")
        >>> await store.reset("1.2.3.4")
        True
    """

    def __init__(
        self,
        client: Optional[redis.Redis],
        namespace: str = DEFAULT_NAMESPACE,
        refresh_on_read: bool = True,
        atomic: bool = False,
        metrics: Optional[StoreMetrics] = None,
    ):
        """
        Wrap an existing Redis client.

        Args:
            client: Connected ``redis.asyncio`` client; the store does not own it
            namespace: Name of the hash holding all entries
            refresh_on_read: Re-persist a copy of every record returned by get()
            atomic: Use compare-and-swap refresh and single-command reset
            metrics: Optional Prometheus collector

        Raises:
            ConfigurationError: If no client is given or namespace is empty
        """
        if client is None:
            raise ConfigurationError("Missing Redis client to use")
        if not namespace or not namespace.strip():
            raise ConfigurationError("Namespace cannot be empty")

        self._client = client
        self._namespace = namespace
        self._refresh_on_read = refresh_on_read
        self._atomic = atomic
        self._metrics = metrics
        self._owns_client = False
        self._refresh_sha: Optional[str] = None

        logger.debug(
            f"Initialized RedisStore namespace={namespace} "
            f"refresh_on_read={refresh_on_read} atomic={atomic}"
        )

    @classmethod
    async def from_config(
        cls, config: StoreConfig, metrics: Optional[StoreMetrics] = None
    ) -> "RedisStore":
        """
        Build a store from configuration.

        If ``config.client`` is set it is used as-is. Otherwise a client is
        created from ``config.redis_url`` and must answer a PING within
        ``config.health_check_timeout`` seconds; the store then owns that
        client and closes it in ``close()``.

        Args:
            config: Store configuration
            metrics: Optional Prometheus collector

        Returns:
            A ready-to-use RedisStore

        Raises:
            ConfigurationError: If the URL cannot be parsed or the health check
                fails or times out
        """
        if config.client is not None:
            return cls(
                config.client,
                namespace=config.namespace,
                refresh_on_read=config.refresh_on_read,
                atomic=config.atomic,
                metrics=metrics,
            )

        try:
            client = redis.from_url(
                config.redis_url,
                username=config.username,
                password=config.password,
                encoding="utf-8",
                decode_responses=False,
                socket_connect_timeout=config.connection_timeout,
                socket_timeout=config.socket_timeout,
                max_connections=config.max_connections,
            )
        except ValueError as e:
            logger.warning(f"Invalid Redis URL {config.redis_url}: {e}")
            raise ConfigurationError(f"Invalid Redis URL: {e}") from e

        try:
            await asyncio.wait_for(client.ping(), timeout=config.health_check_timeout)
        except asyncio.TimeoutError as e:
            await client.aclose()
            logger.warning(
                f"Redis at {config.redis_url} did not answer within "
                f"{config.health_check_timeout}s"
            )
            raise ConfigurationError(
                f"Redis health check timed out after {config.health_check_timeout}s"
            ) from e
        except (RedisError, OSError) as e:
            await client.aclose()
            logger.warning(f"Redis health check failed for {config.redis_url}: {e}")
            raise ConfigurationError(f"Failed to connect to Redis: {e}") from e

        store = cls(
            client,
            namespace=config.namespace,
            refresh_on_read=config.refresh_on_read,
            atomic=config.atomic,
            metrics=metrics,
        )
        store._owns_client = True
        logger.info(f"Connected to Redis at {config.redis_url}")
        return store

    @property
    def name(self) -> str:
        return "redis provider"

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def refresh_on_read(self) -> bool:
        return self._refresh_on_read

    @property
    def atomic(self) -> bool:
        return self._atomic

    async def get(self, key: str) -> Optional[Ratelimit]:
        validate_key(key)

        with track(self._metrics, "get"):
            try:
                raw = await self._client.hget(self._namespace, key)
            except RedisError as e:
                logger.error(f"Failed to read rate limit for key {key}: {e}")
                raise StoreConnectionError(f"Failed to read rate limit: {e}") from e

            if raw is None:
                return None

            try:
                record = Ratelimit.from_json(raw, key=key)
            except CorruptDataError:
                logger.warning(f"Corrupt rate limit entry in {self._namespace} for key {key}")
                if self._metrics:
                    self._metrics.record_corrupt_entry()
                raise

            if not self._refresh_on_read:
                if self._metrics:
                    self._metrics.record_refresh("skipped")
                return record

            copied = record.clone()
            if self._atomic:
                await self._refresh_atomically(key, raw, copied)
            else:
                await self.put(key, copied)
                if self._metrics:
                    self._metrics.record_refresh("written")

            return copied

    async def put(self, key: str, value: Ratelimit) -> None:
        validate_key(key)
        if not isinstance(value, Ratelimit):
            raise SerializationError(
                f"Expected a Ratelimit record, got {type(value).__name__}"
            )

        with track(self._metrics, "put"):
            payload = value.to_json()
            try:
                await self._client.hset(self._namespace, key, payload)
            except RedisError as e:
                logger.error(f"Failed to store rate limit for key {key}: {e}")
                raise StoreConnectionError(f"Failed to store rate limit: {e}") from e

            logger.debug(f"Stored {payload_size(payload)} bytes for key {key} in {self._namespace}")

    async def reset(self, key: str) -> bool:
        validate_key(key)

        with track(self._metrics, "reset"):
            try:
                if self._atomic:
                    removed = await self._client.hdel(self._namespace, key)
                    return bool(removed)

                exists = await self._client.hexists(self._namespace, key)
                if not exists:
                    return False

                # A concurrent reset may already have removed the field; HDEL is then a no-op.
                await self._client.hdel(self._namespace, key)
                return True
            except RedisError as e:
                logger.error(f"Failed to reset key {key}: {e}")
                raise StoreConnectionError(f"Failed to reset rate limit: {e}") from e

    async def _refresh_atomically(
        self, key: str, expected: Union[str, bytes], value: Ratelimit
    ) -> None:
        """Write ``value`` back only if the field still holds ``expected``."""
        payload = value.to_json()
        try:
            written = await self._run_refresh_script(key, expected, payload)
        except RedisError as e:
            logger.error(f"Failed to refresh rate limit for key {key}: {e}")
            raise StoreConnectionError(f"Failed to refresh rate limit: {e}") from e

        if int(written):
            if self._metrics:
                self._metrics.record_refresh("written")
        else:
            logger.debug(f"Skipped refresh for key {key}: entry changed since it was read")
            if self._metrics:
                self._metrics.record_refresh("conflict")

    async def _run_refresh_script(
        self, key: str, expected: Union[str, bytes], payload: str
    ) -> Any:
        """Execute the refresh script, preferring EVALSHA."""
        if self._refresh_sha is None:
            self._refresh_sha = await self._client.script_load(REFRESH_SCRIPT)
            logger.debug(f"Registered refresh script with SHA: {self._refresh_sha}")

        try:
            return await self._client.evalsha(
                self._refresh_sha, 1, self._namespace, key, expected, payload
            )
        except NoScriptError:
            # Script cache was flushed on the server
            logger.debug("Refresh script not in cache, using EVAL")
            self._refresh_sha = None
            return await self._client.eval(
                REFRESH_SCRIPT, 1, self._namespace, key, expected, payload
            )

    async def health_check(self) -> bool:
        """
        Check if the Redis connection is healthy.

        Returns:
            True if Redis answers PING, False otherwise
        """
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as e:
            logger.warning(f"Redis health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close the Redis client if this store created it."""
        if self._owns_client:
            await self._client.aclose()
            self._owns_client = False
            logger.info("Closed Redis connection")

    async def __aenter__(self) -> "RedisStore":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return (
            f"RedisStore(namespace={self._namespace!r}, "
            f"refresh_on_read={self._refresh_on_read}, atomic={self._atomic})"
        )
