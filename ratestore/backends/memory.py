"""
In-memory rate limit store.

Notes:
- Per-process only: each worker keeps its own entries.
- Entries are kept in their serialized form, so reads and writes go through
  the same encoding as the Redis store and corrupt payloads behave the same.
"""

import asyncio
import logging
from typing import Dict, Optional

from ..exceptions import ConfigurationError, CorruptDataError, SerializationError
from ..metrics import StoreMetrics, track
from ..models import DEFAULT_NAMESPACE, Ratelimit
from ..utils import validate_key
from .base import RatelimitProvider

logger = logging.getLogger(__name__)


class InMemoryStore(RatelimitProvider):
    """
    Rate limit store keeping entries in a process-local dict.

    All operations hold an asyncio lock, so the refresh performed by
    ``get`` and the check-then-delete of ``reset`` cannot interleave with
    other calls on the same store.
    """

    def __init__(
        self,
        namespace: str = DEFAULT_NAMESPACE,
        refresh_on_read: bool = True,
        metrics: Optional[StoreMetrics] = None,
    ):
        if not namespace or not namespace.strip():
            raise ConfigurationError("Namespace cannot be empty")

        self._namespace = namespace
        self._refresh_on_read = refresh_on_read
        self._metrics = metrics
        self._entries: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "memory provider"

    @property
    def namespace(self) -> str:
        return self._namespace

    async def get(self, key: str) -> Optional[Ratelimit]:
        validate_key(key)

        with track(self._metrics, "get"):
            async with self._lock:
                raw = self._entries.get(key)
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
                self._entries[key] = copied.to_json()
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
            async with self._lock:
                self._entries[key] = payload

    async def reset(self, key: str) -> bool:
        validate_key(key)

        with track(self._metrics, "reset"):
            async with self._lock:
                return self._entries.pop(key, None) is not None

    def raw_entries(self) -> Dict[str, str]:
        """Snapshot of the serialized entries, keyed by caller key."""
        return dict(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
