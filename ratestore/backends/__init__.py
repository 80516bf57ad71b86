"""
Backend storage implementations for rate limit state.
"""

from .base import RatelimitProvider
from .memory import InMemoryStore
from .redis import RedisStore

__all__ = ["RatelimitProvider", "InMemoryStore", "RedisStore"]
