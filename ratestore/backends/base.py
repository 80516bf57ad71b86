"""
Base class for rate limit state stores.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..models import Ratelimit


class RatelimitProvider(ABC):
    """
    Abstract base class for rate limit stores.

    A provider persists one serialized Ratelimit per caller key inside a
    single namespace. Absent entries are a normal result (``None`` from
    ``get``, ``False`` from ``reset``); every other failure is raised.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable identifier used in logs and diagnostics."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[Ratelimit]:
        """
        Look up the record stored for a key.

        Args:
            key: Caller identity

        Returns:
            An independent Ratelimit instance, or None if nothing is stored

        Raises:
            CorruptDataError: If the stored entry does not decode
        """
        pass

    @abstractmethod
    async def put(self, key: str, value: Ratelimit) -> None:
        """
        Store a record for a key, overwriting any previous one.

        Args:
            key: Caller identity
            value: Record to persist

        Raises:
            SerializationError: If the record cannot be encoded
        """
        pass

    @abstractmethod
    async def reset(self, key: str) -> bool:
        """
        Remove the record stored for a key.

        Args:
            key: Caller identity

        Returns:
            True if an entry existed and was removed, False otherwise
        """
        pass
