"""
Exception classes for the ratestore persistence layer.
"""

from typing import Optional


class RatelimitStoreError(Exception):
    """Base exception for all rate limit store errors."""

    pass


class ConfigurationError(RatelimitStoreError):
    """Raised when a store cannot be built from the given configuration."""

    pass


class StoreConnectionError(RatelimitStoreError, ConnectionError):
    """Raised when talking to the backing store fails (network or protocol)."""

    pass


class SerializationError(RatelimitStoreError):
    """Raised when a Ratelimit record cannot be encoded."""

    pass


class CorruptDataError(SerializationError):
    """
    Raised when a stored entry does not decode as a Ratelimit record.

    The offending key is kept on the exception so callers can reset it.
    """

    def __init__(self, message: str, key: Optional[str] = None):
        """
        Initialize CorruptDataError.

        Args:
            message: Description of the decode failure
            key: Key whose stored entry could not be decoded
        """
        self.key = key
        super().__init__(message)
