"""
Utility functions shared by store backends.
"""

from typing import Union


def validate_key(key: str) -> str:
    """
    Validate a caller key before it is used as a hash field.

    Keys are stored verbatim (no prefixing or encoding) because each
    namespace is its own hash, so any non-empty string is accepted.

    Args:
        key: Caller identity (e.g., client IP or API token)

    Returns:
        The key unchanged

    Raises:
        ValueError: If key is not a non-empty string

    Examples:
        >>> validate_key("1.2.3.4")
        '1.2.3.4'
    """
    if not isinstance(key, str):
        raise ValueError(f"Key must be a string, got {type(key).__name__}")
    if not key:
        raise ValueError("Key cannot be empty")
    return key


def payload_size(payload: Union[str, bytes]) -> int:
    """
    Size in bytes of a stored payload.

    Examples:
        >>> payload_size("abc")
        3
        >>> payload_size("é")
        2
    """
    if isinstance(payload, str):
        return len(payload.encode("utf-8"))
    return len(payload)
