"""
Pydantic models for rate limit records and store configuration.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_core import PydanticSerializationError
from redis.asyncio import Redis

from .exceptions import ConfigurationError, CorruptDataError, SerializationError

DEFAULT_NAMESPACE = "chi_ratelimit"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Ratelimit(BaseModel):
    """
    Quota and window state for a single caller.

    Records are plain mutable models: the store hands out independent
    copies, so callers may change fields freely before calling ``put``.
    """

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    limit: int = Field(ge=0, description="Requests allowed in the current window")
    remaining: int = Field(ge=0, description="Requests still available in the window")
    reset_at: datetime = Field(description="When the current window resets (UTC)")

    @field_validator("reset_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Normalize naive and offset timestamps to UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        try:
            return v.astimezone(timezone.utc)
        except OverflowError as e:
            raise ValueError(f"reset_at is outside the representable UTC range: {e}") from e

    @classmethod
    def new(
        cls, limit: int, window_seconds: float, now: Optional[datetime] = None
    ) -> "Ratelimit":
        """
        Create a record with a full quota.

        Args:
            limit: Requests allowed in the window
            window_seconds: Window length in seconds
            now: Start of the window (defaults to current UTC time)

        Returns:
            A new Ratelimit with ``remaining == limit``

        Examples:
            >>> rl = Ratelimit.new(limit=100, window_seconds=60)
            >>> rl.remaining
            100
        """
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        start = now or _utcnow()
        return cls(
            limit=limit,
            remaining=limit,
            reset_at=start + timedelta(seconds=window_seconds),
        )

    @property
    def exceeded(self) -> bool:
        """True when no requests remain in the window."""
        return self.remaining <= 0

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Whether the window has already reset at ``now``."""
        now = now or _utcnow()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now >= self.reset_at

    def clone(self) -> "Ratelimit":
        """Return a deep, independent copy of this record."""
        return self.model_copy(deep=True)

    def to_json(self) -> str:
        """
        Encode the record as JSON text with field names preserved.

        Raises:
            SerializationError: If the record cannot be encoded
        """
        try:
            return self.model_dump_json()
        except PydanticSerializationError as e:
            raise SerializationError(f"Failed to encode rate limit record: {e}") from e

    @classmethod
    def from_json(cls, data: Union[str, bytes], key: Optional[str] = None) -> "Ratelimit":
        """
        Decode a record previously written by ``to_json``.

        Args:
            data: JSON text or UTF-8 bytes
            key: Key the payload was read from, for error reporting

        Raises:
            CorruptDataError: If the payload is not a valid record
        """
        if isinstance(data, bytes):
            try:
                data = data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise CorruptDataError(f"Entry for {key!r} is not UTF-8 text: {e}", key=key) from e

        try:
            return cls.model_validate_json(data)
        except ValidationError as e:
            raise CorruptDataError(
                f"Entry for {key!r} is not a valid rate limit record: {e.error_count()} error(s)",
                key=key,
            ) from e


class StoreConfig(BaseModel):
    """Configuration model for rate limit stores."""

    model_config = ConfigDict(arbitrary_types_allowed=True, validate_assignment=True)

    namespace: str = Field(
        default=DEFAULT_NAMESPACE,
        description="Name of the Redis hash that holds every entry of this store",
    )
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL (redis://[user:password@]host[:port][/db])",
    )
    username: Optional[str] = Field(default=None, description="Redis ACL username")
    password: Optional[str] = Field(default=None, description="Redis password")
    health_check_timeout: float = Field(
        default=30.0,
        description="Seconds to wait for the PING issued while building the store",
    )
    connection_timeout: float = Field(
        default=5.0,
        description="Redis connection timeout in seconds",
    )
    socket_timeout: float = Field(
        default=5.0,
        description="Redis socket timeout in seconds",
    )
    max_connections: int = Field(
        default=50,
        description="Maximum number of Redis connections in the pool",
    )
    refresh_on_read: bool = Field(
        default=True,
        description="Re-persist a copy of every record returned by get()",
    )
    atomic: bool = Field(
        default=False,
        description="Use compare-and-swap refresh and single-command reset",
    )
    client: Optional[Redis] = Field(
        default=None,
        exclude=True,
        description="Pre-built client; when set no client is created from redis_url",
    )

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        """Reject blank namespaces."""
        if not v or not v.strip():
            raise ValueError("namespace cannot be empty")
        return v

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: str) -> str:
        """Basic validation of Redis URL format."""
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("Redis URL must start with redis://, rediss://, or unix://")
        return v

    @field_validator("health_check_timeout", "connection_timeout", "socket_timeout")
    @classmethod
    def validate_positive_timeout(cls, v: float) -> float:
        """Validate that timeouts are positive."""
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v

    @field_validator("max_connections")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    def __init__(self, **data: Any):
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid store configuration: {e}") from e

    def __setattr__(self, name: str, value: Any) -> None:
        try:
            super().__setattr__(name, value)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid value for store option {name!r}: {e}") from e

    def with_options(self, **overrides: Any) -> "StoreConfig":
        """
        Return a validated copy with ``overrides`` applied.

        Calls compose; the value applied last for a field wins.

        Raises:
            ConfigurationError: If an override is unknown or invalid

        Examples:
            >>> config = StoreConfig().with_options(namespace="api").with_options(atomic=True)
            >>> (config.namespace, config.atomic)
            ('api', True)
        """
        unknown = set(overrides) - set(type(self).model_fields)
        if unknown:
            raise ConfigurationError(f"Unknown store option(s): {', '.join(sorted(unknown))}")

        values = {name: getattr(self, name) for name in type(self).model_fields}
        values.update(overrides)
        return type(self)(**values)
