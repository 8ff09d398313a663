"""
Credential data models.

Defines Credential and PoolStats for the shared API key pool.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_serializer

CredentialStatus = Literal["unknown", "active", "rate_limited", "dead", "checking"]

Provider = Literal["google", "openai", "openrouter"]


class Credential(BaseModel):
    """An API key and its health, as tracked by the pool."""

    key: str = Field(description="Opaque secret; never logged unmasked")
    status: CredentialStatus = "unknown"
    usage_count: int = Field(default=0, ge=0)
    error_count: int = Field(default=0, ge=0, description="Consecutive errors since last success")
    last_error: Optional[str] = None
    last_used: Optional[datetime] = None
    rate_limit_reset: Optional[datetime] = Field(
        default=None,
        description="When a rate_limited credential becomes usable again"
    )

    @property
    def is_usable(self) -> bool:
        return self.status in ("active", "unknown")

    @field_serializer("last_used", "rate_limit_reset")
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        """Serialize datetime to ISO format string."""
        return value.isoformat() if value else None


class PoolStats(BaseModel):
    """Credential counts per status."""

    total: int = 0
    active: int = 0
    unknown: int = 0
    rate_limited: int = 0
    dead: int = 0
    checking: int = 0

    @property
    def available(self) -> int:
        return self.active + self.unknown
