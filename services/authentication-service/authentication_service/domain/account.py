from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(slots=True, frozen=True)
class AccessToken:
    """Opaque bearer credential issued on a successful login."""

    value: str
    created_at: datetime
    expires_at: datetime

    def is_valid_at(self, now: datetime) -> bool:
        return self.expires_at >= now


@dataclass(slots=True)
class Account:
    """Aggregate root for a registered identity."""

    email: str
    password_credential: str
    created_at: datetime
    tokens: list[AccessToken] = field(default_factory=list)
