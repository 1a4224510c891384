"""Utilities for issuing opaque access tokens."""

from __future__ import annotations

import hashlib
import secrets
import time
import uuid
from datetime import datetime, timedelta, timezone

from ..domain.account import AccessToken

ACCESS_TOKEN_TTL = timedelta(minutes=20)


def issue_access_token(email: str, now: datetime | None = None) -> AccessToken:
    """Create a fresh opaque access token for the given account.

    Parameters
    ----------
    email:
        Identifier of the account the token is issued to; mixed into the digest
        input so concurrent logins of different accounts never share material.
    now:
        Issue instant. Defaults to the current UTC time.

    Returns
    -------
    AccessToken
        Token whose value is a 128-character SHA-512 hex digest and whose
        expiry is exactly :data:`ACCESS_TOKEN_TTL` after its creation.
    """

    issued_at = (now or datetime.now(timezone.utc)).replace(microsecond=0)
    material = f"{time.time_ns()}/{email}/{uuid.uuid4()}/{secrets.token_hex(16)}"
    value = hashlib.sha512(material.encode("utf-8")).hexdigest()
    return AccessToken(
        value=value,
        created_at=issued_at,
        expires_at=issued_at + ACCESS_TOKEN_TTL,
    )


def to_epoch_seconds(instant: datetime) -> int:
    """Return the integer epoch-seconds representation used on the wire."""
    return int(instant.timestamp())


def from_epoch_seconds(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
