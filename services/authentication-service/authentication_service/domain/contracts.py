"""Domain-level contracts shared by the service and its storage backends."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Generic, Protocol, TypeVar

from .account import AccessToken, Account

T = TypeVar("T")


class StoreErrorKind(str, Enum):
    """Failure classes an account store may report."""

    DUPLICATE_KEY = "duplicate_key"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"


@dataclass(slots=True, frozen=True)
class StoreResult(Generic[T]):
    """Outcome of a store operation: either a value or an error kind."""

    value: T | None = None
    error: StoreErrorKind | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> "StoreResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: StoreErrorKind, message: str = "") -> "StoreResult[T]":
        return cls(error=error, message=message)

    @classmethod
    def not_found(cls) -> "StoreResult[T]":
        return cls(error=StoreErrorKind.NOT_FOUND)


class AccountStore(Protocol):
    """Persistence capabilities required by :class:`AuthenticationService`.

    Implementations must enforce ``email`` uniqueness atomically at the
    storage layer and must never lose a concurrent :meth:`append_token`.
    """

    def create_account(self, email: str, password_credential: str) -> StoreResult[Account]:
        ...

    def find_by_credentials(self, email: str, password_credential: str) -> StoreResult[Account]:
        ...

    def append_token(self, email: str, token: AccessToken) -> StoreResult[AccessToken]:
        ...

    def find_by_valid_token(self, token_value: str, now: datetime) -> StoreResult[Account]:
        ...

    def delete_account(self, email: str) -> StoreResult[None]:
        ...

    def close(self) -> None:
        ...
