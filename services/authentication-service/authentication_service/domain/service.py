"""Authentication service orchestrating account storage and token issuance."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .account import AccessToken, Account
from .contracts import AccountStore, StoreErrorKind
from ..security.tokens import issue_access_token, to_epoch_seconds

logger = logging.getLogger(__name__)

LOGIN_FAILED_MESSAGE = "Login failed! Please check your email or password."
TOKEN_REJECTED_MESSAGE = "Access token expired or not found! Please re-login."


class ResultCode(str, Enum):
    SUCCESS = "SUCCESS"
    FORBIDDEN = "FORBIDDEN"
    DUPLICATE = "DUPLICATE"
    UNKNOWN = "UNKNOWN"


@dataclass(slots=True, frozen=True)
class AuthResult:
    """Outcome of a service call; ``content`` holds a JSON payload or ``""``."""

    code: ResultCode
    message: str = ""
    content: str = ""


def serialize_token(token: AccessToken) -> str:
    return json.dumps(
        {
            "value": token.value,
            "created_at": to_epoch_seconds(token.created_at),
            "expires_at": to_epoch_seconds(token.expires_at),
        }
    )


def project_account(account: Account) -> dict[str, Any]:
    """Return the non-secret view of an account."""
    return {
        "email": account.email,
        "created_at": to_epoch_seconds(account.created_at),
    }


class AuthenticationService:
    """Register, login, token authentication and dropout workflows.

    The service keeps no state besides its store handle; every call runs to
    completion on its own and coordination between calls is left to the store.
    """

    def __init__(self, store: AccountStore) -> None:
        self._store = store

    def register(self, email: str, password_credential: str) -> AuthResult:
        """Create an account, reporting a conflicting email as ``DUPLICATE``."""
        result = self._store.create_account(email, password_credential)
        if result.ok:
            logger.info("account registered")
            return AuthResult(code=ResultCode.SUCCESS)
        if result.error is StoreErrorKind.DUPLICATE_KEY:
            logger.warning("registration rejected for existing email")
            return AuthResult(
                code=ResultCode.DUPLICATE,
                message=f"User Email {email} already exists!",
            )
        return self._unknown("register", result.message)

    def login(self, email: str, password_credential: str) -> AuthResult:
        """Verify credentials and issue a new access token.

        Wrong email and wrong credential produce the same ``FORBIDDEN`` result.
        """
        found = self._store.find_by_credentials(email, password_credential)
        if found.error is StoreErrorKind.NOT_FOUND:
            logger.warning("login rejected")
            return AuthResult(code=ResultCode.FORBIDDEN, message=LOGIN_FAILED_MESSAGE)
        if not found.ok:
            return self._unknown("login", found.message)

        token = issue_access_token(found.value.email)
        saved = self._store.append_token(found.value.email, token)
        if saved.error is StoreErrorKind.NOT_FOUND:
            # account dropped out between lookup and append
            logger.warning("login raced with account removal")
            return AuthResult(code=ResultCode.FORBIDDEN, message=LOGIN_FAILED_MESSAGE)
        if not saved.ok:
            return self._unknown("login", saved.message)

        logger.info("access token issued")
        return AuthResult(code=ResultCode.SUCCESS, content=serialize_token(saved.value))

    def authenticate_token(self, token_value: str, now: datetime | None = None) -> AuthResult:
        """Resolve an unexpired token to the projection of its owning account."""
        now = now or datetime.now(timezone.utc)
        found = self._store.find_by_valid_token(token_value, now)
        if found.error is StoreErrorKind.NOT_FOUND:
            logger.warning("token rejected")
            return AuthResult(code=ResultCode.FORBIDDEN, message=TOKEN_REJECTED_MESSAGE)
        if not found.ok:
            return self._unknown("authenticate", found.message)
        return AuthResult(
            code=ResultCode.SUCCESS,
            content=json.dumps(project_account(found.value)),
        )

    def dropout(self, email: str) -> AuthResult:
        """Remove an account and all of its tokens. Unknown emails are not an error."""
        result = self._store.delete_account(email)
        if not result.ok:
            return self._unknown("dropout", result.message)
        logger.info("account removed")
        return AuthResult(code=ResultCode.SUCCESS)

    def _unknown(self, operation: str, message: str) -> AuthResult:
        logger.error("%s failed in account store: %s", operation, message)
        return AuthResult(
            code=ResultCode.UNKNOWN,
            message=f"Unknown Error Occurred! : {message}",
        )
