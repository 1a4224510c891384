"""Redis-backed account persistence."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from redis import Redis
from redis.exceptions import RedisError, WatchError

from .domain.account import AccessToken, Account
from .domain.contracts import StoreErrorKind, StoreResult
from .security.tokens import from_epoch_seconds, to_epoch_seconds


class RedisAccountStore:
    """Account store laid out over plain Redis keys.

    ``{prefix}:account:{email}``
        JSON account document, written with ``SET NX`` so only one registration wins.
    ``{prefix}:tokens:{email}``
        List of JSON tokens, grown with ``RPUSH``.
    ``{prefix}:token:{value}``
        Index from token value to ``{"email", "expires_at"}``.
    """

    def __init__(self, client: Redis, *, key_prefix: str = "auth") -> None:
        self._client = client
        self._key_prefix = key_prefix

    def close(self) -> None:
        self._client.close()

    def create_account(self, email: str, password_credential: str) -> StoreResult[Account]:
        created_at = datetime.now(timezone.utc).replace(microsecond=0)
        document = {
            "email": email,
            "password_credential": password_credential,
            "created_at": to_epoch_seconds(created_at),
        }
        try:
            created = self._client.set(self._account_key(email), json.dumps(document), nx=True)
        except RedisError as exc:
            return StoreResult.failure(StoreErrorKind.UNKNOWN, str(exc))
        if not created:
            return StoreResult.failure(StoreErrorKind.DUPLICATE_KEY, f"duplicate key: {email}")
        return StoreResult.success(
            Account(email=email, password_credential=password_credential, created_at=created_at)
        )

    def find_by_credentials(self, email: str, password_credential: str) -> StoreResult[Account]:
        try:
            account = self._load_account(email)
        except RedisError as exc:
            return StoreResult.failure(StoreErrorKind.UNKNOWN, str(exc))
        if account is None or account.password_credential != password_credential:
            return StoreResult.not_found()
        return StoreResult.success(account)

    def append_token(self, email: str, token: AccessToken) -> StoreResult[AccessToken]:
        """Append a token and index it while the account key is watched.

        A dropout committing between the existence check and EXEC aborts the
        transaction, so no token outlives its account.
        """
        entry = {
            "value": token.value,
            "created_at": to_epoch_seconds(token.created_at),
            "expires_at": to_epoch_seconds(token.expires_at),
        }
        index = {"email": email, "expires_at": entry["expires_at"]}
        account_key = self._account_key(email)
        try:
            with self._client.pipeline(transaction=True) as pipe:
                pipe.watch(account_key)
                if not pipe.exists(account_key):
                    return StoreResult.not_found()
                pipe.multi()
                pipe.rpush(self._tokens_key(email), json.dumps(entry))
                pipe.set(self._token_key(token.value), json.dumps(index))
                pipe.execute()
        except WatchError:
            # only a dropout writes the account key after creation
            return StoreResult.not_found()
        except RedisError as exc:
            return StoreResult.failure(StoreErrorKind.UNKNOWN, str(exc))
        return StoreResult.success(token)

    def find_by_valid_token(self, token_value: str, now: datetime) -> StoreResult[Account]:
        try:
            raw = self._client.get(self._token_key(token_value))
            if raw is None:
                return StoreResult.not_found()
            index = json.loads(raw)
            if from_epoch_seconds(index["expires_at"]) < now:
                return StoreResult.not_found()
            account = self._load_account(index["email"])
        except RedisError as exc:
            return StoreResult.failure(StoreErrorKind.UNKNOWN, str(exc))
        # The index only counts when the current account still holds the token.
        if account is None or all(token.value != token_value for token in account.tokens):
            return StoreResult.not_found()
        return StoreResult.success(account)

    def delete_account(self, email: str) -> StoreResult[None]:
        """Delete the account, its token list and every index entry in one transaction.

        The token list is watched; an append landing before EXEC restarts the
        deletion so the new token is removed too.
        """
        tokens_key = self._tokens_key(email)
        try:
            with self._client.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        pipe.watch(tokens_key)
                        entries = pipe.lrange(tokens_key, 0, -1)
                        pipe.multi()
                        for raw in entries:
                            pipe.delete(self._token_key(json.loads(raw)["value"]))
                        pipe.delete(self._account_key(email), tokens_key)
                        pipe.execute()
                        break
                    except WatchError:
                        continue
        except RedisError as exc:
            return StoreResult.failure(StoreErrorKind.UNKNOWN, str(exc))
        return StoreResult.success()

    def _load_account(self, email: str) -> Account | None:
        raw = self._client.get(self._account_key(email))
        if raw is None:
            return None
        document: dict[str, Any] = json.loads(raw)
        tokens = [
            AccessToken(
                value=entry["value"],
                created_at=from_epoch_seconds(entry["created_at"]),
                expires_at=from_epoch_seconds(entry["expires_at"]),
            )
            for entry in map(json.loads, self._client.lrange(self._tokens_key(email), 0, -1))
        ]
        return Account(
            email=document["email"],
            password_credential=document["password_credential"],
            created_at=from_epoch_seconds(document["created_at"]),
            tokens=tokens,
        )

    def _account_key(self, email: str) -> str:
        return f"{self._key_prefix}:account:{email}"

    def _tokens_key(self, email: str) -> str:
        return f"{self._key_prefix}:tokens:{email}"

    def _token_key(self, token_value: str) -> str:
        return f"{self._key_prefix}:token:{token_value}"
