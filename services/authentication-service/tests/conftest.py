from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from threading import Lock

import fakeredis
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from authentication_service.api import routes
from authentication_service.domain.account import AccessToken, Account
from authentication_service.domain.contracts import StoreErrorKind, StoreResult
from authentication_service.domain.service import AuthenticationService
from authentication_service.redis_repository import RedisAccountStore


class FakeAccountStore:
    """In-memory store mimicking the uniqueness and append guarantees of real backends."""

    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self._lock = Lock()

    def create_account(self, email: str, password_credential: str):
        with self._lock:
            if email in self.accounts:
                return StoreResult.failure(StoreErrorKind.DUPLICATE_KEY, f"duplicate key: {email}")
            account = Account(
                email=email,
                password_credential=password_credential,
                created_at=datetime.now(timezone.utc).replace(microsecond=0),
            )
            self.accounts[email] = account
        return StoreResult.success(account)

    def find_by_credentials(self, email: str, password_credential: str):
        account = self.accounts.get(email)
        if account is None or account.password_credential != password_credential:
            return StoreResult.not_found()
        return StoreResult.success(account)

    def append_token(self, email: str, token: AccessToken):
        with self._lock:
            account = self.accounts.get(email)
            if account is None:
                return StoreResult.not_found()
            account.tokens.append(token)
        return StoreResult.success(token)

    def find_by_valid_token(self, token_value: str, now: datetime):
        for account in list(self.accounts.values()):
            for token in account.tokens:
                if token.value == token_value and token.is_valid_at(now):
                    return StoreResult.success(account)
        return StoreResult.not_found()

    def delete_account(self, email: str):
        with self._lock:
            self.accounts.pop(email, None)
        return StoreResult.success()

    def close(self) -> None:
        pass

    def expire_tokens(self, email: str, expires_at: datetime) -> None:
        account = self.accounts[email]
        account.tokens = [replace(token, expires_at=expires_at) for token in account.tokens]


class FailingAccountStore:
    """Store whose every operation reports a backend failure."""

    message = "connection refused"

    def _fail(self, *args, **kwargs):
        return StoreResult.failure(StoreErrorKind.UNKNOWN, self.message)

    create_account = _fail
    find_by_credentials = _fail
    append_token = _fail
    find_by_valid_token = _fail
    delete_account = _fail

    def close(self) -> None:
        pass


@pytest.fixture
def fake_store() -> FakeAccountStore:
    return FakeAccountStore()


@pytest.fixture
def service(fake_store) -> AuthenticationService:
    return AuthenticationService(fake_store)


@pytest.fixture()
def redis_client() -> fakeredis.FakeStrictRedis:
    client = fakeredis.FakeStrictRedis()
    client.flushall()
    return client


@pytest.fixture()
def redis_store(redis_client) -> RedisAccountStore:
    return RedisAccountStore(redis_client, key_prefix="test")


@pytest.fixture
def api_client(service):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    app.include_router(routes.router)
    app.state.authentication_service = service

    with TestClient(app) as client:
        yield client, service


@pytest.fixture
def failing_service() -> AuthenticationService:
    return AuthenticationService(FailingAccountStore())
