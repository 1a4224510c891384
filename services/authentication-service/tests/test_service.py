from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

from authentication_service.domain.service import (
    LOGIN_FAILED_MESSAGE,
    TOKEN_REJECTED_MESSAGE,
    ResultCode,
)


def test_register_duplicate_keeps_single_account(service, fake_store):
    assert service.register("a@example.com", "pw").code is ResultCode.SUCCESS
    result = service.register("a@example.com", "other")

    assert result.code is ResultCode.DUPLICATE
    assert result.message == "User Email a@example.com already exists!"
    assert fake_store.accounts["a@example.com"].password_credential == "pw"


def test_concurrent_registrations_yield_one_success(service, fake_store):
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: service.register("race@example.com", "pw"), range(16)))

    codes = [result.code for result in results]
    assert codes.count(ResultCode.SUCCESS) == 1
    assert codes.count(ResultCode.DUPLICATE) == 15
    assert len(fake_store.accounts) == 1


def test_failed_login_leaves_store_unchanged(service, fake_store):
    service.register("a@example.com", "pw")

    wrong_password = service.login("a@example.com", "wrong")
    unknown_email = service.login("ghost@example.com", "pw")

    for result in (wrong_password, unknown_email):
        assert result.code is ResultCode.FORBIDDEN
        assert result.message == LOGIN_FAILED_MESSAGE
        assert result.content == ""
    assert list(fake_store.accounts) == ["a@example.com"]
    assert fake_store.accounts["a@example.com"].tokens == []


def test_expired_token_is_forbidden(service, fake_store):
    service.register("a@example.com", "pw")
    token = json.loads(service.login("a@example.com", "pw").content)

    created = fake_store.accounts["a@example.com"].tokens[0].created_at
    at_expiry = service.authenticate_token(token["value"], now=created + timedelta(minutes=20))
    past_expiry = service.authenticate_token(
        token["value"], now=created + timedelta(minutes=20, seconds=1)
    )

    assert at_expiry.code is ResultCode.SUCCESS
    assert past_expiry.code is ResultCode.FORBIDDEN
    assert past_expiry.message == TOKEN_REJECTED_MESSAGE


def test_concurrent_logins_append_distinct_tokens(service, fake_store):
    service.register("a@example.com", "pw")

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(lambda _: service.login("a@example.com", "pw"), range(2)))

    values = [json.loads(result.content)["value"] for result in results]
    assert len(set(values)) == 2
    assert {token.value for token in fake_store.accounts["a@example.com"].tokens} == set(values)
    for value in values:
        result = service.authenticate_token(value)
        assert result.code is ResultCode.SUCCESS
        assert json.loads(result.content)["email"] == "a@example.com"


def test_store_failures_surface_as_unknown(failing_service):
    for result in (
        failing_service.register("a@example.com", "pw"),
        failing_service.login("a@example.com", "pw"),
        failing_service.authenticate_token("token"),
        failing_service.dropout("a@example.com"),
    ):
        assert result.code is ResultCode.UNKNOWN
        assert "connection refused" in result.message
