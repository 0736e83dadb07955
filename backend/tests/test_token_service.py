"""
Tests for the LwA token cache.
"""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs
import httpx
import pytest

from conftest import TOKEN_URL, mock_http
from sellersync.errors import AuthError
from sellersync.schemas import CachedToken, Credential
from sellersync.services.token_service import TokenCache


class Clock:
    def __init__(self):
        self.current = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


def _token_server(expires_in=3600, status=200):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if status != 200:
            return httpx.Response(status, text='{"error":"invalid_grant"}')
        body = {"access_token": f"Atza|token-{len(requests)}", "token_type": "bearer"}
        if expires_in is not None:
            body["expires_in"] = expires_in
        return httpx.Response(200, json=body)

    return handler, requests


@pytest.mark.anyio
async def test_exchanges_refresh_token_once_and_caches(credential):
    handler, requests = _token_server()
    cache = TokenCache(http=mock_http(handler), token_url=TOKEN_URL, now=Clock())

    first = await cache.get_token(credential)
    second = await cache.get_token(credential)

    assert first == second == "Atza|token-1"
    assert len(requests) == 1
    form = parse_qs(requests[0].content.decode())
    assert form["grant_type"] == ["refresh_token"]
    assert form["refresh_token"] == ["Atzr|refresh"]
    assert form["client_id"] == [credential.client_id]
    assert form["client_secret"] == ["shh"]


@pytest.mark.anyio
async def test_stored_expiry_is_sixty_seconds_early(credential):
    handler, _ = _token_server(expires_in=3600)
    clock = Clock()
    cache = TokenCache(http=mock_http(handler), token_url=TOKEN_URL, now=clock)

    await cache.get_token(credential)

    assert cache.peek(credential).expires_at == clock.current + timedelta(seconds=3540)


@pytest.mark.anyio
async def test_missing_expires_in_defaults_to_one_hour(credential):
    handler, _ = _token_server(expires_in=None)
    clock = Clock()
    cache = TokenCache(http=mock_http(handler), token_url=TOKEN_URL, now=clock)

    await cache.get_token(credential)

    assert cache.peek(credential).expires_at == clock.current + timedelta(seconds=3540)


@pytest.mark.anyio
async def test_token_within_sixty_seconds_of_expiry_is_refreshed(credential):
    handler, requests = _token_server(expires_in=61)
    clock = Clock()
    cache = TokenCache(http=mock_http(handler), token_url=TOKEN_URL, now=clock)

    assert await cache.get_token(credential) == "Atza|token-1"
    clock.advance(1)
    assert await cache.get_token(credential) == "Atza|token-2"
    assert len(requests) == 2


@pytest.mark.anyio
async def test_expired_cached_token_is_replaced(credential):
    handler, requests = _token_server()
    clock = Clock()
    cache = TokenCache(http=mock_http(handler), token_url=TOKEN_URL, now=clock)
    cache._tokens[credential.identity_key] = CachedToken(token="stale", expires_at=clock.current)

    assert await cache.get_token(credential) == "Atza|token-1"
    assert len(requests) == 1


@pytest.mark.anyio
async def test_valid_cached_token_makes_no_request(credential):
    handler, requests = _token_server()
    clock = Clock()
    cache = TokenCache(http=mock_http(handler), token_url=TOKEN_URL, now=clock)
    cache._tokens[credential.identity_key] = CachedToken(
        token="cached", expires_at=clock.current + timedelta(seconds=1),
    )

    assert await cache.get_token(credential) == "cached"
    assert requests == []


@pytest.mark.anyio
async def test_credentials_are_cached_separately(credential):
    handler, requests = _token_server()
    cache = TokenCache(http=mock_http(handler), token_url=TOKEN_URL, now=Clock())
    other = Credential(
        client_id=credential.client_id,
        client_secret=credential.client_secret,
        refresh_token="Atzr|another-seller",
        marketplace_id=credential.marketplace_id,
    )

    assert await cache.get_token(credential) == "Atza|token-1"
    assert await cache.get_token(other) == "Atza|token-2"
    assert await cache.get_token(credential) == "Atza|token-1"
    assert len(requests) == 2


@pytest.mark.anyio
async def test_rejected_exchange_raises_auth_error_with_body(credential):
    handler, requests = _token_server(status=400)
    cache = TokenCache(http=mock_http(handler), token_url=TOKEN_URL, now=Clock())

    with pytest.raises(AuthError) as exc_info:
        await cache.get_token(credential)

    assert exc_info.value.status_code == 400
    assert "invalid_grant" in str(exc_info.value)
    assert len(requests) == 1
    assert cache.peek(credential) is None


@pytest.mark.anyio
async def test_invalidate_forces_refresh(credential):
    handler, requests = _token_server()
    cache = TokenCache(http=mock_http(handler), token_url=TOKEN_URL, now=Clock())

    await cache.get_token(credential)
    cache.invalidate(credential)
    assert await cache.get_token(credential) == "Atza|token-2"
    assert len(requests) == 2


def test_credential_repr_hides_secrets(credential):
    assert "shh" not in repr(credential)
    assert "Atzr|refresh" not in str(credential)
