"""
Tests for the rate-limited SP-API client.
"""

from unittest.mock import AsyncMock, MagicMock
import httpx
import pytest

from conftest import SP_API, mock_http
from sellersync.errors import RetryExhausted, SpApiError
from sellersync.services.sp_api_client import RateLimitedClient, backoff_delay, raise_for_sp_api


def _tokens():
    tokens = MagicMock()
    tokens.get_token = AsyncMock(return_value="Atza|access")
    return tokens


def _server(statuses):
    """Answer with each status in turn, repeating the last one."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        status = statuses[min(len(requests) - 1, len(statuses) - 1)]
        return httpx.Response(status, json={"n": len(requests)})

    return handler, requests


def test_backoff_delay_doubles_and_caps():
    assert [backoff_delay(a) for a in range(6)] == [2, 4, 8, 16, 32, 60]
    assert backoff_delay(10) == 60


@pytest.mark.anyio
async def test_success_is_returned_without_retry(credential, fake_sleep):
    handler, requests = _server([200])
    client = RateLimitedClient(_tokens(), http=mock_http(handler), endpoint=SP_API, sleep=fake_sleep)

    resp = await client.request("/sellers/v1/marketplaceParticipations", credential)

    assert resp.status_code == 200
    assert len(requests) == 1
    assert fake_sleep.calls == []
    assert str(requests[0].url) == f"{SP_API}/sellers/v1/marketplaceParticipations"
    assert requests[0].headers["x-amz-access-token"] == "Atza|access"
    assert requests[0].headers["content-type"] == "application/json"


@pytest.mark.anyio
async def test_rate_limited_then_success(credential, fake_sleep):
    handler, requests = _server([429, 429, 200])
    client = RateLimitedClient(_tokens(), http=mock_http(handler), endpoint=SP_API, sleep=fake_sleep)

    resp = await client.request("/orders/v0/orders", credential)

    assert resp.status_code == 200
    assert len(requests) == 3
    assert fake_sleep.calls == [2, 4]


@pytest.mark.anyio
async def test_persistent_rate_limit_exhausts_retries(credential, fake_sleep):
    handler, requests = _server([429])
    client = RateLimitedClient(_tokens(), http=mock_http(handler), endpoint=SP_API, sleep=fake_sleep)

    with pytest.raises(RetryExhausted) as exc_info:
        await client.request("/orders/v0/orders", credential)

    assert len(requests) == 6
    assert fake_sleep.calls == [2, 4, 8, 16, 32]
    assert exc_info.value.attempts == 6


@pytest.mark.anyio
async def test_other_errors_are_not_retried(credential, fake_sleep):
    handler, requests = _server([500])
    client = RateLimitedClient(_tokens(), http=mock_http(handler), endpoint=SP_API, sleep=fake_sleep)

    resp = await client.request("/reports/2021-06-30/reports", credential, "POST", json={"a": 1})

    assert resp.status_code == 500
    assert len(requests) == 1
    assert fake_sleep.calls == []


@pytest.mark.anyio
async def test_post_body_and_params_are_sent(credential, fake_sleep):
    handler, requests = _server([200])
    client = RateLimitedClient(_tokens(), http=mock_http(handler), endpoint=SP_API, sleep=fake_sleep)

    await client.request(
        "/finances/2024-06-19/transactions", credential,
        params={"postedAfter": "2025-03-01T00:00:00Z"},
    )

    assert requests[0].url.params["postedAfter"] == "2025-03-01T00:00:00Z"


@pytest.mark.anyio
async def test_connection_errors_propagate(credential, fake_sleep):
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    client = RateLimitedClient(_tokens(), http=mock_http(handler), endpoint=SP_API, sleep=fake_sleep)

    with pytest.raises(httpx.ConnectError):
        await client.request("/orders/v0/orders", credential)
    assert fake_sleep.calls == []


def test_raise_for_sp_api_includes_status_and_body():
    resp = httpx.Response(403, text="Access denied")
    with pytest.raises(SpApiError, match=r"403.*Access denied"):
        raise_for_sp_api(resp, "/orders/v0/orders")
