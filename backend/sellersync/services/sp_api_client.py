"""
Selling Partner API request helper.
Attaches the LwA bearer token and retries rate-limited (429) calls with
exponential backoff. Nothing else is retried here.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional
import httpx
from sellersync.config import get_settings
from sellersync.errors import RetryExhausted, SpApiError
from sellersync.schemas import Credential
from sellersync.services.token_service import TokenCache

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUS = 429
BACKOFF_BASE_SECONDS = 2.0
BACKOFF_CAP_SECONDS = 60.0
DEFAULT_MAX_RETRIES = 5


def backoff_delay(attempt: int) -> float:
    """Delay before retry number ``attempt + 1``: 2s, 4s, 8s, ... capped at 60s."""
    return min(BACKOFF_BASE_SECONDS * (2 ** attempt), BACKOFF_CAP_SECONDS)


def raise_for_sp_api(response: httpx.Response, path: str) -> None:
    """Raise SpApiError for a non-2xx response whose body the caller needs."""
    if not response.is_success:
        raise SpApiError(response.status_code, response.text, path)


class RateLimitedClient:
    """Executes SP-API requests for one engine; shares the engine's TokenCache."""

    def __init__(
        self,
        tokens: TokenCache,
        http: Optional[httpx.AsyncClient] = None,
        endpoint: Optional[str] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        settings = get_settings()
        self.tokens = tokens
        self.endpoint = (endpoint or settings.sp_api_endpoint).rstrip("/")
        self._http = http
        self._timeout = settings.http_timeout_seconds
        self._sleep = sleep

    def url_for(self, path: str) -> str:
        return path if path.startswith("http") else f"{self.endpoint}{path}"

    async def request(
        self,
        path: str,
        credential: Credential,
        method: str = "GET",
        *,
        params: Optional[dict] = None,
        json: Any = None,
        headers: Optional[dict] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> httpx.Response:
        """
        Send one request. A 429 sleeps ``backoff_delay(attempt)`` and retries,
        up to ``max_retries`` times; any other status is returned as-is.
        Connection errors and timeouts propagate immediately.
        """
        token = await self.tokens.get_token(credential)
        url = self.url_for(path)
        request_headers = {
            "x-amz-access-token": token,
            "Content-Type": "application/json",
            **(headers or {}),
        }

        for attempt in range(max_retries + 1):
            response = await self._send(method, url, params=params, json=json, headers=request_headers)

            if response.status_code != RATE_LIMIT_STATUS:
                return response

            if attempt >= max_retries:
                break

            delay = backoff_delay(attempt)
            logger.warning(
                f"Rate limited (429) on {method} {path}, retrying in {delay:g}s "
                f"(attempt {attempt + 1}/{max_retries})"
            )
            await self._sleep(delay)

        raise RetryExhausted(path, max_retries + 1)

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        if self._http is not None:
            return await self._http.request(method, url, **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, url, **kwargs)
