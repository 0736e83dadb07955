"""
Token Service - LwA access tokens for the Selling Partner API.
Hands back a cached bearer token per credential and refreshes it via the
refresh-token grant only when the cached one is missing or expired.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
import httpx
from sellersync.config import get_settings
from sellersync.errors import AuthError
from sellersync.schemas import CachedToken, Credential

logger = logging.getLogger(__name__)

# Tokens are stored as expiring 60s before Amazon says they do (clock skew, latency)
TOKEN_EXPIRY_MARGIN = timedelta(seconds=60)

# LwA default lifetime when the response omits expires_in
DEFAULT_EXPIRES_IN = 3600


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenCache:
    """
    Bearer tokens keyed by credential identity.

    One instance is shared by every sync the engine runs. Concurrent callers
    for the same credential may each refresh; the last writer wins, which is
    harmless because any unexpired token is valid.
    """

    def __init__(
        self,
        http: Optional[httpx.AsyncClient] = None,
        token_url: Optional[str] = None,
        now: Callable[[], datetime] = _utc_now,
    ):
        self._http = http
        self._token_url = token_url or get_settings().lwa_token_url
        self._now = now
        self._tokens: dict[str, CachedToken] = {}

    def peek(self, credential: Credential) -> Optional[CachedToken]:
        return self._tokens.get(credential.identity_key)

    def invalidate(self, credential: Credential) -> None:
        self._tokens.pop(credential.identity_key, None)

    def clear(self) -> None:
        self._tokens.clear()

    async def get_token(self, credential: Credential) -> str:
        cached = self._tokens.get(credential.identity_key)
        if cached and self._now() < cached.expires_at:
            return cached.token

        token_data = await self._exchange(credential)
        expires_in = int(token_data.get("expires_in") or DEFAULT_EXPIRES_IN)
        cached = CachedToken(
            token=token_data["access_token"],
            expires_at=self._now() + timedelta(seconds=expires_in) - TOKEN_EXPIRY_MARGIN,
        )
        self._tokens[credential.identity_key] = cached
        logger.info(
            f"Access token refreshed for client {credential.client_id}, "
            f"valid until {cached.expires_at.isoformat()}"
        )
        return cached.token

    async def _exchange(self, credential: Credential) -> dict:
        """Exchange the refresh token for a new access token. Not retried."""
        data = {
            "grant_type": "refresh_token",
            "refresh_token": credential.refresh_token,
            "client_id": credential.client_id,
            "client_secret": credential.client_secret,
        }
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        if self._http is not None:
            response = await self._http.post(self._token_url, data=data, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=get_settings().http_timeout_seconds) as client:
                response = await client.post(self._token_url, data=data, headers=headers)

        if not response.is_success:
            logger.error(f"Token exchange failed for client {credential.client_id}: {response.status_code}")
            raise AuthError(response.status_code, response.text)
        return response.json()
