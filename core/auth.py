# server/core/auth.py
"""
OAuth client-credentials token lifecycle for the upstream provider
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .exceptions import AuthError, ExternalAPIError
from .http import HttpClient

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TTL_SECONDS = 3000  # providers that omit expires_in

@dataclass(frozen=True)
class AuthToken:
    value: str
    expires_at: float

class TokenManager:
    """
    Obtains and caches a bearer token.

    The cached token is reused while ``now < expires_at``; ``expires_at``
    already has the safety margin subtracted. Refreshes are single-flight:
    concurrent callers wait on the lock and then read the refreshed token.
    """

    def __init__(
        self,
        http: HttpClient,
        auth_url: str,
        client_id: str,
        client_secret: str,
        safety_margin: float = 600,
        clock: Callable[[], float] = time.monotonic
    ):
        self.http = http
        self.auth_url = auth_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.safety_margin = safety_margin
        self._clock = clock
        self._token: Optional[AuthToken] = None
        self._lock = asyncio.Lock()

    def _valid_token(self) -> Optional[str]:
        token = self._token
        if token and self._clock() < token.expires_at:
            return token.value
        return None

    async def get_token(self) -> str:
        cached = self._valid_token()
        if cached:
            return cached

        async with self._lock:
            # Another caller may have refreshed while we waited
            cached = self._valid_token()
            if cached:
                return cached
            self._token = await self._refresh()
            return self._token.value

    def invalidate(self) -> None:
        if self._token:
            logger.info("Upstream token invalidated")
        self._token = None

    async def _refresh(self) -> AuthToken:
        last_error: Optional[Exception] = None
        for attempt in (1, 2):
            try:
                return await self._exchange()
            except (ExternalAPIError, AuthError) as e:
                last_error = e
                logger.warning(f"Token request failed (attempt {attempt}/2): {e}")
        logger.error(f"Failed to get upstream token: {last_error}")
        raise AuthError(f"Token acquisition failed: {last_error}") from last_error

    async def _exchange(self) -> AuthToken:
        payload = await self.http.post_form(
            self.auth_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret
            }
        )
        access_token = (payload or {}).get("access_token")
        if not access_token:
            raise AuthError("No access token received from provider")

        ttl = float(payload.get("expires_in") or DEFAULT_TOKEN_TTL_SECONDS)
        # short-lived tokens keep at least half their lifetime
        margin = min(self.safety_margin, ttl / 2)
        expires_at = self._clock() + ttl - margin
        logger.info(f"Obtained upstream token valid for {ttl - margin:.0f}s")
        return AuthToken(value=access_token, expires_at=expires_at)
