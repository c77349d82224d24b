# server/core/http.py
"""
Async HTTP client for upstream data providers
"""
import asyncio
import logging
import ssl
from typing import Any, Dict, Optional

import aiohttp
import certifi

from .exceptions import ExternalAPIError

logger = logging.getLogger(__name__)

USER_AGENT = "AgriSphere/1.0"

class HttpClient:
    """
    Thin wrapper around one shared ``aiohttp.ClientSession``.

    Non-2xx responses raise ``ExternalAPIError`` carrying the status code;
    connection errors and timeouts raise it with ``status_code=None``.
    """

    def __init__(self, timeout_seconds: float = 20.0):
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                ssl=ssl.create_default_context(cafile=certifi.where()),
                limit=20,
                limit_per_host=10
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds, connect=10),
                headers={"User-Agent": USER_AGENT}
            )
        return self._session

    async def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        return await self._request("GET", url, params=params, headers=headers)

    async def post_form(
        self,
        url: str,
        data: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        return await self._request("POST", url, data=data, headers=headers)

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        session = self._get_session()
        try:
            async with session.request(method, url, **kwargs) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise ExternalAPIError(
                        f"{method} {url} returned {response.status}: {body[:200]}",
                        status_code=response.status
                    )
                return await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise ExternalAPIError(f"{method} {url} timed out after {self.timeout_seconds}s") from e
        except aiohttp.ClientError as e:
            raise ExternalAPIError(f"{method} {url} is unreachable: {e}") from e
        except ValueError as e:
            raise ExternalAPIError(f"{method} {url} returned invalid JSON: {e}") from e

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
