"""
dylive - Douyin HTTP Client
Async transport for every request the pipeline issues.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ..config.settings_manager import Settings
from .errors import InvalidPageDataError, TransportError

logger = logging.getLogger(__name__)


class DouyinClient:
    """
    Thin wrapper around httpx.AsyncClient.

    All requests carry a browser User-Agent and the configured deadline.
    Transport failures surface as TransportError; nothing is retried here.
    """

    DEFAULT_HEADERS = {
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
        'Accept-Language': 'zh-CN,zh;q=0.9,en;q=0.8',
    }

    def __init__(self, settings: Optional[Settings] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or Settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={**self.DEFAULT_HEADERS, 'User-Agent': self.settings.desktop_user_agent},
                timeout=self.settings.http_timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "DouyinClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _headers(self, mobile: bool, with_cookie: bool) -> Dict[str, str]:
        headers = {
            'User-Agent': self.settings.mobile_user_agent if mobile else self.settings.desktop_user_agent,
        }
        if with_cookie:
            headers['Cookie'] = f"__ac_nonce={self.settings.ac_nonce}"
        return headers

    async def _get(self, url: str, *, mobile: bool = False, with_cookie: bool = False,
                   params: Optional[Dict[str, Any]] = None,
                   follow_redirects: bool = True) -> httpx.Response:
        logger.debug(f"GET {url}")
        client = self._get_client()
        # httpx times each phase separately; the deadline covers the whole request
        try:
            response = await asyncio.wait_for(
                client.get(
                    url,
                    params=params,
                    headers=self._headers(mobile, with_cookie),
                    follow_redirects=follow_redirects,
                ),
                timeout=self.settings.http_timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise TransportError(f"Request timed out: {url}", url=url) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"Request failed: {e}", url=url) from e

        if response.status_code >= 400:
            raise TransportError(
                f"HTTP {response.status_code} for {url}",
                status_code=response.status_code,
                url=url,
            )
        return response

    async def get_text(self, url: str, *, mobile: bool = False, with_cookie: bool = False,
                       params: Optional[Dict[str, Any]] = None) -> str:
        """GET a page and return its body."""
        response = await self._get(url, mobile=mobile, with_cookie=with_cookie, params=params)
        logger.debug(f"📄 {len(response.text)} bytes from {url}")
        return response.text

    async def get_json(self, url: str, *, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET a JSON endpoint.

        Raises:
            InvalidPageDataError: the body is not JSON
        """
        response = await self._get(url, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise InvalidPageDataError(f"Response is not JSON: {e}", url=url) from e

    async def get_location(self, url: str) -> str:
        """
        GET with redirects suppressed and return the Location header.

        Returns:
            The redirect target, or "" if the server did not redirect.
        """
        response = await self._get(url, mobile=True, follow_redirects=False)
        return response.headers.get('location', '')
