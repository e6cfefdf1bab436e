# avlookup/services/http_client.py

from __future__ import annotations

from typing import Any

import httpx

from ..config import USER_AGENT, ScraperConfig, logger
from ..errors import ParseError, TransportError


class HttpTransport:
    """Shared async HTTP client for every source adapter.

    One ``httpx.AsyncClient`` is created lazily and reused for the whole
    invocation, so cookies set by one response are visible to later requests.
    Every failure is reported as ``TransportError``; adapters never see raw
    ``httpx`` exceptions.
    """

    def __init__(self, config: ScraperConfig) -> None:
        self.config = config
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def default_headers(self) -> dict[str, str]:
        return {
            "User-Agent": USER_AGENT,
            "Accept": (
                "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,"
                "image/webp,*/*;q=0.8"
            ),
            "Accept-Language": "en-US,en;q=0.9,ja;q=0.8,zh-CN;q=0.7",
            "Referer": f"{self.config.javdb_base_url}/",
        }

    def _request_headers(self, url: str) -> dict[str, str]:
        # The pre-supplied session cookie belongs to the primary source only.
        headers: dict[str, str] = {}
        cookie = self.config.session_cookie
        if cookie and url.startswith(self.config.javdb_base_url):
            headers["Cookie"] = cookie
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self.default_headers(),
                timeout=self.config.timeout,
                follow_redirects=True,
                max_redirects=self.config.max_redirects,
                proxy=self.config.proxy,
            )
        return self._client

    async def _get(
        self, url: str, params: dict[str, Any] | None, source: str
    ) -> httpx.Response:
        client = self._get_client()
        logger.debug(f"[HTTP] {source or 'transport'}: GET {url} params={params}")
        try:
            response = await client.get(
                url, params=params, headers=self._request_headers(url)
            )
            logger.debug(f"[HTTP] {source or 'transport'}: GET {url} -> {response.status_code}")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"HTTP {exc.response.status_code} for {url}", source=source
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Request failed for {url}: {exc}", source=source) from exc
        return response

    async def get_text(
        self, url: str, *, params: dict[str, Any] | None = None, source: str = ""
    ) -> str:
        """Fetch ``url`` and return the body text."""
        response = await self._get(url, params, source)
        return response.text

    async def get_json(
        self, url: str, *, params: dict[str, Any] | None = None, source: str = ""
    ) -> Any:
        """Fetch ``url`` and decode it as JSON."""
        response = await self._get(url, params, source)
        try:
            return response.json()
        except ValueError as exc:  # JSON decode
            raise ParseError(f"Invalid JSON from {url}: {exc}", source=source) from exc

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
