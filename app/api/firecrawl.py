"""Firecrawl hosted browser-rendering API client."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)


class FirecrawlError(Exception):
    """Raised when the crawl service reports an unsuccessful scrape."""


class FirecrawlClient:
    """Renders a page remotely and returns its HTML (``/v1/scrape``)."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 90.0,
    ):
        self.api_key = api_key if api_key is not None else settings.firecrawl_api_key
        self.base_url = (base_url or settings.firecrawl_base_url).rstrip("/")
        self._client = client
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def scrape(self, url: str, formats: list[str] | None = None) -> dict[str, Any]:
        """Return the ``data`` payload (``html``, ``markdown``, ``metadata``)."""
        if not self.api_key:
            raise FirecrawlError("FIRECRAWL_API_KEY is not configured")

        payload = {"url": url, "formats": formats or ["html"]}
        endpoint = f"{self.base_url}/v1/scrape"
        if self._client is not None:
            resp = await self._client.post(endpoint, json=payload, headers=self._headers(), timeout=self.timeout)
        else:
            async with httpx.AsyncClient() as client:
                resp = await client.post(endpoint, json=payload, headers=self._headers(), timeout=self.timeout)
        resp.raise_for_status()

        body = resp.json() or {}
        if not body.get("success"):
            raise FirecrawlError(body.get("error") or f"Scrape of {url} was not successful")
        return body.get("data") or {}

    async def scrape_html(self, url: str) -> str:
        data = await self.scrape(url, formats=["html"])
        return data.get("html") or ""
