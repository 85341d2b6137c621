"""Headless Chromium page fetcher for storefronts that render with JavaScript."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Error as PlaywrightError, Playwright, async_playwright

from app.config import settings

logger = logging.getLogger(__name__)

# Hide the most obvious automation fingerprints.
STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
window.chrome = { runtime: {} };
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
"""


class BrowserFetcher:
    """One browser per scrape run; each ``fetch`` opens and closes its own page.

    Use as an async context manager::

        async with BrowserFetcher() as fetcher:
            html = await fetcher.fetch(url, settle=1.5)
    """

    def __init__(self, user_agent: str | None = None, headless: bool = True, timeout_seconds: int = 45):
        self.user_agent = user_agent or settings.user_agent
        self.headless = headless
        self.timeout_ms = timeout_seconds * 1000
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    async def __aenter__(self) -> "BrowserFetcher":
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless,
            args=[
                "--disable-blink-features=AutomationControlled",
                "--disable-dev-shm-usage",
                "--no-sandbox",
            ],
        )
        self._context = await self._browser.new_context(
            viewport={"width": 1920, "height": 1080},
            user_agent=self.user_agent,
            locale="en-US",
            extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
        )
        await self._context.add_init_script(STEALTH_SCRIPT)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()
        self._context = self._browser = self._playwright = None

    async def fetch(self, url: str, settle: float = 0.0) -> Optional[str]:
        """Rendered HTML for ``url``, or None if navigation fails."""
        if self._context is None:
            raise RuntimeError("BrowserFetcher must be used inside 'async with'")

        page = await self._context.new_page()
        try:
            response = await page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
            if settle:
                await asyncio.sleep(settle)
            if response is not None and response.status >= 400:
                logger.warning(f"Browser fetch {url} returned HTTP {response.status}")
            return await page.content()
        except (PlaywrightError, asyncio.TimeoutError) as e:
            logger.warning(f"Browser fetch failed for {url}: {e}")
            return None
        finally:
            await page.close()
