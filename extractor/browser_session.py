from __future__ import annotations

import logging

from playwright.async_api import async_playwright, Browser, BrowserContext

from config import settings
from extractor.errors import ExtractionError
from extractor.page_fetcher import USER_AGENT

logger = logging.getLogger(__name__)

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]


class BrowserSession:
    """One Chromium instance shared by every page rendered in a run."""

    def __init__(self, headless: bool | None = None):
        self.headless = settings.headless if headless is None else headless
        self._playwright = None
        self._browser: Browser | None = None

    async def __aenter__(self):
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless, args=CHROMIUM_ARGS
        )
        return self

    async def __aexit__(self, *args):
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()

    async def new_context(self) -> BrowserContext:
        """Context of a Brazilian desktop visitor: reservation pages are pt-BR only."""
        return await self._browser.new_context(
            viewport={"width": 1366, "height": 900},
            user_agent=USER_AGENT,
            locale="pt-BR",
            timezone_id="America/Sao_Paulo",
            extra_http_headers={"Accept-Language": "pt-BR,pt;q=0.9"},
        )


async def render_page_html(session: BrowserSession, url: str) -> str:
    """Navigate to ``url`` and return the HTML after scripts have run."""
    context = await session.new_context()
    try:
        page = await context.new_page()
        try:
            await page.goto(url, wait_until="networkidle", timeout=settings.scan_timeout_ms)
        except Exception as e:
            logger.warning("networkidle load failed for %s: %s", url, e)
            try:
                await page.goto(url, wait_until="domcontentloaded", timeout=settings.scan_timeout_ms)
            except Exception as e2:
                raise ExtractionError(f"Falha ao carregar a página: {e2}") from e2

        await page.wait_for_timeout(settings.page_load_wait_ms)
        return await page.content()
    finally:
        await context.close()
