"""Run-scoped Playwright browser pool.

One browser process lives for the whole run. Every attempt or flow gets its
own browser context (cookies, storage and page state isolated) which is
closed as soon as the work is done, on every exit path.

Usage:
    pool = BrowserPool()
    await pool.launch()
    try:
        async with pool.page() as page:
            await page.goto(url)
    finally:
        await pool.close()
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from typing import TYPE_CHECKING

from playwright.async_api import Browser, Page, Playwright, async_playwright

from ..core.errors import BrowserLaunchError

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)


@dataclass
class BrowserPoolConfig:
    """Configuration for the browser pool."""

    headless: bool = os.getenv("HEADLESS", "true").lower() in {"true", "1", "yes"}
    max_contexts: int = int(os.getenv("BROWSER_MAX_CONTEXTS", "4"))
    viewport_width: int = int(os.getenv("BROWSER_VIEWPORT_WIDTH", "1280"))
    viewport_height: int = int(os.getenv("BROWSER_VIEWPORT_HEIGHT", "800"))
    user_agent: str | None = os.getenv("BROWSER_USER_AGENT")


class BrowserPool:
    def __init__(self, config: BrowserPoolConfig | None = None) -> None:
        self.config = config or BrowserPoolConfig()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._slots = asyncio.Semaphore(max(1, self.config.max_contexts))
        self._open_contexts = 0
        self._contexts_served = 0

    @property
    def launched(self) -> bool:
        return self._browser is not None

    async def launch(self) -> None:
        if self._browser is not None:
            return
        start = time.perf_counter()
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
                args=[
                    "--no-sandbox",
                    "--disable-dev-shm-usage",
                    "--disable-gpu",
                    "--disable-extensions",
                ],
            )
        except Exception as e:
            await self.close()
            raise BrowserLaunchError(f"Could not launch browser: {e}") from e
        logger.info("Browser launched in %.2fs", time.perf_counter() - start)

    @asynccontextmanager
    async def page(self) -> AsyncGenerator[Page, None]:
        """Yield a page in a fresh, isolated context."""
        if self._browser is None:
            raise BrowserLaunchError("Browser pool is not launched")
        async with self._slots:
            context = await self._browser.new_context(
                viewport={
                    "width": self.config.viewport_width,
                    "height": self.config.viewport_height,
                },
                user_agent=self.config.user_agent,
            )
            self._open_contexts += 1
            self._contexts_served += 1
            try:
                yield await context.new_page()
            finally:
                self._open_contexts -= 1
                with suppress(Exception):
                    await context.close()

    async def close(self) -> None:
        if self._browser is not None:
            with suppress(Exception):
                await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            with suppress(Exception):
                await self._playwright.stop()
            self._playwright = None

    def stats(self) -> dict:
        return {
            "launched": self.launched,
            "open_contexts": self._open_contexts,
            "contexts_served": self._contexts_served,
            "max_contexts": self.config.max_contexts,
        }
