"""Headless browser manager for rendering JavaScript-driven pages.

This module owns the single Chromium instance the scraper shares across all
requests. The browser is launched lazily on first use and memoized for the
life of the process; every scrape opens its own tab in the shared context.

Key features:
- Lazy, lock-guarded launch of one process-wide browser
- Configurable viewport, launch switches and navigation timeout
- Optional blocking of media, fonts and analytics requests
- One-time automatic ``playwright install chromium`` when binaries are missing
- Resource cleanup on application shutdown
"""

import asyncio
import logging
import shlex
from collections.abc import Awaitable, Callable
from typing import Any

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Route, async_playwright

from ..config import ScraperConfig, config

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

BLOCKED_RESOURCE_TYPES = {"media", "font"}
BLOCKED_DOMAINS = [
    "google-analytics",
    "googletagmanager",
    "facebook",
    "doubleclick",
    "adsystem",
    "hotjar",
]

MISSING_BROWSER_MARKERS = ("executable doesn't exist", "playwright install")
INSTALL_COMMAND = ("playwright", "install", "chromium")


class HeadlessBrowser:
    """Headless Chromium manager for dynamic page rendering."""

    def __init__(self, scraper_config: ScraperConfig | None = None) -> None:
        self.config = scraper_config or config.scraper
        self.browser: Browser | None = None
        self.context: BrowserContext | None = None
        self.playwright: Playwright | None = None
        self._install_attempted: bool = False

    async def __aenter__(self) -> "HeadlessBrowser":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.stop()

    @property
    def is_running(self) -> bool:
        return self.browser is not None and self.browser.is_connected()

    async def start(self) -> None:
        """Launch Chromium and create the shared browsing context.

        When the Chromium binary is missing, ``playwright install chromium``
        is run once and the launch retried.

        Raises:
            playwright.async_api.Error: If Chromium cannot be launched.
        """
        try:
            await self._launch()
        except Exception as e:
            await self.stop()
            if self._install_attempted or not _needs_browser_install(str(e)):
                logger.error(f"Failed to start headless browser: {e}")
                raise

            self._install_attempted = True
            logger.warning("Chromium binary missing, installing it before retrying")
            if not await _install_chromium():
                raise
            await self.start()

    async def _launch(self) -> None:
        self.playwright = await async_playwright().start()
        self.browser = await self.playwright.chromium.launch(
            headless=self.config.headless,
            args=self.config.browser_args,
        )
        self.context = await self.browser.new_context(
            user_agent=USER_AGENT,
            viewport={
                "width": self.config.viewport_width,
                "height": self.config.viewport_height,
            },
            locale="en-GB",
            timezone_id="Europe/London",
        )
        if self.config.block_resources:
            await self.context.route("**/*", self._route_handler)

        logger.info(
            f"Headless browser started (headless={self.config.headless}, "
            f"viewport={self.config.viewport_width}x{self.config.viewport_height})"
        )

    async def stop(self) -> None:
        """Close the context, the browser and the Playwright driver.

        Each step runs even if an earlier one fails, so a crashed browser
        still releases its driver process.
        """
        context, self.context = self.context, None
        browser, self.browser = self.browser, None
        playwright, self.playwright = self.playwright, None

        if context is not None:
            await _release("browser context", context.close)
        if browser is not None:
            await _release("browser", browser.close)
        if playwright is not None:
            await _release("playwright driver", playwright.stop)

        logger.debug("Headless browser stopped")

    async def _route_handler(self, route: Route) -> None:
        """Abort requests that never affect the extracted DOM."""
        resource_type = route.request.resource_type
        url = route.request.url

        if resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        elif any(domain in url for domain in BLOCKED_DOMAINS):
            await route.abort()
        else:
            await route.continue_()

    async def new_page(self) -> Page:
        """Open a new tab in the shared context.

        Returns:
            Page whose default navigation timeout is the configured one.
        """
        if self.context is None:
            raise RuntimeError("Browser not started. Call start() first.")

        page = await self.context.new_page()
        page.set_default_navigation_timeout(self.config.navigation_timeout_ms)
        await page.set_viewport_size(
            {"width": self.config.viewport_width, "height": self.config.viewport_height}
        )
        return page


# Global browser instance for reuse
_global_browser: HeadlessBrowser | None = None
_browser_lock = asyncio.Lock()


async def get_global_browser() -> HeadlessBrowser:
    """Get or create the process-wide browser instance."""
    global _global_browser

    async with _browser_lock:
        if _global_browser is not None and not _global_browser.is_running:
            logger.warning("Browser process disconnected, relaunching")
            await _global_browser.stop()
            _global_browser = None

        if _global_browser is None:
            browser = HeadlessBrowser()
            await browser.start()
            _global_browser = browser
        return _global_browser


async def cleanup_global_browser() -> None:
    """Close the process-wide browser instance, if one was launched."""
    global _global_browser

    async with _browser_lock:
        if _global_browser is not None:
            await _global_browser.stop()
            _global_browser = None


async def _release(name: str, close: Callable[[], Awaitable[None]]) -> None:
    try:
        await close()
    except Exception as e:
        logger.warning(f"Error closing {name}: {e}")


def _needs_browser_install(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in MISSING_BROWSER_MARKERS)


async def _install_chromium() -> bool:
    """Download the Chromium build matching the installed Playwright.

    Returns:
        True if the install command exited successfully.
    """
    logger.info(f"Running {shlex.join(INSTALL_COMMAND)}")
    try:
        process = await asyncio.create_subprocess_exec(
            *INSTALL_COMMAND,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        output, _ = await process.communicate()
    except OSError as e:
        logger.error(f"Could not run {shlex.join(INSTALL_COMMAND)}: {e}")
        return False

    if output:
        logger.info(output.decode(errors="ignore"))
    if process.returncode != 0:
        logger.error(f"Chromium install exited with status {process.returncode}")
        return False
    return True
