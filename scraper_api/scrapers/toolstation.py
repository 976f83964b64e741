"""Toolstation search and product scraper.

Coordinates the result cache, the shared headless browser and the extraction
heuristics for the two operations the API exposes: searching the catalogue and
looking up a single product's details. Every scrape follows the same path:
cache lookup, open a tab, navigate, wait for client rendering to settle,
extract, close the tab, cache the result.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from playwright.async_api import Page

from ..config import ScraperConfig, config
from ..models import ProductDetails, SearchResult
from ..services.cache_service import CacheService, get_cache_service
from .extraction import build_search_url, parse_product_details, parse_search_results
from .headless import HeadlessBrowser, get_global_browser

logger = logging.getLogger(__name__)

BrowserProvider = Callable[[], Awaitable[HeadlessBrowser]]


class ScraperError(Exception):
    """Base error for scraping failures."""


class ProductNotFoundError(ScraperError):
    """No search result carries the requested product code."""


class ToolstationScraper:
    """Scrapes Toolstation search and product pages with result caching."""

    def __init__(
        self,
        scraper_config: ScraperConfig | None = None,
        cache_service: CacheService | None = None,
        browser_provider: BrowserProvider = get_global_browser,
    ) -> None:
        """Initialize the scraper.

        Args:
            scraper_config: Site and navigation settings, defaults to global config.
            cache_service: Result cache, defaults to the process-wide one.
            browser_provider: Coroutine returning a started HeadlessBrowser.
        """
        self.config = scraper_config or config.scraper
        self.cache_service = cache_service or get_cache_service()
        self._browser_provider = browser_provider

    async def _render(self, url: str) -> str:
        """Load a URL in a fresh tab and return the rendered HTML.

        The tab is closed whether or not navigation succeeds.
        """
        browser = await self._browser_provider()
        page = await browser.new_page()
        try:
            await page.goto(
                url,
                wait_until=self.config.wait_until,  # type: ignore[arg-type]
                timeout=self.config.navigation_timeout_ms,
            )
            await asyncio.sleep(self.config.settle_delay_seconds)
            return await page.content()
        finally:
            await _close_page(page)

    async def search_products(self, query: str, page: int = 1) -> SearchResult:
        """Search the catalogue and extract one page of products.

        Args:
            query: Free-text search query or product code.
            page: 1-based results page number.

        Returns:
            SearchResult with ``cached`` set when served from the cache.
        """
        cache_key = self.cache_service.search_key(query, page)
        cached = self.cache_service.get(cache_key)
        if cached is not None:
            logger.info(f"Cache hit for search '{query}' page {page}")
            return cached.model_copy(update={"cached": True})

        start_time = datetime.now()
        search_url = build_search_url(self.config.base_url, query, page)
        logger.info(f"Scraping search results: {search_url}")

        html = await self._render(search_url)
        products, total = parse_search_results(html, self.config.base_url)

        result = SearchResult(results=products, total=total, query=query, page=page, cached=False)
        self.cache_service.set(cache_key, result)

        processing_time = int((datetime.now() - start_time).total_seconds() * 1000)
        logger.info(
            f"Search '{query}' page {page}: {len(products)} products, "
            f"total {total} ({processing_time}ms)"
        )
        return result

    async def get_product_details(self, product_code: str) -> ProductDetails:
        """Look up a product by code and scrape its product page.

        The product URL is found through a search for the code, so a product
        lookup may be served partly from the search cache.

        Args:
            product_code: Site product code.

        Returns:
            ProductDetails with ``cached`` set when served from the cache.

        Raises:
            ProductNotFoundError: If the search does not list the code.
        """
        cache_key = self.cache_service.product_key(product_code)
        cached = self.cache_service.get(cache_key)
        if cached is not None:
            logger.info(f"Cache hit for product {product_code}")
            return cached.model_copy(update={"cached": True})

        search_result = await self.search_products(product_code, 1)
        product = next(
            (p for p in search_result.results if p.product_code == product_code), None
        )
        if product is None:
            logger.warning(f"Product {product_code} not found in search results")
            raise ProductNotFoundError("Product not found")

        logger.info(f"Scraping product page: {product.url}")
        html = await self._render(product.url)
        details = parse_product_details(
            html, product.url, self.config.site_host, self.config.max_images
        )

        result = ProductDetails(
            **product.model_dump(exclude={"price", "price_ex_vat"}),
            price=details["price"],
            price_ex_vat=details["price_ex_vat"],
            rating=details["rating"],
            images=details["images"],
            cached=False,
        )
        self.cache_service.set(cache_key, result)
        return result

    def clear_cache(self) -> dict[str, Any]:
        """Drop every cached search and product result."""
        cleared = self.cache_service.clear()
        return {"success": True, "message": "Cache cleared", "cleared": cleared}


async def _close_page(page: Page) -> None:
    try:
        await page.close()
    except Exception as e:
        logger.warning(f"Failed to close browser tab: {e}")
