"""Web scrapers package.

Contains the Toolstation site scraper together with the pieces it is built
from:
- headless: Shared headless Chromium lifecycle
- extraction: HTML pattern matching for search and product pages
- toolstation: Cached search and product detail operations
"""

from .toolstation import ProductNotFoundError, ScraperError, ToolstationScraper

__all__ = [
    "ProductNotFoundError",
    "ScraperError",
    "ToolstationScraper",
]
