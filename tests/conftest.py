"""Global test configuration and fixtures.

Provides environment setup, rendered-page HTML samples and a fake headless
browser so scraping can be tested without launching Chromium.
"""

import os
from typing import Any

import pytest

from scraper_api.config import CacheConfig, ScraperConfig
from scraper_api.services.cache_service import CacheService

TEST_API_KEY = "test_api_key_placeholder"
BASE_URL = "https://www.toolstation.com"

FILLER = "Filter by brand, price and rating " * 40

SEARCH_HTML = f"""
<html>
<head><title>Search results | Toolstation</title></head>
<body>
<div id="app">
  <header><img src="/static/images/logo.svg" alt="Toolstation"></header>
  <div class="results">
    <p class="summary">57 results for "drill"</p>
    <div class="filters"><p>{FILLER}</p></div>
    <div class="product-card">
      <div class="card-image">
        <img src="https://cdn.toolstation.com/images/141020-UK/250/12345.jpg" alt="">
      </div>
      <div class="card-body">
        <a href="/makita-dhp482z-18v-lxt-combi-drill/p12345">Makita DHP482Z 18V LXT Combi Drill Body Only</a>
        <span class="rating">(128)</span>
        <p>Product code: 12345</p>
        <p class="price">£59.98 ex. VAT £71.98</p>
        <a href="/makita-dhp482z-18v-lxt-combi-drill/p12345">Add to basket for delivery</a>
      </div>
    </div>
    <article class="product-card">
      <img src="" data-src="/images/products/67890.jpg">
      <a href="/p67890">Tape</a>
      <a href="/stanley-fatmax-tape-measure-8m/p67890">Stanley FatMax Tape Measure 8m</a>
      <p>Product code: 67890</p>
      <p>£12.49 ex. VAT £14.99</p>
    </article>
    <div class="product-card">
      <img src="https://www.toolstation.com/static/icon-new.svg">
      <a href="/hex-key-set/p24680">hex key set metric 9 piece</a>
      <p>Product code: 24680</p>
      <p>(3)</p>
      <p>£1,049.00 ex. VAT £1,258.80</p>
    </div>
    <div class="product-card out-of-stock">
      <a href="/festool-track-saw/p55555">Festool TS 55 Track Saw</a>
      <p>Product code: 55555</p>
      <p>Currently unavailable</p>
    </div>
  </div>
  <section class="recently-viewed">
    <div class="product-card">
      <a href="/makita-dhp482z-18v-lxt-combi-drill/p12345">Makita DHP482Z Combi Drill Recently Viewed</a>
      <p>Product code: 12345</p>
      <p>£49.98 ex. VAT £59.98</p>
    </div>
  </section>
</div>
</body>
</html>
"""

DETAILS_HTML = """
<html>
<body>
<header><img src="https://www.toolstation.com/static/logo.svg"></header>
<h1>Makita DHP482Z 18V LXT Combi Drill Body Only</h1>
<div class="gallery">
  <img src="https://cdn.toolstation.com/images/141020-UK/800/12345.jpg">
  <img src="/images/products/12345-2.jpg">
  <img data-src="https://cdn.toolstation.com/images/141020-UK/800/12345-3.jpg">
  <img src="https://other-cdn.example.com/12345.jpg">
  <img src="https://cdn.toolstation.com/static/basket-icon.png">
</div>
<div class="reviews"><span>4.7 / 5</span> (128 reviews)</div>
<div class="price"><span>£54.98 ex. VAT £65.98</span></div>
</body>
</html>
"""

DETAILS_HTML_NO_PRICE = """
<html><body><h1>Makita DHP482Z</h1><p>Price available in branch</p></body></html>
"""

PRODUCT_URL = f"{BASE_URL}/makita-dhp482z-18v-lxt-combi-drill/p12345"


@pytest.fixture(autouse=True)
def test_environment():
    """Setup test environment variables for all tests."""
    test_env = {
        "API_KEY": TEST_API_KEY,
        "LOG_LEVEL": "DEBUG",
    }

    original_env = {}
    for key, value in test_env.items():
        original_env[key] = os.environ.get(key)
        os.environ[key] = value

    yield

    for key, original_value in original_env.items():
        if original_value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = original_value


class FakeClock:
    """Manually advanced time source for cache expiry tests."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePage:
    """Stand-in for a Playwright Page serving canned HTML by URL."""

    def __init__(self, html_by_url: dict[str, str], error: Exception | None = None) -> None:
        self.html_by_url = html_by_url
        self.error = error
        self.url: str | None = None
        self.goto_kwargs: dict[str, Any] = {}
        self.closed = False

    async def goto(self, url: str, **kwargs: Any) -> None:
        self.goto_kwargs = kwargs
        if self.error is not None:
            raise self.error
        self.url = url

    async def content(self) -> str:
        assert self.url is not None
        return self.html_by_url[self.url]

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    """Stand-in for HeadlessBrowser recording every tab it opens."""

    def __init__(self, html_by_url: dict[str, str], error: Exception | None = None) -> None:
        self.html_by_url = html_by_url
        self.error = error
        self.pages: list[FakePage] = []

    async def new_page(self) -> FakePage:
        page = FakePage(self.html_by_url, self.error)
        self.pages.append(page)
        return page

    @property
    def visited(self) -> list[str | None]:
        return [page.url for page in self.pages]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache_service(clock):
    return CacheService(CacheConfig(ttl_seconds=3600, enabled=True), clock=clock)


@pytest.fixture
def scraper_config():
    return ScraperConfig(base_url=BASE_URL, settle_delay_seconds=0, navigation_timeout_ms=30000)


@pytest.fixture
def fake_browser():
    return FakeBrowser(
        {
            f"{BASE_URL}/search?q=drill&page=1": SEARCH_HTML,
            f"{BASE_URL}/search?q=drill&page=2": SEARCH_HTML,
            f"{BASE_URL}/search?q=12345&page=1": SEARCH_HTML,
            f"{BASE_URL}/search?q=99999&page=1": SEARCH_HTML,
            PRODUCT_URL: DETAILS_HTML,
        }
    )
