"""Configuration management for the scraper API.

Handles all application configuration including environment variables, the
YAML site file, and default settings. Provides structured configuration classes
for the HTTP server, the site scraper and the result cache.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
    "--disable-features=IsolateOrigins,site-per-process",
]


class ServerConfig(BaseSettings):
    """HTTP API server configuration.

    Attributes:
        api_key: Shared secret expected in ``x-api-key`` or ``api_key``.
        host: Interface the server binds to.
        port: Server port.
        log_level: Root logging level name.
        cors_origins: Value of the ``Access-Control-Allow-Origin`` header.
        max_body_bytes: Largest accepted request body.
        version: Service version reported by the health check.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    api_key: str | None = Field(default=None, validation_alias="API_KEY")
    host: str = Field(default="127.0.0.1", validation_alias="HOST")
    port: int = Field(default=3000, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    cors_origins: str = Field(default="*", validation_alias="CORS_ORIGINS")
    max_body_bytes: int = Field(default=1024**2, validation_alias="MAX_BODY_BYTES")
    version: str = "1.0.0"


class ScraperConfig(BaseSettings):
    """Site and browser settings for scraping.

    Attributes:
        base_url: Site root that search and product URLs are built against.
        navigation_timeout_ms: Timeout for a single page navigation.
        settle_delay_seconds: Fixed wait after navigation for client rendering.
        wait_until: Playwright load state that ends navigation.
        viewport_width: Browser viewport width in pixels.
        viewport_height: Browser viewport height in pixels.
        headless: Whether Chromium runs without a window.
        browser_args: Extra Chromium command line switches.
        block_resources: Abort media, font and analytics requests.
        max_images: Cap on product page images returned.
    """

    model_config = SettingsConfigDict(env_prefix="SCRAPER_", env_file=".env", extra="ignore")

    base_url: str = "https://www.toolstation.com"
    navigation_timeout_ms: int = 30000
    settle_delay_seconds: float = 3.0
    wait_until: str = "networkidle"
    viewport_width: int = 1920
    viewport_height: int = 1080
    headless: bool = True
    browser_args: list[str] = Field(default_factory=lambda: list(DEFAULT_BROWSER_ARGS))
    block_resources: bool = True
    max_images: int = 10

    @property
    def site_host(self) -> str:
        """Host part of ``base_url``, used to filter product images."""
        return self.base_url.split("://", 1)[-1].split("/", 1)[0].removeprefix("www.")


class CacheConfig(BaseSettings):
    """Scrape result cache settings.

    Attributes:
        ttl_seconds: Lifetime of a cache entry from creation.
        enabled: Whether results are cached at all.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    ttl_seconds: int = Field(default=3600, validation_alias="CACHE_TTL_SECONDS")
    enabled: bool = Field(default=True, validation_alias="CACHE_ENABLED")


class Config:
    """Application configuration manager.

    Centralizes loading of environment variables, the YAML site file and
    default values into typed sections.
    """

    def __init__(self, config_dir: Path | None = None):
        """Initialize configuration manager.

        Args:
            config_dir: Path to configuration directory, defaults to scraper_api/config.
        """
        if config_dir is None:
            config_dir = Path(__file__).parent / "config"

        self.config_dir = Path(config_dir)

        self.server = ServerConfig()
        self.cache = CacheConfig()
        self.scraper = ScraperConfig(**self._load_site_settings())

    def _load_site_settings(self) -> dict[str, Any]:
        """Load scraper overrides from site.yml.

        Returns:
            Keyword arguments for ScraperConfig, empty if the file is absent.
        """
        site_path = self.config_dir / "site.yml"
        if not site_path.exists():
            return {}

        with open(site_path) as f:
            data = yaml.safe_load(f) or {}

        settings: dict[str, Any] = {}

        site = data.get("site", {})
        if "base_url" in site:
            settings["base_url"] = site["base_url"].rstrip("/")

        navigation = data.get("navigation", {})
        if "timeout_ms" in navigation:
            settings["navigation_timeout_ms"] = navigation["timeout_ms"]
        if "settle_delay_seconds" in navigation:
            settings["settle_delay_seconds"] = navigation["settle_delay_seconds"]
        if "wait_until" in navigation:
            settings["wait_until"] = navigation["wait_until"]

        browser = data.get("browser", {})
        viewport = browser.get("viewport", {})
        if "width" in viewport:
            settings["viewport_width"] = viewport["width"]
        if "height" in viewport:
            settings["viewport_height"] = viewport["height"]
        if "args" in browser:
            settings["browser_args"] = browser["args"]
        if "block_resources" in browser:
            settings["block_resources"] = browser["block_resources"]

        product = data.get("product", {})
        if "max_images" in product:
            settings["max_images"] = product["max_images"]

        # SCRAPER_* environment variables take precedence over the file
        return {
            key: value
            for key, value in settings.items()
            if f"SCRAPER_{key.upper()}" not in os.environ
        }


# Global configuration instance
config = Config()
