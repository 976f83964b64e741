"""HTTP API package.

Exposes the aiohttp application factory serving the scraper endpoints.
"""

from .server import create_app

__all__ = ["create_app"]
