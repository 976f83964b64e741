"""Application entry point.

Configures logging and runs the aiohttp server hosting the scraper API. The
shared headless browser is launched lazily on the first scrape and closed when
the server shuts down.
"""

import logging

from aiohttp import web

from .api import create_app
from .config import config

# Logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=config.server.log_level.upper(),
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Main application entry point.

    Builds the web application and serves it until interrupted. SIGINT and
    SIGTERM trigger a graceful shutdown that closes the browser.

    Raises:
        RuntimeError: If API_KEY environment variable is not set.
    """
    server_config = config.server
    if not server_config.api_key:
        raise RuntimeError("Set API_KEY environment variable")

    app = create_app()

    logger.info(f"Scraper API running on {server_config.host}:{server_config.port}")
    logger.info(f"API Key: {server_config.api_key[:10]}...")

    web.run_app(app, host=server_config.host, port=server_config.port, print=None)


if __name__ == "__main__":
    main()
