"""HTTP API for the Toolstation scraper.

Serves a public health check and three endpoints protected by a shared API
key: product search, product details and cache clearing. Handlers are thin
wrappers around ToolstationScraper; any scrape failure is reported as a 500
with the underlying error message.
"""

import functools
import hmac
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from aiohttp import web
from pydantic import ValidationError

from ..config import Config, ServerConfig, config
from ..models import SearchRequest
from ..scrapers.headless import cleanup_global_browser
from ..scrapers.toolstation import ToolstationScraper
from ..services.cache_service import get_cache_service, shutdown_cache_service

logger = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]
ResponseT = TypeVar("ResponseT", bound=web.StreamResponse)

SERVER_CONFIG_KEY = web.AppKey("server_config", ServerConfig)
SCRAPER_KEY = web.AppKey("scraper", ToolstationScraper)

SERVICE_NAME = "Tool Station Scraper API"


def _error(status: int, error: str, message: str | None = None) -> web.Response:
    body: dict[str, Any] = {"error": error}
    if message is not None:
        body["message"] = message
    return web.json_response(body, status=status)


def require_api_key(handler: Handler) -> Handler:
    """Reject requests without the configured key in ``x-api-key`` or ``api_key``."""

    @functools.wraps(handler)
    async def wrapper(request: web.Request) -> web.StreamResponse:
        expected = request.app[SERVER_CONFIG_KEY].api_key
        provided = request.headers.get("x-api-key") or request.query.get("api_key")

        if not expected or not provided or not hmac.compare_digest(
            provided.encode(), expected.encode()
        ):
            logger.warning(f"Rejected unauthenticated request to {request.path}")
            return _error(401, "Unauthorized: Invalid API key")

        return await handler(request)

    return wrapper


@web.middleware
async def cors_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Answer preflight requests and add CORS headers to every response."""
    if request.method == "OPTIONS":
        return _with_cors_headers(request, web.Response(status=204))

    try:
        response = await handler(request)
    except web.HTTPException as e:
        raise _with_cors_headers(request, e)
    return _with_cors_headers(request, response)


def _with_cors_headers(request: web.Request, response: ResponseT) -> ResponseT:
    response.headers["Access-Control-Allow-Origin"] = request.app[SERVER_CONFIG_KEY].cors_origins
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, x-api-key"
    return response


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Render routing errors as JSON bodies."""
    try:
        return await handler(request)
    except web.HTTPNotFound:
        return _error(404, "Not found")
    except web.HTTPMethodNotAllowed:
        return _error(405, "Method not allowed")


async def health(request: web.Request) -> web.Response:
    """Liveness check, no authentication required."""
    server_config = request.app[SERVER_CONFIG_KEY]
    return web.json_response(
        {
            "status": "online",
            "service": SERVICE_NAME,
            "version": server_config.version,
            "endpoints": {
                "search": "POST /api/search",
                "product": "GET /api/product/:productCode",
                "clearCache": "POST /api/cache/clear",
            },
            "documentation": "See README.md for usage instructions",
        }
    )


@require_api_key
async def search(request: web.Request) -> web.Response:
    """Search products: body ``{"query": str, "page": int = 1}``."""
    raw_body = await request.text()
    try:
        body = json.loads(raw_body) if raw_body.strip() else {}
    except ValueError as e:
        return _error(400, "Invalid JSON body", str(e))

    if not isinstance(body, dict) or not body.get("query"):
        return _error(400, "Query parameter is required")

    try:
        search_request = SearchRequest.model_validate(body)
    except ValidationError as e:
        return _error(400, "Invalid search parameters", str(e))

    scraper = request.app[SCRAPER_KEY]
    try:
        result = await scraper.search_products(search_request.query, search_request.page)
    except Exception as e:
        logger.exception(f"Search error: {e}")
        return _error(500, "Failed to search products", str(e))

    return web.json_response(result.model_dump(by_alias=True))


@require_api_key
async def product_details(request: web.Request) -> web.Response:
    """Get details for one product code."""
    product_code = request.match_info["product_code"]

    scraper = request.app[SCRAPER_KEY]
    try:
        product = await scraper.get_product_details(product_code)
    except Exception as e:
        logger.exception(f"Product details error: {e}")
        return _error(500, "Failed to get product details", str(e))

    return web.json_response(product.model_dump(by_alias=True))


@require_api_key
async def clear_cache(request: web.Request) -> web.Response:
    """Drop all cached scrape results."""
    scraper = request.app[SCRAPER_KEY]
    try:
        result = scraper.clear_cache()
    except Exception as e:
        logger.exception(f"Clear cache error: {e}")
        return _error(500, "Failed to clear cache", str(e))

    return web.json_response(result)


async def _cleanup_resources(app: web.Application) -> None:
    """Release the shared browser and cache on shutdown."""
    try:
        await cleanup_global_browser()
        logger.info("Headless browser closed")
    except Exception as e:
        logger.warning(f"Error closing headless browser: {e}")

    shutdown_cache_service()


def create_app(
    app_config: Config | None = None, scraper: ToolstationScraper | None = None
) -> web.Application:
    """Build the aiohttp application.

    Args:
        app_config: Configuration, defaults to the global instance.
        scraper: Scraper to serve requests with, built from config if omitted.

    Returns:
        Configured web.Application.
    """
    app_config = app_config or config

    app = web.Application(
        middlewares=[cors_middleware, error_middleware],
        client_max_size=app_config.server.max_body_bytes,
    )
    app[SERVER_CONFIG_KEY] = app_config.server
    app[SCRAPER_KEY] = scraper or ToolstationScraper(
        app_config.scraper, get_cache_service(app_config.cache)
    )

    app.router.add_get("/", health)
    app.router.add_post("/api/search", search)
    app.router.add_get("/api/product/{product_code}", product_details)
    app.router.add_post("/api/cache/clear", clear_cache)

    app.on_cleanup.append(_cleanup_resources)
    return app
