"""Toolstation Scraper API Package.

An HTTP service that scrapes Toolstation search and product pages with a
headless browser and returns structured product data as JSON.

The application follows a modular architecture with separate concerns for:
- HTTP routing, API-key authentication and error reporting
- Headless browser lifecycle and page rendering
- Product data extraction from rendered pages
- Time-bounded in-memory caching of scrape results
"""
