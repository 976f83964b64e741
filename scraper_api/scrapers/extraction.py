"""Product data extraction from rendered Toolstation pages.

This module turns the HTML of a fully rendered search results page or product
page into structured product data. Extraction is heuristic: product blocks are
recognised by their "Product code:" text and every field is pattern matched
from the block's text or DOM independently.

Key features:
- Product block detection with per-page product code deduplication
- Title selection from the longest qualifying product link
- Price, VAT pair, review count and image extraction
- Result total detection from the page text
- Product page price, rating and image gallery extraction
"""

import re
from typing import Any
from urllib.parse import quote, urljoin

from bs4 import BeautifulSoup, Tag
from bs4.element import CData, NavigableString, Script, Stylesheet, TemplateString

from ..models import Product

PRODUCT_CODE_RE = re.compile(r"Product code:\s*(\w+)", re.ASCII)
PRICE_RE = re.compile(r"£([\d,]+\.?\d*)\s+ex\.\s*VAT\s+£([\d,]+\.?\d*)")
REVIEWS_RE = re.compile(r"\((\d+)\)")
BRAND_RE = re.compile(r"^([A-Z][A-Za-z\s&]+?)(?:\s+[A-Z0-9]|$)")
RATING_RE = re.compile(r"(\d+(?:\.\d+)?)\s*/\s*5")
TOTAL_RESULTS_RE = re.compile(r"(\d+)\s*results", re.IGNORECASE)
TOTAL_RANGE_RE = re.compile(r"(\d+)\s*-\s*\d+\s+of\s+(\d+)", re.IGNORECASE)

CONTAINER_TAGS = ["div", "article", "section"]
PRODUCT_LINK_SELECTOR = 'a[href*="/p"]'
MAX_BLOCK_TEXT_LENGTH = 1000
MIN_TITLE_LENGTH = 10
IMAGE_EXCLUDE_MARKERS = ("icon", "logo")
# Characters encodeURIComponent leaves unescaped besides alphanumerics
_URI_COMPONENT_SAFE = "-_.!~*'()"
# String types counted as element text, including script and style bodies
_TEXT_CONTENT_TYPES = (NavigableString, CData, Script, Stylesheet, TemplateString)


def build_search_url(base_url: str, query: str, page: int = 1) -> str:
    """Build the site search URL for a query and results page."""
    return f"{base_url}/search?q={quote(query, safe=_URI_COMPONENT_SAFE)}&page={page}"


def _text_content(element: Tag) -> str:
    """Return all descendant text of an element, as the DOM ``textContent`` does."""
    return element.get_text(types=_TEXT_CONTENT_TYPES)


def _image_source(img: Tag) -> str:
    """Return an img element's src, falling back to data-src."""
    return str(img.get("src") or img.get("data-src") or "")


def _is_excluded_image(src: str) -> bool:
    return any(marker in src for marker in IMAGE_EXCLUDE_MARKERS)


def _select_title(links: list[Tag]) -> str:
    """Pick the longest link text that looks like a product title."""
    title = ""
    for link in links:
        link_text = _text_content(link).strip()
        if (
            len(link_text) > len(title)
            and len(link_text) > MIN_TITLE_LENGTH
            and "Add to" not in link_text
        ):
            title = link_text
    return title


def extract_brand(title: str) -> str | None:
    """Extract the brand from the leading capitalised words of a title."""
    brand_match = BRAND_RE.match(title)
    return brand_match.group(1).strip() if brand_match else None


def _select_product_url(links: list[Tag], product_code: str, base_url: str) -> str:
    """Return the absolute URL of the last link pointing at the product."""
    url = ""
    for link in links:
        href = str(link.get("href") or "")
        if f"/p{product_code}" in href:
            url = urljoin(base_url, href)
    return url


def _extract_listing_image(block: Tag, base_url: str) -> str | None:
    img = block.find("img")
    if not isinstance(img, Tag):
        return None
    src = _image_source(img)
    if not src or _is_excluded_image(src):
        return None
    return urljoin(base_url, src)


def _parse_product_block(block: Tag, text: str, product_code: str, base_url: str) -> Product | None:
    """Build a Product from one product block, None if a required field is missing."""
    links = block.select(PRODUCT_LINK_SELECTOR)
    title = _select_title(links)
    price_match = PRICE_RE.search(text)
    url = _select_product_url(links, product_code, base_url)

    if not (title and price_match and url):
        return None

    review_match = REVIEWS_RE.search(text)

    return Product(
        product_code=product_code,
        title=title,
        brand=extract_brand(title),
        price=f"£{price_match.group(1)}",
        price_ex_vat=f"£{price_match.group(2)}",
        reviews=int(review_match.group(1)) if review_match else 0,
        image=_extract_listing_image(block, base_url),
        url=url,
    )


def extract_total(page_text: str, fallback: int) -> int:
    """Extract the total result count from the page text.

    Args:
        page_text: Full text content of the page body.
        fallback: Count used when the page states no total.

    Returns:
        Total number of results.
    """
    total_match = TOTAL_RESULTS_RE.search(page_text) or TOTAL_RANGE_RE.search(page_text)
    if not total_match:
        return fallback
    return int(total_match.groups()[-1])


def parse_search_results(html: str, base_url: str) -> tuple[list[Product], int]:
    """Extract products and the result total from a rendered search page.

    Containers are visited in document order, so the outermost block under
    the length limit claims a product code first. A claimed code is never
    reconsidered, even when its block lacks a title, price or URL.

    Args:
        html: Rendered page HTML.
        base_url: Site root used to absolutize links and images.

    Returns:
        Tuple of (products, total result count).
    """
    soup = BeautifulSoup(html, "lxml")
    results: list[Product] = []
    seen_products: set[str] = set()

    for block in soup.find_all(CONTAINER_TAGS):
        text = _text_content(block)
        product_code_match = PRODUCT_CODE_RE.search(text)
        if not product_code_match or len(text) >= MAX_BLOCK_TEXT_LENGTH:
            continue

        product_code = product_code_match.group(1)
        if product_code in seen_products:
            continue
        seen_products.add(product_code)

        product = _parse_product_block(block, text, product_code, base_url)
        if product is not None:
            results.append(product)

    body = soup.body or soup
    total = extract_total(_text_content(body), len(results))
    return results, total


def parse_product_details(
    html: str, page_url: str, site_host: str, max_images: int = 10
) -> dict[str, Any]:
    """Extract price, rating and gallery images from a rendered product page.

    Args:
        html: Rendered page HTML.
        page_url: URL of the page, used to resolve relative image sources.
        site_host: Only images whose URL contains this host are kept.
        max_images: Maximum number of images returned.

    Returns:
        Dictionary with price, price_ex_vat, rating and images keys.
    """
    soup = BeautifulSoup(html, "lxml")
    body = soup.body or soup
    text = _text_content(body)

    price_match = PRICE_RE.search(text)
    rating_match = RATING_RE.search(text)

    images: list[str] = []
    for img in soup.find_all("img"):
        src = _image_source(img)
        if not src:
            continue
        src = urljoin(page_url, src)
        if site_host in src and not _is_excluded_image(src):
            images.append(src)
        if len(images) >= max_images:
            break

    return {
        "price": f"£{price_match.group(1)}" if price_match else None,
        "price_ex_vat": f"£{price_match.group(2)}" if price_match else None,
        "rating": rating_match.group(1) if rating_match else None,
        "images": images,
    }
