"""Data models for the scraper API.

Defines Pydantic models for products scraped from search and product pages,
search results, and validated API request bodies. Models serialize with the
camelCase field names the HTTP API exposes.
"""

from pydantic import BaseModel, ConfigDict, Field


class Product(BaseModel):
    """Product listing extracted from a search results page.

    Attributes:
        product_code: Site product code, unique within one results page.
        title: Product title taken from the longest product link text.
        brand: Leading capitalised words of the title, None if not matched.
        price: Displayed price string, e.g. "£12.34".
        price_ex_vat: Second price of the VAT pair, e.g. "£14.81".
        reviews: Review count, 0 when the listing shows none.
        image: Listing image URL, None if missing or an icon.
        url: Absolute product page URL.
    """

    model_config = ConfigDict(populate_by_name=True)

    product_code: str = Field(alias="productCode")
    title: str
    brand: str | None = None
    price: str
    price_ex_vat: str = Field(alias="priceExVAT")
    reviews: int = 0
    image: str | None = None
    url: str


class ProductDetails(Product):
    """Product listing enriched with data from its product page.

    Attributes:
        price: Product page price, None if the page shows none.
        price_ex_vat: Product page VAT-pair price, None if the page shows none.
        rating: Average rating out of 5 as displayed, None if absent.
        images: Product page image URLs on the site domain.
        cached: Whether the record was served from the cache.
    """

    price: str | None = None
    price_ex_vat: str | None = Field(default=None, alias="priceExVAT")
    rating: str | None = None
    images: list[str] = Field(default_factory=list)
    cached: bool = False


class SearchResult(BaseModel):
    """One page of search results.

    Attributes:
        results: Products found on the page.
        total: Total result count reported by the site.
        query: Echoed search query.
        page: Echoed page number.
        cached: Whether the result was served from the cache.
    """

    results: list[Product] = Field(default_factory=list)
    total: int = 0
    query: str
    page: int = 1
    cached: bool = False


class SearchRequest(BaseModel):
    """Body of ``POST /api/search``.

    A numeric query, such as a bare product code, is searched as text.
    """

    model_config = ConfigDict(coerce_numbers_to_str=True)

    query: str = Field(min_length=1)
    page: int = Field(default=1, ge=1)
