"""Result Normalizer: cleans partial records into the canonical schema."""

from __future__ import annotations

import datetime as dt
import re
from typing import Iterable

from product_scraper.config import WHITESPACE_RE
from product_scraper.models import (
    Candidate,
    ProductDetails,
    ScrapedImage,
    ScrapedProduct,
    ScrapedProductSummary,
    ScrapedSearchResult,
    ScrapedSpecification,
)

BRAND_PREFIX_RE = re.compile(r"^(?:Brand:\s*|(?:Visit the|by|Visit|Shop)\s+)", re.IGNORECASE)
BRAND_DELIMITER_RE = re.compile(r"[\n\r|•]")
BRAND_SUFFIX_RE = re.compile(
    r"\s+(Brand Store|Brand Shop|Store|Shop|Visit|Official|Storefront|Outlet|Retailer|Distributor|Seller|Merchant)\b.*$",
    re.IGNORECASE,
)
TRAILING_PUNCT_RE = re.compile(r"[.,;:]+$")
ACRONYM_RE = re.compile(r"^[A-Z]{1,2}$")
MAX_BRAND_LEN = 50
NAME_MAX_LEN = 500


def now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).replace(microsecond=0).isoformat()


def clean_text(value: str, max_len: int = 300) -> str:
    if not value:
        return ""
    value = WHITESPACE_RE.sub(" ", value).strip()
    if len(value) <= max_len:
        return value
    return value[: max_len - 3] + "..."


def clean_brand_name(raw: str) -> str:
    """Strip storefront boilerplate: "Visit the Sony Store" -> "Sony"."""
    text = (raw or "").strip()
    if not text:
        return ""
    text = BRAND_PREFIX_RE.sub("", text)
    text = re.sub(r"^\s*-\s*", "", text).strip()
    text = BRAND_DELIMITER_RE.split(text)[0].strip()
    text = BRAND_SUFFIX_RE.sub("", text).strip()
    text = TRAILING_PUNCT_RE.sub("", text).strip()
    if len(text) >= MAX_BRAND_LEN:
        return ""
    return text


def looks_like_brand(word: str) -> bool:
    word = (word or "").strip()
    if not 2 <= len(word) <= 15:
        return False
    if word.isdigit() or ACRONYM_RE.match(word):
        return False
    return word[0].isupper()


def brand_from_name(name: str) -> str:
    """Last resort: the first word of the product name when it reads as a brand."""
    words = (name or "").split()
    if not words:
        return ""
    first = TRAILING_PUNCT_RE.sub("", words[0])
    return first if looks_like_brand(first) else ""


def resolve_prices(price: float | None, strike_price: float | None) -> tuple[float, float]:
    """Return (product_price, offer_price).

    ``product_price`` is the price currently listed. ``offer_price`` becomes
    the struck-through price only when one was found above it, otherwise it
    mirrors ``product_price``.
    """
    current = max(0.0, float(price or 0.0))
    if strike_price is not None and current > 0 and strike_price > current:
        return current, float(strike_price)
    return current, current


def summary_from_candidate(candidate: Candidate, infer_brand: bool = False) -> ScrapedProductSummary:
    product_price, offer_price = resolve_prices(candidate.price, candidate.strike_price)
    brand = clean_brand_name(candidate.brand)
    name = clean_text(candidate.name, NAME_MAX_LEN)
    if brand == name:
        brand = ""
    if not brand and infer_brand:
        brand = brand_from_name(name)
    return ScrapedProductSummary(
        product_url=candidate.product_url,
        product_name=name,
        product_price=product_price,
        offer_price=offer_price,
        image=candidate.image,
        rating=candidate.rating,
        review_count=candidate.review_count,
        in_stock=candidate.in_stock,
        brand_name=brand,
    )


def build_search_result(
    candidates: Iterable[Candidate],
    search_url: str,
    total_results: int | None = None,
    current_page: int = 1,
    total_pages: int | None = None,
    infer_brand: bool = False,
) -> ScrapedSearchResult:
    products: list[ScrapedProductSummary] = []
    seen: set[str] = set()
    for candidate in candidates:
        if not candidate.product_url or candidate.product_url in seen:
            continue
        seen.add(candidate.product_url)
        products.append(summary_from_candidate(candidate, infer_brand))
    return ScrapedSearchResult(
        products=tuple(products),
        total_results=total_results if total_results else len(products),
        current_page=current_page,
        search_url=search_url,
        total_pages=total_pages,
    )


def empty_search_result(search_url: str) -> ScrapedSearchResult:
    return ScrapedSearchResult(products=(), total_results=0, current_page=1, search_url=search_url)


def build_product(
    details: ProductDetails,
    source_url: str,
    source_platform: str,
    metadata: dict | None = None,
) -> ScrapedProduct:
    product_price, offer_price = resolve_prices(details.price, details.strike_price)
    name = clean_text(details.name, NAME_MAX_LEN)
    brand = clean_brand_name(details.brand) or brand_from_name(name)

    images: list[ScrapedImage] = []
    for url in dict.fromkeys(u for u in details.images if u):
        images.append(
            ScrapedImage(
                url=url,
                image_name=f"{name[:50]} - Image {len(images) + 1}" if name else "",
                is_primary=not images,
            )
        )
    specifications = tuple(
        ScrapedSpecification(label=clean_text(label, 120), value=clean_text(value, 500))
        for label, value in details.specifications
        if label and value
    )
    rating = details.rating
    if rating is not None:
        rating = min(5.0, max(0.0, rating))
    review_count = details.review_count
    if review_count is not None:
        review_count = max(0, review_count)

    meta = {"scrapedAt": now_iso(), "originalUrl": source_url}
    meta.update(details.extra)
    meta.update(metadata or {})
    return ScrapedProduct(
        product_name=name,
        product_price=product_price,
        offer_price=offer_price,
        source_url=source_url,
        source_platform=source_platform,
        description=details.description.strip(),
        short_description=clean_text(details.short_description, 1000),
        brand_name=brand,
        barcode=details.barcode,
        images=tuple(images),
        specifications=specifications,
        place_of_origin=details.place_of_origin,
        tags=tuple(dict.fromkeys(t for t in details.tags if t)),
        in_stock=details.in_stock,
        rating=rating,
        review_count=review_count,
        metadata=meta,
    )
