# -*- coding: utf-8 -*-
"""Amazon (amazon.com / amazon.in) provider."""

import asyncio
import dataclasses
import re
from typing import Optional

from bs4 import BeautifulSoup

from product_scraper import utils
from product_scraper.challenge import ChallengeHandler
from product_scraper.config import AMAZON_DOMAINS, ASIN_RE
from product_scraper.extraction import (
    find_price_in_text,
    first_match,
    parse_count,
    parse_price,
    parse_rating,
    rules,
)
from product_scraper.models import ProductDetails, ScrapedProduct, ScrapedSearchResult
from product_scraper.normalizer import (
    brand_from_name,
    build_product,
    build_search_result,
    clean_brand_name,
    empty_search_result,
)
from product_scraper.page import PageController, PageSnapshot
from product_scraper.providers.base import BaseProvider, hostname_of, normalize_url
from product_scraper.strategies import ExtractionChain, ListingProfile

CHALLENGE_TEXT_MARKERS = (
    "Enter the characters you see below",
    "Type the characters you see in this image",
    "To discuss automated access to Amazon data",
)
CHALLENGE_SELECTORS = ("form[action*='validateCaptcha']", "#captchacharacters")

AMAZON_LISTING = ListingProfile(
    platform="Amazon.com",
    base_url="https://www.amazon.com",
    placeholder_name="Amazon Product",
    item_id_pattern=ASIN_RE,
    container_selectors=(
        "[data-component-type='s-search-result']",
        ".s-result-item[data-asin]:not([data-asin=''])",
        "div[data-component-type='s-search-result']",
        ".s-search-results .s-result-item[data-asin]",
    ),
    link_selector="a[href*='/dp/']",
    name_rules=rules("h2 span", "h2 a span", "h2", ".a-size-base-plus", ".a-size-medium"),
    url_rules=rules(
        ("h2 a", "href"),
        ("a.a-link-normal[href*='/dp/']", "href"),
        ("a.a-link-normal", "href"),
        ("a[href*='/dp/']", "href"),
        ("a[href*='/gp/']", "href"),
    ),
    price_rules=rules(
        ".a-price:not([data-a-strike]) .a-offscreen",
        ".a-price-whole",
        ".a-price .a-offscreen",
    ),
    strike_price_rules=rules(
        ".a-price[data-a-strike='true'] .a-offscreen",
        ".a-text-price .a-offscreen",
    ),
    image_rules=rules(
        ("img.s-image", "src"),
        ("img[data-image-latency]", "src"),
        (".s-product-image-container img", "src"),
    ),
    rating_rules=rules(".a-icon-star-small .a-icon-alt", ".a-icon-alt"),
    review_rules=rules(
        ("[aria-label$='ratings']", "aria-label"),
        "a[href*='#customerReviews'] span",
        ".a-size-base.s-underline-text",
    ),
    brand_rules=rules(
        ".s-title-instructions-style span",
        ("[data-brand]", "data-brand"),
        ".a-size-base-plus.a-color-secondary",
    ),
    out_of_stock_markers=("Currently unavailable", "Out of Stock"),
)

RESULT_COUNT_RE = re.compile(r"of\s+(?:over\s+)?([\d,]+)\s+results", re.IGNORECASE)
BULLET_BRAND_RE = re.compile(r"\bBrand\s*[:\-]\s*([^\n\r|]+)", re.IGNORECASE)
IMAGE_SIZE_RE = re.compile(r"\._[A-Za-z0-9_,]+_\.")
DIRECTION_MARKS_RE = re.compile(r"[\u200e\u200f]")

PRODUCT_NAME_RULES = rules("#productTitle", "#title", ("meta[name='title']", "content"))
PRODUCT_PRICE_RULES = rules(
    ".a-price:not([data-a-strike]) .a-offscreen",
    ".a-price-whole",
    ".a-price .a-offscreen",
    "#priceblock_ourprice",
    "#priceblock_dealprice",
    "#priceblock_saleprice",
    ".a-price[data-a-color='base'] .a-offscreen",
    "[data-a-color='price'] .a-offscreen",
    "#price",
    ".a-price-range .a-offscreen",
)
PRODUCT_STRIKE_RULES = rules(
    ".a-price[data-a-strike='true'] .a-offscreen",
    ".a-price.a-text-strike .a-offscreen",
    "#priceblock_dealprice + .a-text-strike",
)
BYLINE_BRAND_RULES = rules(
    "#bylineInfo",
    ".po-brand .po-break-word",
    ("[data-brand]", "data-brand"),
    "a#brand",
    ".a-link-normal[href*='/brand/']",
)
SPEC_TABLE_SELECTORS = (
    "#productDetails_feature_div",
    "#productDetails_techSpec_section_1",
    "#productDetails_detailBullets_sections1",
)
RATING_RULES = rules(".a-icon-star .a-icon-alt", ("#acrPopover", "title"), "#acrPopover .a-icon-alt")
REVIEW_RULES = rules("#acrCustomerReviewText")
AVAILABILITY_RULES = rules("#availability span", "#availability")
IMAGE_SKIP_MARKERS = ("play-icon", "360", "spin", "transparent-pixel", "sprite")


def platform_for(url: str) -> tuple[str, str]:
    """(platform label, place of origin) for an Amazon URL."""
    host = hostname_of(url)
    if host == "amazon.in" or host.endswith(".amazon.in"):
        return "Amazon.in", "India"
    return "Amazon.com", "USA"


def base_url_for(url: str) -> str:
    host = hostname_of(url) or "www.amazon.com"
    return f"https://{host}"


def parse_total_results(soup: BeautifulSoup) -> tuple[Optional[int], Optional[int]]:
    """(total results, total pages) from the result bar and pagination strip."""
    total_results = None
    for span in soup.select("[data-component-type='s-result-info-bar'] span, .s-breadcrumb span"):
        match = RESULT_COUNT_RE.search(span.get_text(" ", strip=True))
        if match:
            total_results = parse_count(match.group(1))
            break
    last_page = soup.select_one(
        ".s-pagination-item.s-pagination-disabled:not(.s-pagination-previous)"
    )
    total_pages = parse_count(last_page.get_text(strip=True)) if last_page is not None else None
    return total_results, total_pages


def parse_search_page(snapshot: PageSnapshot, search_url: str) -> ScrapedSearchResult:
    platform, _ = platform_for(search_url)
    profile = dataclasses.replace(AMAZON_LISTING, platform=platform, base_url=base_url_for(search_url))
    candidates = ExtractionChain(profile).run(snapshot)
    total_results, total_pages = parse_total_results(snapshot.soup)
    return build_search_result(
        candidates,
        search_url=search_url,
        total_results=total_results,
        total_pages=total_pages,
        infer_brand=True,
    )


def _spec_rows(soup: BeautifulSoup) -> list[tuple[str, str]]:
    rows: list[tuple[str, str]] = []
    for table_selector in SPEC_TABLE_SELECTORS:
        for tr in soup.select(f"{table_selector} tr"):
            th, td = tr.find("th"), tr.find("td")
            if th is None or td is None:
                continue
            label = DIRECTION_MARKS_RE.sub("", th.get_text(" ", strip=True))
            value = DIRECTION_MARKS_RE.sub("", td.get_text(" ", strip=True))
            if label and value:
                rows.append((label, value))
    for li in soup.select("#detailBullets_feature_div ul li"):
        text = DIRECTION_MARKS_RE.sub("", li.get_text(" ", strip=True))
        if ":" not in text:
            continue
        label, value = text.split(":", 1)
        label, value = label.strip(), value.strip()
        if label and value:
            rows.append((label, value))
    # The feature block nests the tech-spec table, so rows can repeat.
    return list(dict.fromkeys(rows))


def extract_detail_brand(soup: BeautifulSoup, product_name: str = "") -> str:
    """Brand from a product page, most reliable source first."""
    bullets = soup.select_one("#feature-bullets")
    if bullets is not None:
        match = BULLET_BRAND_RE.search(bullets.get_text("\n", strip=True))
        if match:
            brand = clean_brand_name(match.group(1))
            if brand:
                return brand

    for table_selector in SPEC_TABLE_SELECTORS:
        for tr in soup.select(f"{table_selector} tr"):
            th, td = tr.find("th"), tr.find("td")
            if th is None or td is None:
                continue
            if "brand" in th.get_text(" ", strip=True).lower():
                brand = clean_brand_name(DIRECTION_MARKS_RE.sub("", td.get_text(" ", strip=True)))
                if brand:
                    return brand

    for rule in BYLINE_BRAND_RULES:
        brand = clean_brand_name(rule.read(soup))
        if brand:
            return brand

    return brand_from_name(product_name)


def _collect_images(soup: BeautifulSoup) -> list[str]:
    images: list[str] = []
    for img in soup.select("#altImages img"):
        src = img.get("src") or img.get("data-old-src") or img.get("data-src") or ""
        if not src or any(marker in src for marker in IMAGE_SKIP_MARKERS):
            continue
        images.append(IMAGE_SIZE_RE.sub("._AC_SX679_.", src))
    if not images:
        landing = soup.select_one("#landingImage")
        if landing is not None:
            src = landing.get("data-old-hires") or landing.get("src") or ""
            if src:
                images.append(src)
    return images


def parse_product_page(snapshot: PageSnapshot) -> ProductDetails:
    soup = snapshot.soup
    name = first_match(soup, PRODUCT_NAME_RULES)
    price = parse_price(first_match(soup, PRODUCT_PRICE_RULES))
    if price is None:
        price = find_price_in_text(snapshot.text)
    strike_price = parse_price(first_match(soup, PRODUCT_STRIKE_RULES))

    bullets = soup.select_one("#feature-bullets")
    description = bullets.get_text("\n", strip=True) if bullets is not None else ""
    if not description:
        description = first_match(soup, rules("#productDescription"))
    short_description = "\n".join(
        span.get_text(" ", strip=True)
        for span in soup.select("#feature-bullets ul li span")
        if span.get_text(strip=True)
    )

    specifications = _spec_rows(soup)
    barcode = next(
        (value for label, value in specifications if "asin" in label.lower()),
        "",
    )
    if not barcode:
        match = ASIN_RE.search(snapshot.url or "")
        barcode = match.group(1) if match else ""

    availability = first_match(soup, AVAILABILITY_RULES).lower()
    in_stock = not ("currently unavailable" in availability or "out of stock" in availability)

    return ProductDetails(
        name=name,
        price=price,
        strike_price=strike_price,
        brand=extract_detail_brand(soup, name),
        description=description,
        short_description=short_description,
        barcode=barcode,
        images=_collect_images(soup),
        specifications=specifications,
        rating=parse_rating(first_match(soup, RATING_RULES)),
        review_count=parse_count(first_match(soup, REVIEW_RULES)),
        in_stock=in_stock,
    )


class AmazonProvider(BaseProvider):
    name = "amazon"
    domains = AMAZON_DOMAINS

    def _challenge_handler(self, controller: PageController) -> ChallengeHandler:
        return ChallengeHandler(
            controller,
            grace_sec=self.settings.challenge_grace_sec,
            text_markers=CHALLENGE_TEXT_MARKERS,
            url_markers=("validatecaptcha",),
            selectors=CHALLENGE_SELECTORS,
        )

    async def enrich_brands(
        self, controller: PageController, result: ScrapedSearchResult
    ) -> ScrapedSearchResult:
        """Revisit up to ``enrich_limit`` detail pages, one at a time, for a better brand."""
        products = list(result.products)
        limit = min(self.settings.enrich_limit, len(products))
        if limit <= 0:
            return result
        utils.logger.info(f"[AmazonProvider] Enhancing brand names for {limit} products")
        for index in range(limit):
            if index:
                await asyncio.sleep(self.settings.enrich_delay_sec)
            product = products[index]
            try:
                await controller.navigate(
                    product.product_url, max_attempts=1, wait_strategies=("domcontentloaded",)
                )
                brand = await controller.evaluate(
                    lambda snap: extract_detail_brand(snap.soup, product.product_name)
                )
            except Exception as e:
                utils.logger.warning(
                    f"[AmazonProvider] Brand enrichment failed for {product.product_url}: {e}"
                )
                continue
            if brand and brand != product.brand_name:
                products[index] = dataclasses.replace(product, brand_name=brand)
        return dataclasses.replace(result, products=tuple(products))

    async def scrape_search(self, url: str) -> ScrapedSearchResult:
        url = normalize_url(url)
        utils.logger.info(f"[AmazonProvider] Scraping search results from: {url}")
        async with self.session_provider.session(self.session_options) as session:
            controller = self._controller(session)
            await controller.new_page()
            await controller.navigate(
                url,
                max_attempts=self.settings.navigation_attempts,
                wait_strategies=("domcontentloaded", "load"),
            )
            outcome = await self._challenge_handler(controller).resolve()
            if outcome.blocked:
                utils.logger.warning(f"[AmazonProvider] Search page blocked by a challenge: {url}")
                return empty_search_result(url)
            result = await controller.evaluate(lambda snap: parse_search_page(snap, url))
            utils.logger.info(f"[AmazonProvider] Scraped {len(result.products)} products from search")
            return await self.enrich_brands(controller, result)

    async def scrape_product(self, url: str) -> ScrapedProduct:
        url = normalize_url(url)
        utils.logger.info(f"[AmazonProvider] Scraping product from: {url}")
        platform, origin = platform_for(url)
        async with self.session_provider.session(self.session_options) as session:
            controller = self._controller(session)
            await controller.new_page()
            await controller.navigate(
                url,
                max_attempts=self.settings.navigation_attempts,
                wait_strategies=("domcontentloaded", "load"),
            )
            outcome = await self._challenge_handler(controller).resolve()
            if outcome.blocked:
                utils.logger.warning(f"[AmazonProvider] Product page blocked by a challenge: {url}")
            details = await controller.evaluate(parse_product_page)
        details.place_of_origin = origin
        return build_product(details, source_url=url, source_platform=platform)
