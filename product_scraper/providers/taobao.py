# -*- coding: utf-8 -*-
"""Taobao / Tmall provider.

Search pages are read through all three listing strategies; product pages
use the detail rules below. Both paths clear bot challenges and the QR login
wall first when they appear.
"""

import re
from typing import Any

from bs4 import BeautifulSoup

from product_scraper import utils
from product_scraper.browser_manager import SessionOptions
from product_scraper.challenge import ChallengeHandler
from product_scraper.config import (
    BRAND_RE,
    CURRENCY_PRICE_RE,
    ITEM_ID_RE,
    JSON_ITEM_ID_RE,
    JSON_PRICE_RE,
    SHOP_NAME_RE,
    TAOBAO_DOMAINS,
    TAOBAO_HOME_URL,
    TAOBAO_ITEM_URL,
    TITLE_SITE_SUFFIX_RE,
    ZH_HEADERS,
)
from product_scraper.extraction import absolute_url, first_match, parse_count, parse_price, rules
from product_scraper.models import ProductDetails, ScrapedProduct, ScrapedSearchResult
from product_scraper.normalizer import build_product, build_search_result, clean_text, empty_search_result
from product_scraper.page import PageController, PageProfile, PageSnapshot
from product_scraper.providers.base import BaseProvider, hostname_of, normalize_url
from product_scraper.strategies import ExtractionChain, ListingProfile, RecordAliases
from product_scraper.taobao_login import TaobaoLogin

TAOBAO_LISTING = ListingProfile(
    platform="Taobao.com",
    base_url="https://s.taobao.com",
    placeholder_name="Taobao Product",
    item_url_template=TAOBAO_ITEM_URL,
    item_id_pattern=ITEM_ID_RE,
    list_keys=("itemList", "auctions", "itemsArray"),
    aliases=RecordAliases(),
    script_markers=(
        re.compile(r"g_page_config\s*=\s*"),
        re.compile(r'"itemList"\s*:\s*(?=\[)'),
        re.compile(r'"auctions"\s*:\s*(?=\[)'),
    ),
    script_id_pattern=JSON_ITEM_ID_RE,
    container_selectors=(
        "[class*='Card--doubleCardWrapper']",
        "[class*='Card--normalCard']",
        "[data-category='auctions']",
        ".items .item",
        ".item-wrapper",
        "[data-item-id]",
        "[data-nid]",
        ".b-item",
        ".item-box",
        ".product-item",
        ".J_MouserOnverReq",
        "[data-item]",
        ".item",
    ),
    link_selector="a[href*='/item/'], a[href*='/detail/'], a[href*='item.htm'], a[href*='detail.htm']",
    name_rules=rules(
        "[class*='Title--title']",
        ".title",
        ".item-title",
        ("[data-title]", "data-title"),
        "h3",
        ".title-text",
        ("a[title]", "title"),
        "h2",
        "h4",
        ".name",
        ".product-name",
        ("[title]", "title"),
    ),
    url_rules=rules(
        ("a[href*='item.htm']", "href"),
        ("a[href*='detail.htm']", "href"),
        ("a[href*='/item/']", "href"),
        ("a[href*='/detail/']", "href"),
        ("a[href]", "href"),
    ),
    price_rules=rules(
        "[class*='Price--priceInt']",
        ".price",
        ".item-price",
        ("[data-price]", "data-price"),
        ".price-text",
        ".g-price",
        ".price-current",
    ),
    image_rules=rules(
        ("img", "src"),
        ("img", "data-src"),
        ("img", "data-lazy-src"),
        ("img", "data-ks-lazyload"),
    ),
    rating_rules=rules(".rate", ".rating", ("[data-rating]", "data-rating"), ".score", ".star-rating"),
    review_rules=rules(
        ".review",
        ".comment",
        ("[data-review]", "data-review"),
        ".comment-count",
        ".review-count",
    ),
    stock_selector=".stock, .inventory, [data-stock], .sold-out",
    out_of_stock_markers=("缺货", "售罄"),
    name_max_len=200,
)

LISTING_URL_TOKENS = ("search", "item", "auction", "msearch", "suggest")
LISTING_CONTENT_TYPES = ("json", "javascript", "text")

DETAIL_NAME_RULES = rules(
    "[class*='mainTitle']",
    ".tb-main-title",
    ".tb-detail-hd h1",
    ("meta[property='og:title']", "content"),
    "h1",
)
DETAIL_PRICE_RULES = rules(
    "[class*='highlightPrice'] [class*='text']",
    "[class*='priceText']",
    "#J_PromoPriceNum",
    ".tb-promo-price .tb-rmb-num",
    ".tm-promo-price .tm-price",
    ".tb-rmb-num",
    ".tm-price",
)
DETAIL_STRIKE_RULES = rules(
    "[class*='subPrice'] [class*='text']",
    "#J_StrPrice .tb-rmb-num",
    "#J_StrPriceModBox .tm-price",
)
DETAIL_IMAGE_SELECTORS = (
    "#J_UlThumb img",
    "[class*='thumbnail'] img",
    "[class*='PicGallery'] img",
    "[class*='mainPic'] img",
)
DETAIL_SPEC_SELECTORS = ("#J_AttrUL li", ".attributes-list li")
# (item selector, value rendered above label)
DETAIL_PARAM_GROUPS = (
    ("[class*='emphasisParamsInfoItem--']", True),
    ("[class*='generalParamsInfoItem--']", False),
)
PARAM_TITLE_RULES = rules("[class*='ItemTitle']")
PARAM_SUBTITLE_RULES = rules("[class*='ItemSubTitle']")
DETAIL_REVIEW_RULES = rules("#J_RateCounter", "[class*='rateCount']", "[class*='commentCount']")
DETAIL_SHOP_RULES = rules("[class*='shopName']", ".tb-shop-name", ".slogo-shopname")
DETAIL_DESCRIPTION_RULES = rules(("meta[name='description']", "content"), "#description")
OFF_SHELF_MARKERS = ("已下架", "宝贝不存在", "缺货", "售罄")
IMAGE_SIZE_SUFFIX_RE = re.compile(r"_(?:\d+x\d+)[^/]*$")
SPEC_SPLIT_RE = re.compile(r"[:：]")


def is_listing_response(response: Any) -> bool:
    url_lower = (response.url or "").lower()
    if not any(token in url_lower for token in LISTING_URL_TOKENS):
        return False
    headers = response.headers or {}
    content_type = str(headers.get("content-type", "")).lower()
    return any(token in content_type for token in LISTING_CONTENT_TYPES)


def platform_for(url: str) -> str:
    host = hostname_of(url)
    if host == "tmall.com" or host.endswith(".tmall.com"):
        return "Tmall.com"
    return "Taobao.com"


def parse_search_page(snapshot: PageSnapshot, search_url: str, responses=()) -> ScrapedSearchResult:
    candidates = ExtractionChain(TAOBAO_LISTING).run(snapshot, responses)
    return build_search_result(candidates, search_url=search_url)


def _normalize_image(src: str) -> str:
    url = absolute_url("https://img.alicdn.com/", src)
    return IMAGE_SIZE_SUFFIX_RE.sub("", url) if url else ""


def _detail_images(soup: BeautifulSoup) -> list[str]:
    images: list[str] = []
    for selector in DETAIL_IMAGE_SELECTORS:
        for img in soup.select(selector):
            src = img.get("src") or img.get("data-src") or ""
            if src and not src.endswith(".gif"):
                images.append(_normalize_image(src))
        if images:
            break
    if not images:
        og_image = first_match(soup, rules(("meta[property='og:image']", "content")))
        if og_image:
            images.append(_normalize_image(og_image))
    return images


def _detail_specs(soup: BeautifulSoup) -> list[tuple[str, str]]:
    rows: list[tuple[str, str]] = []
    for selector, value_first in DETAIL_PARAM_GROUPS:
        for item in soup.select(selector):
            title = first_match(item, PARAM_TITLE_RULES)
            subtitle = first_match(item, PARAM_SUBTITLE_RULES)
            label, value = (subtitle, title) if value_first else (title, subtitle)
            if label and value:
                rows.append((label, value))
    for selector in DETAIL_SPEC_SELECTORS:
        for item in soup.select(selector):
            parts = SPEC_SPLIT_RE.split(item.get_text(" ", strip=True), maxsplit=1)
            if len(parts) != 2:
                continue
            label = parts[0].strip()
            value = parts[1].strip() or str(item.get("title") or "").strip()
            if label and value:
                rows.append((label, value))
    return list(dict.fromkeys(rows))


def _detail_price(soup: BeautifulSoup, text: str, html: str) -> float | None:
    price = parse_price(first_match(soup, DETAIL_PRICE_RULES))
    if price:
        return price
    prices = [parse_price(token) for token in CURRENCY_PRICE_RE.findall(text)]
    prices.extend(parse_price(match.group("v")) for match in JSON_PRICE_RE.finditer(html))
    valid = sorted(p for p in prices if p is not None and 0 < p < 100000)
    return valid[0] if valid else None


def parse_product_page(snapshot: PageSnapshot) -> ProductDetails:
    soup = snapshot.soup
    html = snapshot.html
    name = first_match(soup, DETAIL_NAME_RULES)
    if not name:
        name = TITLE_SITE_SUFFIX_RE.sub("", snapshot.title or "").strip()

    specifications = _detail_specs(soup)
    brand = ""
    match = BRAND_RE.search(html)
    if match:
        brand = clean_text(match.group("brand"), max_len=80)
    if not brand:
        brand = next(
            (value for label, value in specifications if "品牌" in label or "brand" in label.lower()),
            "",
        )

    shop_name = first_match(soup, DETAIL_SHOP_RULES)
    if not shop_name:
        shop_match = SHOP_NAME_RE.search(html)
        shop_name = clean_text(shop_match.group("name"), max_len=120) if shop_match else ""

    item_id_match = ITEM_ID_RE.search(snapshot.url or "")
    body_text = snapshot.text
    extra = {"shopName": shop_name} if shop_name else {}
    return ProductDetails(
        name=name,
        price=_detail_price(soup, body_text, html),
        strike_price=parse_price(first_match(soup, DETAIL_STRIKE_RULES)),
        brand=brand,
        description=first_match(soup, DETAIL_DESCRIPTION_RULES),
        barcode=item_id_match.group(1) if item_id_match else "",
        images=_detail_images(soup),
        specifications=specifications,
        review_count=parse_count(first_match(soup, DETAIL_REVIEW_RULES)),
        in_stock=not any(marker in body_text for marker in OFF_SHELF_MARKERS),
        place_of_origin="China",
        extra=extra,
    )


class TaobaoProvider(BaseProvider):
    name = "taobao"
    domains = TAOBAO_DOMAINS
    page_profile = PageProfile(extra_headers=dict(ZH_HEADERS), referer=TAOBAO_HOME_URL)
    session_options = SessionOptions(stealth=True, languages=("zh-CN", "zh", "en"))

    async def _open(self, controller: PageController, url: str) -> bool:
        """Navigate, clear challenge and login walls; False when still blocked."""
        await controller.navigate(url, max_attempts=self.settings.navigation_attempts)

        challenge = ChallengeHandler(controller, grace_sec=self.settings.challenge_grace_sec)
        outcome = await challenge.resolve()
        if outcome.blocked:
            utils.logger.warning(f"[TaobaoProvider] Blocked by bot challenge ({outcome.marker}) at {url}")
            return False

        login = TaobaoLogin(
            controller,
            login_timeout_sec=self.settings.login_timeout_sec,
            poll_interval_sec=self.settings.login_poll_interval_sec,
        )
        result = await login.check_and_handle_login()
        if not result.ok:
            utils.logger.warning(
                f"[TaobaoProvider] Login not completed ({result.final_state}: {result.reason}), continuing best-effort"
            )
        if result.login_was_required:
            await controller.navigate(url, max_attempts=self.settings.navigation_attempts)
        return True

    async def scrape_search(self, url: str) -> ScrapedSearchResult:
        url = normalize_url(url)
        utils.logger.info(f"[TaobaoProvider] Scraping search results from: {url}")
        async with self.session_provider.session(self.session_options) as session:
            controller = self._controller(session)
            capture = controller.intercept_responses(is_listing_response)
            await controller.new_page()
            if not await self._open(controller, url):
                return empty_search_result(url)
            responses = await capture.drain()
            result = await controller.evaluate(lambda snap: parse_search_page(snap, url, responses))
        utils.logger.info(f"[TaobaoProvider] Found {len(result.products)} unique products")
        return result

    async def scrape_product(self, url: str) -> ScrapedProduct:
        url = normalize_url(url)
        utils.logger.info(f"[TaobaoProvider] Scraping product from: {url}")
        async with self.session_provider.session(self.session_options) as session:
            controller = self._controller(session)
            await controller.new_page()
            await self._open(controller, url)
            details = await controller.evaluate(parse_product_page)
        return build_product(details, source_url=url, source_platform=platform_for(url))
