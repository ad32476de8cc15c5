"""Listing extraction strategies and the chain that merges them.

Each strategy turns one kind of page evidence into ``Candidate`` rows:
intercepted API responses, JSON embedded in inline scripts, or product
cards in the DOM. ``merge_candidates`` orders them network, script, DOM and
keeps the first row per product URL.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from bs4 import Tag

from product_scraper import utils
from product_scraper.config import HTML_TAG_RE
from product_scraper.errors import MalformedResponse
from product_scraper.extraction import (
    FieldRule,
    absolute_url,
    decode_json_at,
    extract_json_object,
    find_keyed_lists,
    first_key,
    first_match,
    parse_count,
    parse_price,
    parse_rating,
    select_first_group,
)
from product_scraper.models import Candidate, CandidateSource
from product_scraper.page import CapturedResponse, PageSnapshot


@dataclass(frozen=True)
class RecordAliases:
    """Alternative JSON keys per field, most specific first."""

    item_id: tuple[str, ...] = ("nid", "item_id", "itemId", "id")
    name: tuple[str, ...] = ("title", "raw_title", "name")
    price: tuple[str, ...] = ("view_price", "price", "priceShow")
    strike_price: tuple[str, ...] = ("reserve_price", "originalPrice")
    image: tuple[str, ...] = ("pic_url", "img", "pic", "image")
    rating: tuple[str, ...] = ("rate", "rating", "score")
    review_count: tuple[str, ...] = ("comment_count", "commentCount", "reviewCount")
    url: tuple[str, ...] = ("detail_url", "auctionURL", "url")
    brand: tuple[str, ...] = ("brand", "brandName")


@dataclass(frozen=True)
class ListingProfile:
    """Everything the strategies need to know about one site's listings."""

    platform: str
    base_url: str
    placeholder_name: str = "Product"
    item_url_template: str = ""
    item_id_pattern: re.Pattern[str] | None = None
    list_keys: tuple[str, ...] = ()
    aliases: RecordAliases = field(default_factory=RecordAliases)
    script_markers: tuple[re.Pattern[str], ...] = ()
    script_id_pattern: re.Pattern[str] | None = None
    container_selectors: tuple[str, ...] = ()
    link_selector: str = ""
    name_rules: tuple[FieldRule, ...] = ()
    url_rules: tuple[FieldRule, ...] = ()
    price_rules: tuple[FieldRule, ...] = ()
    strike_price_rules: tuple[FieldRule, ...] = ()
    image_rules: tuple[FieldRule, ...] = ()
    rating_rules: tuple[FieldRule, ...] = ()
    review_rules: tuple[FieldRule, ...] = ()
    brand_rules: tuple[FieldRule, ...] = ()
    stock_selector: str = ""
    out_of_stock_markers: tuple[str, ...] = ()
    name_max_len: int = 200

    def item_id_from_url(self, url: str) -> str:
        if not url or self.item_id_pattern is None:
            return ""
        match = self.item_id_pattern.search(url)
        return match.group(1) if match else ""

    def canonical_url(self, href: str, item_id: str = "") -> str:
        """Stable product URL; site template when an item id is known."""
        item_id = item_id or self.item_id_from_url(href)
        if item_id and self.item_url_template:
            return self.item_url_template.format(id=item_id)
        return absolute_url(self.base_url, href)


def _strip_markup(value: Any) -> str:
    return HTML_TAG_RE.sub("", str(value or "")).strip()


def candidate_from_record(
    profile: ListingProfile, record: dict[str, Any], source: CandidateSource
) -> Candidate | None:
    """Map one JSON item record through the alias table."""
    aliases = profile.aliases
    item_id = str(first_key(record, aliases.item_id) or "").strip()
    href = str(first_key(record, aliases.url) or "").strip()
    url = profile.canonical_url(href, item_id)
    if not url:
        return None
    name = _strip_markup(first_key(record, aliases.name)) or profile.placeholder_name
    image = str(first_key(record, aliases.image) or "").strip()
    return Candidate(
        source=source,
        product_url=url,
        item_id=item_id or profile.item_id_from_url(url),
        name=name[: profile.name_max_len],
        price=parse_price(first_key(record, aliases.price)),
        strike_price=parse_price(first_key(record, aliases.strike_price)),
        image=absolute_url(profile.base_url, image) if image else "",
        rating=parse_rating(first_key(record, aliases.rating)),
        review_count=parse_count(first_key(record, aliases.review_count)),
        brand=_strip_markup(first_key(record, aliases.brand)),
    )


def _candidates_from_payload(
    profile: ListingProfile, payload: Any, source: CandidateSource
) -> list[Candidate]:
    candidates: list[Candidate] = []
    for rows in find_keyed_lists(payload, profile.list_keys):
        for record in rows:
            candidate = candidate_from_record(profile, record, source)
            if candidate is not None:
                candidates.append(candidate)
    return candidates


class NetworkStrategy:
    source = CandidateSource.NETWORK

    def __init__(self, profile: ListingProfile):
        self.profile = profile

    def parse_body(self, body: str) -> list[Candidate]:
        # JSONP callbacks wrap the object, so decode from the first brace.
        payload = extract_json_object(body or "")
        if payload is None:
            raise MalformedResponse("response body holds no JSON payload")
        return _candidates_from_payload(self.profile, payload, self.source)

    def extract(self, responses: Iterable[CapturedResponse]) -> list[Candidate]:
        if not self.profile.list_keys:
            return []
        candidates: list[Candidate] = []
        for response in responses:
            try:
                candidates.extend(self.parse_body(response.body))
            except MalformedResponse as e:
                utils.logger.debug(f"[NetworkStrategy] Skipping {response.url}: {e}")
        return candidates


class ScriptStrategy:
    source = CandidateSource.SCRIPT

    def __init__(self, profile: ListingProfile):
        self.profile = profile

    def _placeholders(self, script: str) -> list[Candidate]:
        pattern = self.profile.script_id_pattern
        if pattern is None:
            return []
        candidates = []
        for item_id in dict.fromkeys(pattern.findall(script)):
            url = self.profile.canonical_url("", item_id)
            if url:
                candidates.append(
                    Candidate(
                        source=self.source,
                        product_url=url,
                        item_id=item_id,
                        name=self.profile.placeholder_name,
                        price=0.0,
                    )
                )
        return candidates

    def extract_from_script(self, script: str) -> list[Candidate]:
        candidates: list[Candidate] = []
        marker_hit = False
        for marker in self.profile.script_markers:
            for match in marker.finditer(script):
                marker_hit = True
                payload = decode_json_at(script, match.end())
                if payload is None:
                    continue
                candidates.extend(_candidates_from_payload(self.profile, payload, self.source))
                if isinstance(payload, list):
                    # Bare array markers point straight at the item list.
                    candidates.extend(
                        c
                        for c in (
                            candidate_from_record(self.profile, row, self.source)
                            for row in payload
                            if isinstance(row, dict)
                        )
                        if c is not None
                    )
        if marker_hit and not candidates:
            return self._placeholders(script)
        return candidates

    def extract(self, snapshot: PageSnapshot) -> list[Candidate]:
        if not self.profile.script_markers:
            return []
        candidates: list[Candidate] = []
        for tag in snapshot.soup.find_all("script"):
            script = tag.string or tag.get_text() or ""
            if script.strip():
                candidates.extend(self.extract_from_script(script))
        return candidates


class DomStrategy:
    source = CandidateSource.DOM

    def __init__(self, profile: ListingProfile):
        self.profile = profile

    def _is_in_stock(self, container: Tag) -> bool:
        markers = self.profile.out_of_stock_markers
        if not markers:
            return True
        scope = container
        if self.profile.stock_selector:
            scope = container.select_one(self.profile.stock_selector) or container
        text = scope.get_text(" ", strip=True)
        return not any(marker in text for marker in markers)

    def candidate_from_container(self, container: Tag, link: Tag | None = None) -> Candidate | None:
        profile = self.profile
        href = str(link.get("href") or "") if link is not None else ""
        if not href:
            href = first_match(container, profile.url_rules)
        if not href and container.name == "a":
            href = str(container.get("href") or "")
        url = profile.canonical_url(href)
        if not url:
            return None
        name = first_match(container, profile.name_rules)
        if not name and container.name == "a":
            name = str(container.get("title") or "").strip() or container.get_text(" ", strip=True)
        name = name or profile.placeholder_name
        image = first_match(container, profile.image_rules)
        return Candidate(
            source=self.source,
            product_url=url,
            item_id=profile.item_id_from_url(url),
            name=name[: profile.name_max_len],
            price=parse_price(first_match(container, profile.price_rules)),
            strike_price=parse_price(first_match(container, profile.strike_price_rules)),
            image=absolute_url(profile.base_url, image) if image else "",
            rating=parse_rating(first_match(container, profile.rating_rules)),
            review_count=parse_count(first_match(container, profile.review_rules)),
            in_stock=self._is_in_stock(container),
            brand=first_match(container, profile.brand_rules),
        )

    def _containers_from_links(self, root: Tag) -> list[tuple[Tag, Tag]]:
        """One (container, link) pair per distinct item found in product links.

        A classed parent is used as the card only when it wraps a single item;
        a parent shared by several items is a list, so the link stands alone.
        """
        links: list[tuple[Tag, Tag | None]] = []
        seen: set[str] = set()
        for link in root.select(self.profile.link_selector):
            href = str(link.get("href") or "")
            key = self.profile.item_id_from_url(href) or absolute_url(self.profile.base_url, href)
            if not key or key in seen:
                continue
            seen.add(key)
            parent = link.find_parent(class_=True)
            if parent is not None and parent.name in ("body", "html"):
                parent = None
            links.append((link, parent))
        shared = Counter(id(parent) for _, parent in links if parent is not None)
        return [
            (parent if parent is not None and shared[id(parent)] == 1 else link, link)
            for link, parent in links
        ]

    def extract(self, snapshot: PageSnapshot) -> list[Candidate]:
        root = snapshot.soup
        selector, containers = select_first_group(root, self.profile.container_selectors)
        pairs: list[tuple[Tag, Tag | None]]
        if containers:
            utils.logger.debug(f"[DomStrategy] {len(containers)} containers via {selector}")
            pairs = [(container, None) for container in containers]
        elif self.profile.link_selector:
            pairs = self._containers_from_links(root)
            if pairs:
                utils.logger.info(f"[DomStrategy] No product cards matched, synthesized {len(pairs)} from links")
        else:
            pairs = []
        candidates: list[Candidate] = []
        for container, link in pairs:
            candidate = self.candidate_from_container(container, link)
            if candidate is not None:
                candidates.append(candidate)
        return candidates


def merge_candidates(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Stable-order by source rank, then keep the first row per product URL."""
    ordered = sorted(candidates, key=lambda c: c.source.rank)
    merged: list[Candidate] = []
    seen: set[str] = set()
    for candidate in ordered:
        if not candidate.product_url or candidate.product_url in seen:
            continue
        seen.add(candidate.product_url)
        merged.append(candidate)
    return merged


class ExtractionChain:
    """Runs every listing strategy in isolation and merges their output."""

    def __init__(self, profile: ListingProfile):
        self.profile = profile
        self.network = NetworkStrategy(profile)
        self.script = ScriptStrategy(profile)
        self.dom = DomStrategy(profile)

    def run(
        self, snapshot: PageSnapshot, responses: Sequence[CapturedResponse] = ()
    ) -> list[Candidate]:
        groups: list[list[Candidate]] = []
        for name, run in (
            ("network", lambda: self.network.extract(responses)),
            ("script", lambda: self.script.extract(snapshot)),
            ("dom", lambda: self.dom.extract(snapshot)),
        ):
            try:
                found = run()
            except Exception as e:
                utils.logger.warning(f"[ExtractionChain] {name} strategy failed: {e}")
                continue
            utils.logger.info(f"[ExtractionChain] {name} strategy produced {len(found)} candidates")
            groups.append(found)
        merged = merge_candidates(c for group in groups for c in group)
        if not merged:
            utils.logger.info(f"[ExtractionChain] No items extracted from {snapshot.url}")
        return merged
