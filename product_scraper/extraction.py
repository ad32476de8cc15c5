"""Declarative field rules and the parsing helpers shared by every site."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Iterable, Sequence
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from product_scraper.config import CURRENCY_PRICE_RE, PRICE_RE, WHITESPACE_RE

RATING_RE = re.compile(r"(\d+(?:[.,]\d+)?)")
COUNT_RE = re.compile(r"(\d[\d,]*)(?:\.(\d+))?\s*([kK万]?)")


@dataclass(frozen=True)
class FieldRule:
    """One candidate location for a field.

    ``attribute`` of ``None`` reads the element text. ``pattern`` is applied
    to the raw value and group 1 is kept when it matches.
    """

    selector: str
    attribute: str | None = None
    pattern: re.Pattern[str] | None = None

    def read(self, root: Tag) -> str:
        element = root.select_one(self.selector)
        if element is None:
            return ""
        if self.attribute is None:
            value = element.get_text(" ", strip=True)
        else:
            raw = element.get(self.attribute)
            if isinstance(raw, list):
                raw = " ".join(raw)
            value = str(raw or "").strip()
        if value and self.pattern is not None:
            match = self.pattern.search(value)
            value = match.group(1).strip() if match else ""
        return WHITESPACE_RE.sub(" ", value).strip()


def rules(*specs: str | tuple[str, str | None] | FieldRule) -> tuple[FieldRule, ...]:
    """Build a rule tuple from bare selectors, (selector, attr) pairs or rules."""
    built: list[FieldRule] = []
    for spec in specs:
        if isinstance(spec, FieldRule):
            built.append(spec)
        elif isinstance(spec, tuple):
            built.append(FieldRule(spec[0], spec[1]))
        else:
            built.append(FieldRule(spec))
    return tuple(built)


def first_match(root: Tag, field_rules: Iterable[FieldRule]) -> str:
    """Return the first non-empty value produced by ``field_rules``."""
    for rule in field_rules:
        value = rule.read(root)
        if value:
            return value
    return ""


def select_first_group(root: Tag, selectors: Sequence[str]) -> tuple[str, list[Tag]]:
    """Return the first selector with any matches together with its matches."""
    for selector in selectors:
        found = root.select(selector)
        if found:
            return selector, found
    return "", []


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def parse_price(raw: Any) -> float | None:
    """Parse "$1,234.99", "₹ 999.", "¥12.5" style strings into a float."""
    if raw is None:
        return None
    if isinstance(raw, (int, float)):
        return float(raw) if raw >= 0 else None
    text = str(raw).strip()
    if not text:
        return None
    match = PRICE_RE.search(text)
    if not match:
        return None
    whole = match.group(1).replace(",", "")
    cents = match.group(2) or ""
    try:
        return float(f"{whole}.{cents}" if cents else whole)
    except ValueError:
        return None


def find_price_in_text(text: str) -> float | None:
    """Scan free text for the first currency-adjacent number."""
    match = CURRENCY_PRICE_RE.search(text or "")
    if not match:
        return None
    return parse_price(match.group(1))


def parse_rating(raw: Any) -> float | None:
    if raw is None or raw == "":
        return None
    match = RATING_RE.search(str(raw))
    if not match:
        return None
    try:
        value = float(match.group(1).replace(",", "."))
    except ValueError:
        return None
    if value < 0:
        return None
    return min(value, 5.0)


def parse_count(raw: Any) -> int | None:
    """Parse "1,234 ratings", "2.5k" or "1万+" into a non-negative integer."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, int):
        return max(0, raw)
    match = COUNT_RE.search(str(raw))
    if not match:
        return None
    whole = match.group(1).replace(",", "")
    fraction = match.group(2) or ""
    unit = match.group(3)
    try:
        value = float(f"{whole}.{fraction}" if fraction else whole)
    except ValueError:
        return None
    if unit in ("k", "K"):
        value *= 1_000
    elif unit == "万":
        value *= 10_000
    return int(value)


def absolute_url(base: str, href: str) -> str:
    href = (href or "").strip()
    if not href or href.startswith(("javascript:", "#")):
        return ""
    if href.startswith("//"):
        return "https:" + href
    return urljoin(base, href)


def extract_json_object(raw: str) -> Any:
    """Decode the first JSON object or array found in ``raw``."""
    decoder = json.JSONDecoder()
    for idx, ch in enumerate(raw):
        if ch not in "[{":
            continue
        try:
            value, _ = decoder.raw_decode(raw[idx:])
            return value
        except json.JSONDecodeError:
            continue
    return None


def decode_json_at(raw: str, start: int) -> Any:
    """Decode a JSON value that begins exactly at ``start``."""
    try:
        value, _ = json.JSONDecoder().raw_decode(raw[start:])
    except json.JSONDecodeError:
        return None
    return value


def find_keyed_lists(payload: Any, keys: Sequence[str], max_depth: int = 8) -> list[list[dict[str, Any]]]:
    """Collect every list of dicts stored under one of ``keys`` in a JSON tree."""
    found: list[list[dict[str, Any]]] = []

    def _walk(node: Any, depth: int) -> None:
        if depth > max_depth:
            return
        if isinstance(node, dict):
            for key, value in node.items():
                if key in keys and isinstance(value, list):
                    rows = [row for row in value if isinstance(row, dict)]
                    if rows:
                        found.append(rows)
                        continue
                _walk(value, depth + 1)
        elif isinstance(node, list):
            for value in node:
                _walk(value, depth + 1)

    _walk(payload, 0)
    return found


def first_key(record: dict[str, Any], aliases: Sequence[str]) -> Any:
    """Value of the first alias present with a non-empty value."""
    for alias in aliases:
        value = record.get(alias)
        if value not in (None, "", [], {}):
            return value
    return None
