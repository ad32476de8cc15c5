"""extraction module: field rules and value parsers."""

import re

from product_scraper.extraction import (
    FieldRule,
    absolute_url,
    decode_json_at,
    extract_json_object,
    find_keyed_lists,
    first_key,
    first_match,
    parse_count,
    parse_html,
    parse_price,
    parse_rating,
    rules,
    select_first_group,
)


class TestFieldRules:
    """FieldRule / first_match."""

    def test_first_non_empty_rule_wins(self):
        soup = parse_html('<div><h2></h2><span class="t">  Blue   Kettle </span></div>')
        assert first_match(soup, rules("h2", ".t", "div")) == "Blue Kettle"

    def test_attribute_rule(self):
        soup = parse_html('<a href="/dp/B000000001" title="Kettle">x</a>')
        assert first_match(soup, rules(("a", "title"))) == "Kettle"
        assert first_match(soup, rules(("a", "data-missing"), ("a", "href"))) == "/dp/B000000001"

    def test_pattern_keeps_group(self):
        soup = parse_html('<span class="r">4.3 out of 5 stars</span>')
        rule = FieldRule(".r", pattern=re.compile(r"([\d.]+) out of"))
        assert rule.read(soup) == "4.3"

    def test_no_match_returns_empty(self):
        assert first_match(parse_html("<p></p>"), rules(".nothing")) == ""

    def test_select_first_group(self):
        soup = parse_html('<div class="b"></div><div class="b"></div><div class="c"></div>')
        selector, found = select_first_group(soup, (".a", ".b", ".c"))
        assert selector == ".b"
        assert len(found) == 2


class TestParsePrice:
    def test_currency_and_thousands(self):
        assert parse_price("$1,234.99") == 1234.99
        assert parse_price("¥12.5") == 12.5

    def test_plain_numbers(self):
        assert parse_price(89) == 89.0
        assert parse_price("59.90") == 59.9

    def test_invalid(self):
        assert parse_price(None) is None
        assert parse_price("") is None
        assert parse_price("free") is None
        assert parse_price(-3) is None


class TestParseRatingAndCount:
    def test_rating(self):
        assert parse_rating("4.6 out of 5 stars") == 4.6
        assert parse_rating("4,2") == 4.2
        assert parse_rating("9") == 5.0
        assert parse_rating("") is None

    def test_count(self):
        assert parse_count("12,345 ratings") == 12345
        assert parse_count("2.5k") == 2500
        assert parse_count("1万+人付款") == 10000
        assert parse_count("none") is None


class TestUrlsAndJson:
    def test_absolute_url(self):
        assert absolute_url("https://www.amazon.com", "/dp/B000000001") == "https://www.amazon.com/dp/B000000001"
        assert absolute_url("https://s.taobao.com", "//img.alicdn.com/a.jpg") == "https://img.alicdn.com/a.jpg"
        assert absolute_url("https://s.taobao.com", "javascript:void(0)") == ""

    def test_extract_json_object_from_jsonp(self):
        payload = extract_json_object('mtopjsonp3({"data": {"itemsArray": []}})')
        assert payload == {"data": {"itemsArray": []}}

    def test_extract_json_object_none(self):
        assert extract_json_object("no json here") is None

    def test_decode_json_at_ignores_trailing_script(self):
        script = 'var cfg = {"a": [1, 2]}; run();'
        assert decode_json_at(script, script.index("{")) == {"a": [1, 2]}
        assert decode_json_at("var cfg = broken", 10) is None

    def test_find_keyed_lists_nested(self):
        payload = {"mods": {"itemlist": {"data": {"auctions": [{"nid": "1"}, "junk"]}}}}
        assert find_keyed_lists(payload, ("auctions",)) == [[{"nid": "1"}]]

    def test_first_key_skips_empty(self):
        assert first_key({"title": "", "raw_title": "Dress"}, ("title", "raw_title")) == "Dress"
        assert first_key({}, ("title",)) is None
