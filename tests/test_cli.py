"""CLI commands and the JSON error envelope."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

from product_scraper.cli import main
from product_scraper.errors import NoProviderFound
from product_scraper.models import ScrapedSearchResult


def _argv(tmp_path, *rest):
    return ["--env-file", str(tmp_path / "missing.env"), *rest]


class TestCli:
    def test_providers(self, tmp_path, capsys):
        assert main(_argv(tmp_path, "providers")) == 0
        assert json.loads(capsys.readouterr().out) == {"providers": ["amazon", "taobao"]}

    def test_check(self, tmp_path, capsys):
        assert main(_argv(tmp_path, "check", "https://detail.tmall.com/item.htm?id=1")) == 0
        assert json.loads(capsys.readouterr().out)["canScrape"] is True

    def test_no_command_prints_help(self, tmp_path, capsys):
        assert main(_argv(tmp_path)) == 1
        assert "usage:" in capsys.readouterr().out

    def test_search_success(self, tmp_path, capsys):
        service = MagicMock()
        service.scrape_search = AsyncMock(
            return_value=ScrapedSearchResult(products=(), total_results=0, current_page=1, search_url="u")
        )
        with patch("product_scraper.cli.create_default_service", return_value=service):
            assert main(_argv(tmp_path, "search", "https://www.amazon.com/s?k=x")) == 0

        payload = json.loads(capsys.readouterr().out)
        assert payload["ok"] is True
        assert payload["result"]["totalResults"] == 0

    def test_error_envelope(self, tmp_path, capsys):
        service = MagicMock()
        service.scrape_product = AsyncMock(side_effect=NoProviderFound("https://www.ebay.com/itm/1"))
        with patch("product_scraper.cli.create_default_service", return_value=service):
            assert main(_argv(tmp_path, "product", "https://www.ebay.com/itm/1")) == 2

        payload = json.loads(capsys.readouterr().out)
        assert payload["ok"] is False
        assert payload["error_type"] == "NoProviderFound"
        assert "ebay.com" in payload["error"]
