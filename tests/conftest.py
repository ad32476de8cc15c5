"""Shared fakes for Playwright pages and browser sessions."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from product_scraper.browser_manager import BrowserSession
from product_scraper.config import ScraperSettings

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


def make_page(html_for: Callable[[str], str], title: str = "") -> MagicMock:
    """A page mock whose content follows the last URL passed to goto()."""
    page = MagicMock()
    page.url = "about:blank"

    async def goto(url, **kwargs):
        page.url = url

    async def content():
        return html_for(page.url)

    page.goto = AsyncMock(side_effect=goto)
    page.content = AsyncMock(side_effect=content)
    page.title = AsyncMock(return_value=title)
    page.set_extra_http_headers = AsyncMock()
    page.close = AsyncMock()
    page.query_selector = AsyncMock(return_value=None)
    return page


class FakeSessionProvider:
    """Stands in for BrowserSessionProvider; hands out one mocked context."""

    def __init__(self, page: MagicMock, settings: ScraperSettings, cookies=None):
        self.settings = settings
        self.page = page
        self.acquired = 0
        self.released = 0
        self.context = MagicMock()
        self.context.new_page = AsyncMock(return_value=page)
        self.context.cookies = AsyncMock(return_value=list(cookies or []))

    @asynccontextmanager
    async def session(self, options=None):
        self.acquired += 1
        try:
            yield BrowserSession(playwright=MagicMock(), browser=MagicMock(), context=self.context)
        finally:
            self.released += 1


@pytest.fixture
def fast_settings() -> ScraperSettings:
    return ScraperSettings(
        navigation_backoff_sec=0,
        challenge_grace_sec=0,
        login_timeout_sec=0,
        login_poll_interval_sec=0,
        enrich_limit=0,
        enrich_delay_sec=0,
        scrape_timeout_sec=30,
    )
