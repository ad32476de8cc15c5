# -*- coding: utf-8 -*-
"""Site provider contract and shared hostname matching."""

import re
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import urlparse

from product_scraper.browser_manager import BrowserSession, BrowserSessionProvider, SessionOptions
from product_scraper.config import ScraperSettings
from product_scraper.models import ScrapedProduct, ScrapedSearchResult
from product_scraper.page import PageController, PageProfile

SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z\d+\-.]*://")


def normalize_url(url: str) -> str:
    """Navigable URL; bare "amazon.in/..." and "//host/..." inputs get https."""
    candidate = (url or "").strip()
    if not candidate or SCHEME_RE.match(candidate):
        return candidate
    if candidate.startswith("//"):
        return "https:" + candidate
    return "https://" + candidate


def hostname_of(url: str) -> str:
    """Lower-cased hostname of ``url``, scheme optional."""
    return (urlparse(normalize_url(url)).hostname or "").lower()


def matches_domain(hostname: str, domains: tuple[str, ...]) -> bool:
    return any(hostname == domain or hostname.endswith("." + domain) for domain in domains)


class BaseProvider(ABC):
    """A site-specific implementation of the scrape contract."""

    name: str = ""
    domains: tuple[str, ...] = ()
    page_profile: PageProfile = PageProfile()
    session_options: SessionOptions = SessionOptions()

    def __init__(
        self,
        session_provider: Optional[BrowserSessionProvider] = None,
        settings: Optional[ScraperSettings] = None,
    ):
        self.settings = settings or (
            session_provider.settings if session_provider is not None else ScraperSettings()
        )
        self.session_provider = session_provider or BrowserSessionProvider(self.settings)

    def can_scrape(self, url: str) -> bool:
        return matches_domain(hostname_of(url), self.domains)

    def _controller(self, session: BrowserSession) -> PageController:
        return PageController(
            session,
            profile=self.page_profile,
            navigation_timeout_ms=self.settings.navigation_timeout_ms,
            backoff_sec=self.settings.navigation_backoff_sec,
        )

    @abstractmethod
    async def scrape_search(self, url: str) -> ScrapedSearchResult:
        raise NotImplementedError

    @abstractmethod
    async def scrape_product(self, url: str) -> ScrapedProduct:
        raise NotImplementedError
