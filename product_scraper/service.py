# -*- coding: utf-8 -*-
"""Dispatch service: the entry point callers use to scrape a URL.

Errors leaving this module are always ``ScraperError`` subclasses. Typed
errors raised by providers pass through untouched, timeouts become
``ScrapeTimeout`` and anything else is wrapped in ``ScrapeFailed``.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

from product_scraper import utils
from product_scraper.browser_manager import BrowserSessionProvider
from product_scraper.config import ScraperSettings
from product_scraper.dispatcher import Dispatcher
from product_scraper.errors import ScrapeFailed, ScraperError, ScrapeTimeout
from product_scraper.models import ScrapedProduct, ScrapedSearchResult
from product_scraper.providers.amazon import AmazonProvider
from product_scraper.providers.taobao import TaobaoProvider

T = TypeVar("T")


class ScraperService:
    def __init__(self, dispatcher: Dispatcher, scrape_timeout_sec: Optional[float] = None):
        self.dispatcher = dispatcher
        self.scrape_timeout_sec = scrape_timeout_sec

    async def _guarded(self, call: Awaitable[T], what: str) -> T:
        try:
            return await utils.with_deadline(call, self.scrape_timeout_sec, what)
        except ScraperError:
            raise
        except asyncio.TimeoutError as e:
            raise ScrapeTimeout(f"{what} timed out: {e}") from e
        except Exception as e:
            utils.logger.error(f"[ScraperService] Failed to scrape {what}: {e}")
            raise ScrapeFailed(f"Failed to scrape {what}: {e}") from e

    async def scrape_product(self, url: str) -> ScrapedProduct:
        provider = self.dispatcher.resolve(url)
        utils.logger.info(f"[ScraperService] Scraping product with {provider.name}: {url}")
        return await self._guarded(provider.scrape_product(url), "product")

    async def scrape_search(self, url: str) -> ScrapedSearchResult:
        provider = self.dispatcher.resolve(url)
        utils.logger.info(f"[ScraperService] Scraping search results with {provider.name}: {url}")
        return await self._guarded(provider.scrape_search(url), "search results")

    def can_scrape(self, url: str) -> bool:
        return self.dispatcher.can_scrape(url)

    def get_registered_providers(self) -> list[str]:
        return self.dispatcher.registered_providers()


def create_default_service(settings: Optional[ScraperSettings] = None) -> ScraperService:
    """Service wired with the Amazon and Taobao providers over one session provider."""
    settings = settings or ScraperSettings.from_env()
    session_provider = BrowserSessionProvider(settings)
    dispatcher = Dispatcher(
        [
            AmazonProvider(session_provider, settings),
            TaobaoProvider(session_provider, settings),
        ]
    )
    return ScraperService(dispatcher, scrape_timeout_sec=settings.scrape_timeout_sec)
