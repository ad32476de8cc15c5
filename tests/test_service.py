"""ScraperService: error conversion at the outward boundary."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

import product_scraper
from conftest import FakeSessionProvider, make_page
from product_scraper.config import ScraperSettings
from product_scraper.dispatcher import Dispatcher
from product_scraper.errors import NavigationFailed, NoProviderFound, ScrapeFailed, ScrapeTimeout
from product_scraper.models import ScrapedSearchResult
from product_scraper.providers.amazon import AmazonProvider
from product_scraper.providers.taobao import TaobaoProvider
from product_scraper.service import ScraperService, create_default_service


def _provider(name="amazon", **scrape):
    provider = MagicMock()
    provider.name = name
    provider.can_scrape.return_value = True
    provider.scrape_product = AsyncMock(**scrape)
    provider.scrape_search = AsyncMock(**scrape)
    return provider


class TestErrorConversion:
    def test_no_provider_and_no_session(self, fast_settings):
        """An unsupported URL fails before any browser session is acquired."""
        session_provider = FakeSessionProvider(make_page(lambda url: ""), fast_settings)
        dispatcher = Dispatcher(
            [AmazonProvider(session_provider, fast_settings), TaobaoProvider(session_provider, fast_settings)]
        )
        service = ScraperService(dispatcher)

        with pytest.raises(NoProviderFound):
            asyncio.run(service.scrape_product("https://www.ebay.com/itm/1"))
        with pytest.raises(NoProviderFound):
            asyncio.run(service.scrape_search("ebay.com"))
        assert session_provider.acquired == 0

    def test_typed_errors_pass_through(self):
        error = NavigationFailed("https://www.amazon.com/dp/B000000001", 3)
        service = ScraperService(Dispatcher([_provider(side_effect=error)]))

        with pytest.raises(NavigationFailed) as exc_info:
            asyncio.run(service.scrape_product("https://www.amazon.com/dp/B000000001"))
        assert exc_info.value is error

    def test_unexpected_errors_are_wrapped(self):
        service = ScraperService(Dispatcher([_provider(side_effect=KeyError("price"))]))

        with pytest.raises(ScrapeFailed) as exc_info:
            asyncio.run(service.scrape_search("https://www.amazon.com/s?k=x"))
        assert str(exc_info.value).startswith("Failed to scrape search results:")
        assert isinstance(exc_info.value.__cause__, KeyError)

    def test_product_error_message(self):
        service = ScraperService(Dispatcher([_provider(side_effect=RuntimeError("boom"))]))

        with pytest.raises(ScrapeFailed, match="Failed to scrape product: boom"):
            asyncio.run(service.scrape_product("https://www.amazon.com/dp/B000000001"))

    def test_deadline(self):
        async def slow(url):
            await asyncio.sleep(5)

        provider = _provider()
        provider.scrape_search = AsyncMock(side_effect=slow)
        service = ScraperService(Dispatcher([provider]), scrape_timeout_sec=0.01)

        with pytest.raises(ScrapeTimeout):
            asyncio.run(service.scrape_search("https://www.amazon.com/s?k=x"))

    def test_success(self):
        result = ScrapedSearchResult(products=(), total_results=0, current_page=1, search_url="u")
        service = ScraperService(Dispatcher([_provider(return_value=result)]))

        assert asyncio.run(service.scrape_search("https://www.amazon.com/s?k=x")) is result


class TestDefaultService:
    def test_wiring(self):
        service = create_default_service(ScraperSettings())

        assert service.get_registered_providers() == ["amazon", "taobao"]
        assert service.can_scrape("amazon.in")
        assert service.can_scrape("https://world.tmall.com/item/1.htm")
        assert not service.can_scrape("https://www.ebay.com/")
        assert service.scrape_timeout_sec == 300.0


class TestErrorTaxonomy:
    @pytest.mark.parametrize(
        "error",
        [
            product_scraper.ChallengeBlocked("captcha"),
            product_scraper.LoginTimedOut("qr_login_timeout"),
            product_scraper.SessionLimitExceeded("quota"),
        ],
    )
    def test_typed_errors_are_not_wrapped(self, error):
        service = ScraperService(Dispatcher([_provider(side_effect=error)]))

        with pytest.raises(type(error)) as exc_info:
            asyncio.run(service.scrape_product("https://www.amazon.com/dp/B000000001"))
        assert exc_info.value is error
        assert isinstance(error, product_scraper.ScraperError)

    def test_login_timeout_is_a_login_error(self):
        with pytest.raises(product_scraper.LoginRequired):
            raise product_scraper.LoginTimedOut("qr_login_timeout")
