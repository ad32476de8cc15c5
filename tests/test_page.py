"""PageController: navigation retries, snapshots and response capture."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from conftest import make_page
from product_scraper.browser_manager import BrowserSession
from product_scraper.errors import NavigationFailed
from product_scraper.page import (
    PageController,
    PageProfile,
    ResponseCapture,
    is_transient_navigation_error,
)


def _controller(pages, backoff_sec=5.0, profile=None):
    context = MagicMock()
    context.new_page = AsyncMock(side_effect=list(pages))
    session = BrowserSession(playwright=MagicMock(), browser=MagicMock(), context=context)
    return PageController(session, profile=profile, backoff_sec=backoff_sec), context


def _failing_page(error: Exception) -> MagicMock:
    page = make_page(lambda url: "")
    page.goto = AsyncMock(side_effect=error)
    return page


class TestTransientErrors:
    def test_classification(self):
        assert is_transient_navigation_error(RuntimeError("net::ERR_CONNECTION_RESET at https://x"))
        assert is_transient_navigation_error(RuntimeError("net::ERR_EMPTY_RESPONSE"))
        assert is_transient_navigation_error(PlaywrightTimeoutError("Timeout 60000ms exceeded"))
        assert not is_transient_navigation_error(ValueError("invalid url"))


class TestNavigate:
    def test_two_resets_then_success(self):
        """Two connection resets back off twice, recreate the page, then succeed."""
        reset = RuntimeError("net::ERR_CONNECTION_RESET")
        good = make_page(lambda url: "<html></html>")
        controller, context = _controller([_failing_page(reset), _failing_page(reset), good])

        with patch("product_scraper.page.asyncio.sleep", new=AsyncMock()) as sleep:
            asyncio.run(controller.navigate("https://www.amazon.com/s?k=x", max_attempts=3))

        assert sleep.await_count == 2
        assert [c.args[0] for c in sleep.await_args_list] == [5.0, 10.0]
        assert context.new_page.await_count == 3
        assert controller.page is good
        assert good.goto.call_args.kwargs["wait_until"] == "load"

    def test_wait_strategy_escalates(self):
        timeout = PlaywrightTimeoutError("Timeout exceeded")
        first, second = _failing_page(timeout), make_page(lambda url: "")
        controller, _ = _controller([first, second], backoff_sec=0)

        asyncio.run(controller.navigate("https://x.example/"))

        assert first.goto.call_args.kwargs["wait_until"] == "networkidle"
        assert second.goto.call_args.kwargs["wait_until"] == "domcontentloaded"

    def test_non_transient_fails_immediately(self):
        page = _failing_page(ValueError("Protocol error: invalid url"))
        controller, context = _controller([page])

        with patch("product_scraper.page.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(NavigationFailed) as exc_info:
                asyncio.run(controller.navigate("bad://url"))

        assert exc_info.value.attempts == 1
        sleep.assert_not_awaited()
        assert context.new_page.await_count == 1

    def test_exhausted_attempts(self):
        reset = RuntimeError("net::ERR_CONNECTION_RESET")
        controller, _ = _controller([_failing_page(reset), _failing_page(reset)], backoff_sec=0)

        with pytest.raises(NavigationFailed) as exc_info:
            asyncio.run(controller.navigate("https://x.example/", max_attempts=2))

        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.last_error, RuntimeError)

    def test_profile_headers_and_referer(self):
        page = make_page(lambda url: "")
        profile = PageProfile(extra_headers={"Accept-Language": "zh-CN"}, referer="https://www.taobao.com/")
        controller, _ = _controller([page], profile=profile)

        asyncio.run(controller.navigate("https://s.taobao.com/search?q=x"))

        page.set_extra_http_headers.assert_awaited_once_with({"Accept-Language": "zh-CN"})
        assert page.goto.call_args.kwargs["referer"] == "https://www.taobao.com/"


class TestSnapshot:
    def test_evaluate_runs_over_parsed_document(self):
        page = make_page(lambda url: "<html><body><h1>Kettle</h1></body></html>", title="Shop")
        controller, _ = _controller([page])

        async def run():
            await controller.navigate("https://x.example/item")
            return await controller.evaluate(lambda snap: (snap.url, snap.title, snap.soup.h1.get_text()))

        assert asyncio.run(run()) == ("https://x.example/item", "Shop", "Kettle")


class TestResponseCapture:
    def test_collects_matching_bodies(self):
        def response(url, body, content_type="application/json"):
            r = MagicMock()
            r.url = url
            r.headers = {"content-type": content_type}
            r.text = AsyncMock(return_value=body)
            return r

        capture = ResponseCapture(lambda r: "search" in r.url)

        async def run():
            capture.on_response(response("https://s.taobao.com/search/api", '{"itemList": []}'))
            capture.on_response(response("https://g.alicdn.com/app.js", "var a;"))
            broken = response("https://s.taobao.com/search/broken", "")
            broken.text = AsyncMock(side_effect=RuntimeError("body gone"))
            capture.on_response(broken)
            return await capture.drain(timeout=1.0)

        captured = asyncio.run(run())

        assert [c.url for c in captured] == ["https://s.taobao.com/search/api"]
        assert captured[0].content_type == "application/json"
