"""TaobaoLogin: login wall detection and the QR polling loop."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

from product_scraper.page import PageSnapshot
from product_scraper.taobao_login import TaobaoLogin

LOGIN_HTML = "<html><body><div>扫码登录</div><div>账号密码登录</div></body></html>"
ANON_LISTING_HTML = (
    "<html><body><a>请登录</a><a>免费注册</a>"
    "<a href='https://item.taobao.com/item.htm?id=700000000001'>a</a>"
    "<a href='https://item.taobao.com/item.htm?id=700000000002'>b</a>"
    "<a href='https://item.taobao.com/item.htm?id=700000000003'>c</a>"
    "</body></html>"
)
LOGIN_URL = "https://login.taobao.com/member/login.jhtml"


def _controller(snapshots, cookies=None) -> MagicMock:
    controller = MagicMock()
    controller.snapshot = AsyncMock(side_effect=list(snapshots))
    controller.navigate = AsyncMock()
    controller.context.cookies = AsyncMock(return_value=list(cookies or []))
    controller.page.query_selector = AsyncMock(return_value=None)
    return controller


class TestLoginPrompt:
    def test_prompt_detection(self):
        assert TaobaoLogin.has_login_prompt(PageSnapshot("https://x", "", LOGIN_HTML))
        assert not TaobaoLogin.has_login_prompt(PageSnapshot("https://x", "", "<p>请登录</p>"))

    def test_login_url(self):
        assert TaobaoLogin.is_login_url(LOGIN_URL)
        assert not TaobaoLogin.is_login_url("https://s.taobao.com/search?q=x")


class TestCheckAndHandleLogin:
    def test_listing_with_anonymous_top_bar_is_not_a_wall(self):
        controller = _controller([PageSnapshot("https://s.taobao.com/search?q=x", "", ANON_LISTING_HTML)])
        result = asyncio.run(TaobaoLogin(controller).check_and_handle_login())

        assert result.ok
        assert result.final_state == "NORMAL"
        assert not result.login_was_required
        controller.navigate.assert_not_awaited()

    def test_cookie_success(self):
        cookies = [{"name": "_tb_token_", "value": "t"}, {"name": "cookie2", "value": "c"}]
        snapshots = [
            PageSnapshot(LOGIN_URL, "", LOGIN_HTML),  # initial check
            PageSnapshot(LOGIN_URL, "", LOGIN_HTML),  # QR text fallback
            PageSnapshot(LOGIN_URL, "", "<html><body>loading</body></html>"),  # first poll
        ]
        controller = _controller(snapshots, cookies=cookies)
        result = asyncio.run(TaobaoLogin(controller, login_timeout_sec=30, poll_interval_sec=0).check_and_handle_login())

        assert result.ok
        assert result.final_state == "SUCCESS"
        assert result.reason == "auth_cookies_present"
        assert result.login_was_required
        assert controller.navigate.call_args.args[0] == LOGIN_URL

    def test_timeout(self):
        controller = _controller([PageSnapshot(LOGIN_URL, "", LOGIN_HTML)] * 2)
        result = asyncio.run(TaobaoLogin(controller, login_timeout_sec=0).check_and_handle_login())

        assert not result.ok
        assert result.final_state == "TIMEOUT"
        assert result.reason == "qr_login_timeout"

    def test_navigation_failure_is_reported(self):
        controller = _controller([PageSnapshot(LOGIN_URL, "", LOGIN_HTML)])
        controller.navigate = AsyncMock(side_effect=RuntimeError("net::ERR_CONNECTION_RESET"))
        result = asyncio.run(TaobaoLogin(controller).check_and_handle_login())

        assert not result.ok
        assert result.final_state == "FAILED"
        assert result.reason == "exception:RuntimeError"
