# -*- coding: utf-8 -*-
"""Taobao Login Handler

Detects the Taobao login wall and drives the manual QR-code login flow.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

from product_scraper import utils
from product_scraper.config import TAOBAO_AUTH_COOKIE_NAMES, TAOBAO_LOGIN_URL
from product_scraper.page import PageController, PageSnapshot

LOGIN_PROMPT_MARKERS = (
    "扫码登录",
    "请扫码登录",
    "扫一扫登录",
    "账号密码登录",
    "短信登录",
    "手机验证码登录",
    "忘记密码",
    "免费注册",
    "请登录",
)
QR_TAB_SELECTOR = ".login-tab-qrcode, .qr-login-tab, [data-tab='qrcode']"
QR_SELECTORS = (
    ".qr-login",
    ".qr-code-container",
    "#J_QRCodeImg",
    ".login-qrcode",
    "img[src*='qrcode']",
    "img[src*='QR']",
    ".qrcode",
    "[class*='qr']",
    "[class*='QR']",
    "canvas",
)
QR_TEXT_MARKERS = ("扫码", "QR", "扫一扫")
USER_MARKER_SELECTORS = (".member-name", ".user-info", ".nickname", "[class*='user']")
AUTH_COOKIE_THRESHOLD = 2
ITEM_LINK_SELECTOR = "a[href*='item.htm'], a[href*='/item/'], a[href*='detail.htm']"


@dataclass
class LoginDecision:
    is_login_page: bool
    has_login_prompt: bool
    auth_cookie_count: int
    has_user_marker: bool
    reason: str
    url: str
    timestamp: float


@dataclass
class LoginHandleResult:
    ok: bool
    reason: str
    final_state: str
    decision_trace: list[dict[str, Any]] = field(default_factory=list)
    elapsed_sec: float = 0.0

    @property
    def login_was_required(self) -> bool:
        return any(event.get("state") == "LOGIN_REQUIRED" for event in self.decision_trace)


class TaobaoLogin:
    """Handle Taobao login interception"""

    def __init__(
        self,
        controller: PageController,
        login_timeout_sec: int = 120,
        poll_interval_sec: float = 2.0,
    ):
        self.controller = controller
        self.login_timeout_sec = max(0, int(login_timeout_sec))
        self.poll_interval_sec = max(0.0, float(poll_interval_sec))
        self._decision_trace: list[dict[str, Any]] = []
        self._started_at: float = 0.0

    def _append_trace(
        self, state: str, decision: LoginDecision | None = None, note: str = ""
    ) -> None:
        event: dict[str, Any] = {
            "state": state,
            "note": note,
            "ts": round(time.time(), 3),
        }
        if self._started_at > 0:
            event["elapsed_sec"] = round(max(0.0, time.monotonic() - self._started_at), 3)
        if decision is not None:
            event.update(
                {
                    "is_login_page": bool(decision.is_login_page),
                    "auth_cookie_count": decision.auth_cookie_count,
                    "has_user_marker": bool(decision.has_user_marker),
                    "decision_reason": decision.reason,
                    "url": decision.url,
                }
            )
        self._decision_trace.append(event)

    def _finalize(self, ok: bool, reason: str, final_state: str) -> LoginHandleResult:
        elapsed_sec = 0.0
        if self._started_at > 0:
            elapsed_sec = round(max(0.0, time.monotonic() - self._started_at), 3)
        return LoginHandleResult(
            ok=bool(ok),
            reason=str(reason or ""),
            final_state=str(final_state or ""),
            decision_trace=list(self._decision_trace),
            elapsed_sec=elapsed_sec,
        )

    async def _auth_cookie_count(self) -> int:
        try:
            cookies = await self.controller.context.cookies()
        except Exception as e:
            utils.logger.debug(f"[TaobaoLogin] Could not read cookies: {e}")
            return 0
        return utils.count_named_cookies(cookies, TAOBAO_AUTH_COOKIE_NAMES)

    @staticmethod
    def has_login_prompt(snapshot: PageSnapshot) -> bool:
        body_text = snapshot.text
        title = snapshot.title
        hits = sum(1 for token in LOGIN_PROMPT_MARKERS if token in body_text or token in title)
        if hits >= 2:
            return True
        return "扫码" in body_text and "登录" in body_text

    @staticmethod
    def is_login_url(url: str) -> bool:
        lowered = (url or "").lower()
        return "login.taobao.com" in lowered or "member/login" in lowered

    async def _evaluate_login_decision(self) -> LoginDecision:
        """Evaluate current page and cookies to decide login state."""
        snapshot = await self.controller.snapshot()
        cookie_count = await self._auth_cookie_count()
        has_user_marker = any(
            snapshot.soup.select_one(selector) is not None for selector in USER_MARKER_SELECTORS
        )
        prompt = self.has_login_prompt(snapshot)

        if self.is_login_url(snapshot.url):
            is_login_page, reason = True, "url_login"
        elif len(snapshot.soup.select(ITEM_LINK_SELECTOR)) >= 3:
            # Anonymous top bars also say 请登录; real listings win.
            is_login_page, reason = False, "content_ready"
        elif prompt:
            is_login_page, reason = True, "login_prompt"
        else:
            is_login_page, reason = False, "no_login_prompt"

        return LoginDecision(
            is_login_page=is_login_page,
            has_login_prompt=prompt,
            auth_cookie_count=cookie_count,
            has_user_marker=has_user_marker and not prompt,
            reason=reason,
            url=snapshot.url,
            timestamp=time.time(),
        )

    async def _locate_qr_code(self) -> bool:
        """Open the QR tab when needed and report whether a QR affordance is visible."""
        page = self.controller.page
        if page is None:
            return False
        try:
            tab = await page.query_selector(QR_TAB_SELECTOR)
            if tab is not None:
                await tab.click()
        except Exception as e:
            utils.logger.warning(f"[TaobaoLogin] Could not click QR code tab: {e}")

        for selector in QR_SELECTORS:
            try:
                if await page.query_selector(selector) is not None:
                    utils.logger.info(f"[TaobaoLogin] QR code found using selector: {selector}")
                    return True
            except Exception:
                continue
        snapshot = await self.controller.snapshot()
        if any(marker in snapshot.text for marker in QR_TEXT_MARKERS):
            utils.logger.info("[TaobaoLogin] QR code login option detected (text found)")
            return True
        utils.logger.warning("[TaobaoLogin] QR code not found with any selector, continuing to wait")
        return False

    def _success_reason(self, decision: LoginDecision) -> str:
        if not self.is_login_url(decision.url) and "taobao.com" in decision.url.lower():
            return "left_login_page"
        if decision.auth_cookie_count >= AUTH_COOKIE_THRESHOLD and not decision.has_login_prompt:
            return "auth_cookies_present"
        if decision.has_user_marker:
            return "user_marker_present"
        return ""

    async def _wait_for_login(self) -> LoginHandleResult:
        """Poll until a success signal appears or the timeout elapses."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.login_timeout_sec

        while loop.time() < deadline:
            decision = await self._evaluate_login_decision()
            self._append_trace("WAIT_QR", decision, note="waiting for qr scan")
            reason = self._success_reason(decision)
            if reason:
                self._append_trace("SUCCESS", decision, note=reason)
                return self._finalize(True, reason, "SUCCESS")
            await asyncio.sleep(self.poll_interval_sec)
        self._append_trace("TIMEOUT", note="qr login timeout")
        return self._finalize(False, "qr_login_timeout", "TIMEOUT")

    async def handle_login_interception(self) -> LoginHandleResult:
        """Navigate to the login entry point and wait for a QR scan."""
        utils.logger.warning(
            f"[TaobaoLogin] Login required, please scan the QR code (timeout: {self.login_timeout_sec}s)"
        )
        try:
            await self.controller.navigate(TAOBAO_LOGIN_URL, max_attempts=1, wait_strategies=("domcontentloaded",))
            qr_found = await self._locate_qr_code()
            self._append_trace("QR_READY" if qr_found else "QR_MISSING")
            result = await self._wait_for_login()
            if not result.ok:
                utils.logger.error(f"[TaobaoLogin] Login timeout after {self.login_timeout_sec}s")
            else:
                utils.logger.info(f"[TaobaoLogin] Login successful ({result.reason})")
            return result
        except Exception as exc:
            utils.logger.error(f"[TaobaoLogin] Login handler failed: {exc}")
            self._append_trace("FAILED", note=f"exception: {type(exc).__name__}: {exc}")
            return self._finalize(False, f"exception:{type(exc).__name__}", "FAILED")

    async def check_and_handle_login(self) -> LoginHandleResult:
        """
        Check if on login page and handle if needed

        Returns:
            LoginHandleResult
        """
        self._decision_trace = []
        self._started_at = time.monotonic()
        try:
            decision = await self._evaluate_login_decision()
        except Exception as exc:
            self._append_trace("FAILED", note=f"exception: {type(exc).__name__}: {exc}")
            return self._finalize(False, f"exception:{type(exc).__name__}", "FAILED")
        if decision.is_login_page:
            self._append_trace("LOGIN_REQUIRED", decision, note="detected login wall")
            return await self.handle_login_interception()

        self._append_trace("IDLE", decision, note="login not required")
        return self._finalize(True, "login_not_required", "NORMAL")
