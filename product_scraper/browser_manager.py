# -*- coding: utf-8 -*-
"""Browser Session Provider

Hands out explicit browser sessions, either a local Chromium (launched or
attached over CDP) or a hosted stealth session, and tears them down again.
"""

import json
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional

import httpx
from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright

from product_scraper import utils
from product_scraper.config import LAUNCH_ARGS, STEALTH_INIT_SCRIPT, UA, VIEWPORT, ScraperSettings
from product_scraper.errors import SessionLimitExceeded
from product_scraper.remote_session import RemoteSessionClient


@dataclass
class BrowserSession:
    """Handle for one acquired browser; owned by the call that acquired it."""

    playwright: Playwright
    browser: Browser
    context: BrowserContext
    remote: bool = False
    session_id: str = ""


@dataclass(frozen=True)
class SessionOptions:
    stealth: bool = True
    prefer_remote: Optional[bool] = None
    languages: tuple[str, ...] = ("en-US", "en")


class BrowserSessionProvider:
    """
    Acquires and releases browser sessions.

    Remote sessions are tried first when enabled; a quota refusal from the
    broker downgrades to a local launch, any other failure propagates.
    """

    def __init__(
        self,
        settings: Optional[ScraperSettings] = None,
        remote_client: Optional[RemoteSessionClient] = None,
        playwright_factory: Callable = async_playwright,
    ):
        self.settings = settings or ScraperSettings()
        self._remote_client = remote_client
        self._playwright_factory = playwright_factory

    def _get_remote_client(self) -> RemoteSessionClient:
        if self._remote_client is None:
            self._remote_client = RemoteSessionClient(
                api_key=self.settings.browserbase_api_key,
                project_id=self.settings.browserbase_project_id,
                api_url=self.settings.browserbase_api_url,
            )
        return self._remote_client

    def _wants_remote(self, options: SessionOptions) -> bool:
        available = self._remote_client is not None or self.settings.remote_enabled
        if options.prefer_remote is None:
            return available
        return options.prefer_remote and available

    async def acquire(self, options: Optional[SessionOptions] = None) -> BrowserSession:
        options = options or SessionOptions()
        playwright = await self._playwright_factory().start()
        try:
            session: Optional[BrowserSession] = None
            if self._wants_remote(options):
                try:
                    session = await self._connect_remote(playwright)
                except SessionLimitExceeded as e:
                    utils.logger.warning(
                        f"[BrowserSessionProvider] {e}; falling back to a local browser"
                    )
            if session is None:
                session = await self._launch_local(playwright)
            if options.stealth:
                await self._apply_stealth(session.context, options.languages)
            return session
        except Exception as e:
            utils.logger.error(f"[BrowserSessionProvider] Failed to acquire session: {e}")
            try:
                await playwright.stop()
            except Exception as stop_error:
                utils.logger.debug(f"[BrowserSessionProvider] Playwright stop failed: {stop_error}")
            raise

    async def _connect_remote(self, playwright: Playwright) -> BrowserSession:
        remote = await self._get_remote_client().create_session(solve_captchas=True)
        utils.logger.info(f"[BrowserSessionProvider] Connecting to remote session {remote.id}")
        browser = await playwright.chromium.connect_over_cdp(remote.connect_url)
        contexts = browser.contexts
        context = contexts[0] if contexts else await browser.new_context(
            viewport=VIEWPORT, user_agent=UA
        )
        return BrowserSession(
            playwright=playwright,
            browser=browser,
            context=context,
            remote=True,
            session_id=remote.id,
        )

    async def _launch_local(self, playwright: Playwright) -> BrowserSession:
        if self.settings.cdp_url:
            browser = await self._connect_to_existing_cdp(playwright, self.settings.cdp_url)
        else:
            utils.logger.info(
                f"[BrowserSessionProvider] Launching local browser (headless={self.settings.headless})"
            )
            launch_kwargs = {"headless": self.settings.headless, "args": list(LAUNCH_ARGS)}
            if self.settings.executable_path:
                launch_kwargs["executable_path"] = self.settings.executable_path
            browser = await playwright.chromium.launch(**launch_kwargs)
        context = await browser.new_context(viewport=VIEWPORT, user_agent=UA)
        return BrowserSession(playwright=playwright, browser=browser, context=context)

    async def _connect_to_existing_cdp(self, playwright: Playwright, cdp_url: str) -> Browser:
        """Attach to a running browser, resolving its websocket URL when possible."""
        ws_url = cdp_url
        if cdp_url.startswith("http"):
            try:
                async with httpx.AsyncClient() as client:
                    response = await client.get(f"{cdp_url.rstrip('/')}/json/version", timeout=5)
                if response.status_code == 200:
                    ws_url = response.json().get("webSocketDebuggerUrl") or cdp_url
            except (httpx.HTTPError, json.JSONDecodeError) as e:
                utils.logger.warning(f"[BrowserSessionProvider] Failed to get CDP info: {e}")
        utils.logger.info(f"[BrowserSessionProvider] Connecting over CDP: {ws_url}")
        return await playwright.chromium.connect_over_cdp(ws_url)

    async def _apply_stealth(self, context: BrowserContext, languages: tuple[str, ...]) -> None:
        script = STEALTH_INIT_SCRIPT % json.dumps(list(languages))
        await context.add_init_script(script=script)

    async def release(self, session: BrowserSession) -> None:
        """Close our own context, then drop the browser connection."""
        utils.logger.info(
            f"[BrowserSessionProvider] Releasing {'remote' if session.remote else 'local'} session"
        )
        if not session.remote:
            try:
                await session.context.close()
            except Exception as e:
                utils.logger.debug(f"[BrowserSessionProvider] Context already closed: {e}")
        try:
            # For CDP connections close() only drops the connection.
            await session.browser.close()
        except Exception as e:
            utils.logger.debug(f"[BrowserSessionProvider] Browser already closed: {e}")
        try:
            await session.playwright.stop()
        except Exception as e:
            utils.logger.debug(f"[BrowserSessionProvider] Playwright already stopped: {e}")

    @asynccontextmanager
    async def session(self, options: Optional[SessionOptions] = None) -> AsyncIterator[BrowserSession]:
        acquired = await self.acquire(options)
        try:
            yield acquired
        finally:
            await self.release(acquired)
