# -*- coding: utf-8 -*-
"""Page controller: one browser tab with fingerprint settings, retrying
navigation, structured extraction and response interception.
"""

import asyncio
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Callable, Optional, TypeVar

from bs4 import BeautifulSoup
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from product_scraper import utils
from product_scraper.browser_manager import BrowserSession
from product_scraper.config import EN_HEADERS, TRANSIENT_NAV_MARKERS, WAIT_STRATEGIES
from product_scraper.errors import NavigationFailed
from product_scraper.extraction import parse_html

T = TypeVar("T")


@dataclass(frozen=True)
class PageProfile:
    """Per-site tab settings applied on every new page."""

    extra_headers: dict[str, str] = field(default_factory=lambda: dict(EN_HEADERS))
    referer: str = ""


@dataclass(frozen=True)
class PageSnapshot:
    """Serialized document state handed to extraction functions."""

    url: str
    title: str
    html: str

    @cached_property
    def soup(self) -> BeautifulSoup:
        return parse_html(self.html)

    @cached_property
    def text(self) -> str:
        body = self.soup.body or self.soup
        return body.get_text("\n", strip=True)


@dataclass(frozen=True)
class CapturedResponse:
    url: str
    content_type: str
    body: str


class ResponseCapture:
    """Collects bodies of responses accepted by ``predicate``."""

    def __init__(self, predicate: Callable[[Any], bool]):
        self.predicate = predicate
        self.responses: list[CapturedResponse] = []
        self._tasks: set[asyncio.Task] = set()

    async def _capture(self, response: Any) -> None:
        try:
            body = await response.text()
        except Exception as e:
            utils.logger.debug(f"[ResponseCapture] Could not read body of {response.url}: {e}")
            return
        if body:
            headers = response.headers or {}
            self.responses.append(
                CapturedResponse(
                    url=response.url,
                    content_type=str(headers.get("content-type", "")),
                    body=body,
                )
            )

    def on_response(self, response: Any) -> None:
        try:
            accepted = self.predicate(response)
        except Exception as e:
            utils.logger.debug(f"[ResponseCapture] Predicate failed for {response.url}: {e}")
            return
        if not accepted:
            return
        task = asyncio.create_task(self._capture(response))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self, timeout: float = 10.0) -> list[CapturedResponse]:
        """Wait for in-flight body reads and return everything captured so far."""
        pending = list(self._tasks)
        if pending:
            _, still_pending = await asyncio.wait(pending, timeout=timeout)
            for task in still_pending:
                task.cancel()
            if still_pending:
                utils.logger.warning(
                    f"[ResponseCapture] Dropped {len(still_pending)} slow response bodies"
                )
        return list(self.responses)


def is_transient_navigation_error(exc: Exception) -> bool:
    if isinstance(exc, PlaywrightTimeoutError):
        return True
    text = str(exc).lower()
    return any(marker in text for marker in TRANSIENT_NAV_MARKERS)


class PageController:
    """Wraps a single tab inside a BrowserSession."""

    def __init__(
        self,
        session: BrowserSession,
        profile: Optional[PageProfile] = None,
        navigation_timeout_ms: int = 60_000,
        backoff_sec: float = 5.0,
    ):
        self.session = session
        self.profile = profile or PageProfile()
        self.navigation_timeout_ms = navigation_timeout_ms
        self.backoff_sec = backoff_sec
        self.page: Optional[Page] = None
        self._captures: list[ResponseCapture] = []

    @property
    def context(self):
        return self.session.context

    async def new_page(self) -> Page:
        page = await self.session.context.new_page()
        if self.profile.extra_headers:
            await page.set_extra_http_headers(dict(self.profile.extra_headers))
        for capture in self._captures:
            page.on("response", capture.on_response)
        self.page = page
        return page

    async def _require_page(self) -> Page:
        if self.page is None:
            return await self.new_page()
        return self.page

    async def _recreate_page(self) -> Page:
        await self.close()
        return await self.new_page()

    async def navigate(
        self,
        url: str,
        max_attempts: int = 3,
        wait_strategies: tuple[str, ...] = WAIT_STRATEGIES,
        referer: Optional[str] = None,
    ) -> None:
        """Navigate with bounded retries.

        Transient network failures and timeouts back off ``attempt * backoff_sec``
        and get a fresh page; each retry uses the next, laxer wait strategy.
        Anything else fails on the spot.
        """
        attempts = max(1, int(max_attempts))
        referer = referer if referer is not None else (self.profile.referer or None)
        page = await self._require_page()
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            wait_until = wait_strategies[min(attempt - 1, len(wait_strategies) - 1)]
            try:
                utils.logger.info(
                    f"[PageController] Navigating to {url} (attempt {attempt}/{attempts}, wait_until={wait_until})"
                )
                await page.goto(
                    url,
                    wait_until=wait_until,
                    timeout=self.navigation_timeout_ms,
                    referer=referer,
                )
                return
            except Exception as e:
                last_error = e
                if not is_transient_navigation_error(e):
                    utils.logger.error(f"[PageController] Navigation failed: {e}")
                    raise NavigationFailed(url, attempt, e) from e
                if attempt >= attempts:
                    break
                delay = attempt * self.backoff_sec
                utils.logger.warning(
                    f"[PageController] Transient navigation error ({e}); retrying in {delay}s"
                )
                await asyncio.sleep(delay)
                page = await self._recreate_page()
        raise NavigationFailed(url, attempts, last_error) from last_error

    async def snapshot(self) -> PageSnapshot:
        page = await self._require_page()
        try:
            title = (await page.title()) or ""
        except Exception:
            title = ""
        html = (await page.content()) or ""
        return PageSnapshot(url=page.url or "", title=title, html=html)

    async def evaluate(self, extractor: Callable[[PageSnapshot], T]) -> T:
        """Run a typed extraction function over the current document."""
        snapshot = await self.snapshot()
        return extractor(snapshot)

    def intercept_responses(self, predicate: Callable[[Any], bool]) -> ResponseCapture:
        """Start collecting matching response bodies; survives page recreation."""
        capture = ResponseCapture(predicate)
        self._captures.append(capture)
        if self.page is not None:
            self.page.on("response", capture.on_response)
        return capture

    async def close(self) -> None:
        if self.page is None:
            return
        try:
            await self.page.close()
        except Exception as e:
            utils.logger.debug(f"[PageController] Page already closed: {e}")
        finally:
            self.page = None
