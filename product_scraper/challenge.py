# -*- coding: utf-8 -*-
"""Bot-challenge detection with a single grace-period recheck."""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from product_scraper import utils
from product_scraper.page import PageController, PageSnapshot

DEFAULT_TEXT_MARKERS = (
    "unusual traffic",
    "请稍后再试",
    "Enter the characters you see below",
    "验证码",
    "滑动验证",
    "RGV587_ERROR",
    "FAIL_SYS_USER_VALIDATE",
)
DEFAULT_URL_MARKERS = ("captcha", "punish", "x5sec", "_____tmd_____", "validatecaptcha")
DEFAULT_SELECTORS = (
    ".captcha",
    ".verification",
    "[class*='captcha']",
    "[class*='verify']",
    "[class*='challenge']",
    "#nc_1_wrapper",
    "form[action*='validateCaptcha']",
)


class ChallengeState(Enum):
    NORMAL = "NORMAL"
    CHALLENGE_DETECTED = "CHALLENGE_DETECTED"
    RESOLVED_BY_PROVIDER = "RESOLVED_BY_PROVIDER"
    STILL_BLOCKED = "STILL_BLOCKED"


@dataclass(frozen=True)
class ChallengeOutcome:
    state: ChallengeState
    marker: str = ""
    url: str = ""

    @property
    def blocked(self) -> bool:
        return self.state is ChallengeState.STILL_BLOCKED


class ChallengeHandler:
    """Waits once for the session's automated solver to clear a challenge."""

    def __init__(
        self,
        controller: PageController,
        grace_sec: float = 10.0,
        text_markers: tuple[str, ...] = DEFAULT_TEXT_MARKERS,
        url_markers: tuple[str, ...] = DEFAULT_URL_MARKERS,
        selectors: tuple[str, ...] = DEFAULT_SELECTORS,
    ):
        self.controller = controller
        self.grace_sec = max(0.0, float(grace_sec))
        self.text_markers = text_markers
        self.url_markers = url_markers
        self.selectors = selectors

    def detect(self, snapshot: PageSnapshot) -> str:
        """Return the marker that identified a challenge page, or ""."""
        url_lower = (snapshot.url or "").lower()
        for marker in self.url_markers:
            if marker in url_lower:
                return marker
        text_lower = f"{snapshot.title}\n{snapshot.text}".lower()
        for marker in self.text_markers:
            if marker.lower() in text_lower:
                return marker
        for selector in self.selectors:
            if snapshot.soup.select_one(selector) is not None:
                return selector
        return ""

    async def resolve(self, snapshot: Optional[PageSnapshot] = None) -> ChallengeOutcome:
        snapshot = snapshot or await self.controller.snapshot()
        marker = self.detect(snapshot)
        if not marker:
            return ChallengeOutcome(ChallengeState.NORMAL, url=snapshot.url)

        utils.logger.warning(
            f"[ChallengeHandler] Challenge detected ({marker}) at {snapshot.url}, "
            f"waiting {self.grace_sec}s for automated solving"
        )
        await asyncio.sleep(self.grace_sec)
        recheck = await self.controller.snapshot()
        still = self.detect(recheck)
        if still:
            utils.logger.warning(f"[ChallengeHandler] Still blocked by {still} at {recheck.url}")
            return ChallengeOutcome(ChallengeState.STILL_BLOCKED, marker=still, url=recheck.url)
        utils.logger.info("[ChallengeHandler] Challenge cleared")
        return ChallengeOutcome(ChallengeState.RESOLVED_BY_PROVIDER, marker=marker, url=recheck.url)
