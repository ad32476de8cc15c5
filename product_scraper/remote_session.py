# -*- coding: utf-8 -*-
"""Client for the hosted browser-session broker (Browserbase REST API)."""

from dataclasses import dataclass
from typing import Optional

import httpx

from product_scraper import utils
from product_scraper.config import BROWSERBASE_API_URL
from product_scraper.errors import MalformedResponse, SessionCreationFailed, SessionLimitExceeded


@dataclass(frozen=True)
class RemoteSession:
    id: str
    connect_url: str


class RemoteSessionClient:
    """
    Creates stealth sessions on the remote broker.

    Sessions are not closed explicitly; the broker tears them down once the
    CDP connection drops.
    """

    def __init__(
        self,
        api_key: str,
        project_id: str,
        api_url: str = BROWSERBASE_API_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key or not project_id:
            raise SessionCreationFailed(
                "BROWSERBASE_API_KEY and BROWSERBASE_PROJECT_ID must be set for remote sessions"
            )
        self.api_key = api_key
        self.project_id = project_id
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @staticmethod
    def _is_limit_error(status_code: int, body: str) -> bool:
        if status_code == 429:
            return True
        lowered = body.lower()
        return status_code >= 400 and (
            "concurrent sessions limit" in lowered or "session limit" in lowered
        )

    async def create_session(self, solve_captchas: bool = True) -> RemoteSession:
        payload = {
            "projectId": self.project_id,
            "browserSettings": {
                "solveCaptchas": bool(solve_captchas),
                "logSession": False,
                "recordSession": False,
            },
        }
        headers = {"X-BB-API-Key": self.api_key, "Content-Type": "application/json"}
        utils.logger.info("[RemoteSessionClient] Creating remote browser session")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.api_url}/v1/sessions", json=payload, headers=headers
                )
        except httpx.HTTPError as e:
            raise SessionCreationFailed(f"Session broker request failed: {e}") from e

        body = response.text or ""
        if self._is_limit_error(response.status_code, body):
            raise SessionLimitExceeded(
                f"Remote session limit reached (HTTP {response.status_code})"
            )
        if response.status_code >= 400:
            raise SessionCreationFailed(
                f"Session broker returned HTTP {response.status_code}: {body[:200]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponse(f"Session broker returned non-JSON body: {body[:200]}") from e
        if not isinstance(data, dict):
            raise MalformedResponse("Session broker returned an unexpected payload")
        session_id = str(data.get("id") or "").strip()
        connect_url = str(data.get("connectUrl") or "").strip()
        if not session_id or not connect_url:
            raise MalformedResponse("Session broker response is missing id or connectUrl")

        utils.logger.info(f"[RemoteSessionClient] Created session {session_id}")
        return RemoteSession(id=session_id, connect_url=connect_url)
