# -*- coding: utf-8 -*-
"""Error taxonomy raised by providers and the dispatch service"""


class ScraperError(Exception):
    """Base class for every error the scraper reports to callers."""


class NoProviderFound(ScraperError):
    def __init__(self, url: str):
        super().__init__(f"No suitable scraper provider found for the URL: {url}")
        self.url = url


class NavigationFailed(ScraperError):
    def __init__(self, url: str, attempts: int, last_error: Exception | None = None):
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(f"Navigation to {url} failed after {attempts} attempt(s){detail}")
        self.url = url
        self.attempts = attempts
        self.last_error = last_error


class ChallengeBlocked(ScraperError):
    pass


class LoginRequired(ScraperError):
    pass


class LoginTimedOut(LoginRequired):
    pass


class MalformedResponse(ScraperError):
    pass


class SessionCreationFailed(ScraperError):
    pass


class SessionLimitExceeded(SessionCreationFailed):
    """The remote session broker refused a new session because of quota."""


class ScrapeTimeout(ScraperError):
    pass


class ScrapeFailed(ScraperError):
    pass
