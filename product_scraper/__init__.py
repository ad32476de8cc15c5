# -*- coding: utf-8 -*-
"""Product scraper package for Amazon and Taobao/Tmall"""

from . import utils
from .browser_manager import BrowserSession, BrowserSessionProvider, SessionOptions
from .config import ScraperSettings
from .dispatcher import Dispatcher
from .errors import (
    ChallengeBlocked,
    LoginRequired,
    LoginTimedOut,
    MalformedResponse,
    NavigationFailed,
    NoProviderFound,
    ScrapeFailed,
    ScraperError,
    ScrapeTimeout,
    SessionCreationFailed,
    SessionLimitExceeded,
)
from .models import ScrapedProduct, ScrapedProductSummary, ScrapedSearchResult
from .service import ScraperService, create_default_service

__all__ = [
    "BrowserSession",
    "BrowserSessionProvider",
    "SessionOptions",
    "ScraperSettings",
    "Dispatcher",
    "ChallengeBlocked",
    "LoginRequired",
    "LoginTimedOut",
    "MalformedResponse",
    "NavigationFailed",
    "NoProviderFound",
    "ScrapeFailed",
    "ScraperError",
    "ScrapeTimeout",
    "SessionCreationFailed",
    "SessionLimitExceeded",
    "ScrapedProduct",
    "ScrapedProductSummary",
    "ScrapedSearchResult",
    "ScraperService",
    "create_default_service",
    "utils",
]
