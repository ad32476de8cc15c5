# -*- coding: utf-8 -*-
"""Utility functions for the product scraper"""

import asyncio
import logging
from typing import Any, Awaitable, Iterable, Optional

from product_scraper.errors import ScrapeTimeout


# Initialize logging
def init_logging_config(level: int = logging.INFO):
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s (%(filename)s:%(lineno)d) - %(message)s",
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    _logger = logging.getLogger("ProductScraper")
    _logger.setLevel(level)

    # Disable httpx INFO level logs
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return _logger


logger = init_logging_config()


def set_log_level(level_name: str) -> None:
    level = getattr(logging, str(level_name or "INFO").upper(), logging.INFO)
    logger.setLevel(level)


def convert_cookies(cookies_list):
    """
    Convert Playwright cookies to dict format

    Args:
        cookies_list: List of cookies from browser_context.cookies()

    Returns:
        tuple: (cookies_list, cookies_dict)
    """
    if not cookies_list:
        return [], {}

    cookies_dict = {}
    for cookie in cookies_list:
        name = cookie.get('name', '')
        value = cookie.get('value', '')
        if name:
            cookies_dict[name] = value

    return cookies_list, cookies_dict


def count_named_cookies(cookies_list, names: Iterable[str]) -> int:
    """Count distinct cookie names from ``names`` that carry a non-empty value."""
    _, cookies_dict = convert_cookies(cookies_list)
    wanted = set(names)
    return sum(1 for name, value in cookies_dict.items() if name in wanted and value)


async def with_deadline(awaitable: Awaitable[Any], seconds: Optional[float], what: str) -> Any:
    """Await ``awaitable`` but give up after ``seconds`` with ScrapeTimeout."""
    if seconds is None or seconds <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as exc:
        raise ScrapeTimeout(f"{what} timed out after {seconds}s") from exc
