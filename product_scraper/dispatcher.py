# -*- coding: utf-8 -*-
"""Provider registry: maps a URL to the provider responsible for it."""

from typing import Iterable, Optional

from product_scraper import utils
from product_scraper.errors import NoProviderFound
from product_scraper.providers.base import BaseProvider


class Dispatcher:
    """Ordered list of providers; the first one that accepts a URL wins."""

    def __init__(self, providers: Optional[Iterable[BaseProvider]] = None):
        self._providers: list[BaseProvider] = list(providers or [])

    def register(self, provider: BaseProvider) -> None:
        self._providers.append(provider)

    def _accepts(self, provider: BaseProvider, url: str) -> bool:
        try:
            return bool(provider.can_scrape(url))
        except Exception as e:
            utils.logger.warning(
                f"[Dispatcher] can_scrape failed for provider {provider.name or type(provider).__name__}: {e}"
            )
            return False

    def resolve(self, url: str) -> BaseProvider:
        for provider in self._providers:
            if self._accepts(provider, url):
                utils.logger.debug(f"[Dispatcher] {url} -> {provider.name}")
                return provider
        raise NoProviderFound(url)

    def can_scrape(self, url: str) -> bool:
        return any(self._accepts(provider, url) for provider in self._providers)

    def registered_providers(self) -> list[str]:
        return [provider.name or type(provider).__name__ for provider in self._providers]
