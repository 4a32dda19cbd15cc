from __future__ import annotations

from typing import Any, Callable

import pytest

from cosmos_yield.cache import TTLCache
from cosmos_yield.clients.transport import TransportExhaustedError
from cosmos_yield.resolver import AssetRegistryResolver
from cosmos_yield.settings import YieldSettings


class FakeHttp:
    """In-memory stand-in for a transport chain.

    Routes map a URL prefix to a payload, an exception instance, or a
    callable ``(url, params) -> payload``. The longest matching prefix wins;
    unrouted URLs fail like an exhausted transport chain.
    """

    def __init__(self, routes: dict[str, Any] | None = None):
        self.routes: dict[str, Any] = dict(routes or {})
        self.calls: list[tuple[str, dict[str, Any] | None]] = []

    async def get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        self.calls.append((url, params))
        matches = [prefix for prefix in self.routes if url.startswith(prefix)]
        if not matches:
            raise TransportExhaustedError(url, [])
        route = self.routes[max(matches, key=len)]
        if isinstance(route, BaseException):
            raise route
        if callable(route):
            return route(url, params)
        return route

    def calls_to(self, prefix: str) -> list[tuple[str, dict[str, Any] | None]]:
        return [call for call in self.calls if call[0].startswith(prefix)]


@pytest.fixture
def settings() -> YieldSettings:
    return YieldSettings(
        relay_base=None,
        dev_proxy_base=None,
        pool_cache_ttl_seconds=0,
        slash_batch_delay=0,
        page_retries=1,
    )


@pytest.fixture
def cache() -> TTLCache:
    return TTLCache(max_entries=64)


@pytest.fixture
def make_http() -> Callable[..., FakeHttp]:
    return FakeHttp


@pytest.fixture
def make_resolver(settings, cache) -> Callable[[FakeHttp], AssetRegistryResolver]:
    def _make(http: FakeHttp) -> AssetRegistryResolver:
        return AssetRegistryResolver(settings, http, cache)

    return _make
