"""Ordered fallback transports for read-only GET requests.

Each upstream call is tried through a list of transports (local dev proxy,
direct, generic relay). A network error, timeout, non-2xx status or an
undecodable body falls through to the next transport; only exhausting the
whole list is a failure for the call.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import requests

from ..logger import get_logger
from ..settings import YieldSettings

logger = get_logger(__name__)


@dataclass(frozen=True)
class TransportResult:
    transport: str
    url: str
    ok: bool
    payload: Any = None
    error: str | None = None
    status_code: int | None = None


class TransportExhaustedError(Exception):
    """Raised when every transport in a chain failed for one request."""

    def __init__(self, url: str, attempts: list[TransportResult]):
        self.url = url
        self.attempts = attempts
        details = "; ".join(f"{a.transport}: {a.error}" for a in attempts) or (
            "no applicable transport"
        )
        super().__init__(f"All transports failed for {url} ({details})")


def _full_url(url: str, params: dict[str, Any] | None) -> str:
    if not params:
        return url
    prepared = requests.Request("GET", url, params=params).prepare()
    return prepared.url or url


class Transport(ABC):
    """One way of reaching an upstream URL."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def rewrite(self, url: str, params: dict[str, Any] | None) -> str | None:
        """Return the URL to request, or None when this transport does not apply."""
        ...

    async def attempt(
        self,
        url: str,
        params: dict[str, Any] | None,
        timeout: float,
    ) -> TransportResult:
        """Perform one bounded GET. Never raises, except on cancellation."""
        target = self.rewrite(url, params)
        if target is None:
            return TransportResult(self.name, url, ok=False, error="not applicable")

        def _get() -> requests.Response:
            return requests.get(
                target,
                timeout=timeout,
                headers={"Accept": "application/json"},
            )

        try:
            response = await asyncio.wait_for(asyncio.to_thread(_get), timeout + 1.0)
        except asyncio.TimeoutError:
            return TransportResult(self.name, target, ok=False, error="timed out")
        except requests.RequestException as exc:
            return TransportResult(self.name, target, ok=False, error=str(exc))

        if not response.ok:
            return TransportResult(
                self.name,
                target,
                ok=False,
                error=f"HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            return TransportResult(
                self.name,
                target,
                ok=False,
                error=f"invalid JSON: {exc}",
                status_code=response.status_code,
            )
        return TransportResult(
            self.name, target, ok=True, payload=payload, status_code=response.status_code
        )


class DevProxyTransport(Transport):
    """Local development proxy that mirrors selected upstreams under a prefix."""

    def __init__(self, base: str, routes: dict[str, str]):
        self._base = base.rstrip("/")
        self._routes = routes

    @property
    def name(self) -> str:
        return "dev_proxy"

    def rewrite(self, url: str, params: dict[str, Any] | None) -> str | None:
        for upstream, prefix in self._routes.items():
            if url.startswith(upstream):
                return _full_url(self._base + prefix + url[len(upstream) :], params)
        return None


class DirectTransport(Transport):
    @property
    def name(self) -> str:
        return "direct"

    def rewrite(self, url: str, params: dict[str, Any] | None) -> str | None:
        return _full_url(url, params)


class RelayTransport(Transport):
    """Generic pass-through relay that takes the full upstream URL as its path."""

    def __init__(self, base: str):
        self._base = base.rstrip("/")

    @property
    def name(self) -> str:
        return "relay"

    def rewrite(self, url: str, params: dict[str, Any] | None) -> str | None:
        return f"{self._base}/{_full_url(url, params)}"


class TransportChain:
    """Try each transport in order and return the first decoded JSON payload."""

    def __init__(self, transports: list[Transport], timeout: float = 10.0):
        if not transports:
            raise ValueError("TransportChain needs at least one transport")
        self.transports = transports
        self.timeout = timeout

    async def get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        attempts: list[TransportResult] = []
        for transport in self.transports:
            if transport.rewrite(url, params) is None:
                continue
            result = await transport.attempt(url, params, self.timeout)
            if result.ok:
                if attempts:
                    logger.info(
                        "Fetched %s via %s after %d failed transport(s)",
                        url,
                        transport.name,
                        len(attempts),
                    )
                return result.payload
            logger.warning(
                "%s transport failed for %s: %s, falling through",
                transport.name,
                url,
                result.error,
            )
            attempts.append(result)
        raise TransportExhaustedError(url, attempts)


def build_transport_chain(
    settings: YieldSettings,
    *,
    dev_proxy_routes: dict[str, str] | None = None,
    relay: bool = True,
) -> TransportChain:
    """Build the ordered transport list for one provider.

    Args:
        settings: Application settings (proxy/relay bases, timeout)
        dev_proxy_routes: Upstream prefix -> proxy prefix; the dev proxy is
            only included when routes are given and ``dev_proxy_base`` is set
        relay: Whether to end the chain with the generic relay
    """
    transports: list[Transport] = []
    if dev_proxy_routes and settings.dev_proxy_base:
        transports.append(DevProxyTransport(settings.dev_proxy_base, dev_proxy_routes))
    transports.append(DirectTransport())
    if relay and settings.relay_base:
        transports.append(RelayTransport(settings.relay_base))
    return TransportChain(transports, timeout=settings.request_timeout)
