import threading

import pytest
import requests

from cosmos_yield.clients import transport as transport_mod
from cosmos_yield.clients.transport import (
    DevProxyTransport,
    DirectTransport,
    RelayTransport,
    TransportChain,
    TransportExhaustedError,
    build_transport_chain,
)
from cosmos_yield.settings import YieldSettings

UPSTREAM = "https://sqsprod.osmosis.zone/pools"


class FakeResponse:
    def __init__(self, status_code=200, payload=None, bad_json=False):
        self.status_code = status_code
        self._payload = payload
        self._bad_json = bad_json

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._bad_json:
            raise ValueError("Expecting value")
        return self._payload


@pytest.fixture
def fake_get(monkeypatch):
    """Patch requests.get with a URL-prefix routing table."""
    routes: dict[str, object] = {}
    seen: list[str] = []

    def _get(url, timeout=None, headers=None):
        seen.append(url)
        for prefix, outcome in routes.items():
            if url.startswith(prefix):
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome
        raise requests.ConnectionError(f"no route for {url}")

    monkeypatch.setattr(transport_mod.requests, "get", _get)
    return routes, seen


def test_rewrites():
    proxy = DevProxyTransport("http://localhost:5173/", {"https://sqsprod.osmosis.zone/": "/osmo-sqs/"})
    assert proxy.rewrite(UPSTREAM, None) == "http://localhost:5173/osmo-sqs/pools"
    assert proxy.rewrite("https://elsewhere.example/x", None) is None

    assert DirectTransport().rewrite(UPSTREAM, {"a": "1"}) == UPSTREAM + "?a=1"
    assert RelayTransport("https://relay.example").rewrite(UPSTREAM, None) == (
        "https://relay.example/" + UPSTREAM
    )


@pytest.mark.asyncio
async def test_first_successful_transport_wins(fake_get):
    routes, seen = fake_get
    routes["http://localhost:5173/osmo-sqs/"] = FakeResponse(200, {"via": "proxy"})

    chain = TransportChain(
        [
            DevProxyTransport("http://localhost:5173", {"https://sqsprod.osmosis.zone/": "/osmo-sqs/"}),
            DirectTransport(),
        ]
    )

    assert await chain.get_json(UPSTREAM) == {"via": "proxy"}
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_falls_through_in_order(fake_get):
    routes, seen = fake_get
    routes["http://localhost:5173/"] = FakeResponse(502)
    routes[UPSTREAM] = FakeResponse(200, bad_json=True)
    routes["https://relay.example/"] = FakeResponse(200, [1, 2])

    chain = TransportChain(
        [
            DevProxyTransport("http://localhost:5173", {"https://sqsprod.osmosis.zone/": "/osmo-sqs/"}),
            DirectTransport(),
            RelayTransport("https://relay.example"),
        ]
    )

    assert await chain.get_json(UPSTREAM) == [1, 2]
    assert seen == [
        "http://localhost:5173/osmo-sqs/pools",
        UPSTREAM,
        "https://relay.example/" + UPSTREAM,
    ]


@pytest.mark.asyncio
async def test_inapplicable_transport_is_skipped(fake_get):
    routes, seen = fake_get
    routes["https://app.astroport.fi/"] = FakeResponse(200, [])

    chain = TransportChain(
        [
            DevProxyTransport("http://localhost:5173", {"https://sqsprod.osmosis.zone/": "/osmo-sqs/"}),
            DirectTransport(),
        ]
    )

    assert await chain.get_json("https://app.astroport.fi/api/pools") == []
    assert seen == ["https://app.astroport.fi/api/pools"]


@pytest.mark.asyncio
async def test_exhausted_chain_reports_every_attempt(fake_get):
    routes, _ = fake_get
    routes[UPSTREAM] = requests.Timeout("read timed out")
    routes["https://relay.example/"] = FakeResponse(429)

    chain = TransportChain([DirectTransport(), RelayTransport("https://relay.example")])

    with pytest.raises(TransportExhaustedError) as excinfo:
        await chain.get_json(UPSTREAM)

    attempts = excinfo.value.attempts
    assert [a.transport for a in attempts] == ["direct", "relay"]
    assert attempts[1].status_code == 429
    assert "HTTP 429" in str(excinfo.value)


def test_chain_requires_a_transport():
    with pytest.raises(ValueError):
        TransportChain([])


def test_build_transport_chain_order():
    settings = YieldSettings(dev_proxy_base="http://localhost:5173", relay_base="https://relay.example")

    chain = build_transport_chain(settings, dev_proxy_routes={"https://x/": "/x/"})
    assert [t.name for t in chain.transports] == ["dev_proxy", "direct", "relay"]

    chain = build_transport_chain(settings)
    assert [t.name for t in chain.transports] == ["direct", "relay"]

    chain = build_transport_chain(YieldSettings(relay_base=None), dev_proxy_routes={"https://x/": "/x/"})
    assert [t.name for t in chain.transports] == ["direct"]


@pytest.mark.asyncio
async def test_hung_transport_times_out_and_falls_through(monkeypatch):
    release = threading.Event()
    seen: list[str] = []

    def _get(url, timeout=None, headers=None):
        seen.append(url)
        if url.startswith(UPSTREAM):
            # ignores its own timeout; only the attempt deadline bounds it
            release.wait(5)
            raise requests.ConnectionError("released")
        return FakeResponse(200, {"via": "relay"})

    monkeypatch.setattr(transport_mod.requests, "get", _get)
    chain = TransportChain([DirectTransport(), RelayTransport("https://relay.example")], timeout=0.05)

    try:
        direct = await DirectTransport().attempt(UPSTREAM, None, 0.05)
        assert direct.ok is False
        assert direct.error == "timed out"

        assert await chain.get_json(UPSTREAM) == {"via": "relay"}
        assert seen[-1] == "https://relay.example/" + UPSTREAM
    finally:
        release.set()
