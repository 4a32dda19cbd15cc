"""Denomination to display-symbol resolution.

Resolution order, first hit wins:

1. Primary chain asset registry (Osmosis asset list)
2. Secondary registry of the pool's own chain, when it is not the primary
3. Heuristic table of well-known base denominations
4. For ``ibc/<hash>``: trace the hash to its base denomination on the
   context chain, then repeat 1-3 for the base denomination
5. A shortened display form of the raw identifier

``resolve_symbol`` never raises.
"""

from __future__ import annotations

import re
from typing import Any

from .cache import MISS, TTLCache
from .clients.lcd import CosmosLcdClient, JsonGetter
from .constants import (
    ADDRESS_SHORT_HEAD,
    ADDRESS_SHORT_TAIL,
    ARCHWAY_CHAIN_ID,
    BASE_DENOM_SYMBOLS,
    IBC_SHORT_HEAD,
    IBC_SHORT_TAIL,
    NEUTRON_CHAIN_ID,
    OSMOSIS_CHAIN_ID,
)
from .logger import get_logger
from .models import UNKNOWN
from .settings import YieldSettings

logger = get_logger(__name__)

AssetMap = dict[str, str]

_BECH32_ADDRESS = re.compile(r"^[a-z]+1[02-9ac-hj-np-z]{38,}$")


def shorten_identifier(identifier: str, head: int, tail: int) -> str:
    if len(identifier) <= head + tail + 1:
        return identifier
    return f"{identifier[:head]}…{identifier[-tail:]}"


def index_assetlist(payload: Any) -> AssetMap:
    """Index a chain-registry style asset list by every key pools may use.

    Keys: ``base``, every ``denom_units[].denom``, ``ibc/<hash>`` for traces
    that carry a hash, the counterparty base denom of IBC traces, and CW20
    contract addresses (also lower-cased).
    """
    assets = payload.get("assets") if isinstance(payload, dict) else None
    mapping: AssetMap = {}
    for asset in assets or []:
        if not isinstance(asset, dict):
            continue
        symbol = asset.get("symbol") or asset.get("name")
        if not symbol:
            continue
        symbol = str(symbol)

        base = asset.get("base")
        if base:
            mapping[str(base)] = symbol
        for unit in asset.get("denom_units") or []:
            if isinstance(unit, dict) and unit.get("denom"):
                mapping[str(unit["denom"])] = symbol
        for trace in asset.get("traces") or []:
            if not isinstance(trace, dict):
                continue
            ibc = trace.get("ibc") if isinstance(trace.get("ibc"), dict) else {}
            trace_hash = ibc.get("hash") or trace.get("hash")
            if trace_hash:
                mapping[f"ibc/{trace_hash}"] = symbol
            counterparty = trace.get("counterparty")
            if (
                trace.get("type") == "ibc"
                and isinstance(counterparty, dict)
                and counterparty.get("base_denom")
            ):
                mapping.setdefault(str(counterparty["base_denom"]), symbol)
        extensions = asset.get("extensions") if isinstance(asset.get("extensions"), dict) else {}
        address = asset.get("address") or asset.get("contract_address") or extensions.get("address")
        if address:
            mapping[str(address)] = symbol
            mapping[str(address).lower()] = symbol
    return mapping


def _lookup(mapping: AssetMap, key: str) -> str | None:
    return mapping.get(key) or mapping.get(key.lower())


def _symbol_from_base_denom(base: str) -> str:
    """``uatom`` -> ``ATOM``; other bases upper-cased."""
    upper = base.upper()
    if upper.startswith("U") and len(upper) > 1 and "/" not in upper:
        return upper[1:]
    return upper


class AssetRegistryResolver:
    """Resolve opaque denominations to human-readable symbols."""

    def __init__(
        self,
        settings: YieldSettings,
        http: JsonGetter,
        cache: TTLCache,
        *,
        primary_chain: str = OSMOSIS_CHAIN_ID,
    ):
        self.settings = settings
        self._http = http
        self._cache = cache
        self.primary_chain = primary_chain
        self._registry_urls: dict[str, str] = {
            OSMOSIS_CHAIN_ID: settings.osmosis_assetlist_url,
            NEUTRON_CHAIN_ID: settings.neutron_assetlist_url,
            ARCHWAY_CHAIN_ID: settings.archway_assetlist_url,
        }

    async def resolve_symbol(self, denom: str | None, chain_context: str | None = None) -> str:
        if not denom:
            return UNKNOWN
        try:
            symbol = await self._resolve_known(denom, chain_context)
            if symbol:
                return symbol
            if denom.startswith("ibc/"):
                base = await self._trace_base_denom(denom, chain_context)
                if base:
                    return await self._resolve_known(base, chain_context) or (
                        _symbol_from_base_denom(base)
                    )
        except Exception as exc:
            logger.warning("Symbol resolution failed for %s: %s", denom, exc)
        return self.fallback_symbol(denom)

    @staticmethod
    def fallback_symbol(denom: str) -> str:
        if denom.startswith("ibc/"):
            return shorten_identifier(denom, IBC_SHORT_HEAD, IBC_SHORT_TAIL)
        if denom.startswith("gamm/pool/"):
            return f"GAMM-{denom.rsplit('/', 1)[-1]}"
        if _BECH32_ADDRESS.match(denom):
            return shorten_identifier(denom, ADDRESS_SHORT_HEAD, ADDRESS_SHORT_TAIL)
        return denom.upper()

    async def _resolve_known(self, denom: str, chain_context: str | None) -> str | None:
        """Steps 1-3: primary registry, secondary registry, heuristics."""
        primary = await self.registry(self.primary_chain)
        symbol = _lookup(primary, denom)
        if symbol:
            return symbol

        if chain_context and chain_context != self.primary_chain:
            secondary = await self.registry(chain_context)
            symbol = _lookup(secondary, denom)
            if symbol:
                return symbol

        return BASE_DENOM_SYMBOLS.get(denom) or BASE_DENOM_SYMBOLS.get(denom.lower())

    async def registry(self, chain_id: str) -> AssetMap:
        """Cached asset map for ``chain_id``; empty when the chain has no registry."""
        url = self._registry_urls.get(chain_id)
        if not url:
            return {}

        key = f"registry:{chain_id}"
        cached = self._cache.get(key)
        if cached is not MISS:
            return cached

        try:
            payload = await self._http.get_json(url)
            mapping = index_assetlist(payload)
        except Exception as exc:
            logger.warning("Failed to load %s asset registry, using heuristics: %s", chain_id, exc)
            self._cache.set(key, {}, self.settings.registry_failure_ttl_seconds)
            return {}

        logger.debug("Loaded %d registry keys for %s", len(mapping), chain_id)
        self._cache.set(key, mapping, self.settings.registry_ttl_seconds)
        return mapping

    async def _trace_base_denom(self, ibc_denom: str, chain_context: str | None) -> str | None:
        """Base denom behind an IBC reference; a found trace is cached forever."""
        ibc_hash = ibc_denom.split("/", 1)[1]
        if not ibc_hash:
            return None

        key = f"ibc-trace:{chain_context or self.primary_chain}:{ibc_hash}"
        cached = self._cache.get(key)
        if cached is not MISS:
            return cached

        lcd = CosmosLcdClient(self._http, self.settings.lcd_for_chain(chain_context or self.primary_chain))
        base = await lcd.denom_trace_base(ibc_hash)
        if base:
            self._cache.set(key, base, None)
            logger.debug("Traced %s to %s", ibc_denom, base)
        return base

