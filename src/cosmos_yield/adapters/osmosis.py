from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from ..clients.envelope import MalformedPayloadError, decode_envelope
from ..clients.transport import TransportExhaustedError
from ..constants import ATOM_DENOMS, OSMOSIS_CHAIN_ID, OSMOSIS_POOL_URL
from ..logger import get_logger
from ..metrics import YieldUnit, first_non_negative, normalize_yield_percent
from ..models import Opportunity, OpportunityKind, PoolAsset, SourceResult
from .base import BaseSourceAdapter, chain_display_name

logger = get_logger(__name__)

LIST_POOLS_BY_DENOM_PATH = "/osmosis/poolmanager/v1beta1/list-pools-by-denom"


@dataclass
class SqsPoolStats:
    """Ranking-endpoint figures for one pool. SQS reports APR in percent."""

    apr_lower: Decimal | None = None
    apr_upper: Decimal | None = None
    tvl_usd: Decimal | None = None
    volume_24h_usd: Decimal | None = None

    @property
    def has_apr(self) -> bool:
        return self.apr_lower is not None or self.apr_upper is not None


def _dig(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def parse_sqs_item(item: Any) -> tuple[str, SqsPoolStats] | None:
    if not isinstance(item, dict):
        return None
    pool_id = _dig(item, "chain_model", "id")
    if pool_id is None:
        pool_id = item.get("id")
    if pool_id is None or str(pool_id) == "":
        return None

    stats = SqsPoolStats(
        apr_lower=normalize_yield_percent(
            _dig(item, "apr_data", "total_apr", "lower"), YieldUnit.PERCENT
        ),
        apr_upper=normalize_yield_percent(
            _dig(item, "apr_data", "total_apr", "upper"), YieldUnit.PERCENT
        ),
        tvl_usd=first_non_negative(
            _dig(item, "market", "liquidity_cap_usd"),
            _dig(item, "liquidity", "cap_usd"),
            item.get("tvl"),
            _dig(item, "market", "tvl_usd"),
            item.get("tvl_usd"),
        ),
        volume_24h_usd=first_non_negative(
            _dig(item, "market", "volume_24h_usd"),
            _dig(item, "market", "volume24hUsd"),
        ),
    )
    return str(pool_id), stats


def pool_type_from_type_url(type_url: str | None) -> str | None:
    """Short pool-type label from a pool's ``@type`` URL."""
    if not type_url:
        return None
    lowered = type_url.lower()
    if "concentratedliquidity" in lowered:
        return "concentrated"
    if "stableswap" in lowered:
        return "stableswap"
    if "cosmwasmpool" in lowered:
        return "cosmwasm"
    if "gamm" in lowered:
        return "weighted"
    return None


def pool_denoms(pool: dict[str, Any]) -> list[tuple[str, str | None]]:
    """(denom, amount) pairs of a pool, across the pool models Osmosis serves."""
    denoms: list[tuple[str, str | None]] = []
    for asset in pool.get("pool_assets") or []:
        token = asset.get("token") if isinstance(asset, dict) else None
        if isinstance(token, dict) and token.get("denom"):
            denoms.append((str(token["denom"]), token.get("amount")))
    if denoms:
        return denoms

    for coin in pool.get("pool_liquidity") or []:
        if isinstance(coin, dict) and coin.get("denom"):
            denoms.append((str(coin["denom"]), coin.get("amount")))
    if denoms:
        return denoms

    for key in ("token0", "token1"):
        if pool.get(key):
            denoms.append((str(pool[key]), None))
    return denoms


class OsmosisAdapter(BaseSourceAdapter):
    """Osmosis liquidity pools that hold ATOM, priced by the SQS ranking endpoint."""

    @property
    def source_name(self) -> str:
        return "osmosis"

    def _sqs_params(self, ids: list[str] | None) -> dict[str, str]:
        params = {
            "filter[min_liquidity_cap]": "1000",
            "filter[with_market_incentives]": "true",
        }
        if ids:
            params["filter[id][in]"] = ",".join(ids)
        else:
            params["page[cursor]"] = "0"
            params["page[size]"] = "1000"
            params["sort"] = "-market.volume24hUsd"
        return params

    async def _sqs_page(self, ids: list[str] | None) -> dict[str, SqsPoolStats]:
        url = f"{self.settings.osmosis_sqs.rstrip('/')}/pools"
        params = self._sqs_params(ids)
        key = "sqs:" + (params.get("filter[id][in]") or "all")
        payload = await self.cached_json(key, url, params)
        stats: dict[str, SqsPoolStats] = {}
        for item in decode_envelope(payload, ("list", "data")).items:
            parsed = parse_sqs_item(item)
            if parsed:
                stats[parsed[0]] = parsed[1]
        return stats

    async def fetch_sqs_stats(self, pool_ids: list[str]) -> dict[str, SqsPoolStats]:
        """APR, TVL and volume for ``pool_ids``, requested in chunks.

        Pools whose TVL is missing are backfilled from one broad listing; a
        failed backfill leaves their TVL unknown.
        """
        stats: dict[str, SqsPoolStats] = {}
        chunk_size = self.settings.sqs_chunk_size
        for start in range(0, len(pool_ids), chunk_size):
            stats.update(await self._sqs_page(pool_ids[start : start + chunk_size]))

        if any(entry.tvl_usd is None for entry in stats.values()):
            try:
                broad = await self._sqs_page(None)
            except (TransportExhaustedError, MalformedPayloadError) as e:
                logger.warning("Osmosis SQS TVL backfill failed: %s", e)
            else:
                for pool_id, entry in stats.items():
                    fill = broad.get(pool_id)
                    if entry.tvl_usd is None and fill is not None:
                        entry.tvl_usd = fill.tvl_usd
        return stats

    async def fetch_pools(self) -> list[dict[str, Any]]:
        url = f"{self.settings.osmosis_lcd.rstrip('/')}{LIST_POOLS_BY_DENOM_PATH}"
        denom = ATOM_DENOMS["OSMOSIS"]
        payload = await self.cached_json(f"pools:{denom}", url, {"denom": denom})
        return [p for p in decode_envelope(payload, ("pools",)).items if isinstance(p, dict)]

    async def _collect(self) -> SourceResult:
        pools = await self.fetch_pools()
        pool_ids = [str(p["id"]) for p in pools if p.get("id") is not None]
        logger.info("Osmosis lists %d pools holding ATOM", len(pool_ids))
        stats = await self.fetch_sqs_stats(pool_ids)

        opportunities: list[Opportunity] = []
        chain = chain_display_name(OSMOSIS_CHAIN_ID)
        for pool in pools:
            pool_id = str(pool.get("id", ""))
            if not pool_id:
                continue
            denoms = pool_denoms(pool)
            symbols = await asyncio.gather(
                *(self.resolver.resolve_symbol(denom, OSMOSIS_CHAIN_ID) for denom, _ in denoms)
            )
            assets = [
                PoolAsset(denom_reference=denom, resolved_symbol=symbol, raw_amount=amount)
                for (denom, amount), symbol in zip(denoms, symbols)
                if symbol
            ]
            if len(assets) < 2:
                logger.debug("Skipping Osmosis pool %s: fewer than two assets", pool_id)
                continue

            entry = stats.get(pool_id)
            if entry is None or not entry.has_apr:
                logger.debug("Skipping Osmosis pool %s: no APR data", pool_id)
                continue

            pair = "/".join(asset.resolved_symbol.upper() for asset in assets)
            lower = entry.apr_lower if entry.apr_lower is not None else entry.apr_upper
            opportunities.append(
                Opportunity(
                    id=f"osmosis-{pool_id}",
                    platform="Osmosis",
                    chain=chain,
                    pair_or_asset_label=pair,
                    yield_percent=lower,
                    yield_upper_percent=entry.apr_upper,
                    locked_value_usd=entry.tvl_usd,
                    volume_24h_usd=entry.volume_24h_usd,
                    description=f"{pair} liquidity pool",
                    action_url=OSMOSIS_POOL_URL.format(pool_id=pool_id),
                    kind=OpportunityKind.LIQUIDITY,
                    pool_type=pool_type_from_type_url(pool.get("@type")),
                    provider_pool_id=pool_id,
                    assets=assets,
                )
            )

        return SourceResult(source=self.source_name, opportunities=opportunities)
