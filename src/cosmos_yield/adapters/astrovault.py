from __future__ import annotations

from typing import Any

from ..clients.envelope import decode_envelope
from ..constants import ASTROVAULT_POOL_URL
from ..logger import get_logger
from ..metrics import YieldUnit, first_non_negative, normalize_yield_percent
from ..models import Opportunity, OpportunityKind, PoolAsset, SourceResult
from .base import BaseSourceAdapter, chain_display_name

logger = get_logger(__name__)


def asset_reference(asset: Any) -> str | None:
    """Native denom or CW20 contract address of one ``poolAssets`` entry."""
    info = asset.get("info") if isinstance(asset, dict) else None
    if not isinstance(info, dict):
        return None
    native = info.get("native_token")
    if isinstance(native, dict) and native.get("denom"):
        return str(native["denom"])
    token = info.get("token")
    if isinstance(token, dict) and token.get("contract_addr"):
        return str(token["contract_addr"])
    return None


class AstrovaultAdapter(BaseSourceAdapter):
    """Astrovault pools.

    ``percentageAPRs`` holds fractions (``0.02`` for 2%) on most pools and
    percentages on some, so the first entry is normalised with ``AUTO``.
    TVL is read from whichever of the known fields the pool carries.
    """

    @property
    def source_name(self) -> str:
        return "astrovault"

    async def _collect(self) -> SourceResult:
        payload = await self.cached_json("pools", self.settings.astrovault_api)
        envelope = decode_envelope(payload, ("list", "data", "pools"))
        logger.debug("Astrovault payload shape '%s', %d pools", envelope.shape, len(envelope.items))

        opportunities: list[Opportunity] = []
        for index, pool in enumerate(envelope.items):
            if not isinstance(pool, dict):
                continue
            chain_id = pool.get("contextChainId")

            assets: list[PoolAsset] = []
            for raw in pool.get("poolAssets") or []:
                reference = asset_reference(raw)
                if not reference:
                    continue
                symbol = await self.resolver.resolve_symbol(reference, chain_id)
                assets.append(
                    PoolAsset(
                        denom_reference=reference,
                        resolved_symbol=symbol.upper(),
                        raw_amount=raw.get("amount"),
                    )
                )

            if not any(
                self.involves_tracked_asset(symbol=a.resolved_symbol, denom=a.denom_reference)
                for a in assets
            ):
                continue

            aprs = pool.get("percentageAPRs")
            if not isinstance(aprs, list):
                aprs = []
            raw_id = pool.get("id", pool.get("poolId"))
            # provider ids are numeric
            pool_id = str(raw_id) if raw_id is not None else f"idx{index}"
            pair = "/".join(a.resolved_symbol for a in assets)
            opportunities.append(
                Opportunity(
                    id=f"astrovault-{pool_id}",
                    platform="Astrovault",
                    chain=chain_display_name(chain_id),
                    pair_or_asset_label=pair,
                    yield_percent=normalize_yield_percent(
                        aprs[0] if aprs else None, YieldUnit.AUTO
                    ),
                    locked_value_usd=first_non_negative(
                        pool.get("totalValueLockedUSD"),
                        pool.get("tvl"),
                        pool.get("totalLiquidity"),
                    ),
                    volume_24h_usd=None,
                    description=f"{pair} liquidity pool",
                    action_url=pool.get("detailsUrl") or ASTROVAULT_POOL_URL,
                    kind=OpportunityKind.LIQUIDITY,
                    provider_pool_id=pool_id,
                    assets=assets,
                )
            )

        logger.info("Astrovault: %d pools involve ATOM", len(opportunities))
        return SourceResult(source=self.source_name, opportunities=opportunities)
