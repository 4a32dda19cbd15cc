from __future__ import annotations

from decimal import Decimal
from typing import Any

from ..clients.envelope import decode_envelope
from ..constants import ASTROPORT_POOL_URL
from ..logger import get_logger
from ..metrics import YieldUnit, first_non_negative, normalize_yield_percent
from ..models import Opportunity, OpportunityKind, PoolAsset, SourceResult
from .base import BaseSourceAdapter, chain_display_name

logger = get_logger(__name__)


class AstroportAdapter(BaseSourceAdapter):
    """Astroport pools across the chains it is deployed on.

    ``yield.total`` is reported as a fraction by some deployments and as a
    percentage by others, so it is normalised with ``YieldUnit.AUTO``.
    """

    @property
    def source_name(self) -> str:
        return "astroport"

    def _is_relevant(self, pool: dict[str, Any]) -> bool:
        if pool.get("isDeregistered"):
            return False
        for asset in pool.get("assets") or []:
            if not isinstance(asset, dict):
                continue
            if self.involves_tracked_asset(
                symbol=asset.get("symbol"),
                description=asset.get("description"),
                denom=asset.get("denom"),
            ):
                return True
        return False

    async def _pool_assets(self, pool: dict[str, Any]) -> list[PoolAsset]:
        chain_id = pool.get("chainId")
        assets: list[PoolAsset] = []
        for asset in pool.get("assets") or []:
            if not isinstance(asset, dict):
                continue
            denom = str(asset.get("denom") or "")
            symbol = asset.get("symbol") or await self.resolver.resolve_symbol(denom, chain_id)
            assets.append(
                PoolAsset(
                    denom_reference=denom,
                    resolved_symbol=str(symbol),
                    raw_amount=asset.get("amount"),
                )
            )
        return assets

    async def _collect(self) -> SourceResult:
        payload = await self.cached_json("pools", self.settings.astroport_api)
        pools = [
            p
            for p in decode_envelope(payload, ("list", "data", "pools")).items
            if isinstance(p, dict)
        ]
        relevant = [p for p in pools if self._is_relevant(p)]
        logger.info("Astroport: %d of %d pools involve ATOM", len(relevant), len(pools))

        opportunities: list[Opportunity] = []
        for pool in relevant:
            address = str(pool.get("poolAddress") or "")
            if not address:
                continue
            assets = await self._pool_assets(pool)
            pair = "/".join(asset.resolved_symbol for asset in assets)
            yield_data = pool.get("yield") if isinstance(pool.get("yield"), dict) else {}
            opportunities.append(
                Opportunity(
                    id=f"astroport-{address}",
                    platform="Astroport",
                    chain=chain_display_name(pool.get("chainId")),
                    pair_or_asset_label=pair,
                    yield_percent=normalize_yield_percent(
                        yield_data.get("total"), YieldUnit.AUTO
                    ),
                    locked_value_usd=first_non_negative(pool.get("totalLiquidityUSD")),
                    volume_24h_usd=first_non_negative(pool.get("dayVolumeUSD")),
                    description=f"{pair} liquidity pool",
                    action_url=ASTROPORT_POOL_URL.format(pool_address=address),
                    kind=OpportunityKind.LIQUIDITY,
                    pool_type=pool.get("poolType"),
                    provider_pool_id=address,
                    assets=assets,
                )
            )

        # Top pools by locked value; unknown TVL ranks last.
        opportunities.sort(
            key=lambda o: o.locked_value_usd if o.locked_value_usd is not None else Decimal(-1),
            reverse=True,
        )
        return SourceResult(
            source=self.source_name,
            opportunities=opportunities[: self.settings.astroport_max_pools],
        )
