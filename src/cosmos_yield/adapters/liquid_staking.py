"""Liquid staking protocols that issue an ATOM derivative.

Each protocol exposes the ATOM it holds on the Cosmos Hub and the rate at
which its derivative redeems. Locked value is the held ATOM priced in USD;
neither protocol publishes a yield, so that stays unknown.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from ..clients.envelope import MalformedPayloadError, decode_envelope
from ..clients.transport import TransportExhaustedError
from ..constants import (
    ATOM_DECIMALS,
    COINGECKO_ATOM_ID,
    COSMOS_HUB_CHAIN_ID,
    QUICKSILVER_APP_URL,
    QUICKSILVER_CHAIN_ID,
    QUICKSILVER_ZONES_PATH,
    STRIDE_APP_URL,
    STRIDE_ATOM_DENOM,
    STRIDE_CHAIN_ID,
    STRIDE_HOST_ZONE_PATH,
)
from ..logger import get_logger
from ..metrics import first_non_negative, parse_decimal
from ..models import Opportunity, OpportunityKind, PoolAsset, SourceResult
from .base import BaseSourceAdapter, chain_display_name

logger = get_logger(__name__)


def micro_to_whole(amount: Any, decimals: int = ATOM_DECIMALS) -> Decimal | None:
    """Convert an on-chain integer amount to whole tokens."""
    value = first_non_negative(amount)
    if value is None:
        return None
    return value.scaleb(-decimals)


class LiquidStakingAdapter(BaseSourceAdapter):
    """Shared pricing and record building for liquid staking protocols."""

    platform: str
    chain_id: str
    derivative_symbol: str
    app_url: str

    async def atom_price_usd(self) -> Decimal | None:
        """ATOM price in USD, or None when the price feed cannot be read."""
        try:
            payload = await self.cached_json(
                "atom_price",
                self.settings.price_api,
                {"ids": COINGECKO_ATOM_ID, "vs_currencies": "usd"},
            )
        except TransportExhaustedError as e:
            logger.warning("%s: ATOM price unavailable, locked value unknown: %s", self.platform, e)
            return None

        quote = payload.get(COINGECKO_ATOM_ID) if isinstance(payload, dict) else None
        price = first_non_negative(quote.get("usd")) if isinstance(quote, dict) else None
        if price is None:
            logger.warning("%s: price feed returned no ATOM quote", self.platform)
        return price

    def build_opportunity(
        self,
        *,
        held_atom: Decimal | None,
        price_usd: Decimal | None,
        redemption_rate: Decimal | None,
        denom: str,
    ) -> Opportunity:
        locked_value = None
        if held_atom is not None and price_usd is not None:
            locked_value = held_atom * price_usd

        description = f"Liquid stake ATOM for {self.derivative_symbol} on {self.platform}"
        if redemption_rate is not None:
            description += (
                f" (1 {self.derivative_symbol} = {redemption_rate.quantize(Decimal('0.0001'))} ATOM)"
            )

        return Opportunity(
            id=f"{self.source_name}-{COSMOS_HUB_CHAIN_ID}",
            platform=self.platform,
            chain=chain_display_name(self.chain_id),
            pair_or_asset_label=self.derivative_symbol,
            yield_percent=None,
            locked_value_usd=locked_value,
            volume_24h_usd=None,
            description=description,
            action_url=self.app_url,
            kind=OpportunityKind.STAKING,
            provider_pool_id=COSMOS_HUB_CHAIN_ID,
            assets=[PoolAsset(denom_reference=denom, resolved_symbol=self.derivative_symbol)],
        )


class StrideAdapter(LiquidStakingAdapter):
    """stATOM, from the Stride ``stakeibc`` host zone for the Cosmos Hub.

    ``total_delegations`` is the uatom Stride has delegated on the Hub.
    """

    platform = "Stride"
    chain_id = STRIDE_CHAIN_ID
    derivative_symbol = "stATOM"
    app_url = STRIDE_APP_URL

    @property
    def source_name(self) -> str:
        return "stride"

    async def _collect(self) -> SourceResult:
        url = self.settings.stride_lcd.rstrip("/") + STRIDE_HOST_ZONE_PATH.format(
            chain_id=COSMOS_HUB_CHAIN_ID
        )
        payload = await self.cached_json("host_zone", url)
        zone = payload.get("host_zone") if isinstance(payload, dict) else None
        if not isinstance(zone, dict):
            raise MalformedPayloadError("Stride response has no host_zone object")

        held_atom = micro_to_whole(zone.get("total_delegations"))
        redemption_rate = parse_decimal(zone.get("redemption_rate"))
        price = await self.atom_price_usd()
        logger.info("Stride: %s ATOM delegated, redemption rate %s", held_atom, redemption_rate)

        return SourceResult(
            source=self.source_name,
            opportunities=[
                self.build_opportunity(
                    held_atom=held_atom,
                    price_usd=price,
                    redemption_rate=redemption_rate,
                    denom=STRIDE_ATOM_DENOM,
                )
            ],
        )


class QuicksilverAdapter(LiquidStakingAdapter):
    """qATOM, from the Quicksilver interchain staking zone for the Cosmos Hub.

    Held ATOM is the qATOM supply times the redemption rate. A supply that
    cannot be read leaves the locked value unknown.
    """

    platform = "Quicksilver"
    chain_id = QUICKSILVER_CHAIN_ID
    derivative_symbol = "qATOM"
    app_url = QUICKSILVER_APP_URL

    @property
    def source_name(self) -> str:
        return "quicksilver"

    async def _derivative_supply(self, denom: str, decimals: int) -> Decimal | None:
        url = self.settings.quicksilver_lcd.rstrip("/") + "/cosmos/bank/v1beta1/supply/by_denom"
        try:
            payload = await self.cached_json(f"supply:{denom}", url, {"denom": denom})
        except TransportExhaustedError as e:
            logger.warning("Quicksilver: %s supply unavailable: %s", denom, e)
            return None
        amount = payload.get("amount") if isinstance(payload, dict) else None
        return micro_to_whole(amount.get("amount"), decimals) if isinstance(amount, dict) else None

    async def _collect(self) -> SourceResult:
        url = self.settings.quicksilver_lcd.rstrip("/") + QUICKSILVER_ZONES_PATH
        payload = await self.cached_json("zones", url)
        zones = decode_envelope(payload, ("zones",)).items
        zone = next(
            (z for z in zones if isinstance(z, dict) and z.get("chain_id") == COSMOS_HUB_CHAIN_ID),
            None,
        )
        if zone is None:
            raise MalformedPayloadError(f"Quicksilver lists no zone for {COSMOS_HUB_CHAIN_ID}")

        denom = str(zone.get("local_denom") or "uqatom")
        try:
            decimals = int(zone.get("decimals") or ATOM_DECIMALS)
        except (TypeError, ValueError):
            decimals = ATOM_DECIMALS
        redemption_rate = parse_decimal(zone.get("redemption_rate"))

        supply = await self._derivative_supply(denom, decimals)
        held_atom = None
        if supply is not None and redemption_rate is not None:
            held_atom = supply * redemption_rate
        price = await self.atom_price_usd()
        logger.info("Quicksilver: %s ATOM held, redemption rate %s", held_atom, redemption_rate)

        return SourceResult(
            source=self.source_name,
            opportunities=[
                self.build_opportunity(
                    held_atom=held_atom,
                    price_usd=price,
                    redemption_rate=redemption_rate,
                    denom=denom,
                )
            ],
        )
