from __future__ import annotations

import asyncio
from decimal import Decimal, InvalidOperation
from typing import Any

from ..clients.envelope import MalformedPayloadError
from ..clients.lcd import CosmosLcdClient
from ..clients.transport import TransportExhaustedError
from ..constants import ATOM_DENOMS, COSMOS_HUB_CHAIN_ID, MINTSCAN_VALIDATOR_URL
from ..logger import get_logger
from ..metrics import (
    compute_signing_stats,
    estimate_staking_apr,
    parse_decimal,
    signing_record_from_lcd,
    validator_yield,
)
from ..models import (
    BondStatus,
    Opportunity,
    OpportunityKind,
    SigningStats,
    SourceResult,
    Validator,
)
from .base import BaseSourceAdapter, chain_display_name

logger = get_logger(__name__)

_NETWORK_PARAM_ERRORS = (
    TransportExhaustedError,
    KeyError,
    TypeError,
    ValueError,
    InvalidOperation,
)


def validator_from_lcd(raw: Any) -> Validator | None:
    """Parse one staking-module validator entry; None when unusable."""
    if not isinstance(raw, dict) or not raw.get("operator_address"):
        return None
    description = raw.get("description") or {}
    rates = (raw.get("commission") or {}).get("commission_rates") or {}
    commission = parse_decimal(rates.get("rate"))
    if commission is None or not (0 <= commission <= 1):
        logger.debug("Skipping %s: bad commission rate %r", raw["operator_address"], rates.get("rate"))
        return None
    try:
        tokens = int(str(raw.get("tokens") or "0"))
    except ValueError:
        tokens = 0
    pubkey = raw.get("consensus_pubkey") or {}

    # The listing is already filtered to bonded validators; a missing status
    # is read as bonded.
    status = raw.get("status")
    return Validator(
        operator_address=str(raw["operator_address"]),
        moniker=str(description.get("moniker") or raw["operator_address"]).strip(),
        commission_rate=commission,
        voting_power_tokens=max(0, tokens),
        bond_status=BondStatus.from_lcd(status) if status else BondStatus.BONDED,
        jailed=bool(raw.get("jailed", False)),
        consensus_pubkey=pubkey.get("key") if isinstance(pubkey, dict) else None,
        identity=(description.get("identity") or None),
    )


def active_set(validators: list[Validator], size: int) -> list[Validator]:
    """Bonded, unjailed validators by voting power, capped at ``size``."""
    eligible = [
        v for v in validators if v.bond_status is BondStatus.BONDED and not v.jailed
    ]
    eligible.sort(key=lambda v: v.voting_power_tokens, reverse=True)
    return eligible[:size]


class CosmosHubAdapter(BaseSourceAdapter):
    """Native ATOM staking on the Cosmos Hub.

    Produces the active validator set with signing stats, plus one staking
    opportunity per validator carrying the estimated net yield.
    """

    @property
    def source_name(self) -> str:
        return "cosmos_hub"

    def _lcd(self) -> CosmosLcdClient:
        return CosmosLcdClient(
            self.http,
            self.settings.cosmos_hub_lcd,
            page_limit=self.settings.page_limit,
            page_retries=self.settings.page_retries,
        )

    async def fetch_validators(self, lcd: CosmosLcdClient) -> list[Validator]:
        raw = await lcd.validators()
        parsed = [v for v in (validator_from_lcd(item) for item in raw) if v is not None]
        validators = active_set(parsed, self.settings.max_validators)
        logger.info(
            "Cosmos Hub: %d validators listed, %d in active set",
            len(raw),
            len(validators),
        )
        return validators

    async def fetch_signing_stats(
        self, lcd: CosmosLcdClient, validators: list[Validator]
    ) -> dict[str, SigningStats]:
        """Signing stats per operator; empty when the slashing module cannot be read."""
        try:
            window, infos = await asyncio.gather(
                lcd.signed_blocks_window(), lcd.signing_infos()
            )
        except (TransportExhaustedError, MalformedPayloadError) as e:
            logger.warning("Cosmos Hub signing data unavailable, uptime unknown: %s", e)
            return {}

        records = [r for r in (signing_record_from_lcd(i) for i in infos if isinstance(i, dict)) if r]
        slash_counts = await lcd.slash_event_counts(
            [v.operator_address for v in validators],
            batch_size=self.settings.slash_batch_size,
            batch_delay=self.settings.slash_batch_delay,
        )
        return compute_signing_stats(
            validators,
            records,
            window,
            slash_counts,
            prefix=self.settings.valcons_prefix,
        )

    async def estimate_apr(self, lcd: CosmosLcdClient) -> Decimal | None:
        try:
            inflation, bonded, supply, tax = await asyncio.gather(
                lcd.inflation(),
                lcd.bonded_tokens(),
                lcd.supply_of(ATOM_DENOMS["COSMOS_HUB"]),
                lcd.community_tax(),
            )
        except _NETWORK_PARAM_ERRORS as e:
            logger.warning("Cosmos Hub network parameters unavailable, yield unknown: %s", e)
            return None
        apr = estimate_staking_apr(inflation, bonded, supply, tax)
        logger.debug("Estimated staking APR: %s", apr)
        return apr

    async def _collect(self) -> SourceResult:
        lcd = self._lcd()
        validators = await self.fetch_validators(lcd)
        stats, apr = await asyncio.gather(
            self.fetch_signing_stats(lcd, validators),
            self.estimate_apr(lcd),
        )

        chain = chain_display_name(COSMOS_HUB_CHAIN_ID)
        opportunities = [
            Opportunity(
                id=f"cosmos_hub-{v.operator_address}",
                platform="Cosmos Hub",
                chain=chain,
                pair_or_asset_label=v.moniker,
                yield_percent=validator_yield(apr, v.commission_rate),
                locked_value_usd=None,
                volume_24h_usd=None,
                description=(
                    f"Stake ATOM with {v.moniker} "
                    f"({(v.commission_rate * 100).normalize():f}% commission)"
                ),
                action_url=MINTSCAN_VALIDATOR_URL.format(operator=v.operator_address),
                kind=OpportunityKind.STAKING,
                provider_pool_id=v.operator_address,
            )
            for v in validators
        ]
        return SourceResult(
            source=self.source_name,
            opportunities=opportunities,
            validators=validators,
            signing_stats=stats,
        )
