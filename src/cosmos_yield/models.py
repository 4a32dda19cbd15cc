"""Canonical records shared by adapters, the orchestrator and the feed output."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

UNKNOWN = "—"


class OpportunityKind(str, Enum):
    LIQUIDITY = "liquidity"
    STAKING = "staking"


class BondStatus(str, Enum):
    BONDED = "bonded"
    UNBONDING = "unbonding"
    UNBONDED = "unbonded"
    UNSPECIFIED = "unspecified"

    @classmethod
    def from_lcd(cls, raw: str | None) -> "BondStatus":
        """Parse an LCD ``BOND_STATUS_*`` string; anything else is unspecified."""
        if not raw:
            return cls.UNSPECIFIED
        name = raw.upper().removeprefix("BOND_STATUS_")
        try:
            return cls[name]
        except KeyError:
            return cls.UNSPECIFIED


class ErrorKind(str, Enum):
    TRANSPORT = "transport"
    MALFORMED = "malformed"
    TIMEOUT = "timeout"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class PoolAsset:
    """One side of a liquidity pool."""

    denom_reference: str
    resolved_symbol: str
    raw_amount: str | None = None


@dataclass
class Opportunity:
    """A yield-bearing position on one platform.

    Numeric fields hold non-negative decimals or ``None`` for unknown; they
    are never coerced to zero.
    """

    id: str
    platform: str
    chain: str
    pair_or_asset_label: str
    yield_percent: Decimal | None
    locked_value_usd: Decimal | None
    volume_24h_usd: Decimal | None
    description: str
    action_url: str
    kind: OpportunityKind = OpportunityKind.LIQUIDITY
    pool_type: str | None = None
    yield_upper_percent: Decimal | None = None
    provider_pool_id: str | None = None
    assets: list[PoolAsset] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        from .metrics import format_locked_value, format_yield_range

        def _num(value: Decimal | None) -> str | None:
            return None if value is None else str(value)

        return {
            "id": self.id,
            "kind": self.kind.value,
            "platform": self.platform,
            "chain": self.chain,
            "pair": self.pair_or_asset_label,
            "pool_type": self.pool_type,
            "apy": format_yield_range(self.yield_percent, self.yield_upper_percent),
            "tvl": format_locked_value(self.locked_value_usd),
            "volume_24h": format_locked_value(self.volume_24h_usd),
            "yield_percent": _num(self.yield_percent),
            "yield_upper_percent": _num(self.yield_upper_percent),
            "locked_value_usd": _num(self.locked_value_usd),
            "volume_24h_usd": _num(self.volume_24h_usd),
            "description": self.description,
            "url": self.action_url,
            "assets": [
                {
                    "denom": asset.denom_reference,
                    "symbol": asset.resolved_symbol,
                    "amount": asset.raw_amount,
                }
                for asset in self.assets
            ],
        }


@dataclass(frozen=True)
class Validator:
    """A validator as listed by the staking module."""

    operator_address: str
    moniker: str
    commission_rate: Decimal
    voting_power_tokens: int
    bond_status: BondStatus
    jailed: bool
    consensus_pubkey: str | None = None
    identity: str | None = None


@dataclass(frozen=True)
class SigningRecord:
    """Signing info keyed by consensus address, not operator address."""

    consensus_address: str
    missed_blocks_count: int
    tombstoned: bool = False
    slash_event_count: int = 0


@dataclass(frozen=True)
class SigningStats:
    uptime: float | None = None
    missed: int = 0
    tombstoned: bool = False
    slash_count: int = 0


@dataclass(frozen=True)
class SourceError:
    """Why a source contributed nothing (or less than it should) to a pass."""

    source: str
    kind: ErrorKind
    message: str


@dataclass
class SourceResult:
    source: str
    opportunities: list[Opportunity] = field(default_factory=list)
    validators: list[Validator] = field(default_factory=list)
    signing_stats: dict[str, SigningStats] = field(default_factory=dict)
    error: SourceError | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class FailureManifest:
    """Which sources failed during one aggregation pass, and why."""

    total_sources: int
    failures: list[SourceError] = field(default_factory=list)

    @property
    def failed_sources(self) -> list[str]:
        return [failure.source for failure in self.failures]

    @property
    def degraded(self) -> bool:
        return bool(self.failures)

    def summary(self) -> str:
        return f"{len(self.failures)} of {self.total_sources} sources degraded"

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_sources": self.total_sources,
            "failed_sources": self.failed_sources,
            "failures": [
                {"source": f.source, "kind": f.kind.value, "message": f.message}
                for f in self.failures
            ],
        }
