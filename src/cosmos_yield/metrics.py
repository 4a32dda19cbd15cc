"""Derived metrics: yield normalisation, display formatting and validator signing stats."""

from __future__ import annotations

import base64
import binascii
import hashlib
import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, Mapping

import bech32

from .constants import VALCONS_PREFIX
from .logger import get_logger
from .models import UNKNOWN, SigningRecord, SigningStats, Validator

logger = get_logger(__name__)

HUNDRED = Decimal(100)
THOUSAND = Decimal(1_000)
MILLION = Decimal(1_000_000)


class YieldUnit(str, Enum):
    """How a provider expresses rates."""

    PERCENT = "percent"
    FRACTION = "fraction"
    AUTO = "auto"


def parse_decimal(value: Any) -> Decimal | None:
    """Parse a provider number into a finite Decimal, or None.

    NaN, infinities, booleans, empty strings and garbage all map to None so
    that they surface as unknown rather than as zero.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    try:
        parsed = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def first_non_negative(*candidates: Any) -> Decimal | None:
    """First candidate that parses to a decimal >= 0; None when none does."""
    for candidate in candidates:
        value = parse_decimal(candidate)
        if value is not None and value >= 0:
            return value
    return None


def normalize_yield_percent(value: Any, unit: YieldUnit = YieldUnit.AUTO) -> Decimal | None:
    """Normalise a provider rate to percent units.

    With ``AUTO`` a value strictly between 0 and 1 is read as a fraction and
    scaled by 100; anything >= 1 is already a percentage and left alone, so
    normalising twice never rescales. Genuine sub-1% rates are therefore
    misread as fractions under ``AUTO``; sources known to report percentages
    should use ``PERCENT``.
    """
    rate = parse_decimal(value)
    if rate is None or rate < 0:
        return None
    if unit is YieldUnit.FRACTION:
        return rate * HUNDRED
    if unit is YieldUnit.AUTO and 0 < rate < 1:
        return rate * HUNDRED
    return rate


def format_yield(value: Decimal | None) -> str:
    if value is None:
        return UNKNOWN
    return f"{value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)}%"


def format_yield_range(lower: Decimal | None, upper: Decimal | None) -> str:
    """Format an APR range, collapsing bounds closer than half a basis point."""
    if lower is not None and upper is not None:
        if abs(lower - upper) < Decimal("0.005"):
            return format_yield(lower)
        return f"{format_yield(lower)} - {format_yield(upper)}"
    if lower is not None:
        return format_yield(lower)
    return format_yield(upper)


def _round_half_up(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))


def format_locked_value(value: Any) -> str:
    """Compact USD display: ``$1.5M``, ``$12K``, ``$750``.

    Missing and non-positive values render as ``UNKNOWN``, never ``$0``.
    """
    amount = parse_decimal(value)
    if amount is None or amount <= 0:
        return UNKNOWN
    if amount >= MILLION:
        millions = (amount / MILLION).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
        return f"${millions}M"
    if amount >= THOUSAND:
        return f"${_round_half_up(amount / THOUSAND)}K"
    return f"${_round_half_up(amount)}"


def compute_uptime(missed_blocks: int, window_blocks: int) -> float | None:
    """Share of the signing window that was signed, clamped to [0, 1]."""
    if window_blocks <= 0:
        return None
    return max(0.0, min(1.0, 1 - missed_blocks / window_blocks))


def derive_consensus_address(pubkey_b64: str, prefix: str = VALCONS_PREFIX) -> str:
    """Bech32 consensus address of a base64 ed25519 consensus public key.

    The address is the first 20 bytes of SHA-256 over the raw key bytes.

    Raises:
        ValueError: If the key is not valid base64 or cannot be encoded
    """
    try:
        raw = base64.b64decode(pubkey_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid consensus pubkey: {exc}") from exc
    if not raw:
        raise ValueError("Empty consensus pubkey")

    digest = hashlib.sha256(raw).digest()[:20]
    words = bech32.convertbits(digest, 8, 5)
    if words is None:
        raise ValueError("Could not convert consensus address to 5-bit words")
    address = bech32.bech32_encode(prefix, words)
    if not address:
        raise ValueError(f"Could not bech32-encode consensus address for {prefix}")
    return address


def signing_record_from_lcd(info: Mapping[str, Any]) -> SigningRecord | None:
    """Build a SigningRecord from one ``signing_infos`` entry."""
    address = info.get("address")
    if not address:
        return None
    try:
        missed = int(info.get("missed_blocks_counter") or 0)
    except (TypeError, ValueError):
        missed = 0
    return SigningRecord(
        consensus_address=str(address),
        missed_blocks_count=max(0, missed),
        tombstoned=bool(info.get("tombstoned", False)),
    )


def compute_signing_stats(
    validators: Iterable[Validator],
    signing_records: Iterable[SigningRecord],
    window_blocks: int,
    slash_counts: Mapping[str, int] | None = None,
    *,
    prefix: str = VALCONS_PREFIX,
) -> dict[str, SigningStats]:
    """Uptime, missed blocks, tombstone flag and slash count per operator address.

    Returns an empty mapping when ``window_blocks`` <= 0. A validator whose
    consensus address cannot be derived, or that has no signing record,
    gets default stats instead of aborting the computation.
    """
    if window_blocks <= 0:
        logger.warning("Signing window is %d blocks; uptime is undefined", window_blocks)
        return {}

    by_address = {record.consensus_address: record for record in signing_records}
    slash_counts = slash_counts or {}
    stats: dict[str, SigningStats] = {}

    for validator in validators:
        operator = validator.operator_address
        try:
            if not validator.consensus_pubkey:
                raise ValueError("missing consensus pubkey")
            consensus_address = derive_consensus_address(validator.consensus_pubkey, prefix)
            record = by_address.get(consensus_address)
            if record is None:
                raise LookupError(f"no signing record for {consensus_address}")
        except (ValueError, LookupError) as exc:
            logger.debug("Default signing stats for %s: %s", operator, exc)
            stats[operator] = SigningStats()
            continue

        stats[operator] = SigningStats(
            uptime=compute_uptime(record.missed_blocks_count, window_blocks),
            missed=record.missed_blocks_count,
            tombstoned=record.tombstoned,
            slash_count=slash_counts.get(operator, record.slash_event_count),
        )

    return stats


def estimate_staking_apr(
    inflation: Decimal,
    bonded_tokens: int,
    total_supply: int,
    community_tax: Decimal = Decimal(0),
) -> Decimal | None:
    """Nominal staking APR in percent before validator commission."""
    if bonded_tokens <= 0 or total_supply <= 0 or inflation < 0:
        return None
    bonded_ratio = Decimal(bonded_tokens) / Decimal(total_supply)
    return inflation * (1 - community_tax) / bonded_ratio * HUNDRED


def validator_yield(apr_percent: Decimal | None, commission_rate: Decimal) -> Decimal | None:
    if apr_percent is None:
        return None
    return apr_percent * (1 - commission_rate)
