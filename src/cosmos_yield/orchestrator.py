from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Sequence

from .adapters.base import BaseSourceAdapter
from .logger import get_logger
from .models import (
    ErrorKind,
    FailureManifest,
    Opportunity,
    SigningStats,
    SourceError,
    SourceResult,
    Validator,
)

logger = get_logger(__name__)


@dataclass
class AggregationResult:
    """Merged output of one aggregation pass."""

    opportunities: list[Opportunity] = field(default_factory=list)
    validators: list[Validator] = field(default_factory=list)
    signing_stats: dict[str, SigningStats] = field(default_factory=dict)
    manifest: FailureManifest = field(default_factory=lambda: FailureManifest(0))

    def to_dict(self) -> dict:
        return {
            "opportunities": [o.to_dict() for o in self.opportunities],
            "validators": [
                _validator_dict(v, self.signing_stats) for v in self.validators
            ],
            "manifest": self.manifest.to_dict(),
        }


def _validator_dict(validator: Validator, stats: dict[str, SigningStats]) -> dict:
    signing = stats.get(validator.operator_address) or SigningStats()
    return {
        "operator_address": validator.operator_address,
        "moniker": validator.moniker,
        "commission_rate": str(validator.commission_rate),
        "voting_power_tokens": str(validator.voting_power_tokens),
        "bond_status": validator.bond_status.value,
        "jailed": validator.jailed,
        "uptime": signing.uptime,
        "missed_blocks": signing.missed,
        "tombstoned": signing.tombstoned,
        "slash_count": signing.slash_count,
    }


async def _run_bounded(adapter: BaseSourceAdapter, timeout: float | None) -> SourceResult:
    if timeout is None or timeout <= 0:
        return await adapter.fetch_and_normalize()
    try:
        return await asyncio.wait_for(adapter.fetch_and_normalize(), timeout)
    except asyncio.TimeoutError:
        logger.error("Source '%s' timed out after %.1fs", adapter.source_name, timeout)
        return SourceResult(
            source=adapter.source_name,
            error=SourceError(
                source=adapter.source_name,
                kind=ErrorKind.TIMEOUT,
                message=f"timed out after {timeout}s",
            ),
        )


def _process_adapter_results(
    adapters: Sequence[BaseSourceAdapter],
    results: list[SourceResult | BaseException],
    merged: AggregationResult,
) -> None:
    """Fold asyncio.gather results into ``merged``.

    Args:
        adapters: Adapters in the order they were gathered
        results: Results from asyncio.gather (may contain exceptions)
        merged: Aggregate to extend with successes and failures
    """
    for adapter, result in zip(adapters, results):
        name = adapter.source_name
        match result:
            case asyncio.CancelledError() as e:
                raise e
            case BaseException() as e:
                # fetch_and_normalize is not supposed to raise
                logger.error("Source '%s' raised: %s", name, e)
                merged.manifest.failures.append(
                    SourceError(source=name, kind=ErrorKind.UNEXPECTED, message=str(e))
                )
            case SourceResult(error=SourceError() as error):
                merged.manifest.failures.append(error)
            case SourceResult() as ok:
                logger.debug(
                    "Source '%s' contributed %d opportunities",
                    name,
                    len(ok.opportunities),
                )
                merged.opportunities.extend(ok.opportunities)
                merged.validators.extend(ok.validators)
                merged.signing_stats.update(ok.signing_stats)


def _dedupe(opportunities: list[Opportunity]) -> list[Opportunity]:
    """Drop repeated ids, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[Opportunity] = []
    for o in opportunities:
        if o.id in seen:
            logger.debug("Dropping duplicate opportunity %s", o.id)
            continue
        seen.add(o.id)
        unique.append(o)
    return unique


async def aggregate(
    adapters: Sequence[BaseSourceAdapter],
    source_timeout: float | None = None,
) -> AggregationResult:
    """Fetch every source concurrently and merge what succeeded.

    One failing or slow source never blanks the others: its failure is
    recorded in the manifest and the rest of the feed is returned. Sources
    are merged in the order given.
    """
    merged = AggregationResult(manifest=FailureManifest(total_sources=len(adapters)))
    if not adapters:
        return merged

    logger.info("Aggregating %d sources", len(adapters))
    results = await asyncio.gather(
        *(_run_bounded(adapter, source_timeout) for adapter in adapters),
        return_exceptions=True,
    )
    _process_adapter_results(adapters, results, merged)
    merged.opportunities = _dedupe(merged.opportunities)

    if merged.manifest.degraded:
        logger.warning(
            "%s: %s",
            merged.manifest.summary(),
            ", ".join(merged.manifest.failed_sources),
        )
    logger.info(
        "Aggregated %d opportunities and %d validators",
        len(merged.opportunities),
        len(merged.validators),
    )
    return merged
