"""High-level pipeline orchestration."""

from __future__ import annotations

import asyncio
from decimal import Decimal

from ..adapters import get_adapter_class
from ..adapters.base import BaseSourceAdapter
from ..clients.transport import build_transport_chain
from ..constants import DEV_PROXY_ROUTES
from ..orchestrator import AggregationResult, aggregate
from ..report.publisher import publish_feed
from ..resolver import AssetRegistryResolver
from ..sorting import filter_opportunities, sort_opportunities, sort_validators
from ..state import AppState
from .context import FeedContext

# Sources whose upstream is mirrored by the local dev proxy
DEV_PROXY_SOURCES = {"osmosis", "astrovault"}


def build_adapters(state: AppState) -> list[BaseSourceAdapter]:
    """Instantiate the configured sources, sharing one cache and resolver."""
    s = state.settings
    resolver = AssetRegistryResolver(s, build_transport_chain(s), state.cache)

    adapters: list[BaseSourceAdapter] = []
    for name in s.sources:
        adapter_class = get_adapter_class(name)
        routes = DEV_PROXY_ROUTES if name.lower() in DEV_PROXY_SOURCES else None
        http = build_transport_chain(s, dev_proxy_routes=routes)
        adapters.append(adapter_class(s, http, state.cache, resolver))
        state.logger.debug("Configured source: %s", name)
    return adapters


async def collect_feed(ctx: FeedContext) -> None:
    s = ctx.state.settings
    if not ctx.adapters:
        ctx.adapters = build_adapters(ctx.state)
    ctx.result = await aggregate(ctx.adapters, source_timeout=s.source_timeout_seconds)


async def order_feed(ctx: FeedContext) -> None:
    s = ctx.state.settings
    result = ctx.result_required
    filtered = filter_opportunities(
        result.opportunities,
        platform=ctx.platform,
        chain=ctx.chain,
        query=ctx.query,
        min_yield=ctx.min_yield,
    )
    result.opportunities = sort_opportunities(filtered, s.sort_by, s.sort_descending)
    result.validators = sort_validators(result.validators, result.signing_stats)


async def run_feed(
    state: AppState,
    *,
    platform: str | None = None,
    chain: str | None = None,
    query: str | None = None,
    min_yield: Decimal | None = None,
    publish: bool = True,
    adapters: list[BaseSourceAdapter] | None = None,
) -> AggregationResult:
    """Execute one aggregation pass.

    Sequences the pipeline steps:
    1. Concurrent collection from every source
    2. Filtering and ordering
    3. Publishing to stdout (table or JSON)

    Args:
        state: Application state containing settings and logger
        platform: Keep only this platform
        chain: Keep only this chain
        query: Keep only records whose pair or description contains this
        min_yield: Drop records below this yield (percent)
        publish: Print the feed when done
        adapters: Pre-built sources; built from settings when omitted

    Raises:
        asyncio.TimeoutError: If the pass exceeds ``global_timeout_seconds``
    """
    s = state.settings
    log = state.logger

    log.info("Starting feed", extra={"sources": s.sources})

    timeout_s = s.global_timeout_seconds
    ctx = FeedContext(
        state=state,
        platform=platform,
        chain=chain,
        query=query,
        min_yield=min_yield,
        adapters=list(adapters or []),
    )

    async def _run_pipeline() -> None:
        await collect_feed(ctx)
        await order_feed(ctx)
        if publish:
            publish_feed(ctx.result_required, s.output_format)

    try:
        if timeout_s is None or timeout_s <= 0:
            await _run_pipeline()
        else:
            async with asyncio.timeout(timeout_s):
                await _run_pipeline()
    except asyncio.TimeoutError as exc:
        log.error(
            "Feed pipeline timed out",
            extra={"timeout_seconds": timeout_s},
        )
        raise asyncio.TimeoutError(
            f"Feed exceeded global timeout {timeout_s}s\n N.B. This can be changed via "
            "`global_timeout_seconds` or CLI flag `--global-timeout-seconds`."
        ) from exc

    result = ctx.result_required
    log.info(
        "Feed completed: %d opportunities, %s",
        len(result.opportunities),
        result.manifest.summary(),
    )
    return result
