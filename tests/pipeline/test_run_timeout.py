import asyncio
import logging

import pytest

from cosmos_yield.orchestrator import AggregationResult
from cosmos_yield.pipeline import run as pipeline_run
from cosmos_yield.settings import YieldSettings
from cosmos_yield.state import AppState


@pytest.mark.asyncio
async def test_run_feed_completes_within_timeout(monkeypatch):
    calls: list[str] = []

    async def collect(ctx):
        calls.append("collect")
        await asyncio.sleep(0.01)
        ctx.result = AggregationResult()

    async def order(ctx):  # type: ignore[unused-arg]
        calls.append("order")
        await asyncio.sleep(0.01)

    def publish(result, output_format):  # type: ignore[unused-arg]
        calls.append("publish")

    monkeypatch.setattr(pipeline_run, "collect_feed", collect)
    monkeypatch.setattr(pipeline_run, "order_feed", order)
    monkeypatch.setattr(pipeline_run, "publish_feed", publish)

    settings = YieldSettings(global_timeout_seconds=0.2)
    state = AppState(settings=settings, logger=logging.getLogger("test"))

    result = await pipeline_run.run_feed(state)

    assert calls == ["collect", "order", "publish"]
    assert isinstance(result, AggregationResult)


@pytest.mark.asyncio
async def test_run_feed_raises_timeout(monkeypatch):
    async def slow_collect(ctx):
        await asyncio.sleep(0.2)
        ctx.result = AggregationResult()

    async def noop(ctx):  # type: ignore[unused-arg]
        await asyncio.sleep(0)

    monkeypatch.setattr(pipeline_run, "collect_feed", slow_collect)
    monkeypatch.setattr(pipeline_run, "order_feed", noop)
    monkeypatch.setattr(pipeline_run, "publish_feed", lambda *_: None)

    settings = YieldSettings(global_timeout_seconds=0.05)
    state = AppState(settings=settings, logger=logging.getLogger("test"))

    with pytest.raises(asyncio.TimeoutError, match="--global-timeout-seconds"):
        await pipeline_run.run_feed(state)


@pytest.mark.asyncio
async def test_run_feed_skips_publish_when_disabled(monkeypatch):
    async def collect(ctx):
        ctx.result = AggregationResult()

    async def noop(ctx):  # type: ignore[unused-arg]
        return None

    def publish(*_):
        raise AssertionError("publish should not run")

    monkeypatch.setattr(pipeline_run, "collect_feed", collect)
    monkeypatch.setattr(pipeline_run, "order_feed", noop)
    monkeypatch.setattr(pipeline_run, "publish_feed", publish)

    state = AppState(settings=YieldSettings(global_timeout_seconds=0), logger=logging.getLogger("test"))

    await pipeline_run.run_feed(state, publish=False)
