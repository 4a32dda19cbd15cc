from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..adapters.base import BaseSourceAdapter
from ..orchestrator import AggregationResult
from ..state import AppState


@dataclass
class FeedContext:
    state: AppState
    platform: str | None = None
    chain: str | None = None
    query: str | None = None
    min_yield: Decimal | None = None
    adapters: list[BaseSourceAdapter] = field(default_factory=list)
    result: AggregationResult | None = None

    @property
    def result_required(self) -> AggregationResult:
        if self.result is None:
            raise RuntimeError(
                "Feed has not been collected. Ensure collect_feed() is called before accessing this property."
            )
        return self.result
