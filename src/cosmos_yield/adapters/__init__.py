from __future__ import annotations

from .astroport import AstroportAdapter
from .astrovault import AstrovaultAdapter
from .base import BaseSourceAdapter
from .cosmos_hub import CosmosHubAdapter
from .liquid_staking import LiquidStakingAdapter, QuicksilverAdapter, StrideAdapter
from .osmosis import OsmosisAdapter

ADAPTER_REGISTRY: dict[str, type[BaseSourceAdapter]] = {
    "osmosis": OsmosisAdapter,
    "astroport": AstroportAdapter,
    "astrovault": AstrovaultAdapter,
    "cosmos_hub": CosmosHubAdapter,
    "stride": StrideAdapter,
    "quicksilver": QuicksilverAdapter,
}


def get_adapter_class(source_name: str) -> type[BaseSourceAdapter]:
    """Get adapter class by source name.

    Args:
        source_name: Name of the source (case-insensitive)

    Returns:
        Adapter class

    Raises:
        ValueError: If source_name is not recognized
    """
    normalized = source_name.lower().replace("-", "_")
    if normalized not in ADAPTER_REGISTRY:
        raise ValueError(
            f"Unknown source '{source_name}'. "
            f"Available: {', '.join(ADAPTER_REGISTRY.keys())}"
        )
    return ADAPTER_REGISTRY[normalized]


__all__ = [
    "ADAPTER_REGISTRY",
    "AstroportAdapter",
    "AstrovaultAdapter",
    "BaseSourceAdapter",
    "CosmosHubAdapter",
    "LiquidStakingAdapter",
    "OsmosisAdapter",
    "QuicksilverAdapter",
    "StrideAdapter",
    "get_adapter_class",
]
