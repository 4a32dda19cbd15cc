from __future__ import annotations

import json

from ..logger import get_logger
from ..orchestrator import AggregationResult
from ..settings import OutputFormat
from .formatter import format_feed_table

logger = get_logger(__name__)


def publish_feed(
    result: AggregationResult,
    output_format: OutputFormat = OutputFormat.TABLE,
) -> None:
    """Publish the feed to stdout.

    Args:
        result: Ordered aggregation result
        output_format: TABLE for rich tables, JSON for the raw record shapes
    """
    logger.debug("Publishing feed as %s", output_format.value)
    if output_format == OutputFormat.JSON:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        format_feed_table(result)
