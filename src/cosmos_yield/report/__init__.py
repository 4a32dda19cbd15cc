from __future__ import annotations

from .formatter import format_feed_table
from .publisher import publish_feed

__all__ = [
    "format_feed_table",
    "publish_feed",
]
