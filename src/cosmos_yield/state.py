"""Application state container."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .cache import TTLCache
from .settings import YieldSettings


@dataclass
class AppState:
    """Container for application-wide state and dependencies.

    Passed through the pipeline to avoid global state and enable testing.
    The cache lives here so that repeated passes in one process share it.
    """

    settings: YieldSettings
    logger: logging.Logger
    cache: TTLCache = field(default_factory=TTLCache)

    @classmethod
    def create(cls, settings: YieldSettings, logger: logging.Logger) -> "AppState":
        return cls(
            settings=settings,
            logger=logger,
            cache=TTLCache(max_entries=settings.cache_max_entries),
        )
