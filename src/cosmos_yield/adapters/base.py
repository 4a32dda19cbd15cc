from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any

from ..cache import TTLCache
from ..clients.envelope import MalformedPayloadError
from ..clients.lcd import JsonGetter
from ..clients.transport import TransportExhaustedError
from ..constants import ATOM_DERIVATIVE_SYMBOLS, CHAIN_DISPLAY_NAMES
from ..logger import get_logger
from ..models import UNKNOWN, ErrorKind, SourceError, SourceResult
from ..resolver import AssetRegistryResolver
from ..settings import YieldSettings

logger = get_logger(__name__)


def chain_display_name(chain_id: str | None) -> str:
    """Human name for a chain id; unknown ids are title-cased from their prefix."""
    if not chain_id:
        return UNKNOWN
    known = CHAIN_DISPLAY_NAMES.get(chain_id)
    if known:
        return known
    prefix = chain_id.split("-", 1)[0] or chain_id
    return prefix[:1].upper() + prefix[1:]


class BaseSourceAdapter(ABC):
    """Abstract base class for yield source adapters."""

    def __init__(
        self,
        settings: YieldSettings,
        http: JsonGetter,
        cache: TTLCache,
        resolver: AssetRegistryResolver,
    ):
        """Initialize the adapter.

        Args:
            settings: Application settings
            http: JSON client (a transport chain, or a fake in tests)
            cache: Shared cache for registry and provider payloads
            resolver: Denomination to symbol resolver
        """
        self.settings = settings
        self.http = http
        self.cache = cache
        self.resolver = resolver

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return the name of this source."""
        ...

    @abstractmethod
    async def _collect(self) -> SourceResult:
        """Fetch and normalise this source's records. May raise."""
        ...

    async def fetch_and_normalize(self) -> SourceResult:
        """Run one fetch for this source.

        Never raises (except on cancellation): failures come back as a
        ``SourceResult`` whose ``error`` says what went wrong.
        """
        try:
            result = await self._collect()
        except asyncio.CancelledError:
            raise
        except TransportExhaustedError as e:
            return self._failed(ErrorKind.TRANSPORT, e)
        except MalformedPayloadError as e:
            return self._failed(ErrorKind.MALFORMED, e)
        except Exception as e:
            logger.exception("Unexpected error in source '%s'", self.source_name)
            return self._failed(ErrorKind.UNEXPECTED, e)

        logger.debug(
            "Source '%s' returned %d opportunities, %d validators",
            self.source_name,
            len(result.opportunities),
            len(result.validators),
        )
        return result

    def _failed(self, kind: ErrorKind, exc: BaseException) -> SourceResult:
        logger.error("Source '%s' failed (%s): %s", self.source_name, kind.value, exc)
        return SourceResult(
            source=self.source_name,
            error=SourceError(source=self.source_name, kind=kind, message=str(exc)),
        )

    async def cached_json(self, key: str, url: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``url`` through the provider payload cache."""

        async def _load() -> Any:
            return await self.http.get_json(url, params)

        ttl = self.settings.pool_cache_ttl_seconds
        if ttl <= 0:
            return await _load()
        return await self.cache.get_or_load(f"payload:{self.source_name}:{key}", _load, ttl)

    def involves_tracked_asset(
        self,
        symbol: str | None = None,
        description: str | None = None,
        denom: str | None = None,
    ) -> bool:
        """Whether an asset is the tracked asset or one of its liquid-staked forms.

        Symbol, description and denomination are all checked; any one
        matching is enough.
        """
        tracked = self.settings.tracked_symbol.lower()
        symbol_l = (symbol or "").lower()
        description_l = (description or "").lower()
        denom_raw = denom or ""
        denom_l = denom_raw.lower()

        if tracked and tracked in symbol_l:
            return True
        if symbol_l in ATOM_DERIVATIVE_SYMBOLS:
            return True
        if tracked and tracked in description_l:
            return True
        if "cosmos hub" in description_l:
            return True
        if denom_raw and denom_raw in self.settings.tracked_denoms:
            return True
        return bool(tracked and tracked in denom_l)
