"""Cosmos SDK LCD (REST) client.

Provides:
- Cursor pagination drained to exhaustion (``pagination.next_key``)
- Per-page retry with exponential backoff
- Throttled per-validator slash event lookups
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any, Protocol

import backoff

from ..logger import get_logger
from .envelope import decode_envelope
from .transport import TransportExhaustedError

logger = get_logger(__name__)


class JsonGetter(Protocol):
    async def get_json(self, url: str, params: dict[str, Any] | None = None) -> Any: ...


class CosmosLcdClient:
    """Read-only client for one chain's LCD endpoint."""

    def __init__(
        self,
        http: JsonGetter,
        base_url: str,
        *,
        page_limit: int = 200,
        page_retries: int = 2,
    ):
        self._http = http
        self.base_url = base_url.rstrip("/")
        self._page_limit = page_limit
        self._page_retries = page_retries

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._http.get_json(f"{self.base_url}{path}", params)

    async def _get_page(self, path: str, params: dict[str, Any]) -> Any:
        def _on_backoff(details: Any) -> None:
            logger.warning(
                "LCD page %s failed (attempt %d of %d): %s",
                path,
                details["tries"],
                self._page_retries,
                details.get("exception"),
            )

        @backoff.on_exception(
            backoff.expo,
            TransportExhaustedError,
            max_tries=self._page_retries,
            jitter=backoff.full_jitter,
            on_backoff=_on_backoff,
        )
        async def _fetch() -> Any:
            return await self.get(path, params)

        return await _fetch()

    async def paginate(
        self,
        path: str,
        items_key: str,
        params: dict[str, Any] | None = None,
    ) -> list[Any]:
        """Fetch every page of a paginated listing.

        Follows ``pagination.next_key`` until the provider returns none; a
        single page is never treated as the full result.
        """
        items: list[Any] = []
        next_key: str | None = None
        seen_keys: set[str] = set()
        page = 0
        while True:
            query: dict[str, Any] = {**(params or {}), "pagination.limit": str(self._page_limit)}
            if next_key:
                query["pagination.key"] = next_key
            payload = await self._get_page(path, query)
            page += 1
            items.extend(decode_envelope(payload, (items_key,)).items)

            pagination = payload.get("pagination") or {}
            next_key = pagination.get("next_key") if isinstance(pagination, dict) else None
            if not next_key:
                break
            if next_key in seen_keys:
                logger.warning(
                    "LCD %s repeated pagination key after %d page(s), stopping", path, page
                )
                break
            seen_keys.add(next_key)

        logger.debug("LCD %s: %d %s across %d page(s)", path, len(items), items_key, page)
        return items

    async def validators(self, status: str | None = "BOND_STATUS_BONDED") -> list[dict[str, Any]]:
        params = {"status": status} if status else None
        return await self.paginate("/cosmos/staking/v1beta1/validators", "validators", params)

    async def signing_infos(self) -> list[dict[str, Any]]:
        return await self.paginate("/cosmos/slashing/v1beta1/signing_infos", "info")

    async def signed_blocks_window(self) -> int:
        payload = await self.get("/cosmos/slashing/v1beta1/params")
        params = payload.get("params") if isinstance(payload, dict) else None
        try:
            return int((params or {}).get("signed_blocks_window", 0))
        except (TypeError, ValueError):
            return 0

    async def denom_trace_base(self, ibc_hash: str) -> str | None:
        """Base denomination behind an ``ibc/<hash>`` reference, if the chain knows it."""
        payload = await self.get(f"/ibc/apps/transfer/v1/denom_traces/{ibc_hash}")
        if not isinstance(payload, dict):
            return None
        trace = payload.get("denom_trace")
        if isinstance(trace, dict) and trace.get("base_denom"):
            return str(trace["base_denom"])
        denom = payload.get("denom")
        if isinstance(denom, dict) and denom.get("base"):
            return str(denom["base"])
        return None

    async def inflation(self) -> Decimal:
        payload = await self.get("/cosmos/mint/v1beta1/inflation")
        return Decimal(str(payload["inflation"]))

    async def bonded_tokens(self) -> int:
        payload = await self.get("/cosmos/staking/v1beta1/pool")
        return int(payload["pool"]["bonded_tokens"])

    async def supply_of(self, denom: str) -> int:
        payload = await self.get(
            "/cosmos/bank/v1beta1/supply/by_denom", {"denom": denom}
        )
        return int(payload["amount"]["amount"])

    async def community_tax(self) -> Decimal:
        payload = await self.get("/cosmos/distribution/v1beta1/params")
        return Decimal(str(payload["params"]["community_tax"]))

    async def slash_event_count(self, operator_address: str) -> int:
        """Count transactions carrying a slash event for ``operator_address``.

        Each transaction counts at most once, however many slash events its
        logs contain.
        """
        payload = await self.get(
            "/cosmos/tx/v1beta1/txs",
            {
                "events": f"slash.validator='{operator_address}'",
                "pagination.limit": "100",
            },
        )
        txs = decode_envelope(payload, ("tx_responses",)).items
        return sum(1 for tx in txs if _has_slash_event(tx, operator_address))

    async def slash_event_counts(
        self,
        operator_addresses: list[str],
        *,
        batch_size: int = 10,
        batch_delay: float = 0.1,
    ) -> dict[str, int]:
        """Slash counts for many validators, in throttled batches.

        At most ``batch_size`` lookups run at once and consecutive batches are
        separated by ``batch_delay`` seconds. A failed lookup counts as 0.
        """
        counts: dict[str, int] = {}

        async def _one(operator: str) -> None:
            try:
                counts[operator] = await self.slash_event_count(operator)
            except (TransportExhaustedError, ValueError) as exc:
                logger.debug("Slash lookup failed for %s: %s", operator, exc)
                counts[operator] = 0

        for start in range(0, len(operator_addresses), batch_size):
            batch = operator_addresses[start : start + batch_size]
            await asyncio.gather(*(_one(operator) for operator in batch))
            if start + batch_size < len(operator_addresses) and batch_delay > 0:
                await asyncio.sleep(batch_delay)

        return counts


def _has_slash_event(tx: Any, operator_address: str) -> bool:
    if not isinstance(tx, dict):
        return False
    events: list[Any] = []
    for log in tx.get("logs") or []:
        if isinstance(log, dict):
            events.extend(log.get("events") or [])
    if not events:
        events = list(tx.get("events") or [])

    for event in events:
        if not isinstance(event, dict) or event.get("type") != "slash":
            continue
        validators = [
            attr.get("value")
            for attr in event.get("attributes") or []
            if isinstance(attr, dict) and attr.get("key") == "validator"
        ]
        if not validators or operator_address in validators:
            return True
    return False
