"""Stable ordering and filtering of the merged feed."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Iterable, Mapping

from .models import Opportunity, SigningStats, Validator
from .settings import SortKey

_KEY_FUNCS: dict[SortKey, Callable[[Opportunity], Any]] = {
    SortKey.YIELD: lambda o: o.yield_percent,
    SortKey.LOCKED_VALUE: lambda o: o.locked_value_usd,
    SortKey.PAIR: lambda o: o.pair_or_asset_label.casefold(),
    SortKey.CHAIN: lambda o: o.chain.casefold(),
    SortKey.PLATFORM: lambda o: o.platform.casefold(),
}


def sort_validators(
    validators: Iterable[Validator],
    stats: Mapping[str, SigningStats],
) -> list[Validator]:
    """Uptime descending, then commission ascending, then voting power ascending.

    Unknown uptime ranks as 0. Validators equal on all three keys keep their
    input order.
    """

    def _key(v: Validator) -> tuple[float, Decimal, int]:
        signing = stats.get(v.operator_address)
        uptime = signing.uptime if signing and signing.uptime is not None else 0.0
        return (-uptime, v.commission_rate, v.voting_power_tokens)

    return sorted(validators, key=_key)


def sort_opportunities(
    items: Iterable[Opportunity],
    key: SortKey = SortKey.LOCKED_VALUE,
    descending: bool = True,
) -> list[Opportunity]:
    """Order by one key, keeping ties in their original relative order.

    Records whose key is unknown go last in either direction.
    """
    extract = _KEY_FUNCS[key]
    items = list(items)
    known = [o for o in items if extract(o) is not None]
    unknown = [o for o in items if extract(o) is None]
    # sorted(reverse=True) keeps equal elements in input order
    return sorted(known, key=extract, reverse=descending) + unknown


def filter_opportunities(
    items: Iterable[Opportunity],
    *,
    platform: str | None = None,
    chain: str | None = None,
    query: str | None = None,
    min_yield: Decimal | float | None = None,
) -> list[Opportunity]:
    """Keep records matching every given criterion; order is preserved.

    ``platform`` and ``chain`` match case-insensitively; ``query`` is a
    substring of the pair label or description; ``min_yield`` drops records
    with unknown or lower yield.
    """
    threshold = None if min_yield is None else Decimal(str(min_yield))
    needle = query.casefold() if query else None
    kept: list[Opportunity] = []
    for o in items:
        if platform and o.platform.casefold() != platform.casefold():
            continue
        if chain and o.chain.casefold() != chain.casefold():
            continue
        if needle and needle not in o.pair_or_asset_label.casefold() and (
            needle not in o.description.casefold()
        ):
            continue
        if threshold is not None and (o.yield_percent is None or o.yield_percent < threshold):
            continue
        kept.append(o)
    return kept
