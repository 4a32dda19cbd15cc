from decimal import Decimal

from cosmos_yield.models import BondStatus, Opportunity, SigningStats, Validator
from cosmos_yield.settings import SortKey
from cosmos_yield.sorting import filter_opportunities, sort_opportunities, sort_validators


def _opp(oid, *, yield_percent=None, tvl=None, pair="ATOM/OSMO", platform="Osmosis", chain="Osmosis", description=""):
    return Opportunity(
        id=oid,
        platform=platform,
        chain=chain,
        pair_or_asset_label=pair,
        yield_percent=None if yield_percent is None else Decimal(str(yield_percent)),
        locked_value_usd=None if tvl is None else Decimal(str(tvl)),
        volume_24h_usd=None,
        description=description,
        action_url="https://example.test",
    )


def _val(op, commission, tokens):
    return Validator(
        operator_address=op,
        moniker=op,
        commission_rate=Decimal(commission),
        voting_power_tokens=tokens,
        bond_status=BondStatus.BONDED,
        jailed=False,
    )


def test_validators_uptime_then_commission_then_power():
    validators = [
        _val("a", "0.05", 300),
        _val("b", "0.05", 100),
        _val("c", "0.01", 500),
        _val("d", "0.00", 1),
        _val("e", "0.05", 100),
    ]
    stats = {
        "a": SigningStats(uptime=0.99),
        "b": SigningStats(uptime=0.99),
        "c": SigningStats(uptime=0.99),
        "d": SigningStats(uptime=None),
        "e": SigningStats(uptime=0.99),
    }

    ordered = sort_validators(validators, stats)

    # b and e tie on every key and keep their input order; unknown uptime ranks last
    assert [v.operator_address for v in ordered] == ["c", "b", "e", "a", "d"]


def test_validators_missing_stats_rank_as_zero_uptime():
    ordered = sort_validators([_val("x", "0.01", 1), _val("y", "0.10", 1)], {"y": SigningStats(uptime=0.5)})

    assert [v.operator_address for v in ordered] == ["y", "x"]


def test_opportunities_descending_is_stable_with_unknown_last():
    items = [
        _opp("a", tvl=100),
        _opp("b"),
        _opp("c", tvl=500),
        _opp("d", tvl=100),
        _opp("e"),
    ]

    ordered = sort_opportunities(items, SortKey.LOCKED_VALUE, descending=True)

    assert [o.id for o in ordered] == ["c", "a", "d", "b", "e"]


def test_opportunities_ascending_keeps_unknown_last():
    items = [_opp("a", yield_percent=7), _opp("b"), _opp("c", yield_percent=2)]

    ordered = sort_opportunities(items, SortKey.YIELD, descending=False)

    assert [o.id for o in ordered] == ["c", "a", "b"]


def test_sorting_by_text_is_case_insensitive():
    items = [_opp("a", pair="osmo/ATOM"), _opp("b", pair="ATOM/USDC"), _opp("c", pair="atom/ntrn")]

    ordered = sort_opportunities(items, SortKey.PAIR, descending=False)

    assert [o.id for o in ordered] == ["c", "b", "a"]


def test_sort_does_not_mutate_input():
    items = [_opp("a", tvl=1), _opp("b", tvl=2)]

    sort_opportunities(items)

    assert [o.id for o in items] == ["a", "b"]


def test_filters_combine_and_preserve_order():
    items = [
        _opp("a", platform="Osmosis", chain="Osmosis", yield_percent=12, pair="ATOM/OSMO"),
        _opp("b", platform="Astroport", chain="Neutron", yield_percent=20, pair="ATOM/NTRN"),
        _opp("c", platform="Osmosis", chain="Osmosis", yield_percent=None, pair="ATOM/USDC"),
        _opp("d", platform="Osmosis", chain="Osmosis", yield_percent=3, pair="STATOM", description="stATOM vault"),
        _opp("e", platform="osmosis", chain="Osmosis", yield_percent=15, pair="ATOM/OSMO"),
    ]

    assert [o.id for o in filter_opportunities(items, platform="OSMOSIS")] == ["a", "c", "d", "e"]
    assert [o.id for o in filter_opportunities(items, chain="neutron")] == ["b"]
    assert [o.id for o in filter_opportunities(items, query="osmo")] == ["a", "e"]
    assert [o.id for o in filter_opportunities(items, query="vault")] == ["d"]
    assert [o.id for o in filter_opportunities(items, min_yield=10)] == ["a", "b", "e"]
    assert [
        o.id for o in filter_opportunities(items, platform="osmosis", min_yield=Decimal("13"))
    ] == ["e"]
    assert filter_opportunities(items) == items
