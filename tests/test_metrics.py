import base64
import hashlib
from decimal import Decimal

import bech32
import pytest

from cosmos_yield.metrics import (
    YieldUnit,
    compute_signing_stats,
    compute_uptime,
    derive_consensus_address,
    estimate_staking_apr,
    first_non_negative,
    format_locked_value,
    format_yield,
    format_yield_range,
    normalize_yield_percent,
    parse_decimal,
    signing_record_from_lcd,
    validator_yield,
)
from cosmos_yield.models import UNKNOWN, BondStatus, SigningRecord, SigningStats, Validator

PUBKEY = base64.b64encode(bytes(range(32))).decode()


def _validator(operator: str, pubkey: str | None = PUBKEY) -> Validator:
    return Validator(
        operator_address=operator,
        moniker=operator,
        commission_rate=Decimal("0.05"),
        voting_power_tokens=1,
        bond_status=BondStatus.BONDED,
        jailed=False,
        consensus_pubkey=pubkey,
    )


class TestParseDecimal:
    @pytest.mark.parametrize("raw", [None, "", "abc", float("nan"), float("inf"), "NaN", True])
    def test_unrepresentable_values_are_unknown(self, raw):
        assert parse_decimal(raw) is None

    def test_parses_strings_and_numbers(self):
        assert parse_decimal("12.5") == Decimal("12.5")
        assert parse_decimal(3) == Decimal(3)
        assert parse_decimal(0.25) == Decimal("0.25")

    def test_first_non_negative_skips_missing_and_negative(self):
        assert first_non_negative(None, "-5", "abc", "0", "12") == Decimal(0)
        assert first_non_negative(None, "1500000.5") == Decimal("1500000.5")
        assert first_non_negative(None, -1) is None
        assert first_non_negative() is None


class TestYieldNormalization:
    def test_fraction_is_scaled_once(self):
        assert format_yield(normalize_yield_percent(0.1537)) == "15.37%"

    def test_percentage_is_left_alone(self):
        assert format_yield(normalize_yield_percent(15.37)) == "15.37%"

    def test_normalization_is_idempotent(self):
        once = normalize_yield_percent(0.1537)
        assert normalize_yield_percent(once) == once

    def test_percent_unit_never_rescales(self):
        assert normalize_yield_percent("0.5", YieldUnit.PERCENT) == Decimal("0.5")

    def test_fraction_unit_always_scales(self):
        assert normalize_yield_percent("2", YieldUnit.FRACTION) == Decimal(200)

    def test_zero_is_a_known_rate(self):
        assert normalize_yield_percent(0) == Decimal(0)

    @pytest.mark.parametrize("raw", [None, "n/a", float("nan"), -1])
    def test_invalid_rates_are_unknown(self, raw):
        assert normalize_yield_percent(raw) is None

    def test_unknown_yield_renders_sentinel(self):
        assert format_yield(None) == UNKNOWN

    def test_rounds_half_up(self):
        assert format_yield(Decimal("1.005")) == "1.01%"


class TestYieldRange:
    def test_collapses_near_equal_bounds(self):
        assert format_yield_range(Decimal("5.001"), Decimal("5.004")) == "5.00%"

    def test_renders_distinct_bounds(self):
        assert format_yield_range(Decimal("5"), Decimal("7.5")) == "5.00% - 7.50%"

    def test_single_bound(self):
        assert format_yield_range(None, Decimal("3")) == "3.00%"
        assert format_yield_range(None, None) == UNKNOWN


class TestLockedValue:
    def test_millions(self):
        assert format_locked_value(1_500_000) == "$1.5M"

    def test_thousands(self):
        assert format_locked_value(12_400) == "$12K"

    def test_below_a_thousand(self):
        assert format_locked_value(750) == "$750"

    @pytest.mark.parametrize("raw", [0, -5, None, "garbage"])
    def test_non_positive_or_missing_is_unknown(self, raw):
        assert format_locked_value(raw) == UNKNOWN


class TestUptime:
    def test_uptime_from_missed_blocks(self):
        assert compute_uptime(500, 10_000) == pytest.approx(0.95)

    def test_uptime_is_clamped(self):
        assert compute_uptime(20_000, 10_000) == 0.0
        assert compute_uptime(0, 10_000) == 1.0

    def test_zero_window_is_undefined(self):
        assert compute_uptime(0, 0) is None


class TestConsensusAddress:
    def test_matches_sha256_prefix(self):
        address = derive_consensus_address(PUBKEY)

        hrp, words = bech32.bech32_decode(address)
        assert hrp == "cosmosvalcons"
        decoded = bytes(bech32.convertbits(words, 5, 8, False))
        assert decoded == hashlib.sha256(bytes(range(32))).digest()[:20]

    def test_custom_prefix(self):
        assert derive_consensus_address(PUBKEY, "osmovalcons").startswith("osmovalcons1")

    @pytest.mark.parametrize("bad", ["not base64!!", ""])
    def test_invalid_key_raises(self, bad):
        with pytest.raises(ValueError):
            derive_consensus_address(bad)


class TestSigningStats:
    def _record(self, missed: int, tombstoned: bool = False) -> SigningRecord:
        return SigningRecord(
            consensus_address=derive_consensus_address(PUBKEY),
            missed_blocks_count=missed,
            tombstoned=tombstoned,
        )

    def test_uptime_missed_and_slash_count(self):
        stats = compute_signing_stats(
            [_validator("valoper1")],
            [self._record(500, tombstoned=True)],
            10_000,
            {"valoper1": 2},
        )

        assert stats["valoper1"].uptime == pytest.approx(0.95)
        assert stats["valoper1"].missed == 500
        assert stats["valoper1"].tombstoned is True
        assert stats["valoper1"].slash_count == 2

    def test_zero_window_yields_empty_mapping(self):
        assert compute_signing_stats([_validator("valoper1")], [self._record(1)], 0) == {}

    def test_failure_for_one_validator_does_not_abort_others(self):
        stats = compute_signing_stats(
            [_validator("bad", pubkey="%%%"), _validator("good")],
            [self._record(0)],
            100,
        )

        assert stats["bad"] == SigningStats(uptime=None, missed=0, tombstoned=False, slash_count=0)
        assert stats["good"].uptime == 1.0

    def test_missing_signing_record_gets_defaults(self):
        stats = compute_signing_stats([_validator("valoper1")], [], 100, {"valoper1": 3})
        assert stats["valoper1"] == SigningStats()

    def test_record_from_lcd(self):
        record = signing_record_from_lcd(
            {"address": "cosmosvalcons1x", "missed_blocks_counter": "12", "tombstoned": True}
        )
        assert record == SigningRecord("cosmosvalcons1x", 12, True)
        assert signing_record_from_lcd({"missed_blocks_counter": "1"}) is None


class TestStakingApr:
    def test_estimate(self):
        apr = estimate_staking_apr(Decimal("0.10"), 60, 100, Decimal("0.02"))
        assert abs(apr - Decimal("16.3333")) < Decimal("0.0001")

    def test_zero_bonded_is_unknown(self):
        assert estimate_staking_apr(Decimal("0.1"), 0, 100) is None

    def test_validator_yield_applies_commission(self):
        assert validator_yield(Decimal(20), Decimal("0.05")) == Decimal(19)
        assert validator_yield(None, Decimal("0.05")) is None
