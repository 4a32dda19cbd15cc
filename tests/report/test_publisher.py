import io
import json
from decimal import Decimal

from rich.console import Console

from cosmos_yield.models import (
    BondStatus,
    ErrorKind,
    FailureManifest,
    Opportunity,
    SigningStats,
    SourceError,
    Validator,
)
from cosmos_yield.orchestrator import AggregationResult
from cosmos_yield.report.formatter import format_feed_table
from cosmos_yield.report.publisher import publish_feed
from cosmos_yield.settings import OutputFormat


def _result() -> AggregationResult:
    opportunity = Opportunity(
        id="osmosis-1",
        platform="Osmosis",
        chain="Osmosis",
        pair_or_asset_label="ATOM/OSMO",
        yield_percent=Decimal("12.5"),
        locked_value_usd=Decimal("1500000"),
        volume_24h_usd=None,
        description="ATOM/OSMO liquidity pool",
        action_url="https://app.osmosis.zone/pool/1",
        yield_upper_percent=Decimal("18"),
    )
    validator = Validator(
        operator_address="cosmosvaloper1abc",
        moniker="Alpha",
        commission_rate=Decimal("0.05"),
        voting_power_tokens=2_500_000_000_000,
        bond_status=BondStatus.BONDED,
        jailed=False,
    )
    manifest = FailureManifest(
        total_sources=2,
        failures=[SourceError(source="astroport", kind=ErrorKind.TIMEOUT, message="timed out after 60s")],
    )
    return AggregationResult(
        opportunities=[opportunity],
        validators=[validator],
        signing_stats={"cosmosvaloper1abc": SigningStats(uptime=0.995, missed=50, tombstoned=True)},
        manifest=manifest,
    )


def test_publish_json(capsys):
    publish_feed(_result(), OutputFormat.JSON)

    payload = json.loads(capsys.readouterr().out)
    (opportunity,) = payload["opportunities"]
    assert opportunity["apy"] == "12.50% - 18.00%"
    assert opportunity["tvl"] == "$1.5M"
    assert opportunity["volume_24h"] == "—"
    assert opportunity["volume_24h_usd"] is None
    assert payload["validators"][0]["tombstoned"] is True
    assert payload["manifest"]["failed_sources"] == ["astroport"]
    assert payload["manifest"]["failures"][0]["kind"] == "timeout"


def test_table_lists_records_and_degraded_sources():
    buffer = io.StringIO()
    format_feed_table(_result(), console=Console(file=buffer, width=160, color_system=None))

    text = buffer.getvalue()
    assert "ATOM/OSMO" in text
    assert "$1.5M" in text
    assert "Alpha" in text
    assert "tombstoned" in text
    assert "2,500,000" in text
    assert "99.50%" in text
    assert "1 of 2 sources degraded" in text
    assert "astroport" in text


def test_table_empty_feed():
    buffer = io.StringIO()
    format_feed_table(AggregationResult(), console=Console(file=buffer, width=120, color_system=None))

    assert "No opportunities found." in buffer.getvalue()
