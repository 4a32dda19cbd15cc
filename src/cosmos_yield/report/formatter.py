"""Rich console formatter for the yield feed."""

from __future__ import annotations

from decimal import Decimal

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..metrics import format_locked_value, format_yield, format_yield_range
from ..models import UNKNOWN, SigningStats
from ..orchestrator import AggregationResult

MICRO = Decimal(1_000_000)


def _format_uptime(uptime: float | None) -> str:
    if uptime is None:
        return UNKNOWN
    return f"{uptime * 100:.2f}%"


def _format_tokens(tokens: int) -> str:
    """Micro-denominated token amount as whole ATOM with separators."""
    return f"{(Decimal(tokens) / MICRO):,.0f}"


def build_pools_table(result: AggregationResult) -> Table:
    table = Table(expand=True, show_lines=False)
    table.add_column("Platform", style="cyan", no_wrap=True)
    table.add_column("Chain", style="dim")
    table.add_column("Pair / Asset")
    table.add_column("APR", justify="right", style="green")
    table.add_column("TVL", justify="right", style="yellow")
    table.add_column("24h Volume", justify="right", style="dim")

    for o in result.opportunities:
        table.add_row(
            o.platform,
            o.chain,
            o.pair_or_asset_label,
            format_yield_range(o.yield_percent, o.yield_upper_percent),
            format_locked_value(o.locked_value_usd),
            format_locked_value(o.volume_24h_usd),
        )
    return table


def build_validators_table(result: AggregationResult) -> Table:
    table = Table(expand=True, show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Validator", style="cyan")
    table.add_column("Commission", justify="right")
    table.add_column("Voting Power (ATOM)", justify="right", style="dim")
    table.add_column("Uptime", justify="right", style="green")
    table.add_column("Missed", justify="right")
    table.add_column("Slashes", justify="right", style="red")

    for rank, v in enumerate(result.validators, start=1):
        stats = result.signing_stats.get(v.operator_address) or SigningStats()
        moniker = f"{v.moniker} [red](tombstoned)[/]" if stats.tombstoned else v.moniker
        table.add_row(
            str(rank),
            moniker,
            format_yield(v.commission_rate * 100),
            _format_tokens(v.voting_power_tokens),
            _format_uptime(stats.uptime),
            str(stats.missed),
            str(stats.slash_count),
        )
    return table


def format_feed_table(result: AggregationResult, console: Console | None = None) -> None:
    """Print the feed as rich tables to stdout.

    Args:
        result: Ordered aggregation result
        console: Console to print to (a fresh stdout console by default)
    """
    console = console or Console()
    sections: list = []

    if result.opportunities:
        sections.append(
            Panel(build_pools_table(result), title="[bold]Opportunities[/]", border_style="cyan")
        )
    if result.validators:
        sections.append(
            Panel(
                build_validators_table(result),
                title="[bold]Cosmos Hub Validators[/]",
                border_style="blue",
            )
        )

    manifest = result.manifest
    if manifest.degraded:
        lines = Text()
        for failure in manifest.failures:
            lines.append(f"{failure.source}", style="bold red")
            lines.append(f" ({failure.kind.value}): {failure.message}\n", style="dim")
        sections.append(
            Panel(lines, title=f"[bold]{manifest.summary()}[/]", border_style="red")
        )
    elif not sections:
        sections.append(Text("No opportunities found.", style="dim"))

    outer_panel = Panel(
        Group(*sections),
        title="[bold white]ATOM Yield Feed[/]",
        border_style="white",
        padding=(1, 2),
    )

    console.print()
    console.print(outer_panel)
    console.print()
