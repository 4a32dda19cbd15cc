"""CLI entrypoint for the cosmos-yield feed."""

from __future__ import annotations

import asyncio
import json
import os
from decimal import Decimal
from pathlib import Path
from typing import Annotated, Any

import typer

from .logger import get_logger, setup_logging
from .models import FailureManifest
from .settings import CONFIG_ENV_VAR, OutputFormat, SortKey, YieldSettings
from .state import AppState

app = typer.Typer(
    add_completion=False,
    no_args_is_help=False,
    add_help_option=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Aggregate ATOM yield and staking opportunities across Cosmos networks.",
)


def _all_sources_failed(manifest: FailureManifest) -> bool:
    return bool(manifest.total_sources) and len(manifest.failures) == manifest.total_sources


@app.callback(invoke_without_command=True)
def feed(
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML config file (can include [cosmos_yield] table).",
        ),
    ] = None,
    sources: Annotated[
        list[str] | None,
        typer.Option(
            "--source",
            "-s",
            help="Source to query (repeatable): osmosis, astroport, astrovault, cosmos_hub, stride, quicksilver.",
        ),
    ] = None,
    output_format: Annotated[
        OutputFormat | None,
        typer.Option("--format", "-f", help="Output format (table or json)."),
    ] = None,
    sort_by: Annotated[
        SortKey | None,
        typer.Option("--sort-by", help="Opportunity sort key."),
    ] = None,
    descending: Annotated[
        bool | None,
        typer.Option("--descending/--ascending", help="Sort direction."),
    ] = None,
    platform: Annotated[
        str | None,
        typer.Option("--platform", help="Only show this platform."),
    ] = None,
    chain: Annotated[
        str | None,
        typer.Option("--chain", help="Only show this chain."),
    ] = None,
    query: Annotated[
        str | None,
        typer.Option("--query", "-q", help="Only show pairs or descriptions containing this text."),
    ] = None,
    min_yield: Annotated[
        float | None,
        typer.Option("--min-yield", help="Hide opportunities yielding less than this percentage."),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
        ),
    ] = None,
    global_timeout_seconds: Annotated[
        float | None,
        typer.Option(
            "--global-timeout-seconds",
            help="Abort the whole pass after this many seconds (0 disables).",
        ),
    ] = None,
    show_config: Annotated[
        bool,
        typer.Option(
            "--show-config",
            help="Print effective config and exit.",
        ),
    ] = False,
):
    """Fetch every configured source once and print the merged feed.

    Loads configuration (CLI > ENV > config file), runs all sources
    concurrently and prints opportunities, validators and any degraded
    sources.
    """
    if config_path:
        os.environ[CONFIG_ENV_VAR] = str(config_path)

    init_kwargs: dict[str, Any] = {}
    if sources:
        init_kwargs["sources"] = sources
    if output_format is not None:
        init_kwargs["output_format"] = output_format
    if sort_by is not None:
        init_kwargs["sort_by"] = sort_by
    if descending is not None:
        init_kwargs["sort_descending"] = descending
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()
    if global_timeout_seconds is not None:
        init_kwargs["global_timeout_seconds"] = global_timeout_seconds

    settings = YieldSettings(**init_kwargs)

    setup_logging(settings.log_level)
    state = AppState.create(settings=settings, logger=get_logger("cosmos_yield"))

    if show_config:
        typer.echo(json.dumps(settings.as_safe_dict(), indent=2))
        raise typer.Exit(code=0)

    from .adapters import get_adapter_class

    for name in settings.sources:
        try:
            get_adapter_class(name)
        except ValueError as e:
            raise typer.BadParameter(str(e), param_hint=["--source"]) from e

    from .pipeline.run import run_feed

    result = asyncio.run(
        run_feed(
            state,
            platform=platform,
            chain=chain,
            query=query,
            min_yield=Decimal(str(min_yield)) if min_yield is not None else None,
        )
    )
    if _all_sources_failed(result.manifest):
        state.logger.error("Every source failed; no feed to show")
        raise typer.Exit(code=1)


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()
