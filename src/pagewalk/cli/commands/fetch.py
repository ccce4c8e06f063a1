"""
Fetch command for streaming paginated collections.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)


def _parse_params(raw: list[str]) -> dict[str, str]:
    """Parse repeated key=value options."""
    params: dict[str, str] = {}
    for item in raw:
        key, sep, value = item.partition("=")
        if not sep or not key:
            err_console.print(f"[red]Invalid --param (expected key=value):[/red] {item}")
            raise typer.Exit(1)
        params[key] = value
    return params


def _load_config(config_path: Optional[Path]):
    from pagewalk.core.config import ConfigError, load_app_config

    try:
        return load_app_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Error loading config:[/red] {e}")
        if e.details:
            err_console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(1)


def _resolve_endpoint(endpoint: str, connector: Optional[str], params: dict[str, str]) -> str:
    if connector is None:
        return endpoint

    from pagewalk.core.connectors import UnsupportedConnectorError, get_connection_support

    try:
        return get_connection_support(connector).resolve_endpoint(endpoint, **params)
    except UnsupportedConnectorError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def _render_table(items: list[Any], endpoint: str) -> None:
    if not items:
        console.print("[dim]No items.[/dim]")
        return

    items = [item if isinstance(item, dict) else {"value": item} for item in items]

    columns: list[str] = []
    for item in items:
        for key in item:
            if key not in columns:
                columns.append(key)

    table = Table(title=endpoint, show_header=True, header_style="bold magenta")
    for column in columns[:8]:
        table.add_column(column, overflow="fold")
    for item in items:
        table.add_row(*(str(item.get(column, "")) for column in columns[:8]))
    console.print(table)


def fetch_command(
    endpoint: str = typer.Argument(
        ...,
        help="Collection endpoint, or a resource name with --connector",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file (default: ./pagewalk.yaml)",
    ),
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Override api.base_url",
    ),
    concurrency: Optional[int] = typer.Option(
        None,
        "--concurrency",
        min=0,
        help="Override throttle.max_concurrency (0 = unbounded)",
    ),
    max_items: Optional[int] = typer.Option(
        None,
        "--max-items",
        "-n",
        min=1,
        help="Stop after this many items",
    ),
    output_format: str = typer.Option(
        "jsonl",
        "--format",
        "-f",
        help="Output format: jsonl or table",
    ),
    connector: Optional[str] = typer.Option(
        None,
        "--connector",
        help="Resolve ENDPOINT as a resource of this connector type",
    ),
    param: list[str] = typer.Option(
        [],
        "--param",
        "-p",
        help="Endpoint parameter as key=value (repeatable)",
    ),
) -> None:
    """Fetch every item of a paginated collection.

    Examples:
        pagewalk fetch groups --base-url https://api.fivetran.com/v1
        pagewalk fetch connectors --connector fivetran -p group_id=abc -f table
    """
    from pagewalk.core.backends import BackendError
    from pagewalk.core.logging import json_dumps, setup_logging
    from pagewalk.core.orchestrator import FetchRunner

    if output_format not in ("jsonl", "table"):
        err_console.print(f"[red]Unknown format:[/red] {output_format}")
        raise typer.Exit(1)

    config = _load_config(config_path)
    if base_url is not None:
        config.api.base_url = base_url
    if concurrency is not None:
        config.throttle.max_concurrency = concurrency

    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
    )

    resolved = _resolve_endpoint(endpoint, connector, _parse_params(param))
    collected: list[Any] = []

    def on_item(item: Any) -> None:
        if output_format == "table":
            collected.append(item)
        else:
            console.print(json_dumps(item), markup=False, highlight=False, soft_wrap=True)

    async def _run():
        runner = FetchRunner(config)
        try:
            return await runner.run(resolved, on_item=on_item, max_items=max_items)
        finally:
            await runner.close()

    try:
        stats = asyncio.run(_run())
    except BackendError as e:
        err_console.print(f"[red]Fetch failed:[/red] {e}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        err_console.print("[yellow]Cancelled[/yellow]")
        raise typer.Exit(130)

    if output_format == "table":
        _render_table(collected, resolved)

    err_console.print(
        f"[dim]{stats.items_fetched} items, {stats.pages_fetched} pages, "
        f"{stats.requests_sent} requests, {stats.rate_limited} rate limited, "
        f"{stats.duration_seconds or 0:.2f}s[/dim]"
    )
