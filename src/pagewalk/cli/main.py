"""
pagewalk CLI - Main entry point.

Streams cursor-paginated collections from a rate-limited JSON API.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.traceback import install as install_rich_traceback

from pagewalk import __app_name__, __version__

# Load environment variables from .env (if present)
load_dotenv()

install_rich_traceback(show_locals=False, width=120)

console = Console()
err_console = Console(stderr=True)

# Create main app
app = typer.Typer(
    name=__app_name__,
    help="Rate-limited, cursor-paginated API fetcher",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """pagewalk - Paginated API fetching with shared rate-limit backoff."""
    pass


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import config, connectors, fetch  # noqa: E402

app.add_typer(config.app, name="config", help="Show and validate configuration")
app.command("fetch")(fetch.fetch_command)
app.command("connectors")(connectors.list_connectors)


# =============================================================================
# Init Command
# =============================================================================


@app.command()
def init(
    path: Path = typer.Option(
        Path("pagewalk.yaml"),
        "--path",
        help="Where to write the configuration file",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing configuration",
    ),
) -> None:
    """Write a default configuration file."""
    from pagewalk.core.config import dump_default_config

    if path.exists() and not force:
        err_console.print(f"[red]{path} already exists.[/red] Use --force to overwrite.")
        raise typer.Exit(1)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        "# pagewalk configuration\n"
        "# String values may reference ${ENV_VAR} or ${ENV_VAR:-default}\n\n"
        + dump_default_config(),
        encoding="utf-8",
    )

    console.print(Panel.fit(
        f"[bold green]OK - wrote {path}[/bold green]\n\n"
        "Next steps:\n"
        "  1. Set [cyan]api.base_url[/cyan]\n"
        "  2. Fetch a collection: [yellow]pagewalk fetch <endpoint>[/yellow]",
        title="[bold]Initialization Complete[/bold]",
        border_style="green",
    ))


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
