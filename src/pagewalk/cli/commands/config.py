"""
Configuration commands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.syntax import Syntax

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Show and validate configuration",
    no_args_is_help=True,
)


@app.command("show")
def show_config(
    path: Optional[Path] = typer.Argument(
        None,
        help="Configuration file (default: ./pagewalk.yaml)",
    ),
) -> None:
    """Print the effective configuration, defaults included."""
    from pagewalk.core.config import ConfigError, load_app_config

    try:
        config = load_app_config(path)
    except ConfigError as e:
        err_console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1)

    rendered = yaml.safe_dump(config.model_dump(mode="json"), sort_keys=False)
    console.print(Syntax(rendered, "yaml", theme="ansi_dark"))


@app.command("validate")
def validate_config(
    path: Path = typer.Argument(
        Path("pagewalk.yaml"),
        help="Configuration file to validate",
    ),
) -> None:
    """Validate a configuration file."""
    from pagewalk.core.config import validate_app_config_file

    errors = validate_app_config_file(path)
    if errors:
        err_console.print(f"[red]{path} is invalid:[/red]")
        for error in errors:
            err_console.print(f"  - {error}")
        raise typer.Exit(1)

    console.print(f"[green]OK[/green] {path} is valid")
