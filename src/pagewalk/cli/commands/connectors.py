"""
Connector listing command.
"""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from pagewalk.core.connectors import available_connectors, get_connection_support

console = Console()


def list_connectors() -> None:
    """List supported connector types and their resources."""
    table = Table(title="Connectors", show_header=True, header_style="bold magenta")
    table.add_column("Connector", style="cyan")
    table.add_column("Resource")
    table.add_column("Endpoint", style="dim")

    for code in available_connectors():
        support = get_connection_support(code)
        for resource, template in support.resources.items():
            table.add_row(code, resource, template)

    console.print(table)
