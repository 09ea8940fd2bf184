"""anchorpatch list - show the built-in batches and what they touch."""
from __future__ import annotations

import json

import click
from rich.markup import escape
from rich.table import Table

from anchorpatch.batches import BATCHES

from .utils import console


@click.command("list")
@click.option("--json", "output_json", is_flag=True, help="Print batch definitions as JSON")
@click.option("--patches", "show_patches", is_flag=True, help="List every patch of every batch")
def list_command(output_json: bool, show_patches: bool) -> None:
    """List built-in patch batches in their default run order."""
    batches = [factory() for factory in BATCHES.values()]

    if output_json:
        click.echo(json.dumps([
            {
                "name": b.name,
                "description": b.description,
                "targets": b.targets,
                "patches": [{"id": s.id, "target": s.target, "critical": s.critical} for s in b.specs],
                "checks": len(b.all_checks()),
            }
            for b in batches
        ], indent=2))
        return

    table = Table(title="Built-in batches", title_justify="left")
    table.add_column("Batch", style="cyan")
    table.add_column("Targets")
    table.add_column("Patches", justify="right")
    table.add_column("Checks", justify="right")
    table.add_column("Description", style="dim")
    for b in batches:
        table.add_row(
            b.name, ", ".join(b.targets), str(len(b.specs)), str(len(b.all_checks())),
            escape(b.description),
        )
    console.print(table)

    if show_patches:
        for b in batches:
            console.print(f"\n[bold]{b.name}[/bold]")
            for spec in b.specs:
                flag = " [red](critical)[/red]" if spec.critical else ""
                console.print(f"  {escape(spec.target)}  {escape(spec.id)}{flag}", highlight=False)
