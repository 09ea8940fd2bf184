"""Common CLI utilities - config loading, batch selection, report rendering."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape

from anchorpatch.artifact import ArtifactStore
from anchorpatch.batches import get_batches
from anchorpatch.config import load_config
from anchorpatch.runner import PatchOutcome, PatchStatus
from anchorpatch.spec import PatchBatch, load_manifest
from anchorpatch.verification import VerificationReport

console = Console()

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

_STATUS_STYLES = {
    PatchStatus.APPLIED: "green",
    PatchStatus.ALREADY_APPLIED: "dim",
    PatchStatus.ANCHOR_NOT_FOUND: "yellow",
    PatchStatus.MALFORMED: "red",
    PatchStatus.ERROR: "red",
}


def setup_logging(level: str, verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level, logging.WARNING),
        format=LOG_FORMAT,
        force=True,
    )


def load_settings(workspace: Optional[str], config_path: Optional[str]) -> dict:
    """Load config for a command; ``workspace`` defaults to cwd."""
    return load_config(
        config_path=Path(config_path) if config_path else None,
        workspace=Path(workspace) if workspace else Path.cwd(),
    )


def build_store(
    config: dict,
    reference_dir: Optional[str] = None,
    output_dir: Optional[str] = None,
) -> ArtifactStore:
    reference = reference_dir or config["reference_dir"]
    return ArtifactStore(
        output_dir=Path(output_dir or config["output_dir"]),
        reference_dir=Path(reference) if reference else None,
        layout=config["artifacts"],
    )


def select_batches(
    config: dict,
    batch_names: Sequence[str] = (),
    manifests: Sequence[str] = (),
) -> list[PatchBatch]:
    """Explicit --batch/--manifest selections win over the configured run list."""
    if batch_names or manifests:
        names, paths = list(batch_names), list(manifests)
    else:
        names, paths = config["batches"], config["manifests"]
    batches = get_batches(names)
    for path in paths:
        batches.extend(load_manifest(Path(path)))
    return batches


def print_outcome(outcome: PatchOutcome) -> None:
    style = _STATUS_STYLES[outcome.status]
    console.print(f"  [{style}]{escape(outcome.line())}[/{style}]", highlight=False)


def print_verification(report: VerificationReport) -> None:
    """Print PASS/FAIL lines grouped by artifact, then the totals."""
    console.print()
    console.print("[bold]Verification:[/bold]")
    for target, results in report.by_target().items():
        console.print(f"  [cyan]{escape(target)}[/cyan]")
        for result in results:
            icon = "[green]PASS[/green]" if result.passed else "[red]FAIL[/red]"
            line = f"    {icon} - {escape(result.name)}"
            if result.detail:
                line += f"  [dim]{escape(result.detail)}[/dim]"
            console.print(line, highlight=False)
    summary_style = "green" if report.ok else "red"
    console.print(
        f"  [{summary_style}]{report.passed}/{len(report.results)} checks passed[/{summary_style}]"
    )
