"""anchorpatch run - apply patch batches to the output tree and verify them.

Exit codes:
    0  - All artifacts patched (verification failures are advisory)
    1  - A critical patch failed
    2  - Verification failed and --strict was given
    20 - Configuration or manifest error
"""
from __future__ import annotations

import json
import sys

import click
from rich.markup import escape
from rich.panel import Panel

from anchorpatch.errors import ConfigError, ManifestError
from anchorpatch.pipeline import PatchPipeline
from anchorpatch.verification import VerificationSuite

from .exit_codes import (
    EXIT_CONFIG,
    EXIT_CRITICAL,
    EXIT_OK,
    EXIT_VERIFICATION_FAILED,
    exit_code_description,
)
from .utils import (
    build_store,
    console,
    load_settings,
    print_outcome,
    print_verification,
    select_batches,
    setup_logging,
)


@click.command("run")
@click.option("--workspace", "-w", type=click.Path(exists=True, file_okay=False),
              help="Project directory containing .anchorpatch/ (defaults to cwd)")
@click.option("--config", "config_path", type=click.Path(dir_okay=False),
              help="Global config file (default: ~/.anchorpatch/config.json)")
@click.option("--batch", "-b", "batch_names", multiple=True,
              help="Built-in batch to run (repeatable, runs in the given order)")
@click.option("--manifest", "-m", "manifests", multiple=True, type=click.Path(exists=True, dir_okay=False),
              help="YAML manifest of extra batches (repeatable)")
@click.option("--reference-dir", type=click.Path(file_okay=False),
              help="Pristine build the output tree is reset from")
@click.option("--output-dir", type=click.Path(file_okay=False),
              help="Tree that gets patched")
@click.option("--no-fresh", is_flag=True, help="Patch the output tree as-is instead of resetting it")
@click.option("--json", "output_json", is_flag=True, help="Print a JSON report instead of status lines")
@click.option("--strict", is_flag=True, help="Fail with exit code 2 when verification fails")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def run_command(
    workspace: str | None,
    config_path: str | None,
    batch_names: tuple[str, ...],
    manifests: tuple[str, ...],
    reference_dir: str | None,
    output_dir: str | None,
    no_fresh: bool,
    output_json: bool,
    strict: bool,
    verbose: bool,
) -> None:
    """Apply patch batches in order, checkpointing after each batch.

    \b
    Examples:
        anchorpatch run --reference-dir ../app-extracted --output-dir .
        anchorpatch run -b windows-main -b startup-reliability
        anchorpatch run -m patches/rebrand.yaml --no-fresh --strict
    """
    try:
        config = load_settings(workspace, config_path)
        setup_logging(config["log_level"], verbose)
        batches = select_batches(config, batch_names, manifests)
        store = build_store(config, reference_dir, output_dir)
        fresh = bool(config["fresh"]) and not no_fresh

        if not output_json:
            console.print()
            console.print(Panel(
                f"  Output:  {store.output_dir}\n"
                f"  Batches: {', '.join(b.name for b in batches) or '(none)'}",
                title="[bold]anchorpatch run[/bold]",
                title_align="left",
                border_style="cyan",
                padding=(0, 1),
                expand=False,
            ))

        pipeline = PatchPipeline(on_outcome=None if output_json else print_outcome)
        report = pipeline.run_batches(store, batches, fresh=fresh)

        targets = {check.target for check in report.checks if check.target}
        on_disk = {t: store.load(t) for t in sorted(targets) if store.exists(t)}
    except (ConfigError, ManifestError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_CONFIG)

    verification = VerificationSuite(report.checks).run_artifacts(on_disk)

    if report.halted:
        exit_code = EXIT_CRITICAL
    elif strict and not verification.ok:
        exit_code = EXIT_VERIFICATION_FAILED
    else:
        exit_code = EXIT_OK

    if output_json:
        click.echo(json.dumps({
            "run": report.to_dict(),
            "verification": verification.to_dict(),
            "exit_code": exit_code,
            "exit_description": exit_code_description(exit_code),
        }, indent=2))
        sys.exit(exit_code)

    if report.checks:
        print_verification(verification)
    for target, failure in report.halted.items():
        console.print(f"\n  [red]HALTED {escape(target)}:[/red] {escape(str(failure))}", highlight=False)

    counts = report.counts()
    console.print()
    console.print(
        "  " + ", ".join(f"{status}={count}" for status, count in sorted(counts.items()))
        if counts else "  No patches ran."
    )
    sys.exit(exit_code)
