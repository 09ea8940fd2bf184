"""anchorpatch bisect - find the batch that breaks an artifact's syntax.

Exit codes:
    0  - Every step still parses
    3  - A step broke syntax (reported as BROKEN BY)
    4  - The pristine artifact does not parse
    20 - Configuration or manifest error, or node not found
"""
from __future__ import annotations

import json
import sys
from pathlib import Path

import click
from rich.markup import escape

from anchorpatch.bisect import BisectionRunner, BisectionState, BisectionStep, NodeImportChecker
from anchorpatch.errors import ConfigError, ManifestError

from .exit_codes import EXIT_BASELINE_BROKEN, EXIT_CONFIG, EXIT_OK, EXIT_SYNTAX_BREAK
from .utils import build_store, console, load_settings, select_batches, setup_logging

_EXIT_CODES = {
    BisectionState.ALL_APPLIED: EXIT_OK,
    BisectionState.BROKEN_AT: EXIT_SYNTAX_BREAK,
    BisectionState.BASELINE_BROKEN: EXIT_BASELINE_BROKEN,
}


def _print_step(step: BisectionStep) -> None:
    style = "red" if step.broken else "green"
    console.print(f"[{style}]{escape(step.line())}[/{style}]", highlight=False)


@click.command("bisect")
@click.argument("artifact_id")
@click.option("--workspace", "-w", type=click.Path(exists=True, file_okay=False),
              help="Project directory containing .anchorpatch/ (defaults to cwd)")
@click.option("--config", "config_path", type=click.Path(dir_okay=False),
              help="Global config file (default: ~/.anchorpatch/config.json)")
@click.option("--pristine", type=click.Path(exists=True, dir_okay=False),
              help="Unpatched artifact (default: from reference_dir)")
@click.option("--work", type=click.Path(dir_okay=False),
              help="Scratch copy that gets patched (default: the output artifact)")
@click.option("--batch", "-b", "batch_names", multiple=True, help="Built-in batch to bisect over")
@click.option("--manifest", "-m", "manifests", multiple=True, type=click.Path(exists=True, dir_okay=False),
              help="YAML manifest of batches to bisect over")
@click.option("--node", "node_binary", help="node executable (default: config node.binary)")
@click.option("--timeout", type=float, help="Seconds before a running import counts as parsed")
@click.option("--module", "as_module", is_flag=True, help="Import through a temporary .mjs copy")
@click.option("--json", "output_json", is_flag=True, help="Print a JSON report")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def bisect_command(
    artifact_id: str,
    workspace: str | None,
    config_path: str | None,
    pristine: str | None,
    work: str | None,
    batch_names: tuple[str, ...],
    manifests: tuple[str, ...],
    node_binary: str | None,
    timeout: float | None,
    as_module: bool,
    output_json: bool,
    verbose: bool,
) -> None:
    """Apply batches one at a time and stop at the first syntax error.

    \b
    Examples:
        anchorpatch bisect renderer --pristine app/out/renderer/assets/index.js --work /tmp/index.js
        anchorpatch bisect main -m patches/rebrand.yaml
    """
    try:
        config = load_settings(workspace, config_path)
        setup_logging(config["log_level"], verbose)
        batches = select_batches(config, batch_names, manifests)
        store = build_store(config)
        pristine_path = Path(pristine) if pristine else store.pristine_path(artifact_id)
        work_path = Path(work) if work else store.output_path(artifact_id)
        if not pristine_path.is_file():
            raise ConfigError(f"Pristine artifact missing: {pristine_path}")
        if pristine_path.resolve() == work_path.resolve():
            raise ConfigError("--pristine and --work must be different files")

        checker = NodeImportChecker(
            node=node_binary or config["node"]["binary"],
            timeout=timeout if timeout is not None else config["node"]["timeout_seconds"],
            as_module=as_module,
        )
        runner = BisectionRunner(checker, on_step=None if output_json else _print_step)
        report = runner.run(artifact_id, pristine_path, work_path, batches)
    except (ConfigError, ManifestError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_CONFIG)

    exit_code = _EXIT_CODES[report.state]
    if output_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        sys.exit(exit_code)

    console.print()
    if report.state is BisectionState.BROKEN_AT:
        console.print(f"[bold red]>>> BROKEN BY: {escape(report.broken_at.label)} <<<[/bold red]", highlight=False)
    elif report.state is BisectionState.BASELINE_BROKEN:
        console.print("[bold red]Pristine artifact does not parse; no steps attempted[/bold red]")
    else:
        console.print(f"[green]All {report.total_steps} step(s) applied, no syntax errors[/green]")
    sys.exit(exit_code)
