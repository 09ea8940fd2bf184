"""anchorpatch verify - re-run the batches' postcondition checks.

Nothing is patched or written; the checks of the selected batches are
evaluated against whatever is in the output tree now.

Exit codes:
    0  - All checks passed
    2  - At least one check failed
    20 - Configuration or manifest error
"""
from __future__ import annotations

import json
import sys

import click

from anchorpatch.errors import ConfigError, ManifestError
from anchorpatch.verification import VerificationSuite

from .exit_codes import EXIT_CONFIG, EXIT_OK, EXIT_VERIFICATION_FAILED
from .utils import build_store, load_settings, print_verification, select_batches, setup_logging


@click.command("verify")
@click.option("--workspace", "-w", type=click.Path(exists=True, file_okay=False),
              help="Project directory containing .anchorpatch/ (defaults to cwd)")
@click.option("--config", "config_path", type=click.Path(dir_okay=False),
              help="Global config file (default: ~/.anchorpatch/config.json)")
@click.option("--batch", "-b", "batch_names", multiple=True, help="Built-in batch whose checks to run")
@click.option("--manifest", "-m", "manifests", multiple=True, type=click.Path(exists=True, dir_okay=False),
              help="YAML manifest whose checks to run")
@click.option("--output-dir", type=click.Path(file_okay=False), help="Tree to verify")
@click.option("--json", "output_json", is_flag=True, help="Print a JSON report")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def verify_command(
    workspace: str | None,
    config_path: str | None,
    batch_names: tuple[str, ...],
    manifests: tuple[str, ...],
    output_dir: str | None,
    output_json: bool,
    verbose: bool,
) -> None:
    """Check patched artifacts without modifying them."""
    try:
        config = load_settings(workspace, config_path)
        setup_logging(config["log_level"], verbose)
        batches = select_batches(config, batch_names, manifests)
        store = build_store(config, output_dir=output_dir)

        checks = [check for batch in batches for check in batch.all_checks()]
        targets = sorted({check.target for check in checks if check.target})
        artifacts = {t: store.load(t) for t in targets if store.exists(t)}
    except (ConfigError, ManifestError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_CONFIG)

    report = VerificationSuite(checks).run_artifacts(artifacts)
    exit_code = EXIT_OK if report.ok else EXIT_VERIFICATION_FAILED

    if output_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        print_verification(report)
    sys.exit(exit_code)
