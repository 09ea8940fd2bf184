"""anchorpatch CLI - anchored patches for generated bundles.

Commands:
    run     - Apply patch batches to the output tree, then verify
    verify  - Re-run the batches' postcondition checks
    bisect  - Find the batch that breaks an artifact's syntax
    list    - Show built-in batches
"""
from __future__ import annotations

import click

from anchorpatch import __version__

from .run_cmd import run_command
from .verify_cmd import verify_command
from .bisect_cmd import bisect_command
from .list_cmd import list_command


@click.group()
@click.version_option(version=__version__, prog_name="anchorpatch")
def cli() -> None:
    """anchorpatch - anchored patches for minified bundles

    \b
    Quick start:
      anchorpatch list                                 Built-in batches
      anchorpatch run --reference-dir ../pristine      Patch and verify
      anchorpatch verify                               Check the output tree
      anchorpatch bisect renderer --work /tmp/r.js     Find a syntax break
    """


cli.add_command(run_command, name="run")
cli.add_command(verify_command, name="verify")
cli.add_command(bisect_command, name="bisect")
cli.add_command(list_command, name="list")


def main() -> None:
    cli()


__all__ = ["cli", "main"]
