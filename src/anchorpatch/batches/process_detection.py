"""Cross-platform child-process detection.

The session check shells out to ``ps``/``pgrep``, which do not exist on
Windows. The exec call is rewritten to pick ``wmic`` there and keep the
original command everywhere else.
"""
from __future__ import annotations

from anchorpatch.batches.common import replace_once
from anchorpatch.spec import PatchBatch
from anchorpatch.verification import Check

NAME = "process-detection"
TARGET = "main"

UNIX_EXEC = "G.exec(`ps -o args= -p $(pgrep -P ${e}) 2>/dev/null`"
PORTABLE_EXEC = (
    'G.exec(process.platform==="win32"'
    '?`wmic process where "ParentProcessId=${e}" get CommandLine 2>nul`'
    ":`ps -o args= -p $(pgrep -P ${e}) 2>/dev/null`"
)


def batch() -> PatchBatch:
    spec = replace_once(
        "wmic-process-query", TARGET, UNIX_EXEC, PORTABLE_EXEC,
        start_hint="isClaudeRunningInSession",
        label="Process detection (wmic on Windows)",
        checks=(Check.contains("wmic process where", name="wmic query present"),),
    )
    return PatchBatch(
        name=NAME,
        specs=[spec],
        description="Use wmic instead of ps/pgrep when running on Windows",
    )
