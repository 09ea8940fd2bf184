"""Stable exit codes for anchorpatch commands.

Exit codes:
    0  - OK
    1  - A critical patch failed; its artifact was halted
    2  - Verification failed (only with --strict)
    3  - Bisection found a step that breaks syntax
    4  - The pristine artifact does not parse (bisection baseline)
    20 - Configuration or manifest error
"""
from __future__ import annotations

EXIT_OK = 0
EXIT_CRITICAL = 1
EXIT_VERIFICATION_FAILED = 2
EXIT_SYNTAX_BREAK = 3
EXIT_BASELINE_BROKEN = 4
EXIT_CONFIG = 20

_DESCRIPTIONS = {
    EXIT_OK: "ok",
    EXIT_CRITICAL: "critical patch failed",
    EXIT_VERIFICATION_FAILED: "verification failed",
    EXIT_SYNTAX_BREAK: "syntax broken by a patch step",
    EXIT_BASELINE_BROKEN: "pristine artifact does not parse",
    EXIT_CONFIG: "configuration or manifest error",
}


def exit_code_description(code: int) -> str:
    return _DESCRIPTIONS.get(code, "unknown")
