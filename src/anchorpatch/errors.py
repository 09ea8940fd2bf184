"""Exception taxonomy for anchorpatch.

Locator and transform failures are raised inside the engine and converted to
structured outcomes at the PatchRunner boundary. Only configuration and
manifest errors are expected to reach the CLI as exceptions.
"""
from __future__ import annotations

from typing import Any


class PatchError(Exception):
    """Base class for every anchorpatch error."""


class AnchorNotFound(PatchError):
    """The expected textual anchor is absent from the artifact."""

    def __init__(self, pattern: str, detail: str = ""):
        self.pattern = pattern
        message = f"anchor not found: {pattern!r}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class MalformedScan(PatchError):
    """A balanced-delimiter scan reached the end of the buffer unclosed."""

    def __init__(self, open_index: int, depth: int, open_delim: str = "{"):
        self.open_index = open_index
        self.depth = depth
        self.open_delim = open_delim
        super().__init__(
            f"unterminated {open_delim!r} opened at offset {open_index} "
            f"(depth {depth} at end of buffer)"
        )


class TransformError(PatchError):
    """Building the replacement text failed."""


class CriticalPatchFailure(PatchError):
    """A patch flagged critical did not apply; its artifact is halted."""

    def __init__(self, outcome: Any):
        self.outcome = outcome
        super().__init__(
            f"critical patch {outcome.patch_id!r} failed on "
            f"{outcome.target!r}: {outcome.status.value}"
            + (f" - {outcome.detail}" if outcome.detail else "")
        )


class SyntaxBreak(PatchError):
    """A bisection step produced source the target runtime cannot parse."""

    def __init__(self, step: Any):
        self.step = step
        super().__init__(f"syntax broken by {step.label}: {step.message}")


class ConfigError(PatchError):
    """Invalid or unreadable configuration."""


class ManifestError(PatchError):
    """A patch manifest could not be parsed into batches."""
