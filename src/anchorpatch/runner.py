"""Apply a single PatchSpec to an in-memory artifact.

The runner is the failure-classification boundary: locator misses, broken
balanced scans and exceptions raised while building replacement text all
come back as a PatchOutcome. Nothing escapes to the pipeline, which decides
what a failure means from the PatchSpec's ``critical`` flag.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from anchorpatch.artifact import Artifact, byte_length
from anchorpatch.errors import TransformError
from anchorpatch.locator import LocateStatus, locate
from anchorpatch.spec import PatchSpec

log = logging.getLogger(__name__)


class PatchStatus(Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    ANCHOR_NOT_FOUND = "anchor_not_found"
    MALFORMED = "malformed"
    ERROR = "error"


SUCCESS_STATUSES = (PatchStatus.APPLIED, PatchStatus.ALREADY_APPLIED)

STATUS_TAGS = {
    PatchStatus.APPLIED: "APPLIED",
    PatchStatus.ALREADY_APPLIED: "SKIP",
    PatchStatus.ANCHOR_NOT_FOUND: "NOT FOUND",
    PatchStatus.MALFORMED: "MALFORMED",
    PatchStatus.ERROR: "ERROR",
}


@dataclass
class PatchOutcome:
    """Structured result of one patch attempt."""
    patch_id: str
    target: str
    status: PatchStatus
    before: int
    after: int
    detail: str = ""
    error_type: str = ""
    critical: bool = False
    label: str = ""

    @property
    def ok(self) -> bool:
        return self.status in SUCCESS_STATUSES

    @property
    def failed(self) -> bool:
        return not self.ok

    @property
    def delta(self) -> int:
        return self.after - self.before

    def line(self) -> str:
        """One human-readable status line."""
        text = f"[{self.target}] {self.label or self.patch_id}: {STATUS_TAGS[self.status]}"
        if self.status is PatchStatus.APPLIED:
            text += f" ({self.before} -> {self.after} bytes, {self.delta:+d})"
        if self.detail:
            text += f" - {self.detail}"
        if self.failed and self.critical:
            text += " [critical]"
        return text

    def to_dict(self) -> dict:
        return {
            "patch_id": self.patch_id,
            "label": self.label,
            "target": self.target,
            "status": self.status.value,
            "before": self.before,
            "after": self.after,
            "detail": self.detail,
            "error_type": self.error_type,
            "critical": self.critical,
        }


class PatchRunner:
    """Apply one spec: detect, locate, transform, commit."""

    def __init__(self, context: Optional[dict] = None):
        self.context = dict(context or {})

    def _outcome(
        self,
        spec: PatchSpec,
        status: PatchStatus,
        before: int,
        after: Optional[int] = None,
        detail: str = "",
        error_type: str = "",
    ) -> PatchOutcome:
        return PatchOutcome(
            patch_id=spec.id,
            target=spec.target,
            status=status,
            before=before,
            after=before if after is None else after,
            detail=detail,
            error_type=error_type,
            critical=spec.critical,
            label=spec.label,
        )

    def run(self, artifact: Artifact, spec: PatchSpec) -> PatchOutcome:
        """Apply ``spec`` to ``artifact`` in place and report what happened.

        The artifact's content changes only when the outcome is APPLIED.
        """
        content = artifact.content
        before = byte_length(content)

        try:
            if spec.is_applied(content):
                return self._outcome(spec, PatchStatus.ALREADY_APPLIED, before)
        except Exception as e:
            return self._outcome(
                spec, PatchStatus.ERROR, before,
                detail=f"detection predicate raised: {e}", error_type=type(e).__name__,
            )

        try:
            located = locate(content, spec.locator)
            if located.status is LocateStatus.NOT_FOUND:
                return self._outcome(spec, PatchStatus.ANCHOR_NOT_FOUND, before, detail=located.detail)
            if located.status is LocateStatus.MALFORMED:
                return self._outcome(spec, PatchStatus.MALFORMED, before, detail=located.detail)

            try:
                new_content = spec.transform.apply(content, located, self.context)
            except Exception as e:
                raise TransformError(f"{type(e).__name__}: {e}") from e
            if not isinstance(new_content, str):
                raise TransformError(
                    f"transform returned {type(new_content).__name__}, expected str"
                )
        except Exception as e:
            return self._outcome(
                spec, PatchStatus.ERROR, before, detail=str(e), error_type=type(e).__name__,
            )

        if new_content == content:
            return self._outcome(spec, PatchStatus.ALREADY_APPLIED, before, detail="transform produced no change")

        record = artifact.replace(new_content, spec.id)
        detail = ""
        if not spec.is_applied(new_content):
            detail = "detection predicate still false after applying; re-runs will duplicate"
            log.warning("%s on %s: %s", spec.id, spec.target, detail)
        return self._outcome(spec, PatchStatus.APPLIED, record.before, record.after, detail=detail)
