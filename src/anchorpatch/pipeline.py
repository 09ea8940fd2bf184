"""Ordered, cumulative application of patch specs.

Later anchors are frequently created by earlier patches, so specs always run
one at a time in list order against the shared buffer. A failing
non-critical spec is logged and skipped; a failing critical spec halts its
artifact. Other artifacts keep going.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Sequence

from anchorpatch.artifact import Artifact, ArtifactStore
from anchorpatch.errors import CriticalPatchFailure
from anchorpatch.runner import PatchOutcome, PatchRunner, PatchStatus
from anchorpatch.spec import PatchBatch, PatchSpec
from anchorpatch.verification import Check

log = logging.getLogger(__name__)

RUN_REPORT_SCHEMA = "patch_run_v1"

OutcomeHook = Callable[[PatchOutcome], None]


@dataclass
class PipelineResult:
    """Outcome of running a spec list against one artifact."""
    artifact: Artifact
    outcomes: list[PatchOutcome] = field(default_factory=list)
    fatal: Optional[CriticalPatchFailure] = None

    @property
    def halted(self) -> bool:
        return self.fatal is not None

    @property
    def applied(self) -> list[PatchOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failures(self) -> list[PatchOutcome]:
        return [o for o in self.outcomes if o.failed]

    def raise_for_fatal(self) -> None:
        if self.fatal is not None:
            raise self.fatal


class PatchPipeline:
    """Run specs in order, delegating each to a PatchRunner."""

    def __init__(self, runner: Optional[PatchRunner] = None, on_outcome: Optional[OutcomeHook] = None):
        self.runner = runner or PatchRunner()
        self.on_outcome = on_outcome

    def run(self, artifact: Artifact, specs: Sequence[PatchSpec]) -> PipelineResult:
        """Apply ``specs`` to ``artifact`` in list order.

        Raises ValueError up front if any spec targets a different artifact;
        patch failures never raise.
        """
        strays = [spec.id for spec in specs if spec.target != artifact.id]
        if strays:
            raise ValueError(
                f"Specs {strays} do not target artifact {artifact.id!r}"
            )

        result = PipelineResult(artifact=artifact)
        for spec in specs:
            outcome = self.runner.run(artifact, spec)
            result.outcomes.append(outcome)
            if self.on_outcome is not None:
                self.on_outcome(outcome)

            if outcome.ok:
                continue
            if spec.critical:
                result.fatal = CriticalPatchFailure(outcome)
                log.error("Halting %s: %s", artifact.id, result.fatal)
                break
            log.warning(
                "Skipping %s on %s (%s)%s",
                spec.id, artifact.id, outcome.status.value,
                f": {outcome.detail}" if outcome.detail else "",
            )
        return result

    def run_batches(
        self,
        store: ArtifactStore,
        batches: Iterable[PatchBatch],
        fresh: bool = True,
    ) -> "RunReport":
        """Run batches against the store, checkpointing once per batch.

        With ``fresh`` every targeted artifact is first reset from its
        pristine reference copy. A halted artifact is not written at the
        failing checkpoint and is skipped by later batches.
        """
        batches = list(batches)
        report = RunReport()

        targets: list[str] = []
        for batch in batches:
            for target in batch.targets:
                if target not in targets:
                    targets.append(target)
        if fresh and targets:
            store.prepare(targets)
            log.info("Prepared %d artifact(s) from %s", len(targets), store.reference_dir)

        for batch in batches:
            log.info("Batch %s: %d patch(es)", batch.name, len(batch.specs))
            report.checks.extend(batch.all_checks())
            for target in batch.targets:
                if target in report.halted:
                    log.warning("Batch %s: %s halted earlier, not patching", batch.name, target)
                    continue
                artifact = report.artifacts.get(target) or store.load(target)
                report.artifacts[target] = artifact

                result = self.run(artifact, batch.specs_for(target))
                report.outcomes.extend((batch.name, o) for o in result.outcomes)
                if result.halted:
                    report.halted[target] = result.fatal
                    continue
                if any(o.status is PatchStatus.APPLIED for o in result.outcomes):
                    store.write(artifact)
        return report


@dataclass
class RunReport:
    """Everything a multi-batch run produced."""
    artifacts: dict[str, Artifact] = field(default_factory=dict)
    outcomes: list[tuple[str, PatchOutcome]] = field(default_factory=list)
    halted: dict[str, CriticalPatchFailure] = field(default_factory=dict)
    checks: list[Check] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.halted

    def counts(self) -> dict[str, int]:
        tally: dict[str, int] = {}
        for _batch, outcome in self.outcomes:
            tally[outcome.status.value] = tally.get(outcome.status.value, 0) + 1
        return tally

    def to_dict(self) -> dict:
        return {
            "schema": RUN_REPORT_SCHEMA,
            "ok": self.ok,
            "counts": self.counts(),
            "outcomes": [
                {"batch": batch, **outcome.to_dict()} for batch, outcome in self.outcomes
            ],
            "halted": {target: str(failure) for target, failure in self.halted.items()},
            "artifacts": {
                artifact_id: {
                    "size": artifact.size,
                    "history": [r.to_dict() for r in artifact.history],
                }
                for artifact_id, artifact in self.artifacts.items()
            },
        }
