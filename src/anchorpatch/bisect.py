"""Find the first patch that breaks an artifact's parseability.

Starting from a pristine copy, steps are applied cumulatively (never reset
between steps, since later anchors may only exist after earlier patches)
and after each one the artifact is loaded the way the target runtime would
load it. The first syntax failure is terminal: the offending step is
reported and nothing after it is attempted.

State progression::

    Pristine -> Tested_1 -> Tested_2 -> ... -> AllApplied
                                      \\-> BrokenAt(i)
"""
from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from anchorpatch.artifact import Artifact, byte_length
from anchorpatch.errors import ConfigError, SyntaxBreak
from anchorpatch.runner import PatchOutcome, PatchRunner
from anchorpatch.spec import as_batches

log = logging.getLogger(__name__)

BISECTION_REPORT_SCHEMA = "bisection_report_v1"
BASELINE_LABEL = "Fresh (no patches)"
RESULT_MARKER = "@@anchorpatch-load@@"


class ParseStatus(Enum):
    OK_RUNTIME = "ok_runtime"
    OK_PARSE_ONLY = "ok_parse_only"
    SYNTAX_ERROR = "syntax_error"


class BisectionState(Enum):
    ALL_APPLIED = "all_applied"
    BROKEN_AT = "broken_at"
    BASELINE_BROKEN = "baseline_broken"


@dataclass(frozen=True)
class LoadResult:
    status: ParseStatus
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status is not ParseStatus.SYNTAX_ERROR


# =============================================================================
# Syntax checkers
# =============================================================================

class SyntaxChecker:
    """Loads an artifact file and classifies the attempt."""

    def check(self, path: Path, token: str) -> LoadResult:
        raise NotImplementedError


class CallableChecker(SyntaxChecker):
    """Classify with a Python function of the file's current content.

    ``fn(content)`` returns a LoadResult, a ParseStatus, or raises
    ``SyntaxError`` to signal a parse failure.
    """

    def __init__(self, fn: Callable[[str], Any]):
        self.fn = fn
        self.tokens: list[str] = []

    def check(self, path: Path, token: str) -> LoadResult:
        self.tokens.append(token)
        content = Path(path).read_bytes().decode("utf-8")
        try:
            result = self.fn(content)
        except SyntaxError as e:
            return LoadResult(ParseStatus.SYNTAX_ERROR, str(e))
        except Exception as e:
            return LoadResult(ParseStatus.OK_PARSE_ONLY, str(e))
        if isinstance(result, LoadResult):
            return result
        if isinstance(result, ParseStatus):
            return LoadResult(result)
        return LoadResult(ParseStatus.OK_RUNTIME)


_NODE_LOADER = """
const report = (status, message) => {
  process.stdout.write("\\n%(marker)s" + JSON.stringify({status, message}) + "\\n");
  process.exit(0);
};
try {
  await import(process.env.ANCHORPATCH_TARGET_URL);
  report("ok_runtime", "");
} catch (e) {
  const message = String((e && e.message) || e);
  report(e instanceof SyntaxError ? "syntax_error" : "ok_parse_only", message);
}
""" % {"marker": RESULT_MARKER}


class NodeImportChecker(SyntaxChecker):
    """Dynamic-import the artifact in a fresh ``node`` process.

    Every attempt imports ``file://...?t=<token>`` so a module cache can
    never serve a previous version. A ``SyntaxError`` means the artifact no
    longer parses; any other error means it parsed and failed while
    running. An import still running after ``timeout`` seconds has parsed.

    With ``as_module`` the file is imported through a temporary ``.mjs``
    sibling so ESM syntax is honored regardless of package.json settings.
    """

    def __init__(self, node: str = "node", timeout: float = 60.0, as_module: bool = False):
        self.node = node
        self.timeout = timeout
        self.as_module = as_module

    def check(self, path: Path, token: str) -> LoadResult:
        path = Path(path).resolve()
        target = path
        if self.as_module and path.suffix != ".mjs":
            target = path.with_name(f"{path.stem}.anchorpatch-check.mjs")
            shutil.copyfile(path, target)
        try:
            return self._import(target, token)
        finally:
            if target != path:
                target.unlink(missing_ok=True)

    def _import(self, target: Path, token: str) -> LoadResult:
        url = f"{target.as_uri()}?t={token}"
        try:
            proc = subprocess.run(
                [self.node, "--input-type=module", "-e", _NODE_LOADER],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=str(target.parent),
                env=_node_env(url),
            )
        except FileNotFoundError as e:
            raise ConfigError(f"node executable not found: {self.node}") from e
        except subprocess.TimeoutExpired:
            return LoadResult(ParseStatus.OK_PARSE_ONLY, f"still running after {self.timeout:g}s")

        for line in reversed(proc.stdout.splitlines()):
            if line.startswith(RESULT_MARKER):
                payload = json.loads(line[len(RESULT_MARKER):])
                return LoadResult(ParseStatus(payload["status"]), payload.get("message", ""))

        stderr = proc.stderr.strip()
        if "SyntaxError" in stderr:
            return LoadResult(ParseStatus.SYNTAX_ERROR, stderr.splitlines()[-1])
        return LoadResult(
            ParseStatus.OK_PARSE_ONLY,
            f"exited with code {proc.returncode} before reporting",
        )


def _node_env(url: str) -> dict:
    env = dict(os.environ)
    env["ANCHORPATCH_TARGET_URL"] = url
    return env


# =============================================================================
# Bisection
# =============================================================================

@dataclass
class BisectionStep:
    """One cumulative step and how the artifact loaded afterwards."""
    index: int
    label: str
    lines: int
    size: int
    status: ParseStatus
    message: str = ""
    outcomes: list[PatchOutcome] = field(default_factory=list)

    @property
    def broken(self) -> bool:
        return self.status is ParseStatus.SYNTAX_ERROR

    def line(self) -> str:
        title = self.label if self.index == 0 else f"After {self.label}"
        head = f"{title}: {self.lines} lines - "
        if self.status is ParseStatus.OK_RUNTIME:
            return head + "OK (runtime)"
        if self.status is ParseStatus.OK_PARSE_ONLY:
            return head + f"OK (parse fine, runtime: {self.message[:40]})"
        return head + f"SYNTAX ERROR: {self.message}"

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "label": self.label,
            "lines": self.lines,
            "size": self.size,
            "status": self.status.value,
            "message": self.message,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


@dataclass
class BisectionReport:
    artifact_id: str
    steps: list[BisectionStep] = field(default_factory=list)
    state: BisectionState = BisectionState.ALL_APPLIED
    total_steps: int = 0

    @property
    def broken_at(self) -> Optional[BisectionStep]:
        if self.state is BisectionState.BROKEN_AT:
            return self.steps[-1]
        return None

    def raise_for_break(self) -> None:
        if self.state is not BisectionState.ALL_APPLIED:
            raise SyntaxBreak(self.steps[-1])

    def to_dict(self) -> dict:
        broken = self.broken_at
        return {
            "schema": BISECTION_REPORT_SCHEMA,
            "artifact": self.artifact_id,
            "state": self.state.value,
            "broken_by": broken.label if broken else None,
            "attempted": len(self.steps) - 1,
            "total_steps": self.total_steps,
            "steps": [s.to_dict() for s in self.steps],
        }


StepHook = Callable[[BisectionStep], None]


class BisectionRunner:
    """Apply steps cumulatively and stop at the first syntax break."""

    def __init__(
        self,
        checker: SyntaxChecker,
        runner: Optional[PatchRunner] = None,
        on_step: Optional[StepHook] = None,
    ):
        self.checker = checker
        self.runner = runner or PatchRunner()
        self.on_step = on_step

    def _load(self, index: int, label: str, work: Path, outcomes: list[PatchOutcome]) -> BisectionStep:
        content = work.read_bytes().decode("utf-8")
        token = f"{index}-{uuid.uuid4().hex}"
        result = self.checker.check(work, token)
        step = BisectionStep(
            index=index,
            label=label,
            lines=len(content.split("\n")),
            size=byte_length(content),
            status=result.status,
            message=result.message,
            outcomes=outcomes,
        )
        if self.on_step is not None:
            self.on_step(step)
        return step

    def run(
        self,
        artifact_id: str,
        pristine: Path,
        work: Path,
        steps: Iterable[Any],
    ) -> BisectionReport:
        """Bisect ``steps`` (PatchBatch or PatchSpec items) on one artifact.

        Specs targeting other artifacts are ignored. Patch failures within a
        step are recorded on the step and do not stop the run; only a syntax
        break does.
        """
        batches = as_batches(steps)
        pristine, work = Path(pristine), Path(work)
        work.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(pristine, work)

        report = BisectionReport(artifact_id=artifact_id, total_steps=len(batches))
        baseline = self._load(0, BASELINE_LABEL, work, [])
        report.steps.append(baseline)
        if baseline.broken:
            report.state = BisectionState.BASELINE_BROKEN
            log.error("Pristine %s does not parse: %s", pristine, baseline.message)
            return report

        for index, batch in enumerate(batches, start=1):
            artifact = Artifact.from_file(artifact_id, work)
            outcomes = [self.runner.run(artifact, spec) for spec in batch.specs_for(artifact_id)]
            for outcome in outcomes:
                if outcome.failed:
                    log.info("Step %d (%s): %s", index, batch.label, outcome.line())
            work.write_bytes(artifact.content.encode("utf-8"))

            step = self._load(index, batch.label, work, outcomes)
            report.steps.append(step)
            if step.broken:
                report.state = BisectionState.BROKEN_AT
                log.error("Broken by step %d: %s", index, batch.label)
                break
        return report
