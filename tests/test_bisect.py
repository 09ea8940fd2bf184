from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from anchorpatch.bisect import (
    BASELINE_LABEL,
    BisectionRunner,
    BisectionState,
    BisectionStep,
    CallableChecker,
    LoadResult,
    NodeImportChecker,
    ParseStatus,
)
from anchorpatch.errors import ConfigError, SyntaxBreak
from anchorpatch.locator import Locator
from anchorpatch.spec import PatchBatch, PatchSpec
from anchorpatch.transform import Insert, Replace


def _balanced_parens(content: str) -> ParseStatus:
    """Stand-in parser: unbalanced parens are a syntax error."""
    depth = 0
    for ch in content:
        depth += {"(": 1, ")": -1}.get(ch, 0)
        if depth < 0:
            raise SyntaxError("Unexpected token ')'")
    if depth:
        raise SyntaxError("missing ) after argument list")
    return ParseStatus.OK_RUNTIME


def _insert(patch_id: str, text: str) -> PatchSpec:
    return PatchSpec(
        id=patch_id, target="renderer",
        locator=Locator.literal("/*end*/"), transform=Insert(text, where="before"),
    )


STEPS = [
    _insert("p1", "a();"),
    _insert("p2", "b();"),
    _insert("p3", "c(;"),
    _insert("p4", "d();"),
    _insert("p5", "e();"),
]


@pytest.fixture
def pristine(tmp_path: Path) -> Path:
    path = tmp_path / "pristine.js"
    path.write_text("start();/*end*/\n")
    return path


class TestFailFast:
    def test_reports_third_step_and_stops(self, pristine: Path, tmp_path: Path) -> None:
        checker = CallableChecker(_balanced_parens)
        work = tmp_path / "work" / "index.js"
        report = BisectionRunner(checker).run("renderer", pristine, work, STEPS)

        assert report.state is BisectionState.BROKEN_AT
        assert report.broken_at.index == 3
        assert report.broken_at.label == "p3"
        assert [s.index for s in report.steps] == [0, 1, 2, 3]
        assert report.total_steps == 5
        # p4 and p5 were never attempted
        assert "d();" not in work.read_text()
        assert len(checker.tokens) == 4

        with pytest.raises(SyntaxBreak, match="p3"):
            report.raise_for_break()

    def test_cumulative_and_pristine_untouched(self, pristine: Path, tmp_path: Path) -> None:
        work = tmp_path / "work.js"
        report = BisectionRunner(CallableChecker(_balanced_parens)).run(
            "renderer", pristine, work, STEPS[:2] + STEPS[3:]
        )
        assert report.state is BisectionState.ALL_APPLIED
        assert report.broken_at is None
        assert work.read_text() == "start();a();b();d();e();/*end*/\n"
        assert pristine.read_text() == "start();/*end*/\n"
        report.raise_for_break()

    def test_cache_busting_tokens_are_unique(self, pristine: Path, tmp_path: Path) -> None:
        checker = CallableChecker(_balanced_parens)
        BisectionRunner(checker).run("renderer", pristine, tmp_path / "w.js", STEPS[:2])
        assert len(checker.tokens) == 3
        assert len(set(checker.tokens)) == 3
        assert [t.split("-")[0] for t in checker.tokens] == ["0", "1", "2"]


class TestBaseline:
    def test_broken_pristine_stops_before_patching(self, tmp_path: Path) -> None:
        pristine = tmp_path / "p.js"
        pristine.write_text("start(;/*end*/")
        work = tmp_path / "w.js"
        report = BisectionRunner(CallableChecker(_balanced_parens)).run("renderer", pristine, work, STEPS)

        assert report.state is BisectionState.BASELINE_BROKEN
        assert [s.label for s in report.steps] == [BASELINE_LABEL]
        assert work.read_text() == "start(;/*end*/"
        with pytest.raises(SyntaxBreak):
            report.raise_for_break()


class TestSteps:
    def test_batches_use_batch_label_and_own_target(self, pristine: Path, tmp_path: Path) -> None:
        batch = PatchBatch(name="rebrand", specs=[
            _insert("p1", "a();"),
            PatchSpec(id="other", target="main", locator=Locator.literal("start"), transform=Replace("go")),
        ])
        report = BisectionRunner(CallableChecker(_balanced_parens)).run(
            "renderer", pristine, tmp_path / "w.js", [batch]
        )
        assert report.steps[1].label == "rebrand"
        assert [o.patch_id for o in report.steps[1].outcomes] == ["p1"]

    def test_patch_failure_does_not_stop(self, pristine: Path, tmp_path: Path) -> None:
        missing = PatchSpec(id="missing", target="renderer", locator=Locator.literal("zz"), transform=Replace("y"))
        report = BisectionRunner(CallableChecker(_balanced_parens)).run(
            "renderer", pristine, tmp_path / "w.js", [missing, STEPS[0]]
        )
        assert report.state is BisectionState.ALL_APPLIED
        assert report.steps[1].outcomes[0].failed
        assert len(report.steps) == 3

    def test_on_step_hook_sees_every_step(self, pristine: Path, tmp_path: Path) -> None:
        seen = []
        BisectionRunner(CallableChecker(_balanced_parens), on_step=seen.append).run(
            "renderer", pristine, tmp_path / "w.js", STEPS
        )
        assert [s.index for s in seen] == [0, 1, 2, 3]

    def test_report_dict(self, pristine: Path, tmp_path: Path) -> None:
        report = BisectionRunner(CallableChecker(_balanced_parens)).run(
            "renderer", pristine, tmp_path / "w.js", STEPS
        )
        data = report.to_dict()
        assert data["state"] == "broken_at"
        assert data["broken_by"] == "p3"
        assert data["attempted"] == 3
        assert data["steps"][3]["status"] == "syntax_error"


class TestLines:
    def test_formats(self) -> None:
        base = BisectionStep(0, BASELINE_LABEL, 10, 100, ParseStatus.OK_RUNTIME)
        assert base.line() == "Fresh (no patches): 10 lines - OK (runtime)"

        parse_only = BisectionStep(2, "rebrand", 10, 100, ParseStatus.OK_PARSE_ONLY, "x" * 60)
        assert parse_only.line() == "After rebrand: 10 lines - OK (parse fine, runtime: " + "x" * 40 + ")"

        broken = BisectionStep(3, "ui-polish", 11, 120, ParseStatus.SYNTAX_ERROR, "Unexpected token")
        assert broken.line() == "After ui-polish: 11 lines - SYNTAX ERROR: Unexpected token"


class TestCallableChecker:
    def test_runtime_error_is_parse_only(self, tmp_path: Path) -> None:
        path = tmp_path / "a.js"
        path.write_text("x")

        def runtime_failure(content):
            raise ReferenceError("window is not defined")

        result = CallableChecker(runtime_failure).check(path, "t")
        assert result.status is ParseStatus.OK_PARSE_ONLY
        assert result.ok
        assert "window" in result.message

    def test_load_result_passthrough(self, tmp_path: Path) -> None:
        path = tmp_path / "a.js"
        path.write_text("x")
        result = CallableChecker(lambda c: LoadResult(ParseStatus.SYNTAX_ERROR, "bad")).check(path, "t")
        assert result == LoadResult(ParseStatus.SYNTAX_ERROR, "bad")
        assert not result.ok


NODE = shutil.which("node")
requires_node = pytest.mark.skipif(NODE is None, reason="node not installed")


@requires_node
class TestNodeImportChecker:
    def test_valid_module(self, tmp_path: Path) -> None:
        path = tmp_path / "ok.mjs"
        path.write_text("export const x = 1;\n")
        result = NodeImportChecker(node=NODE, timeout=30).check(path, "1-a")
        assert result.status is ParseStatus.OK_RUNTIME

    def test_syntax_error(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.mjs"
        path.write_text("export const x = (;\n")
        result = NodeImportChecker(node=NODE, timeout=30).check(path, "1-b")
        assert result.status is ParseStatus.SYNTAX_ERROR

    def test_runtime_error_still_parses(self, tmp_path: Path) -> None:
        path = tmp_path / "throws.mjs"
        path.write_text("window.alert('hi');\n")
        result = NodeImportChecker(node=NODE, timeout=30).check(path, "1-c")
        assert result.status is ParseStatus.OK_PARSE_ONLY
        assert "window" in result.message

    def test_as_module_cleans_up_copy(self, tmp_path: Path) -> None:
        path = tmp_path / "index.js"
        path.write_text("export default 1;\n")
        result = NodeImportChecker(node=NODE, timeout=30, as_module=True).check(path, "1-d")
        assert result.status is ParseStatus.OK_RUNTIME
        assert sorted(p.name for p in tmp_path.iterdir()) == ["index.js"]

    def test_bisect_reloads_each_step(self, tmp_path: Path) -> None:
        pristine = tmp_path / "pristine.mjs"
        pristine.write_text("export const v = [];/*end*/\n")
        steps = [
            PatchSpec(id="one", target="renderer", locator=Locator.literal("/*end*/"),
                      transform=Insert("v.push(1);", where="before")),
            PatchSpec(id="two", target="renderer", locator=Locator.literal("/*end*/"),
                      transform=Insert("v.push(;", where="before")),
        ]
        report = BisectionRunner(NodeImportChecker(node=NODE, timeout=30)).run(
            "renderer", pristine, tmp_path / "work.mjs", steps
        )
        assert report.state is BisectionState.BROKEN_AT
        assert report.broken_at.label == "two"


def test_missing_node_binary(tmp_path: Path) -> None:
    path = tmp_path / "a.mjs"
    path.write_text("export {};\n")
    with pytest.raises(ConfigError, match="node executable not found"):
        NodeImportChecker(node=str(tmp_path / "no-such-node")).check(path, "t")
