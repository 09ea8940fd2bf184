from __future__ import annotations

from pathlib import Path

import pytest

from anchorpatch.artifact import Artifact, ArtifactStore
from anchorpatch.errors import ConfigError, CriticalPatchFailure
from anchorpatch.locator import Locator
from anchorpatch.pipeline import PatchPipeline
from anchorpatch.runner import PatchStatus
from anchorpatch.spec import PatchBatch, PatchSpec
from anchorpatch.transform import Insert, Replace
from anchorpatch.verification import Check

LAYOUT = {"main": "main.js", "renderer": "renderer.js"}


def _spec(patch_id: str, anchor: str, text: str, target: str = "main", **kwargs) -> PatchSpec:
    return PatchSpec(
        id=patch_id, target=target,
        locator=Locator.literal(anchor), transform=Replace(text), **kwargs,
    )


# p1 introduces the anchor p2 needs; p2 rewrites part of p1's text, so p1
# detects itself by the call alone.
P1 = _spec("p1", "init()", "init();setup()", applied_when=Check.contains("setup("))
P2 = _spec("p2", "setup()", "setup({retry:3})")


@pytest.fixture
def store(tmp_path: Path) -> ArtifactStore:
    reference = tmp_path / "pristine"
    reference.mkdir()
    (reference / "main.js").write_text("init();run();")
    (reference / "renderer.js").write_text('title:"roro";')
    return ArtifactStore(output_dir=tmp_path / "out", reference_dir=reference, layout=LAYOUT)


class TestOrdering:
    def test_list_order_succeeds(self) -> None:
        result = PatchPipeline().run(Artifact("main", "init();run();"), [P1, P2])
        assert [o.status for o in result.outcomes] == [PatchStatus.APPLIED, PatchStatus.APPLIED]
        assert result.artifact.content == "init();setup({retry:3});run();"

    def test_reversed_order_misses_anchor(self) -> None:
        result = PatchPipeline().run(Artifact("main", "init();run();"), [P2, P1])
        assert result.outcomes[0].status is PatchStatus.ANCHOR_NOT_FOUND
        assert result.outcomes[1].status is PatchStatus.APPLIED
        assert result.artifact.content == "init();setup();run();"

    def test_rerun_is_all_already_applied(self) -> None:
        artifact = Artifact("main", "init();run();")
        pipeline = PatchPipeline()
        pipeline.run(artifact, [P1, P2])
        patched = artifact.content
        again = pipeline.run(artifact, [P1, P2])
        assert [o.status for o in again.outcomes] == [PatchStatus.ALREADY_APPLIED] * 2
        assert artifact.content == patched


class TestFailureHandling:
    def test_non_critical_failure_continues(self, caplog) -> None:
        missing = _spec("missing", "nope()", "yes()")
        with caplog.at_level("WARNING"):
            result = PatchPipeline().run(Artifact("main", "init();run();"), [missing, P1])
        assert not result.halted
        assert [o.patch_id for o in result.failures] == ["missing"]
        assert [o.patch_id for o in result.applied] == ["p1"]
        assert "Skipping missing" in caplog.text

    def test_critical_failure_halts_artifact(self) -> None:
        critical = _spec("critical", "nope()", "yes()", critical=True)
        result = PatchPipeline().run(Artifact("main", "init();run();"), [critical, P1])
        assert result.halted
        assert [o.patch_id for o in result.outcomes] == ["critical"]
        assert result.artifact.content == "init();run();"
        assert isinstance(result.fatal, CriticalPatchFailure)
        assert result.fatal.outcome.patch_id == "critical"
        with pytest.raises(CriticalPatchFailure, match="anchor_not_found"):
            result.raise_for_fatal()

    def test_foreign_target_rejected(self) -> None:
        with pytest.raises(ValueError, match="renderer"):
            PatchPipeline().run(Artifact("renderer", ""), [P1])

    def test_on_outcome_hook(self) -> None:
        seen = []
        PatchPipeline(on_outcome=seen.append).run(Artifact("main", "init();run();"), [P1, P2])
        assert [o.patch_id for o in seen] == ["p1", "p2"]


class TestBatches:
    def test_fresh_run_checkpoints_once_per_batch(self, store: ArtifactStore) -> None:
        batches = [
            PatchBatch(name="one", specs=[P1, P2]),
            PatchBatch(name="two", specs=[
                _spec("rebrand", 'title:"roro"', 'title:"EveRo"', target="renderer"),
                _spec("done", "run()", "run(1)"),
            ], checks=[Check.absent("roro", target="renderer")]),
        ]
        report = PatchPipeline().run_batches(store, batches)

        assert report.ok
        assert store.writes == ["main", "renderer", "main"]
        assert store.output_path("main").read_text() == "init();setup({retry:3});run(1);"
        assert store.output_path("renderer").read_text() == 'title:"EveRo";'
        assert [batch for batch, _ in report.outcomes] == ["one", "one", "two", "two"]
        assert report.counts() == {"applied": 4}
        assert len(report.checks) == 1

    def test_no_write_when_nothing_applied(self, store: ArtifactStore) -> None:
        PatchPipeline().run_batches(store, [PatchBatch(name="one", specs=[P1])])
        store.writes.clear()
        report = PatchPipeline().run_batches(store, [PatchBatch(name="one", specs=[P1])], fresh=False)
        assert report.counts() == {"already_applied": 1}
        assert store.writes == []

    def test_halted_artifact_skipped_others_continue(self, store: ArtifactStore) -> None:
        batches = [
            PatchBatch(name="one", specs=[
                P1,
                _spec("critical", "nope()", "yes()", critical=True),
                _spec("rebrand", 'title:"roro"', 'title:"EveRo"', target="renderer"),
            ]),
            PatchBatch(name="two", specs=[P2]),
        ]
        report = PatchPipeline().run_batches(store, batches)

        assert not report.ok
        assert list(report.halted) == ["main"]
        # main was halted at its first checkpoint, so it still holds the pristine copy
        assert store.output_path("main").read_text() == "init();run();"
        assert store.output_path("renderer").read_text() == 'title:"EveRo";'
        assert store.writes == ["renderer"]
        assert "p2" not in [o.patch_id for _, o in report.outcomes]

        data = report.to_dict()
        assert data["ok"] is False
        assert "critical" in data["halted"]["main"]
        assert data["artifacts"]["renderer"]["history"][0]["patch_id"] == "rebrand"

    def test_missing_reference_is_config_error(self, tmp_path: Path) -> None:
        store = ArtifactStore(output_dir=tmp_path / "out", reference_dir=tmp_path / "none", layout=LAYOUT)
        with pytest.raises(ConfigError, match="Pristine artifact missing"):
            PatchPipeline().run_batches(store, [PatchBatch(name="one", specs=[P1])])


class TestArtifactStore:
    def test_unknown_artifact(self, store: ArtifactStore) -> None:
        with pytest.raises(ConfigError, match="Unknown artifact"):
            store.output_path("stylesheet")

    def test_prepare_resets_output(self, store: ArtifactStore) -> None:
        store.prepare(["main"])
        store.output_path("main").write_text("dirty")
        store.prepare(["main"])
        assert store.load("main").content == "init();run();"

    def test_write_preserves_crlf(self, store: ArtifactStore) -> None:
        artifact = Artifact("main", "a\r\nb\n")
        path = store.write(artifact)
        assert path.read_bytes() == b"a\r\nb\n"
        assert store.load("main").content == "a\r\nb\n"

    def test_no_reference_dir(self, tmp_path: Path) -> None:
        store = ArtifactStore(output_dir=tmp_path, layout=LAYOUT)
        with pytest.raises(ConfigError, match="reference_dir"):
            store.pristine_path("main")


def test_insert_then_dependent_replace_in_one_batch() -> None:
    specs = [
        PatchSpec(id="helper", target="main", locator=Locator.literal("run();"),
                  transform=Insert("function h(){}", where="before")),
        _spec("use-helper", "function h(){}", "function h(){return 1}"),
    ]
    result = PatchPipeline().run(Artifact("main", "init();run();"), specs)
    assert result.artifact.content == "init();function h(){return 1}run();"
