"""CLI smoke tests driven through click's CliRunner."""
from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from anchorpatch import __version__
from anchorpatch.artifact import DEFAULT_LAYOUT
from anchorpatch.batches import BATCHES
from anchorpatch.cli import cli

CRITICAL_MANIFEST = """\
schema: patch_manifest_v1
batches:
  - name: rebrand
    patches:
      - id: window-title
        target: main
        critical: true
        locator: {kind: literal, pattern: 'title:"roro"'}
        transform: {kind: replace, text: 'title:"EveRo"'}
"""


def _build_file(workspace: Path, artifact_id: str) -> Path:
    return workspace / "build" / DEFAULT_LAYOUT[artifact_id]


class TestRun:
    def test_strict_run_patches_build_tree(self, workspace_config: Path) -> None:
        result = CliRunner().invoke(cli, ["run", "-w", str(workspace_config), "--strict"])

        assert result.exit_code == 0, result.output
        assert "anchorpatch run" in result.output
        assert "[main] Process detection (wmic on Windows): APPLIED" in result.output
        assert "checks passed" in result.output
        main = _build_file(workspace_config, "main").read_text()
        assert "wmic process where" in main
        assert "me();if(k){" in main
        # pristine tree is never touched
        assert "wmic" not in (workspace_config / "pristine" / DEFAULT_LAYOUT["main"]).read_text()

    def test_json_report(self, workspace_config: Path) -> None:
        result = CliRunner().invoke(cli, [
            "run", "-w", str(workspace_config), "--json",
            "-b", "windows-main", "-b", "startup-reliability",
        ])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["exit_code"] == 0
        assert data["run"]["ok"] is True
        assert data["run"]["counts"] == {"applied": 11}
        assert data["verification"]["failed"] == 0
        assert [o["batch"] for o in data["run"]["outcomes"]][-1] == "startup-reliability"

    def test_critical_failure_exits_1(self, workspace_config: Path) -> None:
        manifest = workspace_config / "rebrand.yaml"
        manifest.write_text(CRITICAL_MANIFEST)
        result = CliRunner().invoke(cli, ["run", "-w", str(workspace_config), "-m", str(manifest)])

        assert result.exit_code == 1
        assert "NOT FOUND" in result.output
        assert "HALTED main" in result.output

    def test_unknown_batch_exits_20(self, workspace_config: Path) -> None:
        result = CliRunner().invoke(cli, ["run", "-w", str(workspace_config), "-b", "nope"])
        assert result.exit_code == 20
        assert "Unknown batch 'nope'" in result.output

    def test_missing_reference_exits_20(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["run", "-w", str(tmp_path), "-b", "windows-main"])
        assert result.exit_code == 20
        assert "reference_dir" in result.output

    def test_bad_manifest_exits_20(self, workspace_config: Path) -> None:
        manifest = workspace_config / "bad.yaml"
        manifest.write_text("schema: patch_manifest_v9\nbatches: []\n")
        result = CliRunner().invoke(cli, ["run", "-w", str(workspace_config), "-m", str(manifest)])
        assert result.exit_code == 20
        assert "Unsupported manifest schema" in result.output

    def test_patches_mapping_exits_20(self, workspace_config: Path) -> None:
        manifest = workspace_config / "shape.yaml"
        manifest.write_text("batches:\n  - name: one\n    patches: {id: p}\n")
        for command in ("run", "verify"):
            result = CliRunner().invoke(cli, [command, "-w", str(workspace_config), "-m", str(manifest)])
            assert result.exit_code == 20, command
            assert "must be a list of mappings" in result.output


class TestVerify:
    def test_passes_after_run(self, workspace_config: Path) -> None:
        runner = CliRunner()
        runner.invoke(cli, ["run", "-w", str(workspace_config)])
        result = runner.invoke(cli, ["verify", "-w", str(workspace_config)])
        assert result.exit_code == 0, result.output
        assert "FAIL" not in result.output

    def test_unpatched_tree_fails(self, workspace_config: Path) -> None:
        result = CliRunner().invoke(cli, [
            "verify", "-w", str(workspace_config), "--output-dir", str(workspace_config / "pristine"),
            "-b", "windows-main",
        ])
        assert result.exit_code == 2
        assert "FAIL - No notify-app.sh references" in result.output

    def test_empty_tree_json(self, workspace_config: Path) -> None:
        result = CliRunner().invoke(cli, ["verify", "-w", str(workspace_config), "--json"])
        assert result.exit_code == 2
        data = json.loads(result.output)
        assert data["passed"] == 0
        assert {r["detail"] for r in data["results"]} == {"artifact not available"}


class TestList:
    def test_table(self) -> None:
        result = CliRunner().invoke(cli, ["list", "--patches"])
        assert result.exit_code == 0
        for name in BATCHES:
            assert name in result.output
        assert "guarded-init" in result.output
        assert "(critical)" in result.output

    def test_json(self) -> None:
        result = CliRunner().invoke(cli, ["list", "--json"])
        data = json.loads(result.output)
        assert [b["name"] for b in data] == list(BATCHES)
        startup = next(b for b in data if b["name"] == "startup-reliability")
        assert startup["patches"] == [{"id": "guarded-init", "target": "main", "critical": True}]


class TestBisect:
    def test_missing_node_exits_20(self, workspace_config: Path, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, [
            "bisect", "main", "-w", str(workspace_config), "-b", "windows-main",
            "--node", str(tmp_path / "no-such-node"),
        ])
        assert result.exit_code == 20
        assert "node executable not found" in result.output

    def test_same_pristine_and_work_rejected(self, workspace_config: Path) -> None:
        pristine = workspace_config / "pristine" / DEFAULT_LAYOUT["main"]
        result = CliRunner().invoke(cli, [
            "bisect", "main", "-w", str(workspace_config),
            "--pristine", str(pristine), "--work", str(pristine),
        ])
        assert result.exit_code == 20
        assert "must be different files" in result.output


def test_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
