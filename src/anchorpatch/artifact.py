"""Artifacts and the on-disk store they are loaded from and written to.

An artifact is created from a pristine reference copy, mutated in memory by
each applied patch, and written back only at checkpoints (once per batch).
"""
from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from anchorpatch.errors import ConfigError


DEFAULT_LAYOUT = {
    "main": "out/main/index.js",
    "preload": "out/preload/index.js",
    "renderer": "out/renderer/assets/index.js",
    "stylesheet": "out/renderer/assets/index.css",
}


def byte_length(text: str) -> int:
    return len(text.encode("utf-8"))


@dataclass(frozen=True)
class LengthRecord:
    """Size of an artifact before and after one applied patch."""
    patch_id: str
    before: int
    after: int

    @property
    def delta(self) -> int:
        return self.after - self.before

    def to_dict(self) -> dict:
        return {"patch_id": self.patch_id, "before": self.before, "after": self.after}


@dataclass
class Artifact:
    """An identified text buffer targeted for patching."""
    id: str
    content: str
    path: Optional[Path] = None
    history: list[LengthRecord] = field(default_factory=list)

    @property
    def size(self) -> int:
        return byte_length(self.content)

    @property
    def lines(self) -> int:
        return len(self.content.split("\n"))

    def replace(self, new_content: str, patch_id: str) -> LengthRecord:
        """Commit new content and record the size change."""
        record = LengthRecord(patch_id, self.size, byte_length(new_content))
        self.content = new_content
        self.history.append(record)
        return record

    @classmethod
    def from_file(cls, artifact_id: str, path: Path) -> "Artifact":
        path = Path(path)
        return cls(id=artifact_id, content=path.read_bytes().decode("utf-8"), path=path)


class ArtifactStore:
    """Maps artifact ids to files under a pristine reference tree and an output tree."""

    def __init__(
        self,
        output_dir: Path,
        reference_dir: Optional[Path] = None,
        layout: Optional[dict[str, str]] = None,
    ):
        self.output_dir = Path(output_dir)
        self.reference_dir = Path(reference_dir) if reference_dir else None
        self.layout = dict(layout if layout is not None else DEFAULT_LAYOUT)
        self.writes: list[str] = []

    def _relative(self, artifact_id: str) -> str:
        try:
            return self.layout[artifact_id]
        except KeyError:
            known = ", ".join(sorted(self.layout)) or "none"
            raise ConfigError(f"Unknown artifact {artifact_id!r} (known: {known})") from None

    def output_path(self, artifact_id: str) -> Path:
        return self.output_dir / self._relative(artifact_id)

    def pristine_path(self, artifact_id: str) -> Path:
        if self.reference_dir is None:
            raise ConfigError("No reference_dir configured; cannot locate pristine artifacts")
        return self.reference_dir / self._relative(artifact_id)

    def prepare(self, artifact_ids: Iterable[str]) -> list[str]:
        """Copy pristine reference files over the output files.

        Returns the ids that were copied.
        """
        copied = []
        for artifact_id in artifact_ids:
            src = self.pristine_path(artifact_id)
            if not src.is_file():
                raise ConfigError(f"Pristine artifact missing: {src}")
            dst = self.output_path(artifact_id)
            dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(src, dst)
            copied.append(artifact_id)
        return copied

    def exists(self, artifact_id: str) -> bool:
        return self.output_path(artifact_id).is_file()

    def load(self, artifact_id: str) -> Artifact:
        path = self.output_path(artifact_id)
        if not path.is_file():
            raise ConfigError(f"Artifact {artifact_id!r} not found at {path}")
        return Artifact.from_file(artifact_id, path)

    def write(self, artifact: Artifact) -> Path:
        """Persist one artifact (a checkpoint)."""
        path = self.output_path(artifact.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(artifact.content.encode("utf-8"))
        self.writes.append(artifact.id)
        return path
