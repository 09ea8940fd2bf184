"""Patch descriptors: PatchSpec, PatchBatch and YAML manifests.

A PatchSpec says *what* to find and replace; the runner and pipeline decide
*how* locating, applying and failure classification work. A PatchBatch is
the unit a single patch script used to be: an ordered group of specs plus
the checks that script printed afterwards, persisted as one checkpoint.

Each spec carries exactly one detection predicate (``applied_when``). When
it is not given, it is derived once from the transform's static text, or,
for deletions of a literal anchor, from the anchor's absence. Specs whose
transform writes dynamic text must state it explicitly.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml

from anchorpatch.errors import ManifestError
from anchorpatch.locator import Locator, LocatorKind
from anchorpatch.transform import Delete, SubstituteAll, Transform, transform_from_dict
from anchorpatch.verification import Check


MANIFEST_SCHEMA_VERSION = "patch_manifest_v1"


def _mappings(data: dict, key: str) -> list[dict]:
    """Return ``data[key]`` as a list of mappings, or raise TypeError."""
    items = data.get(key, [])
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        raise TypeError(f"'{key}' must be a list of mappings")
    return items


def derive_detection(locator: Locator, transform: Transform) -> Optional[Check]:
    """Return the default ``applied_when`` predicate, or None if none is safe.

    A global substitution is done once no occurrence of ``old`` is left; its
    replacement text may legitimately appear elsewhere in the artifact.
    """
    if isinstance(transform, SubstituteAll):
        if not transform.regex:
            return Check.absent(transform.old, name=f"no {transform.old!r} left")
        pattern = f"(?{transform.flags}){transform.old}" if transform.flags else transform.old
        return Check.not_regex(pattern, name=f"no match for /{transform.old}/")
    text = transform.static_text()
    if text:
        return Check.contains(text, name="already applied")
    if isinstance(transform, Delete) and locator.kind is LocatorKind.LITERAL:
        return Check.absent(locator.pattern, name="anchor removed")
    return None


@dataclass(frozen=True)
class PatchSpec:
    """Immutable description of one anchored edit."""
    id: str
    target: str
    locator: Locator
    transform: Transform
    applied_when: Optional[Check] = None
    checks: tuple = ()
    critical: bool = False
    label: str = ""
    description: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("PatchSpec needs an id")
        if not self.target:
            raise ValueError(f"PatchSpec {self.id!r} needs a target artifact id")
        detection = self.applied_when or derive_detection(self.locator, self.transform)
        if detection is None:
            raise ValueError(
                f"PatchSpec {self.id!r} writes dynamic text; "
                "give it an explicit applied_when predicate"
            )
        object.__setattr__(self, "applied_when", detection)
        object.__setattr__(
            self, "checks", tuple(check.for_target(self.target) for check in self.checks)
        )
        if not self.label:
            object.__setattr__(self, "label", self.id)

    def is_applied(self, content: str) -> bool:
        return self.applied_when.evaluate(content)

    @classmethod
    def from_dict(cls, data: dict) -> "PatchSpec":
        detection = data.get("applied_when")
        for key in ("locator", "transform", "applied_when"):
            if not isinstance(data.get(key) or {}, dict):
                raise TypeError(f"patch {data.get('id', '')!r}: '{key}' must be a mapping")
        return cls(
            id=data.get("id", ""),
            target=data.get("target", ""),
            locator=Locator.from_dict(data.get("locator") or {}),
            transform=transform_from_dict(data.get("transform") or {}),
            applied_when=Check.from_dict(detection) if detection else None,
            checks=tuple(Check.from_dict(c) for c in _mappings(data, "checks")),
            critical=bool(data.get("critical", False)),
            label=data.get("label", ""),
            description=data.get("description", ""),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "target": self.target,
            "label": self.label,
            "description": self.description,
            "critical": self.critical,
            "locator": self.locator.to_dict(),
            "transform": self.transform.to_dict(),
            "applied_when": self.applied_when.to_dict(),
            "checks": [c.to_dict() for c in self.checks],
        }


@dataclass
class PatchBatch:
    """Ordered specs applied and persisted together."""
    name: str
    specs: list[PatchSpec] = field(default_factory=list)
    checks: list[Check] = field(default_factory=list)
    description: str = ""

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for spec in self.specs:
            if spec.id in seen:
                raise ValueError(f"Duplicate patch id {spec.id!r} in batch {self.name!r}")
            seen.add(spec.id)

    @property
    def label(self) -> str:
        return self.name

    @property
    def targets(self) -> list[str]:
        """Artifact ids touched by this batch, in first-use order."""
        ordered: list[str] = []
        for spec in self.specs:
            if spec.target not in ordered:
                ordered.append(spec.target)
        return ordered

    def specs_for(self, target: str) -> list[PatchSpec]:
        return [spec for spec in self.specs if spec.target == target]

    def all_checks(self) -> list[Check]:
        """Postconditions of every spec followed by the batch-level checks."""
        collected: list[Check] = []
        for spec in self.specs:
            collected.extend(spec.checks)
        collected.extend(self.checks)
        return collected

    @classmethod
    def from_dict(cls, data: dict) -> "PatchBatch":
        return cls(
            name=data.get("name", ""),
            description=data.get("description", ""),
            specs=[PatchSpec.from_dict(p) for p in _mappings(data, "patches")],
            checks=[Check.from_dict(c) for c in _mappings(data, "checks")],
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "patches": [spec.to_dict() for spec in self.specs],
            "checks": [check.to_dict() for check in self.checks],
        }


def load_manifest(path: Path) -> list[PatchBatch]:
    """Load patch batches from a YAML manifest.

    Layout::

        schema: patch_manifest_v1
        batches:
          - name: rebrand
            patches:
              - id: window-title
                target: main
                locator: {kind: literal, pattern: 'title:"roro"'}
                transform: {kind: replace, text: 'title:"EveRo"'}
            checks:
              - {kind: absent, pattern: '"roro"', target: main}
    """
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ManifestError(f"Cannot read manifest {path}: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(f"Manifest {path} must be a mapping")
    schema = data.get("schema", MANIFEST_SCHEMA_VERSION)
    if schema != MANIFEST_SCHEMA_VERSION:
        raise ManifestError(f"Unsupported manifest schema {schema!r} in {path}")

    entries = data.get("batches", [])
    if not isinstance(entries, list):
        raise ManifestError(f"'batches' in {path} must be a list")

    batches: list[PatchBatch] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ManifestError(f"Batch #{index} in {path} must be a mapping")
        entry.setdefault("name", f"{path.stem}-{index}")
        try:
            batches.append(PatchBatch.from_dict(entry))
        except (KeyError, TypeError, ValueError) as e:
            raise ManifestError(f"Invalid batch {entry['name']!r} in {path}: {e}") from e
    return batches


def as_batches(items: Iterable[Any]) -> list[PatchBatch]:
    """Normalize a mix of PatchBatch and PatchSpec items into batches."""
    batches: list[PatchBatch] = []
    for item in items:
        if isinstance(item, PatchBatch):
            batches.append(item)
        elif isinstance(item, PatchSpec):
            batches.append(PatchBatch(name=item.label, specs=[item]))
        else:
            raise TypeError(f"Expected PatchBatch or PatchSpec, got {type(item).__name__}")
    return batches
