"""Post-patch verification checks.

Checks are named predicates over artifact content. A suite run evaluates
every check (no short circuit), never mutates anything, and only reports:
its output feeds humans and CI gating, not pipeline control flow.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, Union


VERIFICATION_REPORT_SCHEMA = "verification_report_v1"


class CheckKind(Enum):
    CONTAINS = "contains"
    ABSENT = "absent"
    REGEX = "regex"
    NOT_REGEX = "not_regex"
    PREDICATE = "predicate"


@dataclass(frozen=True)
class Check:
    """A named boolean predicate over artifact content."""
    name: str
    kind: CheckKind
    pattern: str = ""
    target: Optional[str] = None
    predicate: Optional[Callable[[str], bool]] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.kind, CheckKind):
            object.__setattr__(self, "kind", CheckKind(self.kind))
        if self.kind is CheckKind.PREDICATE and self.predicate is None:
            raise ValueError(f"Check {self.name!r} is a predicate check without a predicate")
        if self.kind is not CheckKind.PREDICATE and not self.pattern:
            raise ValueError(f"Check {self.name!r} needs a pattern")

    @classmethod
    def contains(cls, pattern: str, name: str = "", target: Optional[str] = None) -> "Check":
        return cls(name or f"contains {pattern!r}", CheckKind.CONTAINS, pattern, target)

    @classmethod
    def absent(cls, pattern: str, name: str = "", target: Optional[str] = None) -> "Check":
        return cls(name or f"absent {pattern!r}", CheckKind.ABSENT, pattern, target)

    @classmethod
    def regex(cls, pattern: str, name: str = "", target: Optional[str] = None) -> "Check":
        return cls(name or f"matches /{pattern}/", CheckKind.REGEX, pattern, target)

    @classmethod
    def not_regex(cls, pattern: str, name: str = "", target: Optional[str] = None) -> "Check":
        return cls(name or f"does not match /{pattern}/", CheckKind.NOT_REGEX, pattern, target)

    @classmethod
    def where(cls, name: str, predicate: Callable[[str], bool], target: Optional[str] = None) -> "Check":
        return cls(name, CheckKind.PREDICATE, target=target, predicate=predicate)

    def for_target(self, target: str) -> "Check":
        """Return this check bound to ``target`` unless it already has one."""
        if self.target is not None:
            return self
        return Check(self.name, self.kind, self.pattern, target, self.predicate)

    def evaluate(self, content: str) -> bool:
        if self.kind is CheckKind.CONTAINS:
            return self.pattern in content
        if self.kind is CheckKind.ABSENT:
            return self.pattern not in content
        if self.kind is CheckKind.REGEX:
            return re.search(self.pattern, content) is not None
        if self.kind is CheckKind.NOT_REGEX:
            return re.search(self.pattern, content) is None
        return bool(self.predicate(content))

    @classmethod
    def from_dict(cls, data: dict) -> "Check":
        kind = CheckKind(data.get("kind", "contains"))
        if kind is CheckKind.PREDICATE:
            raise ValueError("predicate checks cannot be loaded from a manifest")
        pattern = data.get("pattern", "")
        name = data.get("name") or ""
        factory = {
            CheckKind.CONTAINS: cls.contains,
            CheckKind.ABSENT: cls.absent,
            CheckKind.REGEX: cls.regex,
            CheckKind.NOT_REGEX: cls.not_regex,
        }[kind]
        return factory(pattern, name=name, target=data.get("target"))

    def to_dict(self) -> dict:
        if self.kind is CheckKind.PREDICATE:
            raise TypeError(f"predicate check {self.name!r} cannot be serialized")
        data: dict[str, Any] = {"name": self.name, "kind": self.kind.value, "pattern": self.pattern}
        if self.target is not None:
            data["target"] = self.target
        return data


@dataclass(frozen=True)
class VerificationResult:
    name: str
    passed: bool
    target: Optional[str] = None
    detail: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "passed": self.passed,
            "target": self.target,
            "detail": self.detail,
        }


@dataclass
class VerificationReport:
    """Aggregate of one suite run."""
    results: list[VerificationResult] = field(default_factory=list)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def failed(self) -> int:
        return len(self.results) - self.passed

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def by_target(self) -> dict[str, list[VerificationResult]]:
        grouped: dict[str, list[VerificationResult]] = {}
        for result in self.results:
            grouped.setdefault(result.target or "-", []).append(result)
        return grouped

    def to_dict(self) -> dict:
        return {
            "schema": VERIFICATION_REPORT_SCHEMA,
            "total": len(self.results),
            "passed": self.passed,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }


def _content_of(subject: Any) -> str:
    if isinstance(subject, str):
        return subject
    return subject.content


class VerificationSuite:
    """Run a fixed list of checks against final artifact content."""

    def __init__(self, checks: Iterable[Check]):
        self.checks = list(checks)

    def run(self, subject: Union[str, Any]) -> list[VerificationResult]:
        """Evaluate every check against one artifact (or raw content)."""
        content = _content_of(subject)
        return [self._evaluate(check, content) for check in self.checks]

    def run_artifacts(self, artifacts: Mapping[str, Any]) -> VerificationReport:
        """Evaluate each check against the artifact its ``target`` names.

        A check whose target is missing from ``artifacts`` fails with a
        detail message rather than raising.
        """
        report = VerificationReport()
        for check in self.checks:
            subject = artifacts.get(check.target) if check.target else None
            if subject is None:
                report.results.append(VerificationResult(
                    name=check.name,
                    passed=False,
                    target=check.target,
                    detail="artifact not available" if check.target else "check has no target",
                ))
                continue
            report.results.append(self._evaluate(check, _content_of(subject)))
        return report

    @staticmethod
    def _evaluate(check: Check, content: str) -> VerificationResult:
        try:
            passed = check.evaluate(content)
        except Exception as e:
            return VerificationResult(check.name, False, check.target, f"check raised: {e}")
        return VerificationResult(check.name, passed, check.target)
