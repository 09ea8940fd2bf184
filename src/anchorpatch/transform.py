"""Transforms: pure functions from (content, located range, context) to content.

Every transform is deterministic. Running a transform whose target range
already holds the intended text is safe, which is what lets a PatchSpec's
detection predicate make re-runs no-ops.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

from anchorpatch.locator import LocateResult, Locator

_GROUP_REF = re.compile(r"\\(\d+)|\\g<(\w+)>")


def splice(content: str, start: int, end: int, text: str) -> str:
    """Replace ``content[start:end]`` with ``text``."""
    return content[:start] + text + content[end:]


def expand_template(template: str, located: LocateResult) -> str:
    """Expand ``\\1`` and ``\\g<name>`` references against regex captures."""

    def _sub(match: re.Match) -> str:
        number, name = match.groups()
        if number is None and name.isdigit():
            number = name
        if number is not None:
            index = int(number)
            if index == 0:
                raise IndexError("group 0 is not available in templates")
            if index > len(located.groups):
                raise IndexError(f"template refers to group {index}, match has {len(located.groups)}")
            return located.groups[index - 1] or ""
        if name not in located.named:
            raise KeyError(f"template refers to unknown group {name!r}")
        return located.named[name] or ""

    return _GROUP_REF.sub(_sub, template)


class Transform:
    """Base class for transforms."""

    kind = "transform"

    def apply(self, content: str, located: LocateResult, context: dict) -> str:
        raise NotImplementedError

    def static_text(self) -> Optional[str]:
        """Text the transform always writes, when known ahead of time."""
        return None

    def to_dict(self) -> dict:
        raise TypeError(f"{type(self).__name__} cannot be serialized")


@dataclass(frozen=True)
class Insert(Transform):
    """Zero-width insertion before or after the located range."""
    text: str
    where: str = "after"

    kind = "insert"

    def __post_init__(self) -> None:
        if self.where not in ("before", "after"):
            raise ValueError(f"Insert.where must be 'before' or 'after', got {self.where!r}")

    def apply(self, content: str, located: LocateResult, context: dict) -> str:
        point = located.start if self.where == "before" else located.end
        return splice(content, point, point, self.text)

    def static_text(self) -> Optional[str]:
        return self.text

    def to_dict(self) -> dict:
        return {"kind": self.kind, "text": self.text, "where": self.where}


@dataclass(frozen=True)
class Replace(Transform):
    """Replace the located range with new text.

    With ``expand`` the text is a template whose ``\\N`` / ``\\g<name>``
    references are filled from the regex captures.
    """
    text: str
    expand: bool = False

    kind = "replace"

    def apply(self, content: str, located: LocateResult, context: dict) -> str:
        text = expand_template(self.text, located) if self.expand else self.text
        return splice(content, located.start, located.end, text)

    def static_text(self) -> Optional[str]:
        if self.expand and _GROUP_REF.search(self.text):
            return None
        return self.text

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"kind": self.kind, "text": self.text}
        if self.expand:
            data["expand"] = True
        return data


@dataclass(frozen=True)
class Delete(Transform):
    """Remove the located range."""

    kind = "delete"

    def apply(self, content: str, located: LocateResult, context: dict) -> str:
        return splice(content, located.start, located.end, "")

    def to_dict(self) -> dict:
        return {"kind": self.kind}


@dataclass(frozen=True)
class Wrap(Transform):
    """Surround the located range, typically a balanced-scan value."""
    prefix: str
    suffix: str = ""

    kind = "wrap"

    def apply(self, content: str, located: LocateResult, context: dict) -> str:
        inner = content[located.start:located.end]
        return splice(content, located.start, located.end, self.prefix + inner + self.suffix)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "prefix": self.prefix, "suffix": self.suffix}


@dataclass(frozen=True)
class Call(Transform):
    """Replacement computed by a function of the matched text.

    ``fn(matched_text, located, context)`` returns the text that takes the
    range's place. Python-only; manifests cannot express it.
    """
    fn: Callable[[str, LocateResult, dict], str]

    kind = "call"

    def apply(self, content: str, located: LocateResult, context: dict) -> str:
        replacement = self.fn(located.text(content), located, context)
        if not isinstance(replacement, str):
            raise TypeError(
                f"transform function returned {type(replacement).__name__}, expected str"
            )
        return splice(content, located.start, located.end, replacement)


@dataclass(frozen=True)
class SubstituteAll(Transform):
    """Global substitution over the whole artifact.

    The located range only proves at least one occurrence exists. The
    replacement is inserted verbatim, never escape-processed, so JS string
    escapes survive untouched.
    """
    old: str
    new: str
    regex: bool = False
    flags: str = ""

    kind = "substitute_all"

    def apply(self, content: str, located: LocateResult, context: dict) -> str:
        if not self.regex:
            return content.replace(self.old, self.new)
        pattern = Locator.regex(self.old, flags=self.flags).compiled()
        return pattern.sub(lambda _match: self.new, content)

    def static_text(self) -> Optional[str]:
        return self.new or None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"kind": self.kind, "old": self.old, "new": self.new}
        if self.regex:
            data["regex"] = True
        if self.flags:
            data["flags"] = self.flags
        return data


TRANSFORMS: dict[str, type] = {
    "insert": Insert,
    "replace": Replace,
    "delete": Delete,
    "wrap": Wrap,
    "substitute_all": SubstituteAll,
}


def transform_from_dict(data: dict) -> Transform:
    """Build a serializable transform from its manifest form."""
    kind = data.get("kind", "replace")
    if kind not in TRANSFORMS:
        raise ValueError(f"Unknown transform kind: {kind!r}")
    params = {key: value for key, value in data.items() if key != "kind"}
    return TRANSFORMS[kind](**params)
