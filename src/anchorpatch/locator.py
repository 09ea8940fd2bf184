"""Anchor location inside generated artifacts.

Three ways to find a splice point:

    literal   - exact substring, first occurrence at or after an offset
    regex     - first match at or after an offset, captures surfaced
    balanced  - delimiter-depth scan from an opening brace/bracket/paren to
                its matching closer

Balanced scans exist because the end of a nested object or array literal in
a minified bundle cannot be expressed as a fixed-width pattern. Counting
stops when depth returns to zero; running off the end of the buffer is a
``MalformedScan``, never a silent ``NotFound``.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from anchorpatch.errors import AnchorNotFound, MalformedScan


DELIMITER_PAIRS = {
    "{": "}",
    "[": "]",
    "(": ")",
}

QUOTE_CHARS = ("\"", "'", "`")

REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}


class LocatorKind(Enum):
    """How a locator finds its anchor."""
    LITERAL = "literal"
    REGEX = "regex"
    BALANCED = "balanced"


class LocateStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class LocateResult:
    """A half-open ``[start, end)`` range into the artifact, or a failure."""
    status: LocateStatus
    start: int = -1
    end: int = -1
    groups: tuple = ()
    named: dict = field(default_factory=dict)
    detail: str = ""
    error: Optional[MalformedScan] = field(default=None, compare=False, repr=False)

    @classmethod
    def at(cls, start: int, end: int, groups: tuple = (), named: Optional[dict] = None) -> "LocateResult":
        return cls(LocateStatus.FOUND, start, end, tuple(groups), dict(named or {}))

    @classmethod
    def not_found(cls, detail: str = "") -> "LocateResult":
        return cls(LocateStatus.NOT_FOUND, detail=detail)

    @classmethod
    def malformed(cls, error: MalformedScan) -> "LocateResult":
        return cls(LocateStatus.MALFORMED, detail=str(error), error=error)

    @property
    def found(self) -> bool:
        return self.status is LocateStatus.FOUND

    def text(self, content: str) -> str:
        """Return the located slice of ``content``."""
        if not self.found:
            return ""
        return content[self.start:self.end]

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "start": self.start,
            "end": self.end,
            "groups": list(self.groups),
            "named": dict(self.named),
            "detail": self.detail,
        }


@dataclass(frozen=True)
class Locator:
    """Descriptor of where a patch applies.

    ``start_hint`` narrows the search: when set, scanning starts at the first
    occurrence of the hint at or after ``from_offset``. For balanced scans,
    ``pattern`` is a literal that ends with the opening delimiter or is
    followed by it, with only whitespace between (an empty pattern means the
    delimiter sits exactly at ``from_offset``).
    """
    kind: LocatorKind
    pattern: str = ""
    start_hint: Optional[str] = None
    flags: str = ""
    open_delim: str = "{"
    skip_strings: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.kind, LocatorKind):
            object.__setattr__(self, "kind", LocatorKind(self.kind))
        if self.kind is LocatorKind.BALANCED and self.open_delim not in DELIMITER_PAIRS:
            raise ValueError(f"Unsupported opening delimiter: {self.open_delim!r}")
        if self.kind is not LocatorKind.BALANCED and not self.pattern:
            raise ValueError(f"{self.kind.value} locator needs a non-empty pattern")
        unknown = set(self.flags) - set(REGEX_FLAGS)
        if unknown:
            raise ValueError(f"Unknown regex flags: {''.join(sorted(unknown))}")

    @classmethod
    def literal(cls, pattern: str, start_hint: Optional[str] = None) -> "Locator":
        return cls(LocatorKind.LITERAL, pattern, start_hint=start_hint)

    @classmethod
    def regex(cls, pattern: str, flags: str = "", start_hint: Optional[str] = None) -> "Locator":
        return cls(LocatorKind.REGEX, pattern, start_hint=start_hint, flags=flags)

    @classmethod
    def balanced(
        cls,
        pattern: str = "",
        open_delim: str = "{",
        start_hint: Optional[str] = None,
        skip_strings: bool = False,
    ) -> "Locator":
        return cls(
            LocatorKind.BALANCED,
            pattern,
            start_hint=start_hint,
            open_delim=open_delim,
            skip_strings=skip_strings,
        )

    def compiled(self) -> re.Pattern:
        bits = 0
        for letter in self.flags:
            bits |= REGEX_FLAGS[letter]
        return re.compile(self.pattern, bits)

    @classmethod
    def from_dict(cls, data: dict) -> "Locator":
        return cls(
            kind=LocatorKind(data.get("kind", "literal")),
            pattern=data.get("pattern", ""),
            start_hint=data.get("start_hint"),
            flags=data.get("flags", ""),
            open_delim=data.get("open_delim", "{"),
            skip_strings=bool(data.get("skip_strings", False)),
        )

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"kind": self.kind.value, "pattern": self.pattern}
        if self.start_hint is not None:
            data["start_hint"] = self.start_hint
        if self.flags:
            data["flags"] = self.flags
        if self.kind is LocatorKind.BALANCED:
            data["open_delim"] = self.open_delim
            data["skip_strings"] = self.skip_strings
        return data


# =============================================================================
# Balanced scan
# =============================================================================

def _skip_string(content: str, index: int) -> int:
    """Return the index just past the string literal opening at ``index``."""
    quote = content[index]
    pos = index + 1
    while pos < len(content):
        ch = content[pos]
        if ch == "\\":
            pos += 2
            continue
        if ch == quote:
            return pos + 1
        pos += 1
    return pos


def find_balanced_end(
    content: str,
    open_index: int,
    open_delim: Optional[str] = None,
    skip_strings: bool = False,
) -> int:
    """Return the index of the delimiter closing the one at ``open_index``.

    Scanning starts just after the opener with depth 1. Only the opener's own
    pair is counted, so ``{`` ignores brackets and parens. With
    ``skip_strings`` quoted literals are stepped over (backslash escapes
    honored, template substitutions not interpreted).

    Raises:
        ValueError: ``open_index`` does not hold an opening delimiter.
        MalformedScan: the buffer ends before depth returns to zero.
    """
    if open_index < 0 or open_index >= len(content):
        raise ValueError(f"Opening offset {open_index} outside buffer of {len(content)} chars")
    opener = content[open_index]
    if open_delim is not None and opener != open_delim:
        raise ValueError(f"Expected {open_delim!r} at offset {open_index}, found {opener!r}")
    if opener not in DELIMITER_PAIRS:
        raise ValueError(f"No opening delimiter at offset {open_index}: {opener!r}")
    closer = DELIMITER_PAIRS[opener]

    depth = 1
    pos = open_index + 1
    while pos < len(content):
        ch = content[pos]
        if skip_strings and ch in QUOTE_CHARS:
            pos = _skip_string(content, pos)
            continue
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return pos
        pos += 1
    raise MalformedScan(open_index, depth, opener)


# =============================================================================
# Locate
# =============================================================================

def locate(content: str, locator: Locator, from_offset: int = 0) -> LocateResult:
    """Find the splice range described by ``locator``.

    Never raises for a missing anchor or an unterminated scan; both are
    reported through ``LocateResult.status``.
    """
    offset = max(0, from_offset)

    if locator.start_hint:
        hint_index = content.find(locator.start_hint, offset)
        if hint_index == -1:
            return LocateResult.not_found(f"start hint {locator.start_hint!r} not found")
        offset = hint_index

    if locator.kind is LocatorKind.LITERAL:
        index = content.find(locator.pattern, offset)
        if index == -1:
            return LocateResult.not_found(f"literal {locator.pattern!r} not found")
        return LocateResult.at(index, index + len(locator.pattern))

    if locator.kind is LocatorKind.REGEX:
        match = locator.compiled().search(content, offset)
        if match is None:
            return LocateResult.not_found(f"regex {locator.pattern!r} did not match")
        return LocateResult.at(match.start(), match.end(), match.groups(), match.groupdict())

    # Balanced scan
    if locator.pattern:
        anchor = content.find(locator.pattern, offset)
        if anchor == -1:
            return LocateResult.not_found(f"literal {locator.pattern!r} not found")
        open_index = anchor + len(locator.pattern)
        if locator.pattern.endswith(locator.open_delim):
            open_index -= 1
        else:
            while open_index < len(content) and content[open_index].isspace():
                open_index += 1
        if open_index >= len(content) or content[open_index] != locator.open_delim:
            return LocateResult.not_found(
                f"no {locator.open_delim!r} right after {locator.pattern!r}"
            )
    else:
        open_index = offset
        if open_index >= len(content) or content[open_index] != locator.open_delim:
            return LocateResult.not_found(
                f"no {locator.open_delim!r} at offset {open_index}"
            )

    try:
        close_index = find_balanced_end(
            content, open_index, locator.open_delim, locator.skip_strings
        )
    except MalformedScan as exc:
        return LocateResult.malformed(exc)
    return LocateResult.at(open_index, close_index + 1)


def require(content: str, locator: Locator, from_offset: int = 0) -> LocateResult:
    """Like ``locate`` but raise instead of returning a failed result.

    For Python-side transforms that need a secondary anchor; the runner
    turns the exception into an ERROR outcome.

    Raises:
        AnchorNotFound: the anchor (or its start hint) is missing.
        MalformedScan: a balanced scan ran off the end of the buffer.
    """
    result = locate(content, locator, from_offset)
    if result.status is LocateStatus.MALFORMED:
        raise result.error
    if result.status is LocateStatus.NOT_FOUND:
        raise AnchorNotFound(locator.pattern or locator.start_hint or "", result.detail)
    return result
