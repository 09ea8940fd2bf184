"""Helpers shared by the built-in batch definitions."""
from __future__ import annotations

from typing import Iterable

from anchorpatch.locator import Locator
from anchorpatch.spec import PatchSpec
from anchorpatch.transform import Replace, SubstituteAll
from anchorpatch.verification import Check


def substitute(
    patch_id: str,
    target: str,
    old: str,
    new: str,
    regex: bool = False,
    **kwargs,
) -> PatchSpec:
    """Replace every occurrence of ``old``; applied once none remain."""
    return PatchSpec(
        id=patch_id,
        target=target,
        locator=Locator.regex(old) if regex else Locator.literal(old),
        transform=SubstituteAll(old, new, regex=regex),
        **kwargs,
    )


def replace_once(patch_id: str, target: str, old: str, new: str, **kwargs) -> PatchSpec:
    """Replace the first occurrence of a literal anchor."""
    return PatchSpec(
        id=patch_id,
        target=target,
        locator=Locator.literal(old, start_hint=kwargs.pop("start_hint", None)),
        transform=Replace(new),
        **kwargs,
    )


def contains_checks(target: str, pairs: Iterable[tuple[str, str]]) -> list[Check]:
    return [Check.contains(pattern, name=name, target=target) for name, pattern in pairs]
