"""Built-in patch batches.

Each batch is built fresh by its factory so callers can never share (or
mutate) another caller's spec list.
"""
from __future__ import annotations

from typing import Callable, Iterable

from anchorpatch.batches import (
    color_palette,
    path_normalization,
    process_detection,
    startup_reliability,
    windows_main,
)
from anchorpatch.errors import ConfigError
from anchorpatch.spec import PatchBatch

BATCHES: dict[str, Callable[[], PatchBatch]] = {
    windows_main.NAME: windows_main.batch,
    process_detection.NAME: process_detection.batch,
    startup_reliability.NAME: startup_reliability.batch,
    path_normalization.NAME: path_normalization.batch,
    color_palette.NAME: color_palette.batch,
}


def get_batch(name: str) -> PatchBatch:
    try:
        factory = BATCHES[name]
    except KeyError:
        known = ", ".join(BATCHES)
        raise ConfigError(f"Unknown batch {name!r} (known: {known})") from None
    return factory()


def get_batches(names: Iterable[str]) -> list[PatchBatch]:
    return [get_batch(name) for name in names]


__all__ = ["BATCHES", "get_batch", "get_batches"]
