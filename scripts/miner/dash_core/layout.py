"""Layout mode selection by terminal width."""

from __future__ import annotations

SPLIT_MIN_WIDTH = 110


def select_layout_mode(width: int) -> str:
    if width < SPLIT_MIN_WIDTH:
        return "stacked"
    return "split"
