"""Progress bars driven by node telemetry.

Generation progress is background work and carries no label; verification
progress always shows ``"<percent>% Verified"``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from dash_core.models import GENERATION, VERIFICATION, ProgressEvent


@dataclass
class ProgressBar:
    bar_id: str
    style: str = GENERATION
    value: int = 0
    active: bool = True
    label: str = ""

    @property
    def width(self) -> str:
        return f"{self.value}%"

    def to_dict(self) -> dict:
        return {
            "id": self.bar_id,
            "style": self.style,
            "value": self.value,
            "active": self.active,
            "label": self.label,
        }


def clamp_percent(percent: object) -> int:
    if isinstance(percent, int):
        # arbitrarily large JSON integers do not fit in a float
        return max(0, min(100, int(percent)))
    try:
        value = float(percent)
    except (TypeError, ValueError, OverflowError):
        return 0
    if math.isnan(value):
        return 0
    if value >= 100:
        return 100
    if value <= 0:
        return 0
    # round half up
    return int(math.floor(value + 0.5))


def _apply(bar: ProgressBar, percent: object) -> int:
    value = clamp_percent(percent)
    bar.value = value
    bar.active = value < 100
    return value


def render_generation(bar: ProgressBar, percent: object) -> ProgressBar:
    _apply(bar, percent)
    bar.style = GENERATION
    bar.label = ""
    return bar


def render_verification(bar: ProgressBar, percent: object) -> ProgressBar:
    value = _apply(bar, percent)
    bar.style = VERIFICATION
    bar.label = f"{value}% Verified"
    return bar


RENDERERS = {
    GENERATION: render_generation,
    VERIFICATION: render_verification,
}


class ProgressBoard:
    """Current rendering of every bar seen so far, in first-seen order."""

    def __init__(self):
        self.bars: dict[str, ProgressBar] = {}

    def apply(self, event: ProgressEvent) -> ProgressBar:
        bar = self.bars.get(event.bar_id)
        if bar is None:
            bar = ProgressBar(bar_id=event.bar_id, style=event.style)
            self.bars[event.bar_id] = bar
        return RENDERERS[event.style](bar, event.percent)

    def clear(self) -> None:
        self.bars.clear()
