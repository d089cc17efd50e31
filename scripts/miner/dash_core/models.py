"""Shared model contracts for the dashboard data flow."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from dash_core.errors import IncompleteSettings
from dash_core.levels import Level, parse_level, subsystem_keys, subsystems, to_level

GENERATION = "generation"
VERIFICATION = "verification"
PROGRESS_STYLES = (GENERATION, VERIFICATION)


@dataclass
class PanelData:
    key: str
    title: str
    status: str = "ok"
    items: list[dict[str, Any]] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "title": self.title,
            "status": self.status,
            "items": self.items,
            "meta": self.meta,
            "errors": self.errors,
        }


def full_snapshot(values: Mapping[str, object], strict: bool = True) -> dict[str, Level]:
    """Validate a settings mapping and return it in registry order.

    Wire ordinals go through ``to_level``; with ``strict=False`` level names
    are accepted too (config files and the command line).
    """
    keys = subsystem_keys()
    missing = [key for key in keys if key not in values]
    unknown = sorted(key for key in values if key not in keys)
    if missing or unknown:
        raise IncompleteSettings(missing, unknown)
    convert = to_level if strict else parse_level
    return {key: convert(values[key]) for key in keys}


@dataclass
class SettingsState:
    values: dict[str, Level]
    version: int = 0

    @classmethod
    def from_defaults(cls, overrides: Mapping[str, object] | None = None) -> "SettingsState":
        values = {descriptor.key: descriptor.default_level for descriptor in subsystems()}
        if overrides:
            for key, value in overrides.items():
                if key not in values:
                    raise IncompleteSettings([], [key])
                values[key] = parse_level(value)
        return cls(values=values)

    def __getitem__(self, key: str) -> Level:
        return self.values[key]

    def replace(self, values: Mapping[str, object], version: int | None = None, strict: bool = True) -> None:
        # validate everything before touching the current state
        snapshot = full_snapshot(values, strict=strict)
        self.values = snapshot
        if version is not None:
            self.version = version

    def to_wire(self) -> dict[str, int]:
        return {key: int(level) for key, level in self.values.items()}


@dataclass(frozen=True)
class ProgressEvent:
    bar_id: str
    percent: Any
    style: str = GENERATION
