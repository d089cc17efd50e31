"""Per-subsystem level selectors and their synchronization with the node."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Mapping

from dash_core.levels import LEVEL_NAMES, Level, SubsystemDescriptor, descriptor_for, parse_level, subsystems
from dash_core.models import SettingsState
from dash_core.protocol import encode_settings_update

logger = logging.getLogger(__name__)

Sender = Callable[[dict[str, Any]], None]


class LevelSelector:
    def __init__(self, descriptor: SubsystemDescriptor, value: Level, on_change: Callable[[], None] | None = None):
        self.descriptor = descriptor
        self.value = Level(value)
        self.on_change = on_change

    @property
    def key(self) -> str:
        return self.descriptor.key

    @property
    def control_id(self) -> str:
        return f"cmb_{self.descriptor.key}"

    @property
    def label(self) -> str:
        return self.descriptor.display_name

    @staticmethod
    def options() -> list[tuple[int, str]]:
        return list(enumerate(LEVEL_NAMES))

    def select(self, level: object) -> bool:
        """User-driven change; fires ``on_change`` once if the value moved."""
        new_value = parse_level(level)
        if new_value == self.value:
            return False
        self.value = new_value
        if self.on_change is not None:
            self.on_change()
        return True

    def set_value(self, level: object) -> None:
        self.value = parse_level(level)

    def step(self, delta: int) -> bool:
        target = max(int(Level.OFF), min(int(Level.ALL), int(self.value) + delta))
        return self.select(Level(target))


class ControlContainer:
    """Ordered holder for selectors; adding a subsystem twice replaces it."""

    def __init__(self):
        self.controls: dict[str, LevelSelector] = {}

    def add(self, selector: LevelSelector) -> None:
        self.controls[selector.key] = selector

    def get(self, key: str) -> LevelSelector | None:
        return self.controls.get(key)

    def clear(self) -> None:
        self.controls.clear()

    def __iter__(self) -> Iterator[LevelSelector]:
        return iter(self.controls.values())

    def __len__(self) -> int:
        return len(self.controls)


def init_settings(
    container: ControlContainer,
    on_change: Callable[[], None] | None = None,
    state: SettingsState | None = None,
) -> dict[str, LevelSelector]:
    output: dict[str, LevelSelector] = {}
    for descriptor in subsystems():
        level = state[descriptor.key] if state is not None else descriptor.default_level
        selector = LevelSelector(descriptor, level, on_change)
        container.add(selector)
        output[descriptor.key] = selector
    return output


class SettingsController:
    def __init__(self, state: SettingsState | None = None, sender: Sender | None = None, editable: bool = True):
        self.state = state or SettingsState.from_defaults()
        self.sender = sender
        self.editable = editable
        self.container = ControlContainer()
        self.sent_version = 0
        self.confirmed = False
        self.cursor = 0
        self._batching = False
        self._dirty = False
        self.handles = init_settings(self.container, self._on_change, self.state)

    def attach(self, sender: Sender | None) -> None:
        self.sender = sender

    def resync(self) -> None:
        self.handles = init_settings(self.container, self._on_change, self.state)

    def current_values(self) -> dict[str, Level]:
        return {key: handle.value for key, handle in self.handles.items()}

    def _on_change(self) -> None:
        if self._batching:
            self._dirty = True
            return
        self.push()

    @contextmanager
    def _batch(self) -> Iterator[None]:
        self._batching = True
        self._dirty = False
        try:
            yield
        finally:
            self._batching = False

    def push(self) -> dict[str, Any]:
        """Send the full current snapshot as one ``settings_update``."""
        self.sent_version += 1
        self.state.replace(self.current_values(), version=self.sent_version)
        payload = encode_settings_update(self.state, self.sent_version)
        logger.debug("settings_update v%d: %s", self.sent_version, payload["values"])
        if self.sender is not None:
            self.sender(payload)
        return payload

    def apply_local(self, values: Mapping[str, object], force: bool = False) -> dict[str, Any] | None:
        """Apply several edits at once and send a single update.

        Every key and level is validated before any selector changes.
        """
        parsed = {descriptor_for(key).key: parse_level(value) for key, value in values.items()}
        with self._batch():
            for key, level in parsed.items():
                self.handles[key].select(level)
        if self._dirty or force:
            return self.push()
        return None

    def apply_authoritative(self, values: Mapping[str, object], version: int | None = None) -> bool:
        """Overwrite local state with the node's snapshot and re-render.

        Snapshots older than the newest update we sent are dropped.
        Raises ``OutOfRangeLevel`` / ``IncompleteSettings`` without
        touching the state.
        """
        if version is not None and version < self.sent_version:
            logger.info("ignoring stale settings v%d (sent v%d)", version, self.sent_version)
            return False
        self.state.replace(values, version=version)
        self.confirmed = True
        self.resync()
        return True

    @property
    def focused_key(self) -> str:
        keys = list(self.handles)
        return keys[self.cursor % len(keys)]

    def move_cursor(self, delta: int) -> None:
        self.cursor = (self.cursor + delta) % len(self.handles)

    def step_focused(self, delta: int) -> bool:
        if not self.editable:
            return False
        return self.handles[self.focused_key].step(delta)
