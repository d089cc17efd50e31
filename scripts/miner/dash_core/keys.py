"""Keyboard handling for the live console."""

from __future__ import annotations

from dash_core.dispatch import Dashboard

UP = "\x1b[A"
DOWN = "\x1b[B"
RIGHT = "\x1b[C"
LEFT = "\x1b[D"

KEY_ACTIONS = {
    "k": ("cursor", -1),
    UP: ("cursor", -1),
    "j": ("cursor", 1),
    DOWN: ("cursor", 1),
    "+": ("level", 1),
    "=": ("level", 1),
    "l": ("level", 1),
    RIGHT: ("level", 1),
    "-": ("level", -1),
    "h": ("level", -1),
    LEFT: ("level", -1),
    "r": ("reconnect", 0),
    "q": ("quit", 0),
    "\x03": ("quit", 0),
}

HELP = "j/k move  +/- level  r reconnect  q quit"


def split_keys(text: str) -> list[str]:
    """Split raw terminal input into keys, keeping arrow sequences whole."""
    keys: list[str] = []
    i = 0
    while i < len(text):
        if text.startswith("\x1b[", i) and i + 2 < len(text):
            keys.append(text[i : i + 3])
            i += 3
        else:
            keys.append(text[i])
            i += 1
    return keys


def apply_key(dashboard: Dashboard, key: str) -> str | None:
    """Apply a key to the dashboard; returns "reconnect"/"quit" for the caller."""
    action = KEY_ACTIONS.get(key)
    if action is None:
        return None
    name, delta = action
    if name == "cursor":
        dashboard.controller.move_cursor(delta)
        return None
    if name == "level":
        dashboard.controller.step_focused(delta)
        return None
    return name
