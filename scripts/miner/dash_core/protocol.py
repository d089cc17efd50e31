"""JSON envelope shared by the console and the mining node.

Client to node::

    {"type": "settings_update", "values": {"miner": 6, ...}, "version": 3}

Node to client::

    {"type": "settings_ack" | "settings_sync", "values": {...}, "version": 3}
    {"type": "progress", "style": "generation" | "verification", "percent": 42.5, "id": "plot-1"}

``values`` is always a full snapshot keyed by subsystem. ``version`` is
optional on inbound messages; ``id`` defaults to the style name.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from dash_core.errors import ProtocolError
from dash_core.levels import Level
from dash_core.models import PROGRESS_STYLES, ProgressEvent, SettingsState, full_snapshot

SETTINGS_UPDATE = "settings_update"
SETTINGS_ACK = "settings_ack"
SETTINGS_SYNC = "settings_sync"
PROGRESS = "progress"

INBOUND_SETTINGS = (SETTINGS_ACK, SETTINGS_SYNC)


@dataclass(frozen=True)
class SettingsMessage:
    type: str
    values: dict[str, Level]
    version: int | None = None


def encode_settings_update(state: SettingsState, version: int) -> dict[str, Any]:
    return {
        "type": SETTINGS_UPDATE,
        "values": state.to_wire(),
        "version": version,
    }


def _load(raw: str | bytes | dict) -> dict:
    if isinstance(raw, dict):
        return raw
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise ProtocolError(f"invalid JSON message: {exc}") from exc
    if not isinstance(payload, dict):
        raise ProtocolError("message is not a JSON object")
    return payload


def _version(payload: dict) -> int | None:
    version = payload.get("version")
    if version is None:
        return None
    if isinstance(version, bool) or not isinstance(version, int):
        raise ProtocolError(f"invalid version: {version!r}")
    return version


def decode(raw: str | bytes | dict) -> SettingsMessage | ProgressEvent:
    """Parse one inbound envelope.

    Raises ``ProtocolError`` for anything that is not a known envelope, and
    lets ``OutOfRangeLevel`` / ``IncompleteSettings`` through for settings
    snapshots that must be rejected as a whole.
    """
    payload = _load(raw)
    kind = payload.get("type")

    if kind in INBOUND_SETTINGS or kind == SETTINGS_UPDATE:
        values = payload.get("values")
        if not isinstance(values, dict):
            raise ProtocolError(f"{kind} without a values object")
        return SettingsMessage(type=kind, values=full_snapshot(values), version=_version(payload))

    if kind == PROGRESS:
        style = payload.get("style")
        if style not in PROGRESS_STYLES:
            raise ProtocolError(f"unknown progress style: {style!r}")
        if "percent" not in payload:
            raise ProtocolError("progress without percent")
        bar_id = payload.get("id")
        if bar_id is None:
            bar_id = style
        return ProgressEvent(bar_id=str(bar_id), percent=payload["percent"], style=style)

    raise ProtocolError(f"unknown message type: {kind!r}")
