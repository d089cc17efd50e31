"""Profile resolution and user config merging for the dashboard."""

from __future__ import annotations

import json
import os
from pathlib import Path

from dash_core.errors import DashError
from dash_core.levels import parse_level, subsystem_keys

ALL_PANELS = ["header", "settings", "progress"]

BUILTIN_PROFILES: dict[str, dict] = {
    "operator": {
        "panels": ALL_PANELS,
        "refresh_seconds": 1,
        "editable": True,
    },
    "telemetry": {
        "panels": ["header", "progress"],
        "refresh_seconds": 1,
        "editable": False,
    },
}

DEFAULT_RECONNECT = {
    "base_delay": 1.0,
    "max_delay": 30.0,
    "max_attempts": 8,
    "jitter": 0.2,
}

URL_ENV = "MINER_DASH_URL"
PROFILE_ENV = "MINER_DASH_PROFILE"


def default_profile() -> str:
    return os.environ.get(PROFILE_ENV, "operator")


def load_user_config(path: str | None) -> dict:
    if not path:
        return {}

    config_path = Path(path)
    if not config_path.exists():
        raise ValueError(f"config path not found: {config_path}")

    try:
        config = json.loads(config_path.read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid JSON config: {exc}") from exc
    if not isinstance(config, dict):
        raise ValueError("config must be a JSON object")
    return config


def _resolve_levels(raw: object) -> dict:
    if not isinstance(raw, dict):
        raise ValueError("levels must be an object of subsystem: level")
    allowed = set(subsystem_keys())
    levels = {}
    for key, value in raw.items():
        if key not in allowed:
            raise ValueError(f"unknown subsystem in levels: {key}")
        try:
            levels[key] = parse_level(value)
        except DashError as exc:
            raise ValueError(f"invalid level for {key}: {value!r}") from exc
    return levels


def _resolve_reconnect(raw: object) -> dict:
    if not isinstance(raw, dict):
        raise ValueError("reconnect must be an object")
    reconnect = dict(DEFAULT_RECONNECT)
    for key in DEFAULT_RECONNECT:
        if key in raw:
            try:
                reconnect[key] = type(DEFAULT_RECONNECT[key])(raw[key])
            except (TypeError, ValueError) as exc:
                raise ValueError(f"invalid reconnect.{key}: {raw[key]!r}") from exc
    unknown = sorted(set(raw) - set(DEFAULT_RECONNECT))
    if unknown:
        raise ValueError(f"unknown reconnect keys: {', '.join(unknown)}")
    return reconnect


def resolve_profile(profile: str, config_path: str | None = None) -> dict:
    if profile not in BUILTIN_PROFILES:
        raise ValueError(f"unknown profile: {profile}")

    user_config = load_user_config(config_path)

    selected_profile = user_config.get("profile")
    if selected_profile:
        if selected_profile not in BUILTIN_PROFILES:
            raise ValueError(f"unknown profile in config: {selected_profile}")
        profile = selected_profile

    resolved = dict(BUILTIN_PROFILES[profile])
    resolved["panels"] = list(resolved["panels"])
    resolved["url"] = os.environ.get(URL_ENV) or None
    resolved["host"] = None
    resolved["secure"] = False
    resolved["levels"] = {}
    resolved["reconnect"] = dict(DEFAULT_RECONNECT)

    if "refresh_seconds" in user_config:
        value = int(user_config["refresh_seconds"])
        resolved["refresh_seconds"] = max(1, value)

    panel_config = user_config.get("panels")
    available = BUILTIN_PROFILES[profile]["panels"]
    if isinstance(panel_config, dict):
        # disable map: {"progress": false}
        resolved["panels"] = [panel for panel in available if panel_config.get(panel, True)]
    elif isinstance(panel_config, list) and panel_config:
        # explicit order
        filtered = [p for p in panel_config if p in available]
        if filtered:
            resolved["panels"] = filtered

    if user_config.get("url"):
        resolved["url"] = str(user_config["url"])
    if user_config.get("host"):
        resolved["host"] = str(user_config["host"])
    if "secure" in user_config:
        resolved["secure"] = bool(user_config["secure"])
    if "levels" in user_config:
        resolved["levels"] = _resolve_levels(user_config["levels"])
    if "reconnect" in user_config:
        resolved["reconnect"] = _resolve_reconnect(user_config["reconnect"])

    resolved["name"] = profile
    return resolved
