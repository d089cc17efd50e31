"""Shared text formatting helpers for human-facing panels."""

from __future__ import annotations

from dash_core.levels import Level

LEVEL_STYLES = {
    Level.OFF: "dim",
    Level.FATAL: "bold red",
    Level.CRITICAL: "red",
    Level.ERROR: "red",
    Level.WARNING: "yellow",
    Level.NOTICE: "cyan",
    Level.INFORMATION: "green",
    Level.DEBUG: "blue",
    Level.TRACE: "magenta",
    Level.ALL: "bold magenta",
}

LINK_STATUS = {
    "connected": "ok",
    "connecting": "warn",
    "disconnected": "warn",
    "failed": "error",
    "unavailable": "error",
}


def level_style(level: int) -> str:
    return LEVEL_STYLES.get(Level(level), "default")


def level_gauge(level: int) -> str:
    # one cell per level above "off"
    filled = max(0, min(int(Level.ALL), int(level)))
    return "#" * filled + "." * (int(Level.ALL) - filled)


def link_status(state: str) -> str:
    return LINK_STATUS.get(state, "warn")


def compact_relative_age(age_seconds: float | int | None) -> str:
    if age_seconds is None:
        return "never"

    seconds = max(0, int(age_seconds))
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"
