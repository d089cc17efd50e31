"""Verbosity levels and the closed catalog of node subsystems."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from dash_core.errors import OutOfRangeLevel


class Level(IntEnum):
    OFF = 0
    FATAL = 1
    CRITICAL = 2
    ERROR = 3
    WARNING = 4
    NOTICE = 5
    INFORMATION = 6
    DEBUG = 7
    TRACE = 8
    ALL = 9


LEVEL_NAMES = tuple(level.name.lower() for level in Level)


@dataclass(frozen=True)
class SubsystemDescriptor:
    key: str
    display_name: str
    default_level: Level


SUBSYSTEMS: tuple[SubsystemDescriptor, ...] = (
    SubsystemDescriptor("miner", "Miner", Level.INFORMATION),
    SubsystemDescriptor("config", "Config", Level.INFORMATION),
    SubsystemDescriptor("server", "Server", Level.FATAL),
    SubsystemDescriptor("socket", "Socket", Level.OFF),
    SubsystemDescriptor("session", "Session", Level.ERROR),
    SubsystemDescriptor("nonceSubmitter", "Nonce submitter", Level.INFORMATION),
    SubsystemDescriptor("plotReader", "Plot reader", Level.INFORMATION),
    SubsystemDescriptor("plotVerifier", "Plot verifier", Level.INFORMATION),
    SubsystemDescriptor("wallet", "Wallet", Level.FATAL),
    SubsystemDescriptor("general", "General", Level.INFORMATION),
)

_BY_KEY = {descriptor.key: descriptor for descriptor in SUBSYSTEMS}


def subsystems() -> tuple[SubsystemDescriptor, ...]:
    return SUBSYSTEMS


def subsystem_keys() -> list[str]:
    return [descriptor.key for descriptor in SUBSYSTEMS]


def descriptor_for(key: str) -> SubsystemDescriptor:
    try:
        return _BY_KEY[key]
    except KeyError:
        raise ValueError(f"unknown subsystem: {key}") from None


def to_level(ordinal: object) -> Level:
    """Convert a wire ordinal into a ``Level``.

    Booleans and non-integral numbers are rejected even though Python would
    happily coerce them; the wire only ever carries plain integers.
    """
    if isinstance(ordinal, bool):
        raise OutOfRangeLevel(ordinal)
    if isinstance(ordinal, float):
        if not ordinal.is_integer():
            raise OutOfRangeLevel(ordinal)
        ordinal = int(ordinal)
    if not isinstance(ordinal, int):
        raise OutOfRangeLevel(ordinal)
    if ordinal < Level.OFF or ordinal > Level.ALL:
        raise OutOfRangeLevel(ordinal)
    return Level(ordinal)


def level_name(ordinal: object) -> str:
    return LEVEL_NAMES[to_level(ordinal)]


def parse_level(value: object) -> Level:
    """Accept a Level, an ordinal, a digit string or a level name."""
    if isinstance(value, Level):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text.isdigit():
            return to_level(int(text))
        if text in LEVEL_NAMES:
            return Level(LEVEL_NAMES.index(text))
        raise OutOfRangeLevel(value)
    return to_level(value)
