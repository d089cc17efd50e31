"""Error taxonomy for the dashboard channel."""

from __future__ import annotations


class DashError(Exception):
    pass


class TransportUnavailable(DashError):
    """No live-socket endpoint is available; the console runs connectionless."""


class ConnectionClosed(DashError):
    """The connection dropped or never opened; only an explicit connect recovers."""


class OutOfRangeLevel(DashError, ValueError):
    def __init__(self, value: object):
        super().__init__(f"level out of range: {value!r}")
        self.value = value


class IncompleteSettings(DashError, ValueError):
    def __init__(self, missing: list[str], unknown: list[str] | None = None):
        parts = []
        if missing:
            parts.append(f"missing subsystems: {', '.join(missing)}")
        if unknown:
            parts.append(f"unknown subsystems: {', '.join(unknown)}")
        super().__init__("; ".join(parts) or "incomplete settings")
        self.missing = missing
        self.unknown = unknown or []


class ProtocolError(DashError, ValueError):
    pass
