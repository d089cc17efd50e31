"""Single inbound dispatcher and panel data collection."""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Callable

from dash_core.errors import DashError, ProtocolError
from dash_core.formatting import compact_relative_age, link_status
from dash_core.levels import LEVEL_NAMES
from dash_core.models import PanelData, ProgressEvent
from dash_core.progress import ProgressBoard
from dash_core.protocol import SETTINGS_UPDATE, decode
from dash_core.settings_panel import SettingsController
from dash_core.transport import LinkStatus

logger = logging.getLogger(__name__)

MAX_ERRORS = 5


class Dashboard:
    def __init__(
        self,
        controller: SettingsController | None = None,
        board: ProgressBoard | None = None,
        link: LinkStatus | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.controller = controller or SettingsController()
        self.board = board or ProgressBoard()
        self.link = link or LinkStatus()
        self.clock = clock
        self.received = 0
        self.rejected = 0
        self.errors: deque[str] = deque(maxlen=MAX_ERRORS)
        self.last_message_at: float | None = None

    def handle_message(self, raw: str) -> None:
        """Route one raw frame; bad frames are logged and counted, never raised."""
        self.received += 1
        self.last_message_at = self.clock()
        try:
            message = decode(raw)
            if isinstance(message, ProgressEvent):
                self.board.apply(message)
            elif message.type == SETTINGS_UPDATE:
                raise ProtocolError("node sent a client-only settings_update")
            else:
                self.controller.apply_authoritative(message.values, message.version)
        except DashError as exc:
            self.rejected += 1
            self.errors.append(str(exc))
            logger.warning("rejected message: %s", exc)

    def on_connect(self, connection) -> None:
        self.controller.attach(connection.post)
        self.controller.confirmed = False
        self.controller.resync()

    def collect_header(self) -> PanelData:
        age = None
        if self.last_message_at is not None:
            age = self.clock() - self.last_message_at
        items = [
            {"label": "Link", "value": self.link.state},
            {"label": "Endpoint", "value": self.link.url or "none"},
            {"label": "Last message", "value": compact_relative_age(age)},
        ]
        if self.link.attempts:
            items.append({"label": "Retries", "value": str(self.link.attempts)})
        return PanelData(
            key="header",
            title="Miner Dashboard",
            status=link_status(self.link.state),
            items=items,
            meta={
                "received": self.received,
                "rejected": self.rejected,
                "attempts": self.link.attempts,
            },
            errors=[self.link.last_error] if self.link.last_error else [],
        )

    def collect_settings(self) -> PanelData:
        controller = self.controller
        focused = controller.focused_key
        items = [
            {
                "key": key,
                "name": handle.label,
                "level": LEVEL_NAMES[handle.value],
                "ordinal": int(handle.value),
                "focused": controller.editable and key == focused,
            }
            for key, handle in controller.handles.items()
        ]
        errors = list(self.errors)
        if not controller.confirmed:
            errors.append("levels not confirmed by node")
        status = "ok"
        if self.errors:
            status = "error"
        elif not controller.confirmed:
            status = "warn"
        return PanelData(
            key="settings",
            title="Log Levels",
            status=status,
            items=items,
            meta={
                "version": controller.state.version,
                "sent_version": controller.sent_version,
                "editable": controller.editable,
            },
            errors=errors,
        )

    def collect_progress(self) -> PanelData:
        items = [bar.to_dict() for bar in self.board.bars.values()]
        return PanelData(
            key="progress",
            title="Progress",
            status="ok" if items else "warn",
            items=items,
            meta={
                "active": sum(1 for item in items if item["active"]),
            },
            errors=[] if items else ["no telemetry yet"],
        )

    def panels(self) -> dict[str, PanelData]:
        return {
            "header": self.collect_header(),
            "settings": self.collect_settings(),
            "progress": self.collect_progress(),
        }
