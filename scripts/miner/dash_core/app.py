"""Live log-level and progress console for the mining node."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator

from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.text import Text

from dash_core.dispatch import Dashboard
from dash_core.errors import ConnectionClosed, DashError
from dash_core.keys import HELP, apply_key, split_keys
from dash_core.layout import select_layout_mode
from dash_core.levels import LEVEL_NAMES, descriptor_for, parse_level
from dash_core.models import PanelData, SettingsState
from dash_core.panels import empty_panel
from dash_core.panels.header import render as render_header
from dash_core.panels.progress import render as render_progress
from dash_core.panels.settings import render as render_settings
from dash_core.profiles import default_profile, resolve_profile
from dash_core.settings_panel import SettingsController
from dash_core.transport import (
    DISCONNECTED,
    FAILED,
    UNAVAILABLE,
    ConnectionManager,
    ReconnectPolicy,
    resolve_url,
    supervise,
)

logger = logging.getLogger(__name__)

PANEL_RENDERERS = {
    "settings": render_settings,
    "progress": render_progress,
}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_logging(level: str, log_file: str | None, live: bool = False) -> None:
    if live and not log_file:
        # the live screen owns the terminal
        logging.basicConfig(handlers=[logging.NullHandler()])
        return
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=LOG_FORMAT,
        filename=log_file,
    )


def _parse_assignments(items: list[str]) -> dict:
    values = {}
    for item in items:
        key, sep, level = item.partition("=")
        if not sep or not key.strip() or not level.strip():
            raise ValueError(f"expected KEY=LEVEL, got: {item}")
        descriptor = descriptor_for(key.strip())
        try:
            values[descriptor.key] = parse_level(level)
        except DashError as exc:
            raise ValueError(f"invalid level for {descriptor.key}: {level} ({', '.join(LEVEL_NAMES)})") from exc
    return values


def _build_dashboard(profile: dict) -> Dashboard:
    state = SettingsState.from_defaults(profile.get("levels"))
    controller = SettingsController(state=state, editable=bool(profile.get("editable", True)))
    return Dashboard(controller=controller)


def _render_core(data: dict[str, PanelData], profile: dict, width: int):
    mode = select_layout_mode(width)
    panels = profile.get("panels", [])

    body = []
    for panel_key in panels:
        renderer = PANEL_RENDERERS.get(panel_key)
        if renderer is None:
            continue
        body.append((panel_key, renderer(data[panel_key])))
    if not body:
        body.append(("empty", empty_panel("Panels", "All panels disabled")))

    header = None
    if "header" in panels:
        header = render_header(data["header"], profile["name"], mode)

    if mode == "stacked" or len(body) == 1:
        ordered = ([header] if header is not None else []) + [panel for _, panel in body]
        return Group(*ordered)

    layout = Layout()
    row = [Layout(panel, name=key, ratio=1) for key, panel in body]
    if header is None:
        layout.split_row(*row)
        return layout

    header_size = 4 if data["header"].errors else 3
    layout.split_column(
        Layout(header, name="header", size=header_size),
        Layout(name="body"),
    )
    layout["body"].split_row(*row)
    return layout


def _json_output(profile: dict, dashboard: Dashboard) -> str:
    payload = {
        "profile": profile["name"],
        "collected_at": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }
    for key, data in dashboard.panels().items():
        payload[key] = data.to_dict()
    return json.dumps(payload, indent=2)


async def _wait_for(predicate: Callable[[], bool], timeout: float, interval: float = 0.05) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() >= deadline:
            return False
        await asyncio.sleep(interval)
    return True


async def _collect_once(manager: ConnectionManager, dashboard: Dashboard, wait: float) -> None:
    """Connect, give the node ``wait`` seconds to sync, then disconnect."""
    dashboard.link.url = manager.url
    try:
        connection = await manager.connect(dashboard.handle_message)
    except ConnectionClosed as exc:
        dashboard.link.state = DISCONNECTED
        dashboard.link.last_error = str(exc)
        return
    dashboard.link.state = connection.state
    if connection.state == UNAVAILABLE:
        dashboard.link.last_error = "no websocket endpoint configured"
        return
    dashboard.on_connect(connection)
    reader = asyncio.ensure_future(connection.run())
    try:
        await _wait_for(lambda: dashboard.controller.confirmed or reader.done(), wait)
    finally:
        await manager.close()
        await asyncio.gather(reader, return_exceptions=True)
    dashboard.link.state = DISCONNECTED


async def _push_levels(manager: ConnectionManager, dashboard: Dashboard, values: dict, wait: float) -> bool:
    """Send one batched update and wait for the node to confirm it."""
    dashboard.link.url = manager.url
    try:
        connection = await manager.connect(dashboard.handle_message)
    except ConnectionClosed as exc:
        dashboard.link.last_error = str(exc)
        return False
    if connection.state == UNAVAILABLE:
        return False
    dashboard.on_connect(connection)
    controller = dashboard.controller
    reader = asyncio.ensure_future(connection.run())
    try:
        # let the node's initial sync land first so it cannot undo our edit
        await _wait_for(lambda: controller.confirmed or reader.done(), wait)
        controller.apply_local(values, force=True)
        controller.confirmed = False
        await connection.drain()
        return await _wait_for(lambda: controller.confirmed or reader.done(), wait) and controller.confirmed
    finally:
        await manager.close()
        await asyncio.gather(reader, return_exceptions=True)


@contextmanager
def _cbreak(fd: int) -> Iterator[bool]:
    """Disable canonical mode and echo so single keys arrive immediately.

    Uses termios non-canonical mode (ICANON/ECHO off, VMIN=0/VTIME=0) rather
    than raw mode so Rich Live's alternate screen keeps working over SSH.
    """
    try:
        import termios
    except ImportError:
        yield False
        return
    try:
        old_settings = termios.tcgetattr(fd)
    except termios.error:
        yield False
        return
    new = termios.tcgetattr(fd)
    new[3] &= ~(termios.ICANON | termios.ECHO)
    new[6][termios.VMIN] = 0
    new[6][termios.VTIME] = 0
    termios.tcsetattr(fd, termios.TCSADRAIN, new)
    try:
        yield True
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)


async def _run_live(console: Console, manager: ConnectionManager, dashboard: Dashboard, profile: dict, policy: ReconnectPolicy) -> int:
    loop = asyncio.get_running_loop()
    wake = asyncio.Event()
    stopping = False
    supervisor: asyncio.Task | None = None
    closing: set[asyncio.Task] = set()

    def on_message(raw: str) -> None:
        dashboard.handle_message(raw)
        wake.set()

    def supervisor_done(task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is None:
            return
        exc = task.exception()
        logger.error("link supervisor stopped", exc_info=exc)
        dashboard.link.state = FAILED
        dashboard.link.last_error = str(exc) or type(exc).__name__
        wake.set()

    def start_supervisor() -> None:
        nonlocal supervisor
        supervisor = loop.create_task(
            supervise(manager, on_message, policy, dashboard.link, on_connect=dashboard.on_connect)
        )
        supervisor.add_done_callback(supervisor_done)

    def reconnect() -> None:
        if supervisor is None or supervisor.done():
            start_supervisor()
        elif manager.connection is not None:
            # the supervisor notices the drop and reconnects
            task = loop.create_task(manager.connection.close())
            closing.add(task)
            task.add_done_callback(closing.discard)

    def on_input() -> None:
        nonlocal stopping
        try:
            text = os.read(fd, 64).decode("utf-8", errors="ignore")
        except OSError:
            return
        for key in split_keys(text):
            action = apply_key(dashboard, key)
            if action == "quit":
                stopping = True
            elif action == "reconnect":
                reconnect()
        wake.set()

    def build():
        data = dashboard.panels()
        footer = Text(HELP if dashboard.controller.editable else "r reconnect  q quit", style="dim")
        return Group(_render_core(data, profile, console.size.width), footer)

    fd = sys.stdin.fileno()
    start_supervisor()
    with _cbreak(fd) as has_keys:
        if has_keys:
            loop.add_reader(fd, on_input)
        try:
            with Live(build(), console=console, refresh_per_second=4, screen=True) as live:
                while not stopping:
                    try:
                        await asyncio.wait_for(wake.wait(), timeout=profile["refresh_seconds"])
                    except asyncio.TimeoutError:
                        pass
                    wake.clear()
                    live.update(build())
        finally:
            if has_keys:
                loop.remove_reader(fd)
            if supervisor is not None:
                supervisor.cancel()
                await asyncio.gather(supervisor, return_exceptions=True)
            await manager.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Mining node log level and progress console")
    parser.add_argument("-l", "--live", action="store_true", help="Run live console loop")
    parser.add_argument("--json", action="store_true", help="Emit JSON payload")
    parser.add_argument("--set", action="append", default=[], metavar="KEY=LEVEL", help="Push a level change (repeatable)")
    parser.add_argument("--profile", default=default_profile(), help="Profile name: operator|telemetry")
    parser.add_argument("--config", help="Optional JSON config file for profile overrides")
    parser.add_argument("--url", help="Node URL (http(s):// or ws(s)://)")
    parser.add_argument("--host", help="Node host[:port]; scheme follows --secure")
    parser.add_argument("--secure", action="store_true", default=None, help="Use wss:// with --host")
    parser.add_argument("--refresh", type=int, help="Refresh interval seconds override")
    parser.add_argument("--wait", type=float, default=2.0, help="Seconds to wait for the node to sync")
    parser.add_argument("--log-level", default="warning", help="Logging level")
    parser.add_argument("--log-file", help="Write logs to this file instead of stderr")
    args = parser.parse_args(argv)

    _configure_logging(args.log_level, args.log_file, live=args.live)

    try:
        profile = resolve_profile(args.profile, args.config)
        assignments = _parse_assignments(args.set)
        secure = profile["secure"] if args.secure is None else args.secure
        url = resolve_url(args.url or profile["url"], args.host or profile["host"], secure)
        policy = ReconnectPolicy(**profile["reconnect"])
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if args.refresh:
        profile["refresh_seconds"] = max(1, args.refresh)

    dashboard = _build_dashboard(profile)
    manager = ConnectionManager(url)
    console = Console()

    if assignments:
        if not dashboard.controller.editable:
            print(f"error: profile {profile['name']} is read-only", file=sys.stderr)
            return 2
        confirmed = asyncio.run(_push_levels(manager, dashboard, assignments, args.wait))
        if not confirmed:
            detail = dashboard.link.last_error or manager.url or "no endpoint"
            print(f"error: node did not confirm levels ({detail})", file=sys.stderr)
            return 1
        if not args.json and not args.live:
            console.print(render_settings(dashboard.collect_settings()))
            return 0

    if args.live:
        try:
            return asyncio.run(_run_live(console, manager, dashboard, profile, policy))
        except KeyboardInterrupt:
            return 0

    if not assignments:
        asyncio.run(_collect_once(manager, dashboard, args.wait))

    if args.json:
        print(_json_output(profile, dashboard))
        return 0

    console.print(_render_core(dashboard.panels(), profile, console.size.width))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
