"""Panel rendering helpers."""

from __future__ import annotations

from rich.console import RenderableType
from rich.panel import Panel
from rich.text import Text

from dash_core.models import PanelData

STATUS_BORDER = {
    "ok": "green",
    "warn": "yellow",
    "error": "red",
}


def border_for(status: str) -> str:
    return STATUS_BORDER.get(status, "cyan")


def error_suffix(data: PanelData) -> str:
    if not data.errors:
        return ""
    return f" ({'; '.join(data.errors[:1])})"


def empty_panel(title: str, message: str = "No data") -> Panel:
    return Panel(Text(message, style="dim"), title=f"[bold]{title}[/bold]", border_style="cyan")


def panel_for(data: PanelData, body: RenderableType, detail: str = "", show_errors: bool = True) -> Panel:
    title = Text(f"{data.title}{detail}", style="bold")
    if show_errors and data.errors:
        title.append(error_suffix(data), style="dim")
    return Panel(body, title=title, border_style=border_for(data.status))
