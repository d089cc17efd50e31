"""Header renderer."""

from __future__ import annotations

from rich.panel import Panel
from rich.text import Text

from dash_core.models import PanelData
from dash_core.panels import panel_for


def render(data: PanelData, profile_name: str, layout_mode: str) -> Panel:
    fields = [("Profile", profile_name)]
    fields += [(str(item["label"]), str(item["value"])) for item in data.items]
    fields.append(("Layout", layout_mode))

    text = Text()
    for index, (label, value) in enumerate(fields):
        if index:
            text.append("   ")
        text.append(f"{label}: ")
        text.append(value, style="bold")
    if data.errors:
        text.append(f"\n{data.errors[0]}", style="dim")
    return panel_for(data, text, show_errors=False)
