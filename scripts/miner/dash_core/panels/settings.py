"""Log level selector panel renderer."""

from __future__ import annotations

from rich.table import Table
from rich.text import Text

from dash_core.formatting import level_gauge, level_style
from dash_core.models import PanelData
from dash_core.panels import panel_for


def render(data: PanelData):
    table = Table(box=None, expand=True)
    table.add_column("", width=1, no_wrap=True)
    table.add_column("Subsystem", no_wrap=True)
    table.add_column("Level", no_wrap=True)
    table.add_column("", no_wrap=True)

    for item in data.items:
        ordinal = int(item.get("ordinal", 0))
        marker = ">" if item.get("focused") else " "
        name = Text(str(item.get("name", "-")), style="bold" if item.get("focused") else "")
        table.add_row(
            marker,
            name,
            Text(str(item.get("level", "-")), style=level_style(ordinal)),
            Text(level_gauge(ordinal), style="dim"),
        )

    return panel_for(data, table)
