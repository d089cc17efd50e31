"""Progress panel renderer."""

from __future__ import annotations

from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from dash_core.models import PanelData
from dash_core.panels import panel_for


def render(data: PanelData):
    table = Table(box=None, expand=True)
    table.add_column("Operation", no_wrap=True)
    table.add_column("Progress", ratio=1)
    table.add_column("%", justify="right", no_wrap=True)
    table.add_column("Label", no_wrap=True)

    if not data.items:
        table.add_row("-", Text("No telemetry", style="dim"), "", "")
    else:
        for item in data.items:
            value = int(item.get("value", 0))
            active = bool(item.get("active"))
            bar = ProgressBar(
                total=100,
                completed=value,
                complete_style="yellow" if active else "green",
                finished_style="green",
            )
            table.add_row(
                str(item.get("id", "-")),
                bar,
                f"{value}%",
                Text(str(item.get("label", "")), style="bold" if item.get("label") else "dim"),
            )

    active = data.meta.get("active", 0)
    return panel_for(data, table, detail=f" ({active} active)", show_errors=False)
