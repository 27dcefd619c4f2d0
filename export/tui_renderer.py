"""Renderer für die Terminal-Anzeige des Wochenplans (Rich)."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from config.schema import ScheduleGridConfig
    from engine.ledger import ScheduleItem


def render_schedule_rows(
    items: list["ScheduleItem"], grid: "ScheduleGridConfig"
) -> list[list[str]]:
    """Gibt Tabellenzeilen für den Wochenplan zurück.

    Jede Zeile: [zeit_label, Tag1, Tag2, ...]. Konflikte werden mit '⚠'
    markiert, vorgemerkte Grupos mit '+'.
    """
    from export.helpers import build_hour_grid, format_item, hour_label

    cells = build_hour_grid(items, grid)
    rows: list[list[str]] = []
    for hour in grid.hours:
        row = [hour_label(hour)]
        for day in grid.days:
            here = cells.get((day, hour), [])
            if not here:
                row.append("—")
            elif len(here) > 1:
                row.append("⚠ " + " / ".join(i.course_code for i in here))
            else:
                row.append(format_item(here[0], with_instructor=False))
        rows.append(row)
    return rows


def print_schedule(
    items: list["ScheduleItem"], grid: "ScheduleGridConfig", title: str = "Horario"
) -> None:
    """Gibt den Wochenplan als Rich-Tabelle aus (leere Randstunden werden gekürzt)."""
    from rich.console import Console
    from rich.table import Table
    from rich import box
    from export.helpers import course_color, hidden_blocks

    rows = render_schedule_rows(items, grid)
    used = [i for i, r in enumerate(rows) if any(c != "—" for c in r[1:])]
    if used:
        rows = rows[used[0]: used[-1] + 1]

    console = Console()
    table = Table(title=title, box=box.ROUNDED, show_lines=True)
    table.add_column("Zeit", style="dim", no_wrap=True)
    for day in grid.days:
        table.add_column(day.short_name, justify="center")

    for row in rows:
        styled = [row[0]]
        for cell in row[1:]:
            if cell.startswith("⚠"):
                styled.append(f"[bold red]{cell}[/bold red]")
            elif cell == "—":
                styled.append("[dim]—[/dim]")
            else:
                code = cell.split("\n")[0].lstrip("+ ")
                styled.append(f"[#{course_color(code)}]{cell}[/]")
        table.add_row(*styled)

    console.print(table)
    for label in hidden_blocks(items, grid):
        console.print(f"[yellow]Außerhalb des Rasters:[/yellow] {label}")
