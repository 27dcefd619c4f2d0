"""Gemeinsame Hilfsfunktionen für Terminal-, Excel- und PDF-Export."""

from collections import defaultdict
from datetime import date

from config.schema import ScheduleGridConfig
from engine.ledger import ScheduleItem
from models.timeblock import TimeBlock, Weekday

# ─── Farbpalette (RRGGBB, ohne #) ─────────────────────────────────────────────

# Asignatura-Farben, Auswahl über course_color()
COURSE_PALETTE: list[str] = [
    "FF6B6B", "4ECDC4", "45B7D1", "FFA07A", "98D8C8",
    "F7DC6F", "BB8FCE", "85C1E2", "F8B739", "52BE80",
]

COLORS: dict[str, str] = {
    "header":   "4472C4",
    "free":     "F5F5F5",
    "added":    "C6EFCE",   # vorgemerkter Grupo
    "dropped":  "FFC7CE",   # zurückgezogene Matrícula
    "conflict": "FF9999",
}


def hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    """Wandelt RRGGBB-String in (r, g, b)-Tupel um."""
    h = hex_color.lstrip("#")
    return int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)


def today_str() -> str:
    """Gibt das heutige Datum als DD.MM.YYYY zurück."""
    return date.today().strftime("%d.%m.%Y")


# ─── Asignatura-Farbe ─────────────────────────────────────────────────────────

def course_color(course_code: str) -> str:
    """Stabile Farbe je Asignatura-Code (Summe der Zeichencodes modulo Palette)."""
    return COURSE_PALETTE[sum(ord(c) for c in course_code) % len(COURSE_PALETTE)]


# ─── Wochenraster ─────────────────────────────────────────────────────────────

def hour_label(hour: int) -> str:
    return f"{hour:02d}:00–{hour + 1:02d}:00"


def block_covers_hour(block: TimeBlock, hour: int) -> bool:
    """True wenn der Block einen Teil der Stunde [hour:00, hour+1:00) belegt."""
    return block.start_minutes < (hour + 1) * 60 and block.end_minutes > hour * 60


def build_hour_grid(
    items: list[ScheduleItem], grid: ScheduleGridConfig
) -> dict[tuple[Weekday, int], list[ScheduleItem]]:
    """Baut {(tag, stunde): [items]} für die konfigurierten Tage und Stunden.

    Mehr als ein Item pro Zelle bedeutet Zeitkonflikt.
    """
    cells: dict[tuple[Weekday, int], list[ScheduleItem]] = defaultdict(list)
    days = set(grid.days)
    for item in items:
        for block in item.time_blocks:
            if block.day not in days:
                continue
            for hour in grid.hours:
                if block_covers_hour(block, hour) and item not in cells[(block.day, hour)]:
                    cells[(block.day, hour)].append(item)
    return cells


def hidden_blocks(items: list[ScheduleItem], grid: ScheduleGridConfig) -> list[str]:
    """Blöcke außerhalb des Rasters (z.B. Sonntag oder vor first_hour)."""
    out = []
    for item in items:
        for block in item.time_blocks:
            if block.day not in grid.days or not any(
                block_covers_hour(block, h) for h in grid.hours
            ):
                out.append(f"{item.course_code}: {block.label()}")
    return out


def format_item(item: ScheduleItem, with_instructor: bool = True) -> str:
    """Zellentext: Code, Grupo und optional Docente."""
    lines = [item.course_code, item.section_code]
    if with_instructor and item.instructor:
        lines.append(item.instructor)
    if item.source == "added":
        lines[0] = f"+ {lines[0]}"
    return "\n".join(lines)
