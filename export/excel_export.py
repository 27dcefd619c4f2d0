"""Excel-Export für Wochenplan und Solicitud (openpyxl)."""

from pathlib import Path
from typing import Optional

from config.schema import PortalConfig
from engine.credits import CreditSummary
from engine.ledger import ScheduleItem
from models.portal_data import PortalData
from models.request import ModificationRequest

from export.helpers import (
    COLORS, build_hour_grid, course_color, format_item, hour_label, today_str,
)


class ExcelExporter:
    """Exportiert den kombinierten Wochenplan und optional eine Solicitud.

    Sheets: "Horario" (Raster), "Asignaturas" (Liste mit Credits),
    "Solicitud" (nur wenn eine Solicitud übergeben wird).
    """

    # Spaltenbreiten (Excel-Einheiten)
    COL_ZEIT_W = 14
    COL_DAY_W  = 20

    # Zeilenhöhen (Punkte)
    ROW_HEADER_H = 22
    ROW_HOUR_H   = 42

    def __init__(
        self,
        items: list[ScheduleItem],
        data: PortalData,
        config: PortalConfig,
        credits: Optional[CreditSummary] = None,
        request: Optional[ModificationRequest] = None,
    ):
        self.items   = items
        self.data    = data
        self.config  = config
        self.grid    = config.schedule_grid
        self.credits = credits
        self.request = request

    # ─── Öffentliche API ──────────────────────────────────────────────────────

    def export(self, output_path: Path) -> None:
        """Erstellt die Excel-Datei mit allen Sheets."""
        from openpyxl import Workbook
        wb = Workbook()
        wb.remove(wb.active)   # Leeres Standard-Sheet entfernen

        self._sheet_horario(wb)
        self._sheet_asignaturas(wb)
        if self.request is not None:
            self._sheet_solicitud(wb)

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        wb.save(output_path)

    # ─── Style-Helpers ────────────────────────────────────────────────────────

    def _fill(self, hex_color: str):
        from openpyxl.styles import PatternFill
        return PatternFill(start_color=hex_color, end_color=hex_color, fill_type="solid")

    def _center_align(self, wrap: bool = True):
        from openpyxl.styles import Alignment
        return Alignment(wrap_text=wrap, horizontal="center", vertical="center")

    def _thin_border(self):
        from openpyxl.styles import Border, Side
        s = Side(border_style="thin", color="BBBBBB")
        return Border(left=s, right=s, top=s, bottom=s)

    def _write_headers(self, ws, row: int, headers: list[str]) -> None:
        from openpyxl.styles import Font
        fill = self._fill(COLORS["header"])
        border = self._thin_border()
        for col, text in enumerate(headers, 1):
            cell = ws.cell(row=row, column=col, value=text)
            cell.fill = fill
            cell.font = Font(bold=True, color="FFFFFF", size=10)
            cell.alignment = self._center_align(wrap=False)
            cell.border = border
        ws.row_dimensions[row].height = self.ROW_HEADER_H

    # ─── Sheet: Horario ───────────────────────────────────────────────────────

    def _sheet_horario(self, wb) -> None:
        from openpyxl.styles import Font
        from openpyxl.utils import get_column_letter

        ws = wb.create_sheet(title="Horario")
        ws.column_dimensions["A"].width = self.COL_ZEIT_W
        for col in range(2, 2 + len(self.grid.days)):
            ws.column_dimensions[get_column_letter(col)].width = self.COL_DAY_W

        self._write_headers(ws, 1, ["Hora"] + [d.value.capitalize() for d in self.grid.days])

        cells = build_hour_grid(self.items, self.grid)
        border = self._thin_border()
        for offset, hour in enumerate(self.grid.hours):
            excel_row = 2 + offset
            c = ws.cell(row=excel_row, column=1, value=hour_label(hour))
            c.alignment = self._center_align(wrap=False)
            c.border = border
            c.font = Font(size=8)

            for col, day in enumerate(self.grid.days, 2):
                here = cells.get((day, hour), [])
                if not here:
                    color = COLORS["free"]
                    content = ""
                elif len(here) > 1:
                    color = COLORS["conflict"]
                    content = " / ".join(i.course_code for i in here)
                else:
                    color = course_color(here[0].course_code)
                    content = format_item(here[0])
                c = ws.cell(row=excel_row, column=col, value=content)
                c.fill = self._fill(color)
                c.alignment = self._center_align()
                c.border = border
                c.font = Font(size=8, bold=bool(here) and here[0].source == "added")
            ws.row_dimensions[excel_row].height = self.ROW_HOUR_H

    # ─── Sheet: Asignaturas ───────────────────────────────────────────────────

    def _sheet_asignaturas(self, wb) -> None:
        from openpyxl.styles import Font

        ws = wb.create_sheet(title="Asignaturas")
        row = 1
        ws.cell(row=row, column=1, value=self.config.portal_name).font = Font(bold=True, size=14)
        row += 1
        ws.cell(row=row, column=1, value=f"Student: {self.data.student_id}")
        ws.cell(row=row, column=3, value=f"Periodo: {self.data.term}")
        ws.cell(row=row, column=5, value=f"Erstellt: {today_str()}")
        row += 2

        self._write_headers(ws, row, ["Código", "Asignatura", "Grupo", "Docente", "Créditos", "Estado"])
        row += 1
        border = self._thin_border()
        for item in sorted(self.items, key=lambda i: (i.source, i.course_code)):
            values = [
                item.course_code, item.course_name, item.section_code,
                item.instructor or "", item.credits,
                "matriculada" if item.source == "enrolled" else "agregar",
            ]
            for col, value in enumerate(values, 1):
                c = ws.cell(row=row, column=col, value=value)
                c.border = border
                if item.source == "added":
                    c.fill = self._fill(COLORS["added"])
            row += 1

        if self.credits is not None:
            row += 1
            ws.cell(row=row, column=1, value="Créditos:").font = Font(bold=True)
            ws.cell(row=row, column=2, value=self.credits.label())
            ws.cell(row=row, column=4, value="Disponibles:").font = Font(bold=True)
            ws.cell(row=row, column=5, value=self.credits.remaining)

        for letter, width in zip("ABCDEF", (10, 32, 12, 24, 9, 12)):
            ws.column_dimensions[letter].width = width

    # ─── Sheet: Solicitud ─────────────────────────────────────────────────────

    def _sheet_solicitud(self, wb) -> None:
        from openpyxl.styles import Font

        req = self.request
        ws = wb.create_sheet(title="Solicitud")
        row = 1
        ws.cell(row=row, column=1, value=f"Solicitud #{req.id}").font = Font(bold=True, size=13)
        row += 1
        ws.cell(row=row, column=1, value=f"Estado: {req.state.value}")
        if req.submitted_at:
            ws.cell(row=row, column=3, value=f"Enviada: {req.submitted_at:%d.%m.%Y %H:%M}")
        if req.resolved_at:
            ws.cell(row=row, column=5, value=f"Resuelta: {req.resolved_at:%d.%m.%Y %H:%M}")
        row += 1
        if req.observation:
            ws.cell(row=row, column=1, value=f"Observación: {req.observation}")
            row += 1
        row += 1

        self._write_headers(ws, row, ["Acción", "Código", "Asignatura", "Grupo", "Créditos", "Horario"])
        row += 1
        border = self._thin_border()
        lines = [
            ("agregar", s.course_code, s.course_name, s.section_code, s.credits, s.time_blocks)
            for s in req.sections_to_add
        ] + [
            ("retirar", d.course_code, d.course_name, d.section_code, -d.credits, d.time_blocks)
            for d in req.entries_to_drop
        ]
        for action, code, name, section, credits, blocks in lines:
            values = [action, code, name, section, credits, ", ".join(b.label() for b in blocks)]
            for col, value in enumerate(values, 1):
                c = ws.cell(row=row, column=col, value=value)
                c.border = border
                c.fill = self._fill(COLORS["added"] if action == "agregar" else COLORS["dropped"])
            row += 1

        row += 1
        ws.cell(row=row, column=1, value="Δ Créditos:").font = Font(bold=True)
        ws.cell(row=row, column=2, value=req.credit_delta)

        for letter, width in zip("ABCDEF", (10, 10, 32, 12, 9, 48)):
            ws.column_dimensions[letter].width = width
