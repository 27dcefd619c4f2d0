"""PDF-Export für Solicitud-Beleg und Wochenplan (fpdf2)."""

from pathlib import Path
from typing import Optional

from config.schema import PortalConfig
from engine.credits import CreditSummary
from engine.ledger import ScheduleItem
from models.portal_data import PortalData
from models.request import ModificationRequest

from export.helpers import (
    COLORS, hex_to_rgb, build_hour_grid, course_color, format_item, today_str,
)


def _pdf_safe(text: str) -> str:
    """Ersetzt nicht-latin-1-fähige Zeichen für fpdf2-Built-in-Fonts."""
    text = (
        text
        .replace("—", " - ")   # em dash
        .replace("–", "-")      # en dash
        .replace("─", "-")      # BOX DRAWINGS LIGHT HORIZONTAL
        .replace("→", "->")     # Pfeil
    )
    return text.encode("latin-1", errors="replace").decode("latin-1")


# ─── A4-Querformat-Dimensionen ────────────────────────────────────────────────
# Landscape A4: 297 × 210 mm
# Nutzbare Breite (Margin 10 links+rechts): 277 mm
# Spalten: Zeit(25) + 6×Tag(42) = 25 + 252 = 277 mm

_COLS = {
    "zeit": 25,
    "day":  42,    # pro Wochentag (bei 6 Tagen)
}
_ROW_HEADER_H = 7    # mm
_ROW_HOUR_H   = 9    # mm
_ROW_LINE_H   = 6    # mm (Beleg-Tabelle)
_FONT_HEADER  = 8    # pt
_FONT_CONTENT = 7    # pt
_FONT_TINY    = 6    # pt
_LINE_H       = 3.2  # mm pro Zeile bei 7pt


class _PortalPdf:
    """Interner Wrapper um fpdf.FPDF für Beleg- und Plan-Seiten."""

    def __init__(self, portal_name: str):
        from fpdf import FPDF

        class _Pdf(FPDF):
            def __init__(inner, pn):
                super().__init__(orientation="L", unit="mm", format="A4")
                inner._portal_name = pn
                inner._page_title = ""
                inner.alias_nb_pages()
                inner.set_auto_page_break(auto=True, margin=18)
                inner.set_margins(left=10, top=22, right=10)

            def header(inner):
                inner.set_font("Helvetica", "B", 11)
                inner.set_xy(10, 8)
                inner.cell(130, 7, _pdf_safe(inner._portal_name), border=0, align="L")
                inner.cell(0,   7, _pdf_safe(inner._page_title), border=0, align="R")
                inner.ln(0)
                inner.set_draw_color(150, 150, 150)
                inner.line(10, 18, inner.w - 10, 18)

            def footer(inner):
                inner.set_y(-14)
                inner.set_font("Helvetica", "I", 7)
                inner.cell(
                    0, 8,
                    f"{today_str()}  |  Seite {inner.page_no()}/{{nb}}",
                    border=0, align="C",
                )

        self._pdf = _Pdf(portal_name)

    def set_title(self, title: str) -> None:
        self._pdf._page_title = title

    def add_page(self) -> None:
        self._pdf.add_page()

    def save(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._pdf.output(str(path))

    def text_line(self, y: float, text: str, bold: bool = False, size: int = 10) -> float:
        pdf = self._pdf
        pdf.set_font("Helvetica", "B" if bold else "", size)
        pdf.set_xy(10, y)
        pdf.cell(0, 6, _pdf_safe(text), border=0, align="L")
        return y + 6

    # ─── Zellen-Zeichnung ─────────────────────────────────────────────────────

    def draw_cell(
        self,
        x: float, y: float,
        w: float, h: float,
        text: str = "",
        bg_hex: Optional[str] = None,
        bold: bool = False,
        font_size: int = _FONT_CONTENT,
        text_color: tuple[int, int, int] = (0, 0, 0),
        align: str = "C",
        max_lines: int = 2,
    ) -> None:
        """Zeichnet eine Zelle mit Hintergrund, Rand und zentriertem Text."""
        pdf = self._pdf

        if bg_hex:
            r, g, b = hex_to_rgb(bg_hex)
            pdf.set_fill_color(r, g, b)
            pdf.rect(x, y, w, h, style="F")

        pdf.set_draw_color(180, 180, 180)
        pdf.rect(x, y, w, h, style="D")

        if text:
            pdf.set_font("Helvetica", "B" if bold else "", font_size)
            pdf.set_text_color(*text_color)

            lines = [ln for ln in _pdf_safe(text).split("\n") if ln][:max_lines]
            total_text_h = len(lines) * _LINE_H
            y_text = y + max(0.5, (h - total_text_h) / 2)
            max_chars = max(4, int(w / 1.6))

            for line in lines:
                pdf.set_xy(x, y_text)
                pdf.cell(w, _LINE_H, line[:max_chars], border=0, align=align)
                y_text += _LINE_H

            pdf.set_text_color(0, 0, 0)

    def draw_header_row(self, x: float, y: float, cols: list[tuple[str, float]]) -> float:
        """Zeichnet eine Kopfzeile und gibt die Y-Position danach zurück."""
        cx = x
        for label, w in cols:
            self.draw_cell(
                cx, y, w, _ROW_HEADER_H, label,
                bg_hex=COLORS["header"],
                bold=True,
                font_size=_FONT_HEADER,
                text_color=(255, 255, 255),
            )
            cx += w
        return y + _ROW_HEADER_H


class PdfExporter:
    """Exportiert Solicitud-Beleg und Wochenplan in eine PDF-Datei."""

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
        self._day_w = min(_COLS["day"], (277 - _COLS["zeit"]) / len(self.grid.days))

    # ─── Öffentliche API ──────────────────────────────────────────────────────

    def export(self, output_path: Path) -> None:
        """Beleg-Seite (falls Solicitud vorhanden) + Wochenplan-Seite."""
        pdf = _PortalPdf(self.config.portal_name)
        if self.request is not None:
            pdf.set_title(f"Solicitud #{self.request.id} - {self.data.student_id}")
            pdf.add_page()
            self._draw_receipt(pdf)
        title = f"Horario {self.data.term} - {self.data.student_id}"
        if self.credits is not None:
            title += f" | {self.credits.label()}"
        pdf.set_title(title)
        pdf.add_page()
        self._draw_schedule(pdf)
        pdf.save(output_path)

    # ─── Beleg ────────────────────────────────────────────────────────────────

    def _draw_receipt(self, pdf: _PortalPdf) -> None:
        req = self.request
        y = 24.0
        y = pdf.text_line(y, f"Solicitud de modificación #{req.id}", bold=True, size=13)
        y = pdf.text_line(y, f"Estudiante: {req.student_id}    Periodo: {self.data.term}")
        status = f"Estado: {req.state.value}"
        if req.submitted_at:
            status += f"    Enviada: {req.submitted_at:%d.%m.%Y %H:%M}"
        if req.resolved_at:
            status += f"    Resuelta: {req.resolved_at:%d.%m.%Y %H:%M}"
        y = pdf.text_line(y, status)
        if req.observation:
            y = pdf.text_line(y, f"Observación: {req.observation}")
        y += 4

        cols = [("Acción", 22), ("Código", 22), ("Asignatura", 70),
                ("Grupo", 26), ("Créditos", 18), ("Horario", 119)]
        y = pdf.draw_header_row(10, y, cols)

        lines = [
            ("agregar", s.course_code, s.course_name, s.section_code,
             f"+{s.credits}", s.time_blocks, COLORS["added"])
            for s in req.sections_to_add
        ] + [
            ("retirar", d.course_code, d.course_name, d.section_code,
             f"-{d.credits}", d.time_blocks, COLORS["dropped"])
            for d in req.entries_to_drop
        ]
        for action, code, name, section, credits, blocks, color in lines:
            values = [action, code, name, section, credits, ", ".join(b.label() for b in blocks)]
            x = 10.0
            for (_, w), value in zip(cols, values):
                pdf.draw_cell(x, y, w, _ROW_LINE_H, value, bg_hex=color, align="L", max_lines=1)
                x += w
            y += _ROW_LINE_H

        y += 4
        pdf.text_line(y, f"Cambio de créditos: {req.credit_delta:+d}", bold=True)

    # ─── Wochenplan ───────────────────────────────────────────────────────────

    def _draw_schedule(self, pdf: _PortalPdf) -> None:
        cells = build_hour_grid(self.items, self.grid)
        x = 10.0
        y = 22.0

        cols = [("Hora", _COLS["zeit"])] + [
            (d.value.capitalize(), self._day_w) for d in self.grid.days
        ]
        y = pdf.draw_header_row(x, y, cols)

        for hour in self.grid.hours:
            pdf.draw_cell(
                x, y, _COLS["zeit"], _ROW_HOUR_H,
                f"{hour:02d}:00 - {hour + 1:02d}:00",
                font_size=_FONT_TINY,
            )
            cx = x + _COLS["zeit"]
            for day in self.grid.days:
                here = cells.get((day, hour), [])
                if not here:
                    pdf.draw_cell(cx, y, self._day_w, _ROW_HOUR_H, bg_hex=COLORS["free"])
                elif len(here) > 1:
                    pdf.draw_cell(
                        cx, y, self._day_w, _ROW_HOUR_H,
                        "Konflikt\n" + " / ".join(i.course_code for i in here),
                        bg_hex=COLORS["conflict"], bold=True,
                    )
                else:
                    pdf.draw_cell(
                        cx, y, self._day_w, _ROW_HOUR_H,
                        format_item(here[0], with_instructor=False),
                        bg_hex=course_color(here[0].course_code),
                        bold=here[0].source == "added",
                    )
                cx += self._day_w
            y += _ROW_HOUR_H
