"""PortalData: Vollständiger Datensatz eines Studenten für einen Periodo + Konsistenz-Check."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from models.course import Course, CourseState
from models.section import Section
from models.enrollment import EnrollmentEntry


class ConsistencyReport(BaseModel):
    """Ergebnis des Konsistenz-Checks."""

    is_consistent: bool
    errors: list[str]      # Datensatz unbrauchbar (z.B. verwaiste Referenzen)
    warnings: list[str]    # Auffälligkeiten, Bearbeitung trotzdem möglich

    def print_rich(self) -> None:
        """Gibt den Report formatiert über Rich aus."""
        from rich.console import Console
        from rich.panel import Panel

        console = Console()
        if self.is_consistent:
            status = "[bold green]✓ KONSISTENT[/bold green]"
        else:
            status = "[bold red]✗ INKONSISTENT[/bold red]"

        lines = [status]
        if self.errors:
            lines.append("\n[red bold]Fehler:[/red bold]")
            for e in self.errors:
                lines.append(f"  [red]• {e}[/red]")
        if self.warnings:
            lines.append("\n[yellow bold]Warnungen:[/yellow bold]")
            for w in self.warnings:
                lines.append(f"  [yellow]• {w}[/yellow]")
        if not self.errors and not self.warnings:
            lines.append("[dim]Keine Probleme gefunden.[/dim]")

        console.print(Panel("\n".join(lines), title="Konsistenz-Check", border_style="cyan"))


class PortalData(BaseModel):
    """Alles, was das Backend für einen Studenten und Periodo liefert.

    Angebot (Asignaturas + Grupos), aktuelle Matrículas, Credit-Obergrenze
    und die beiden Gates für Inscripción und Modificación.
    """

    student_id: str
    term: str                                  # "2025-1"
    credit_ceiling: int = Field(ge=0)
    enrollment_open: bool = False
    modification_open: bool = False
    gate_reason: Optional[str] = None          # Begründung bei geschlossenem Gate
    courses: list[Course] = []
    sections: list[Section] = []
    entries: list[EnrollmentEntry] = []
    fetched_at: Optional[datetime] = None
    data_version: str = "1.0"

    # ─── Übersicht ───

    @property
    def enrolled_credits(self) -> int:
        return sum(e.credits for e in self.entries)

    def summary(self) -> str:
        """Kurze Übersicht über den Datensatz."""
        mandatory = sum(1 for c in self.courses if c.state == CourseState.MANDATORY_REPEAT)
        full = sum(1 for s in self.sections if not s.has_seats)
        lines = [
            f"Student: {self.student_id}",
            f"Periodo: {self.term}",
            f"Asignaturas im Angebot: {len(self.courses)}"
            + (f" ({mandatory} obligatoria_repeticion)" if mandatory else ""),
            f"Grupos: {len(self.sections)}" + (f" ({full} ohne Cupo)" if full else ""),
            f"Matrículas: {len(self.entries)} ({self.enrolled_credits} Credits)",
            f"Credit-Obergrenze: {self.credit_ceiling}",
            f"Inscripción: {'offen' if self.enrollment_open else 'geschlossen'}",
            f"Modificación: {'offen' if self.modification_open else 'geschlossen'}",
            f"Hinweis: {self.gate_reason}" if self.gate_reason else "",
        ]
        return "\n".join(l for l in lines if l)

    # ─── Konsistenz-Check ───

    def check_consistency(self) -> ConsistencyReport:
        """Prüft den Datensatz auf strukturelle Fehler.

        Prüfungen:
        1. Eindeutige IDs für Asignaturas, Grupos und Matrículas
        2. Jeder Grupo verweist auf eine bekannte Asignatura
        3. Matrículas mit Grupos im Angebot: Asignatura stimmt überein
        4. Aktuelle Credits ≤ Obergrenze
        5. Obligatoria_repeticion ohne Grupo mit Cupo (Warnung)
        """
        errors: list[str] = []
        warnings: list[str] = []

        for label, ids in (
            ("Asignatura", [c.id for c in self.courses]),
            ("Grupo", [s.id for s in self.sections]),
            ("Matrícula", [e.history_id for e in self.entries]),
        ):
            seen: set[int] = set()
            for i in ids:
                if i in seen:
                    errors.append(f"{label} {i}: ID mehrfach vergeben.")
                seen.add(i)

        course_ids = {c.id for c in self.courses}
        for section in self.sections:
            if section.course_id not in course_ids:
                errors.append(
                    f"Grupo {section.code}: unbekannte Asignatura {section.course_id}."
                )

        section_map = {s.id: s for s in self.sections}
        for entry in self.entries:
            section = section_map.get(entry.section_id)
            if section is not None and section.course_id != entry.course_id:
                errors.append(
                    f"Matrícula {entry.history_id}: Grupo {section.code} gehört zu "
                    f"Asignatura {section.course_id}, nicht {entry.course_id}."
                )
            if section is None and not entry.time_blocks:
                warnings.append(
                    f"Matrícula {entry.history_id} ({entry.course_code}): Grupo nicht im "
                    f"Angebot und keine Horarios hinterlegt."
                )

        if self.enrolled_credits > self.credit_ceiling:
            errors.append(
                f"Aktuelle Credits ({self.enrolled_credits}) überschreiten die "
                f"Obergrenze ({self.credit_ceiling})."
            )

        for course in self.courses:
            if course.state != CourseState.MANDATORY_REPEAT:
                continue
            offered = [s for s in self.sections if s.course_id == course.id]
            if not any(s.has_seats for s in offered):
                warnings.append(
                    f"Asignatura {course.code} ist obligatoria_repeticion, hat aber "
                    f"keinen Grupo mit Cupo – Solicitud kann nicht eingereicht werden."
                )

        return ConsistencyReport(
            is_consistent=len(errors) == 0,
            errors=errors,
            warnings=warnings,
        )

    # ─── Persistenz ────────────────────────────────────────────────────────

    def save_json(self, path: Path) -> None:
        """Speichert den Datensatz als JSON-Datei."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        updated = self.model_copy(update={
            "fetched_at": self.fetched_at or datetime.now(timezone.utc),
        })
        with open(path, "w", encoding="utf-8") as f:
            f.write(updated.model_dump_json(indent=2))

    @classmethod
    def load_json(cls, path: Path) -> "PortalData":
        """Lädt einen Datensatz aus einer JSON-Datei."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"JSON-Datei nicht gefunden: {path}")
        with open(path, "r", encoding="utf-8") as f:
            return cls.model_validate_json(f.read())
