"""Validierung der Auswahl bei Einreichung einer Solicitud.

Prüft den finalen Ledger-Stand als Sicherheitsnetz unabhängig vom
EligibilityChecker und ergänzt Regeln, die erst bei Einreichung greifen
(obligatoria_repeticion muss enthalten sein, Correquisitos werden
mitbelegt).
"""

from itertools import combinations
from typing import Literal

from pydantic import BaseModel

from engine.credits import CreditAccountant
from engine.directory import Directory
from engine.ledger import SelectionLedger
from models.timeblock import first_conflict


def _projected_course_ids(ledger: SelectionLedger, directory: Directory) -> set[int]:
    """Asignaturas im projizierten Stand: nicht zurückgezogene Matrículas + Vorgemerkte."""
    kept = {e.course_id for e in directory.entries if e.history_id not in ledger.to_drop}
    for section_id in ledger.to_add:
        section = directory.get_section(section_id)
        if section is not None:
            kept.add(section.course_id)
    return kept


class ValidationViolation(BaseModel):
    """Eine einzelne Regelverletzung."""

    severity: Literal["error", "warning"]
    constraint: str      # z.B. "mandatory_not_included"
    description: str
    entity: str          # Asignatura- oder Grupo-Code


class ValidationReport(BaseModel):
    """Ergebnis der Einreichungsprüfung."""

    violations: list[ValidationViolation]
    is_valid: bool       # True wenn keine Errors (Warnings ok)

    @property
    def errors(self) -> list[ValidationViolation]:
        return [v for v in self.violations if v.severity == "error"]

    @property
    def warnings(self) -> list[ValidationViolation]:
        return [v for v in self.violations if v.severity == "warning"]

    def print_rich(self) -> None:
        """Gibt den Report formatiert über Rich aus."""
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()
        status = (
            "[bold green]✓ EINREICHBAR[/bold green]"
            if self.is_valid
            else "[bold red]✗ BLOCKIERT[/bold red]"
        )
        lines = [status, f"Fehler: {len(self.errors)} | Warnungen: {len(self.warnings)}"]
        console.print(Panel("\n".join(lines), title="Solicitud-Prüfung", border_style="cyan"))

        if not self.violations:
            console.print("[dim]Keine Verletzungen gefunden.[/dim]")
            return

        table = Table(box=box.ROUNDED, show_lines=True)
        table.add_column("Typ", width=8)
        table.add_column("Regel", width=24)
        table.add_column("Betrifft", width=12)
        table.add_column("Beschreibung")

        for v in self.violations:
            color = "red" if v.severity == "error" else "yellow"
            table.add_row(
                f"[{color}]{v.severity.upper()}[/{color}]",
                v.constraint,
                v.entity,
                v.description,
            )
        console.print(table)


class SubmissionValidator:
    """Prüft einen Ledger-Stand vor der Einreichung."""

    def validate(
        self, ledger: SelectionLedger, directory: Directory, accountant: CreditAccountant
    ) -> ValidationReport:
        """Führt alle Prüfungen durch und gibt einen ValidationReport zurück."""
        violations: list[ValidationViolation] = []

        violations.extend(self._check_mandatory_repeat(ledger, directory))
        violations.extend(self._check_corequisites(ledger, directory))
        violations.extend(self._check_sections_offered(ledger, directory))
        violations.extend(self._check_time_overlap(ledger, directory))
        violations.extend(self._check_credit_ceiling(ledger, accountant))
        violations.extend(self._check_seats(ledger, directory))

        has_errors = any(v.severity == "error" for v in violations)
        return ValidationReport(violations=violations, is_valid=not has_errors)

    def mandatory_without_seats(self, directory: Directory) -> list[str]:
        """Codes der obligatoria_repeticion-Asignaturas ohne Grupo mit Cupo.

        Bereits belegte Asignaturas zählen nicht.
        """
        enrolled = {e.course_id for e in directory.entries}
        return [
            c.code for c in directory.mandatory_repeat_courses()
            if c.id not in enrolled
            and not any(s.has_seats for s in directory.sections_of(c.id))
        ]

    # ─── Einzelprüfungen ───

    def _check_mandatory_repeat(
        self, ledger: SelectionLedger, directory: Directory
    ) -> list[ValidationViolation]:
        """obligatoria_repeticion muss belegt bleiben oder vorgemerkt sein."""
        violations = []
        kept = _projected_course_ids(ledger, directory)

        for course in directory.mandatory_repeat_courses():
            if course.id in kept:
                continue
            if not any(s.has_seats for s in directory.sections_of(course.id)):
                violations.append(ValidationViolation(
                    severity="error",
                    constraint="mandatory_without_seats",
                    description=(
                        f"{course.display()} ist obligatoria_repeticion, aber kein Grupo "
                        f"hat freien Cupo. Bitte an die Dirección de Programa wenden."
                    ),
                    entity=course.code,
                ))
            else:
                violations.append(ValidationViolation(
                    severity="error",
                    constraint="mandatory_not_included",
                    description=(
                        f"{course.display()} ist obligatoria_repeticion und muss in der "
                        f"Auswahl enthalten sein."
                    ),
                    entity=course.code,
                ))
        return violations

    def _check_corequisites(
        self, ledger: SelectionLedger, directory: Directory
    ) -> list[ValidationViolation]:
        """Nicht bestandene Correquisitos vorgemerkter Asignaturas müssen mitbelegt sein."""
        violations = []
        kept = _projected_course_ids(ledger, directory)
        for section_id in sorted(ledger.to_add):
            section = directory.get_section(section_id)
            course = directory.course_of(section) if section is not None else None
            if course is None:
                continue
            for coreq in course.missing_corequisites:
                if coreq.course_id in kept:
                    continue
                other = directory.get_course(coreq.course_id)
                label = other.display() if other else (coreq.code or f"#{coreq.course_id}")
                violations.append(ValidationViolation(
                    severity="error",
                    constraint="corequisite_missing",
                    description=(
                        f"Für {course.display()} muss {label} als Correquisito "
                        f"mitbelegt werden."
                    ),
                    entity=course.code,
                ))
        return violations

    def _check_sections_offered(
        self, ledger: SelectionLedger, directory: Directory
    ) -> list[ValidationViolation]:
        violations = []
        for section_id in sorted(ledger.to_add):
            if directory.get_section(section_id) is None:
                violations.append(ValidationViolation(
                    severity="error",
                    constraint="section_not_offered",
                    description=f"Grupo {section_id} ist nicht mehr im Angebot.",
                    entity=str(section_id),
                ))
        for history_id in sorted(ledger.to_drop):
            if directory.get_entry(history_id) is None:
                violations.append(ValidationViolation(
                    severity="error",
                    constraint="entry_not_enrolled",
                    description=f"Matrícula {history_id} existiert nicht mehr.",
                    entity=str(history_id),
                ))
        return violations

    def _check_time_overlap(
        self, ledger: SelectionLedger, directory: Directory
    ) -> list[ValidationViolation]:
        """Keine Überschneidung im projizierten Wochenplan."""
        violations = []
        items = ledger.schedule_view(directory)
        for a, b in combinations(items, 2):
            pair = first_conflict(a.time_blocks, b.time_blocks)
            if pair is None:
                continue
            violations.append(ValidationViolation(
                severity="error",
                constraint="time_overlap",
                description=(
                    f"{a.course_code} ({pair[0].label()}) überschneidet "
                    f"{b.course_code} ({pair[1].label()})"
                ),
                entity=a.section_code,
            ))
        return violations

    def _check_credit_ceiling(
        self, ledger: SelectionLedger, accountant: CreditAccountant
    ) -> list[ValidationViolation]:
        projected = accountant.projected_credits(ledger)
        if projected <= accountant.ceiling:
            return []
        return [ValidationViolation(
            severity="error",
            constraint="credit_ceiling",
            description=(
                f"Projizierte Credits ({projected}) überschreiten die Obergrenze "
                f"({accountant.ceiling})."
            ),
            entity="credits",
        )]

    def _check_seats(
        self, ledger: SelectionLedger, directory: Directory
    ) -> list[ValidationViolation]:
        """Warnung, wenn ein vorgemerkter Grupo inzwischen voll ist."""
        violations = []
        for section_id in sorted(ledger.to_add):
            section = directory.get_section(section_id)
            if section is not None and not section.has_seats:
                violations.append(ValidationViolation(
                    severity="warning",
                    constraint="no_seats_anymore",
                    description=(
                        f"Grupo {section.code} hat inzwischen keinen freien Cupo mehr – "
                        f"die Solicitud wird voraussichtlich abgelehnt."
                    ),
                    entity=section.code,
                ))
        return violations
