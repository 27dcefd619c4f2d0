"""EligibilityChecker – prüft jede Einzeländerung, bevor sie ins Ledger gelangt.

Alle Prüfungen sind rein (ändern weder Ledger noch Directory) und liefern ein
Decision-Objekt. Die Reihenfolge der Regeln in can_add() ist fest; die erste
verletzte Regel bestimmt den ReasonCode.
"""

import logging
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from config.defaults import REASON_TEXTS
from engine.credits import CreditAccountant
from engine.directory import Directory
from engine.ledger import SelectionLedger
from models.course import Course, CourseState
from models.enrollment import EnrollmentEntry
from models.section import Section
from models.timeblock import TimeBlock, first_conflict

logger = logging.getLogger(__name__)


class ReasonCode(str, Enum):
    COURSE_PASSED = "course_passed"
    PREREQUISITES_PENDING = "prerequisites_pending"
    ALREADY_SELECTED = "already_selected"
    DUPLICATE_COURSE = "duplicate_course"
    NO_SEATS = "no_seats"
    TIME_CONFLICT = "time_conflict"
    CREDIT_LIMIT = "credit_limit"
    NOT_WITHDRAWABLE = "not_withdrawable"
    MANDATORY_REPEAT = "mandatory_repeat"
    ALREADY_MARKED = "already_marked"
    NOT_MARKED = "not_marked"
    GATE_CLOSED = "gate_closed"
    UNKNOWN_SECTION = "unknown_section"
    UNKNOWN_ENTRY = "unknown_entry"


class Decision(BaseModel):
    """Ergebnis einer Prüfung. ok=False → Ledger bleibt unverändert."""

    ok: bool
    reason: Optional[ReasonCode] = None
    message: str = ""

    @classmethod
    def accept(cls, message: str = "") -> "Decision":
        return cls(ok=True, message=message)

    @classmethod
    def reject(cls, reason: ReasonCode, **fields) -> "Decision":
        return cls(ok=False, reason=reason, message=REASON_TEXTS[reason.value].format(**fields))

    def __bool__(self) -> bool:
        return self.ok


class EligibilityChecker:
    """Einzige Instanz, die über Zulässigkeit von Ledger-Mutationen entscheidet."""

    def __init__(self, directory: Directory, accountant: CreditAccountant) -> None:
        self.directory = directory
        self.accountant = accountant

    # ─── Hinzufügen ───

    def can_add(self, section: Section, course: Course, ledger: SelectionLedger) -> Decision:
        """Prüft, ob ein Grupo vorgemerkt werden darf.

        Reihenfolge:
        1. Asignatura bereits bestanden
        2. Prerrequisitos fehlen (en_espera, außer nucleo_comun)
        3. Grupo bereits vorgemerkt
        4. Anderer Grupo derselben Asignatura vorgemerkt oder belegt
        5. Kein Cupo
        6. Zeitkonflikt mit Matrícula oder vorgemerktem Grupo
        7. Credit-Obergrenze
        """
        if course.state == CourseState.PASSED:
            return self._log(Decision.reject(ReasonCode.COURSE_PASSED, course=course.display()))

        # nucleo_comun bleibt trotz en_espera wählbar
        if course.state == CourseState.IN_WAIT and not course.is_common_core:
            missing = ", ".join(
                p.code or f"#{p.course_id}" for p in course.missing_prerequisites
            ) or "-"
            return self._log(Decision.reject(
                ReasonCode.PREREQUISITES_PENDING, course=course.display(), missing=missing
            ))

        if section.id in ledger.to_add:
            return self._log(Decision.reject(ReasonCode.ALREADY_SELECTED, section=section.code))

        other = self._same_course_holder(course.id, ledger)
        if other is not None:
            return self._log(Decision.reject(
                ReasonCode.DUPLICATE_COURSE, course=course.code, other=other
            ))

        if section.seats_available <= 0:
            return self._log(Decision.reject(ReasonCode.NO_SEATS, section=section.code))

        clash = self._find_conflict(section.time_blocks, ledger)
        if clash is not None:
            other_label, own, theirs = clash
            return self._log(Decision.reject(
                ReasonCode.TIME_CONFLICT,
                other=other_label, block_a=own.label(), block_b=theirs.label(),
            ))

        if self.accountant.would_exceed(ledger, course.credits):
            return self._log(Decision.reject(
                ReasonCode.CREDIT_LIMIT,
                projected=self.accountant.projected_credits(ledger),
                extra=course.credits,
                ceiling=self.accountant.ceiling,
            ))

        return self._log(Decision.accept(f"Grupo {section.code} vorgemerkt."))

    # ─── Zurückziehen ───

    def can_drop(
        self, entry: EnrollmentEntry, course: Optional[Course], ledger: SelectionLedger
    ) -> Decision:
        """Prüft, ob eine Matrícula zum Rückzug markiert werden darf."""
        label = course.display() if course else (entry.course_code or f"#{entry.course_id}")

        if not entry.withdrawable:
            return self._log(Decision.reject(ReasonCode.NOT_WITHDRAWABLE, course=label))

        if course is not None and course.state == CourseState.MANDATORY_REPEAT:
            return self._log(Decision.reject(ReasonCode.MANDATORY_REPEAT, course=label))

        if entry.history_id in ledger.to_drop:
            return self._log(Decision.reject(ReasonCode.ALREADY_MARKED, course=label))

        return self._log(Decision.accept(f"{label} zum Rückzug markiert."))

    def can_restore(self, entry: EnrollmentEntry, ledger: SelectionLedger) -> Decision:
        """Prüft, ob eine zum Rückzug markierte Matrícula wiederhergestellt werden darf.

        Zwischenzeitlich vorgemerkte Grupos können mit der Matrícula kollidieren
        oder die Credit-Obergrenze sprengen.
        """
        label = self.directory.course_label(entry.course_id, entry.course_code)

        if entry.history_id not in ledger.to_drop:
            return self._log(Decision.reject(ReasonCode.NOT_MARKED, course=label))

        blocks = self.directory.blocks_of_entry(entry)
        for section_id in sorted(ledger.to_add):
            section = self.directory.get_section(section_id)
            if section is None:
                continue
            if section.course_id == entry.course_id:
                return self._log(Decision.reject(
                    ReasonCode.DUPLICATE_COURSE, course=label, other=section.code
                ))
            pair = first_conflict(blocks, section.time_blocks)
            if pair is not None:
                return self._log(Decision.reject(
                    ReasonCode.TIME_CONFLICT,
                    other=self.directory.course_label(section.course_id, section.code),
                    block_a=pair[0].label(), block_b=pair[1].label(),
                ))

        if self.accountant.would_exceed(ledger, entry.credits):
            return self._log(Decision.reject(
                ReasonCode.CREDIT_LIMIT,
                projected=self.accountant.projected_credits(ledger),
                extra=entry.credits,
                ceiling=self.accountant.ceiling,
            ))

        return self._log(Decision.accept(f"{label} wiederhergestellt."))

    # ─── Hilfsfunktionen ───

    def _same_course_holder(self, course_id: int, ledger: SelectionLedger) -> Optional[str]:
        """Code des Grupos/der Matrícula, die die Asignatura bereits belegt."""
        for entry in self.directory.entries:
            if entry.course_id == course_id and entry.history_id not in ledger.to_drop:
                return entry.section_code or self.directory.course_label(course_id)
        for section_id in sorted(ledger.to_add):
            section = self.directory.get_section(section_id)
            if section is not None and section.course_id == course_id:
                return section.code
        return None

    def _find_conflict(
        self, blocks: list[TimeBlock], ledger: SelectionLedger
    ) -> Optional[tuple[str, TimeBlock, TimeBlock]]:
        """Erste Kollision mit einer aktiven Matrícula oder einem vorgemerkten Grupo."""
        for entry in self.directory.entries:
            if entry.history_id in ledger.to_drop:
                continue
            pair = first_conflict(blocks, self.directory.blocks_of_entry(entry))
            if pair is not None:
                return self.directory.course_label(entry.course_id, entry.course_code), *pair
        for section_id in sorted(ledger.to_add):
            section = self.directory.get_section(section_id)
            if section is None:
                continue
            pair = first_conflict(blocks, section.time_blocks)
            if pair is not None:
                return self.directory.course_label(section.course_id, section.code), *pair
        return None

    @staticmethod
    def _log(decision: Decision) -> Decision:
        if decision.ok:
            logger.debug(f"Zulässig: {decision.message}")
        else:
            logger.debug(f"Abgelehnt ({decision.reason.value}): {decision.message}")
        return decision
