"""EnrollmentSession – Bearbeitungssitzung eines Studenten (Schnittstelle zur Oberfläche).

Die Sitzung besitzt genau ein Ledger und arbeitet mit IDs. Jede Mutation
läuft über den EligibilityChecker; abgelehnte Mutationen lassen das Ledger
unverändert. Neue Backend-Daten werden über Refresh-Tokens eingespielt,
damit verspätete Antworten ältere Daten nicht überschreiben.
"""

import logging
from typing import Optional

from engine.checker import Decision, EligibilityChecker, ReasonCode
from engine.credits import CreditAccountant, CreditSummary
from engine.directory import Directory
from engine.exceptions import DuplicateRequestError
from engine.ledger import ScheduleItem, SelectionLedger
from engine.workflow import ModificationWorkflow
from models.portal_data import PortalData
from models.request import ModificationRequest

logger = logging.getLogger(__name__)


class EnrollmentSession:
    """Arbeitsstand + Regeln + Workflow für einen Studenten."""

    def __init__(self, data: PortalData, workflow: ModificationWorkflow) -> None:
        self.workflow = workflow
        self.ledger = SelectionLedger()
        self._generation = 0
        self._outstanding_id: Optional[int] = None
        self._load(data)

        pending = workflow.pending_for(self.student_id)
        if pending is not None:
            self._outstanding_id = pending.id

    def _load(self, data: PortalData) -> None:
        self.data = data
        self.directory = Directory(data)
        self.accountant = CreditAccountant(self.directory, data.credit_ceiling)
        self.checker = EligibilityChecker(self.directory, self.accountant)

    @property
    def student_id(self) -> str:
        return self.data.student_id

    @property
    def gate_open(self) -> bool:
        return self.data.modification_open

    def _gate_decision(self) -> Optional[Decision]:
        if self.gate_open:
            return None
        reason = f" {self.data.gate_reason}" if self.data.gate_reason else ""
        return Decision.reject(ReasonCode.GATE_CLOSED, gate="Modificaciones", reason=reason)

    # ─── Grupos ───

    def can_add(self, section_id: int) -> Decision:
        """Prüft einen Grupo und merkt ihn bei Erfolg vor."""
        closed = self._gate_decision()
        if closed is not None:
            return closed
        section = self.directory.get_section(section_id)
        course = self.directory.course_of(section) if section is not None else None
        if section is None or course is None:
            return Decision.reject(ReasonCode.UNKNOWN_SECTION, section=section_id)

        decision = self.checker.can_add(section, course, self.ledger)
        if decision.ok:
            self.ledger.add(section.id, course.credits)
        return decision

    def toggle_section(self, section_id: int) -> Decision:
        """Vorgemerkter Grupo → entfernen, sonst wie can_add()."""
        if section_id in self.ledger.to_add:
            self.ledger.remove(section_id)
            logger.debug(f"Grupo {section_id} aus der Auswahl entfernt")
            return Decision.accept(f"Grupo {section_id} entfernt.")
        return self.can_add(section_id)

    # ─── Matrículas ───

    def can_drop(self, history_id: int) -> Decision:
        """Prüft eine Matrícula und markiert sie bei Erfolg zum Rückzug."""
        closed = self._gate_decision()
        if closed is not None:
            return closed
        entry = self.directory.get_entry(history_id)
        if entry is None:
            return Decision.reject(ReasonCode.UNKNOWN_ENTRY, entry=history_id)

        course = self.directory.get_course(entry.course_id)
        decision = self.checker.can_drop(entry, course, self.ledger)
        if decision.ok:
            self.ledger.drop(entry.history_id, entry.credits)
        return decision

    def toggle_entry(self, history_id: int) -> Decision:
        """Markierte Matrícula → wiederherstellen (geprüft), sonst wie can_drop()."""
        if history_id not in self.ledger.to_drop:
            return self.can_drop(history_id)

        entry = self.directory.get_entry(history_id)
        if entry is None:
            # Matrícula nach Aktualisierung verschwunden: Markierung verwerfen
            self.ledger.restore(history_id)
            return Decision.accept(f"Markierung für Matrícula {history_id} verworfen.")

        decision = self.checker.can_restore(entry, self.ledger)
        if decision.ok:
            self.ledger.restore(history_id)
        return decision

    # ─── Einreichen / Verwerfen ───

    def submit(self) -> ModificationRequest:
        """Reicht das Ledger als Solicitud ein (siehe ModificationWorkflow.submit).

        Verliert die Sitzung gegen eine andere Einreichung, merkt sie sich die
        offene Solicitud des Gewinners für sync_request_state().
        """
        try:
            request = self.workflow.submit(
                self.student_id,
                self.ledger,
                self.directory,
                self.accountant,
                gate_open=self.gate_open,
                gate_reason=self.data.gate_reason,
            )
        except DuplicateRequestError as e:
            if e.request_id:
                self._outstanding_id = e.request_id
            raise
        self._outstanding_id = request.id
        return request

    def cancel(self) -> None:
        """Verwirft alle vorgemerkten Änderungen."""
        if not self.ledger.is_empty:
            logger.debug(f"Auswahl verworfen: {self.ledger!r}")
        self.ledger.clear()

    def sync_request_state(self) -> Optional[ModificationRequest]:
        """Prüft, ob die offene Solicitud inzwischen aufgelöst wurde.

        Gibt die aufgelöste Solicitud zurück (Ledger wird geleert), sonst None.
        """
        if self._outstanding_id is None:
            return None
        request = self.workflow.get(self._outstanding_id)
        if request.is_pending:
            return None
        self._outstanding_id = None
        self.ledger.clear()
        logger.info(f"Solicitud #{request.id} aufgelöst: {request.state.value}")
        return request

    @property
    def outstanding_request_id(self) -> Optional[int]:
        return self._outstanding_id

    # ─── Aktualisierung ───

    def begin_refresh(self) -> int:
        """Gibt ein neues Refresh-Token aus; ältere Tokens werden ungültig."""
        self._generation += 1
        return self._generation

    def apply_refresh(self, token: int, data: PortalData) -> bool:
        """Übernimmt neue Backend-Daten, sofern das Token das aktuellste ist."""
        if token != self._generation:
            logger.warning(
                f"Veraltete Aktualisierung verworfen (Token {token}, aktuell {self._generation})"
            )
            return False
        if data.student_id != self.student_id:
            raise ValueError(
                f"Datensatz gehört zu {data.student_id}, Sitzung zu {self.student_id}"
            )
        self._load(data)
        logger.debug(f"Daten aktualisiert (Token {token}): {self.directory!r}")
        return True

    # ─── Anzeige ───

    def schedule_view(self) -> list[ScheduleItem]:
        return self.ledger.schedule_view(self.directory)

    def credit_summary(self) -> CreditSummary:
        return self.ledger.credit_summary(self.accountant)
