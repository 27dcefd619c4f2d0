"""ModificationWorkflow – Lebenszyklus einer Solicitud de modificación.

Zustände: (keine) → pendiente → aprobada | rechazada. Endzustände sind
unveränderlich. Die Anwendung genehmigter Änderungen auf die Matrículas
übernimmt ein externer Dienst; der Workflow meldet sie nur über on_approved.
"""

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Optional

from engine.credits import CreditAccountant
from engine.directory import Directory
from engine.exceptions import (
    DuplicateRequestError,
    EmptySelectionError,
    GateClosedError,
    MissingObservationError,
    SubmissionBlockedError,
)
from engine.ledger import SelectionLedger
from engine.store import RequestStore
from models.request import (
    ModificationRequest,
    RequestedDrop,
    RequestedSection,
    RequestState,
)

if TYPE_CHECKING:
    from analysis.submission_validator import SubmissionValidator

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ModificationWorkflow:
    """Reicht Solicitudes ein und löst sie auf."""

    def __init__(
        self,
        store: RequestStore,
        validator: Optional["SubmissionValidator"] = None,
        on_approved: Optional[Callable[[ModificationRequest], None]] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if validator is None:
            from analysis.submission_validator import SubmissionValidator
            validator = SubmissionValidator()
        self.store = store
        self.validator = validator
        self.on_approved = on_approved
        self.clock = clock

    # ─── Einreichen ───

    def submit(
        self,
        student_id: str,
        ledger: SelectionLedger,
        directory: Directory,
        accountant: CreditAccountant,
        gate_open: bool = True,
        gate_reason: Optional[str] = None,
    ) -> ModificationRequest:
        """Verpackt das Ledger in eine offene Solicitud.

        Das Ledger wird erst geleert, nachdem der Speicher die Solicitud
        bestätigt hat. Bei jedem Fehler bleibt es unverändert.

        Raises:
            GateClosedError, DuplicateRequestError, EmptySelectionError,
            SubmissionBlockedError, BackendUnavailableError
        """
        if not gate_open:
            raise GateClosedError(
                "Modificaciones sind geschlossen." + (f" {gate_reason}" if gate_reason else "")
            )

        existing = self.store.pending_for(student_id)
        if existing is not None:
            raise DuplicateRequestError(student_id, existing.id)

        if ledger.is_empty:
            raise EmptySelectionError("Keine Änderungen vorgemerkt.")

        report = self.validator.validate(ledger, directory, accountant)
        if not report.is_valid:
            logger.info(
                f"Solicitud von {student_id} blockiert: "
                f"{len(report.errors)} Regelverletzung(en)"
            )
            raise SubmissionBlockedError(report)

        request = self.build_request(student_id, ledger, directory, submitted_at=self.clock())
        stored = self.store.create_pending(request)
        ledger.clear()
        logger.info(
            f"Solicitud #{stored.id} eingereicht: {student_id}, "
            f"+{len(stored.sections_to_add)}/-{len(stored.entries_to_drop)} "
            f"({stored.credit_delta:+d} Credits)"
        )
        return stored

    @staticmethod
    def build_request(
        student_id: str,
        ledger: SelectionLedger,
        directory: Directory,
        submitted_at: Optional[datetime] = None,
    ) -> ModificationRequest:
        """Erzeugt die (noch ungespeicherte) Solicitud mit denormalisierten Daten."""
        to_add: list[RequestedSection] = []
        for section_id in sorted(ledger.to_add):
            section = directory.get_section(section_id)
            if section is None:
                raise KeyError(section_id)
            course = directory.course_of(section)
            to_add.append(RequestedSection(
                section_id=section.id,
                course_id=section.course_id,
                course_code=course.code if course else f"#{section.course_id}",
                course_name=course.name if course else "",
                section_code=section.code,
                credits=course.credits if course else 1,
                instructor=section.instructor,
                time_blocks=list(section.time_blocks),
            ))

        to_drop: list[RequestedDrop] = []
        for history_id in sorted(ledger.to_drop):
            entry = directory.get_entry(history_id)
            if entry is None:
                raise KeyError(history_id)
            course = directory.get_course(entry.course_id)
            to_drop.append(RequestedDrop(
                history_id=entry.history_id,
                section_id=entry.section_id,
                course_id=entry.course_id,
                course_code=course.code if course else entry.course_code,
                course_name=course.name if course else entry.course_name,
                section_code=entry.section_code,
                credits=entry.credits,
                time_blocks=directory.blocks_of_entry(entry),
            ))

        return ModificationRequest(
            student_id=student_id,
            sections_to_add=to_add,
            entries_to_drop=to_drop,
            submitted_at=submitted_at,
        )

    # ─── Auflösen ───

    def approve(self, request_id: int, reviewer_id: Optional[str] = None) -> ModificationRequest:
        """pendiente → aprobada. Eine Observación wird bei Genehmigung verworfen."""
        request = self.store.transition(
            request_id, RequestState.APPROVED,
            reviewer_id=reviewer_id, resolved_at=self.clock(),
        )
        logger.info(f"Solicitud #{request_id} genehmigt (Revisor: {reviewer_id or '-'})")
        if self.on_approved is not None:
            self.on_approved(request)
        return request

    def reject(
        self, request_id: int, observation: Optional[str], reviewer_id: Optional[str] = None
    ) -> ModificationRequest:
        """pendiente → rechazada. Observación ist Pflicht."""
        text = (observation or "").strip()
        if not text:
            raise MissingObservationError(
                f"Solicitud #{request_id}: Ablehnung erfordert eine Observación."
            )
        request = self.store.transition(
            request_id, RequestState.REJECTED,
            reviewer_id=reviewer_id, observation=text, resolved_at=self.clock(),
        )
        logger.info(f"Solicitud #{request_id} abgelehnt (Revisor: {reviewer_id or '-'})")
        return request

    def resolve(
        self,
        request_id: int,
        decision: RequestState,
        observation: Optional[str] = None,
        reviewer_id: Optional[str] = None,
    ) -> ModificationRequest:
        """Verteilt auf approve()/reject() je nach Entscheidung."""
        decision = RequestState(decision)
        if decision == RequestState.APPROVED:
            return self.approve(request_id, reviewer_id)
        if decision == RequestState.REJECTED:
            return self.reject(request_id, observation, reviewer_id)
        raise ValueError(f"Ungültige Entscheidung: {decision.value}")

    # ─── Abfragen ───

    def get(self, request_id: int) -> ModificationRequest:
        return self.store.get(request_id)

    def pending_for(self, student_id: str) -> Optional[ModificationRequest]:
        return self.store.pending_for(student_id)

    def latest_for(self, student_id: str) -> Optional[ModificationRequest]:
        return self.store.latest_for(student_id)

    def list_requests(self, state: Optional[RequestState] = None) -> list[ModificationRequest]:
        return self.store.list_requests(state)
