"""Fehlerklassen der Engine.

Abgelehnte Einzeländerungen (Grupo hinzufügen, Matrícula zurückziehen) sind
keine Exceptions, sondern ein Decision-Objekt mit ok=False.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from analysis.submission_validator import ValidationReport


class EnrollmentError(Exception):
    """Basisklasse aller fachlichen Fehler der Engine."""


class WorkflowError(EnrollmentError):
    """Fehler im Lebenszyklus einer Solicitud."""


class DuplicateRequestError(WorkflowError):
    """Für den Studenten existiert bereits eine offene Solicitud."""

    def __init__(self, student_id: str, request_id: int = 0):
        self.student_id = student_id
        self.request_id = request_id
        suffix = f" (#{request_id})" if request_id else ""
        super().__init__(
            f"Student {student_id} hat bereits eine offene Solicitud{suffix}."
        )


class EmptySelectionError(WorkflowError):
    """Einreichung ohne vorgemerkte Änderungen."""


class MissingObservationError(WorkflowError):
    """Ablehnung ohne Observación."""


class InvalidTransitionError(WorkflowError):
    """Zustandsübergang an einer bereits aufgelösten Solicitud."""


class GateClosedError(WorkflowError):
    """Das Gate für Modificaciones ist geschlossen."""


class SubmissionBlockedError(WorkflowError):
    """Die Auswahl verletzt Einreichungsregeln (z.B. fehlende obligatoria_repeticion)."""

    def __init__(self, report: "ValidationReport"):
        self.report = report
        errors = [v.description for v in report.violations if v.severity == "error"]
        super().__init__("Solicitud blockiert: " + "; ".join(errors))


class RequestNotFoundError(WorkflowError):
    """Solicitud-ID unbekannt."""


class BackendUnavailableError(EnrollmentError):
    """Der Speicher (entfernter Dienst oder Datei) ist nicht erreichbar."""
