"""Engine für Auswahl und Solicitudes de modificación."""

from .checker import Decision, EligibilityChecker, ReasonCode
from .credits import CreditAccountant, CreditSummary
from .directory import Directory
from .exceptions import (
    BackendUnavailableError,
    DuplicateRequestError,
    EmptySelectionError,
    EnrollmentError,
    GateClosedError,
    InvalidTransitionError,
    MissingObservationError,
    RequestNotFoundError,
    SubmissionBlockedError,
    WorkflowError,
)
from .ledger import LedgerSnapshot, ScheduleItem, SelectionLedger
from .session import EnrollmentSession
from .store import InMemoryRequestStore, JsonRequestStore, RequestStore
from .workflow import ModificationWorkflow

__all__ = [
    "Decision",
    "EligibilityChecker",
    "ReasonCode",
    "CreditAccountant",
    "CreditSummary",
    "Directory",
    "BackendUnavailableError",
    "DuplicateRequestError",
    "EmptySelectionError",
    "EnrollmentError",
    "GateClosedError",
    "InvalidTransitionError",
    "MissingObservationError",
    "RequestNotFoundError",
    "SubmissionBlockedError",
    "WorkflowError",
    "LedgerSnapshot",
    "ScheduleItem",
    "SelectionLedger",
    "EnrollmentSession",
    "InMemoryRequestStore",
    "JsonRequestStore",
    "RequestStore",
    "ModificationWorkflow",
]
