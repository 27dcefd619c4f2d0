"""Datenmodell für Solicitudes de modificación (Pydantic v2)."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from models.timeblock import TimeBlock


class RequestState(str, Enum):
    """Lebenszyklus einer Solicitud: PENDING → APPROVED | REJECTED (terminal)."""

    PENDING = "pendiente"
    APPROVED = "aprobada"
    REJECTED = "rechazada"

    @property
    def is_terminal(self) -> bool:
        return self != RequestState.PENDING


class RequestedSection(BaseModel):
    """Snapshot eines hinzuzufügenden Grupos zum Zeitpunkt der Einreichung."""

    section_id: int
    course_id: int
    course_code: str
    course_name: str
    section_code: str
    credits: int = Field(gt=0)
    instructor: Optional[str] = None
    time_blocks: list[TimeBlock] = []


class RequestedDrop(BaseModel):
    """Snapshot einer zurückzuziehenden Matrícula."""

    history_id: int
    section_id: int
    course_id: int
    course_code: str
    course_name: str
    section_code: str = ""
    credits: int = Field(gt=0)
    time_blocks: list[TimeBlock] = []


class ModificationRequest(BaseModel):
    """Eine Solicitud: atomare, prüfbare Einheit einer Einschreibungsänderung.

    Die Daten von Grupos und Matrículas werden bei der Einreichung
    denormalisiert gespeichert, damit der Jefe de Departamento die Solicitud
    auch nach Katalogänderungen nachvollziehen kann.
    """

    id: int = 0                              # 0 = noch nicht gespeichert
    student_id: str
    sections_to_add: list[RequestedSection] = []
    entries_to_drop: list[RequestedDrop] = []
    state: RequestState = RequestState.PENDING
    submitted_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    reviewer_id: Optional[str] = None
    observation: Optional[str] = None

    @model_validator(mode="after")
    def _check_state(self):
        if self.state == RequestState.REJECTED:
            if not self.observation or not self.observation.strip():
                raise ValueError(
                    f"Solicitud {self.id}: Ablehnung ohne Observación ist unzulässig."
                )
        elif self.observation is not None:
            raise ValueError(
                f"Solicitud {self.id}: Observación nur bei Ablehnung erlaubt "
                f"(Zustand {self.state.value})."
            )
        if self.state == RequestState.PENDING and self.resolved_at is not None:
            raise ValueError(f"Solicitud {self.id}: offene Solicitud mit Auflösungsdatum.")
        return self

    @property
    def is_pending(self) -> bool:
        return self.state == RequestState.PENDING

    @property
    def credit_delta(self) -> int:
        """Credit-Änderung, die die Solicitud bei Genehmigung bewirkt."""
        added = sum(s.credits for s in self.sections_to_add)
        dropped = sum(d.credits for d in self.entries_to_drop)
        return added - dropped

    def summary(self) -> str:
        """Einzeilige Kurzbeschreibung für Listen."""
        parts = []
        if self.sections_to_add:
            parts.append("+" + ", ".join(s.section_code for s in self.sections_to_add))
        if self.entries_to_drop:
            parts.append("-" + ", ".join(d.course_code for d in self.entries_to_drop))
        change = " ".join(parts) or "(leer)"
        return (
            f"#{self.id} [{self.state.value}] {self.student_id}: {change} "
            f"({self.credit_delta:+d} Cr.)"
        )
