"""Datenmodell für einen Grupo (Pydantic v2)."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models.timeblock import TimeBlock


class Section(BaseModel):
    """Ein Grupo: terminiertes Angebot genau einer Asignatura.

    Katalogdaten, aus Sicht der Engine unveränderlich.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    course_id: int
    code: str                        # "MAT101-01"
    instructor: Optional[str] = None
    seats_max: int = Field(ge=0)
    seats_available: int = Field(ge=0)
    time_blocks: list[TimeBlock] = []

    @model_validator(mode="after")
    def _check_seats(self):
        if self.seats_available > self.seats_max:
            raise ValueError(
                f"Grupo {self.code}: cupo disponible ({self.seats_available}) "
                f"> cupo máximo ({self.seats_max})"
            )
        return self

    @property
    def has_seats(self) -> bool:
        return self.seats_available > 0
