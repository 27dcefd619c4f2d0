"""Datenmodell für eine bestehende Matrícula im aktiven Periodo (Pydantic v2)."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models.timeblock import TimeBlock


class EnrollmentEntry(BaseModel):
    """Ein Eintrag im Historial: Asignatura + Grupo, in die der Student eingeschrieben ist.

    Kurs- und Grupo-Daten sind denormalisiert, damit der Eintrag auch dann
    darstellbar bleibt, wenn der Grupo nicht mehr im Angebot steht.
    """

    model_config = ConfigDict(frozen=True)

    history_id: int
    section_id: int
    course_id: int
    credits: int = Field(gt=0)
    withdrawable: bool = True      # False bei atrasada/perdida (extern berechnet)
    course_code: str = ""
    course_name: str = ""
    section_code: str = ""
    instructor: Optional[str] = None
    time_blocks: list[TimeBlock] = []
