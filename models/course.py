"""Datenmodell für eine Asignatura des Angebots (Pydantic v2)."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CourseState(str, Enum):
    """Vom Curriculum-Dienst berechneter Zustand einer Asignatura.

    Die Engine leitet den Zustand nicht her, sie liest ihn nur.
    """

    ACTIVE = "activa"
    ENROLLED_CURRENT = "matriculada"
    PASSED = "cursada"
    IN_WAIT = "en_espera"                      # Prerrequisitos fehlen
    PENDING_REPEAT = "pendiente_repeticion"
    MANDATORY_REPEAT = "obligatoria_repeticion"


class PrerequisiteRef(BaseModel):
    """Verweis auf eine vorausgesetzte Asignatura."""

    course_id: int
    satisfied: bool
    code: Optional[str] = None
    kind: str = "prerequisito"   # "prerequisito" / "correquisito"

    @property
    def is_corequisite(self) -> bool:
        return self.kind == "correquisito"


class Course(BaseModel):
    """Eine Asignatura mit Credits, Kategorie und aktuellem Zustand."""

    model_config = ConfigDict(frozen=True)

    id: int
    code: str                      # "MAT101"
    name: str                      # "Cálculo Diferencial"
    credits: int = Field(gt=0)
    category: str = "obligatoria"  # obligatoria/electiva/profundizacion/nucleo_comun
    semester: Optional[int] = None
    state: CourseState = CourseState.ACTIVE
    prerequisites: list[PrerequisiteRef] = []

    @property
    def is_passed(self) -> bool:
        return self.state == CourseState.PASSED

    @property
    def is_mandatory_repeat(self) -> bool:
        return self.state == CourseState.MANDATORY_REPEAT

    @property
    def is_repeat(self) -> bool:
        """True für pendiente_repeticion und obligatoria_repeticion."""
        return self.state in (CourseState.PENDING_REPEAT, CourseState.MANDATORY_REPEAT)

    @property
    def missing_prerequisites(self) -> list[PrerequisiteRef]:
        """Noch nicht erfüllte Prerrequisitos (in Originalreihenfolge)."""
        return [p for p in self.prerequisites if not p.satisfied and not p.is_corequisite]

    @property
    def missing_corequisites(self) -> list[PrerequisiteRef]:
        """Nicht bestandene Correquisitos: müssen im selben Semester mitbelegt werden."""
        return [p for p in self.prerequisites if not p.satisfied and p.is_corequisite]

    @property
    def is_common_core(self) -> bool:
        return self.category == "nucleo_comun"

    def display(self) -> str:
        return f"{self.code} {self.name}"
