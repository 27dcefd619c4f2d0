from pydantic import BaseModel, Field, model_validator
from typing import Optional

from models.timeblock import Weekday


# ─── PERIODO ───

class TermConfig(BaseModel):
    """Aktiver Periodo académico."""
    # Jahr des Periodo, z.B. 2025
    year: int = Field(2025, ge=2000, le=2100,
        description="Jahr des Periodo")
    # Semester 1 oder 2
    semester: int = Field(1, ge=1, le=2,
        description="Semester (1 oder 2)")

    @property
    def label(self) -> str:
        """Bezeichnung wie im Backend, z.B. "2025-1"."""
        return f"{self.year}-{self.semester}"


# ─── CREDITS ───

class CreditPolicy(BaseModel):
    """Credit-Obergrenzen.

    Der Backend-Wert creditos.maximo hat Vorrang; default_ceiling gilt nur,
    wenn der Datensatz keine Obergrenze liefert.
    """
    # Obergrenze, wenn das Backend keine liefert
    default_ceiling: int = Field(18, ge=0,
        description="Standard-Obergrenze pro Periodo")
    # Plausibilitätsgrenzen für gelieferte Obergrenzen
    min_ceiling: int = Field(0, ge=0,
        description="Kleinste zulässige Obergrenze")
    max_ceiling: int = Field(30, ge=1,
        description="Größte zulässige Obergrenze")

    @model_validator(mode='after')
    def _check_bounds(self):
        if self.min_ceiling > self.max_ceiling:
            raise ValueError(
                f"min_ceiling ({self.min_ceiling}) > max_ceiling ({self.max_ceiling})"
            )
        if not self.min_ceiling <= self.default_ceiling <= self.max_ceiling:
            raise ValueError(
                f"default_ceiling ({self.default_ceiling}) liegt außerhalb "
                f"[{self.min_ceiling}, {self.max_ceiling}]"
            )
        return self

    def clamp(self, ceiling: int) -> int:
        return max(self.min_ceiling, min(self.max_ceiling, ceiling))


# ─── GATES ───

class GateConfig(BaseModel):
    """Standardwerte der Gates, falls der Datensatz keine Angabe enthält."""
    enrollment_open: bool = Field(False,
        description="Inscripción freigegeben")
    modification_open: bool = Field(True,
        description="Modificaciones freigegeben")
    # Anzeige-Text bei geschlossenem Gate
    closed_reason: Optional[str] = Field(None,
        description="Begründung bei geschlossenem Gate")


# ─── WOCHENRASTER ───

class ScheduleGridConfig(BaseModel):
    """Darstellung des Wochenplans (Terminal, Excel, PDF)."""
    first_hour: int = Field(7, ge=0, le=23,
        description="Erste angezeigte Stunde")
    last_hour: int = Field(22, ge=1, le=24,
        description="Letzte angezeigte Stunde (exklusiv)")
    days: list[Weekday] = Field(
        default=[
            Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY,
            Weekday.THURSDAY, Weekday.FRIDAY, Weekday.SATURDAY,
        ],
        description="Angezeigte Wochentage")

    @model_validator(mode='after')
    def _check_hours(self):
        if self.first_hour >= self.last_hour:
            raise ValueError(
                f"first_hour ({self.first_hour}) muss vor last_hour ({self.last_hour}) liegen"
            )
        if not self.days:
            raise ValueError("Mindestens ein Wochentag muss angezeigt werden")
        return self

    @property
    def hours(self) -> list[int]:
        return list(range(self.first_hour, self.last_hour))


# ─── SPEICHERORTE ───

class StorageConfig(BaseModel):
    """Dateipfade für Datensatz, Solicitudes und Exporte."""
    data_path: str = Field("data/portal_data.json",
        description="PortalData-Datensatz (JSON)")
    requests_path: str = Field("data/requests.json",
        description="Solicitud-Speicher (JSON)")
    output_dir: str = Field("output",
        description="Zielordner für Excel/PDF-Export")


# ─── GESAMTKONFIGURATION ───

class PortalConfig(BaseModel):
    """Gesamtkonfiguration des Portals."""
    portal_name: str = Field("Portal de Matrícula",
        description="Name des Portals (Exporte, Kopfzeilen)")
    term: TermConfig = Field(default_factory=TermConfig)
    credits: CreditPolicy = Field(default_factory=CreditPolicy)
    gates: GateConfig = Field(default_factory=GateConfig)
    schedule_grid: ScheduleGridConfig = Field(default_factory=ScheduleGridConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
