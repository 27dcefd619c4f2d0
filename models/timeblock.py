"""Datenmodell für wöchentlich wiederkehrende Zeitblöcke (Pydantic v2)."""

import unicodedata
from datetime import time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator


class Weekday(str, Enum):
    """Wochentag eines Zeitblocks.

    Die Werte entsprechen der Schreibweise des Backends ("LUNES", "MARTES", ...).
    """

    MONDAY = "LUNES"
    TUESDAY = "MARTES"
    WEDNESDAY = "MIERCOLES"
    THURSDAY = "JUEVES"
    FRIDAY = "VIERNES"
    SATURDAY = "SABADO"
    SUNDAY = "DOMINGO"

    @classmethod
    def _missing_(cls, value):
        # "Miércoles", "lunes", "MONDAY" → passendes Mitglied
        if not isinstance(value, str):
            return None
        folded = unicodedata.normalize("NFKD", value.strip())
        folded = "".join(c for c in folded if not unicodedata.combining(c)).upper()
        for member in cls:
            if folded in (member.value, member.name):
                return member
        return None

    @property
    def order(self) -> int:
        """0-basierte Position in der Woche (0=Montag, 6=Sonntag)."""
        return list(Weekday).index(self)

    @property
    def short_name(self) -> str:
        """Abgekürzter Tagesname ("Lun", "Mar", ...)."""
        return self.value[:3].capitalize()


class TimeBlock(BaseModel):
    """Ein wöchentlich wiederkehrendes Zeitintervall eines Grupos.

    Halboffenes Intervall [start, end): ein Block bis 10:00 und ein Block ab
    10:00 am selben Tag überschneiden sich NICHT.
    """

    model_config = ConfigDict(frozen=True)

    day: Weekday
    start: time
    end: time
    room: Optional[str] = None   # Salon, nur zur Anzeige

    @model_validator(mode="after")
    def _check_interval(self):
        if self.start >= self.end:
            raise ValueError(
                f"Zeitblock {self.day.value}: Beginn {self.start:%H:%M} "
                f"muss vor Ende {self.end:%H:%M} liegen."
            )
        return self

    @property
    def start_minutes(self) -> int:
        return self.start.hour * 60 + self.start.minute

    @property
    def end_minutes(self) -> int:
        return self.end.hour * 60 + self.end.minute

    @property
    def duration_minutes(self) -> int:
        """Dauer des Blocks in Minuten."""
        return self.end_minutes - self.start_minutes

    def label(self) -> str:
        """Lesbare Kurzform, z.B. "LUNES 08:00–10:00"."""
        return f"{self.day.value} {self.start:%H:%M}–{self.end:%H:%M}"

    def __str__(self) -> str:
        return self.label()


def conflicts(a: TimeBlock, b: TimeBlock) -> bool:
    """True wenn beide Blöcke am selben Tag liegen und sich überschneiden."""
    return a.day == b.day and a.start < b.end and b.start < a.end


def first_conflict(
    blocks_a: list[TimeBlock], blocks_b: list[TimeBlock]
) -> Optional[tuple[TimeBlock, TimeBlock]]:
    """Gibt das erste kollidierende Blockpaar (a, b) zurück, sonst None."""
    for a in blocks_a:
        for b in blocks_b:
            if conflicts(a, b):
                return a, b
    return None
