"""SelectionLedger – Arbeitsstand vorgemerkter Zu- und Abgänge einer Sitzung.

Das Ledger prüft keine Regeln. Jede Mutation wurde vorher vom
EligibilityChecker freigegeben; ungültige Operationen (z.B. Entfernen einer
nicht vorgemerkten ID) sind Programmierfehler und lösen KeyError/ValueError aus.
"""

from typing import TYPE_CHECKING, Literal, Optional

from pydantic import BaseModel, ConfigDict

from models.timeblock import TimeBlock

if TYPE_CHECKING:
    from engine.credits import CreditAccountant, CreditSummary
    from engine.directory import Directory


class LedgerSnapshot(BaseModel):
    """Unveränderliche Momentaufnahme des Ledgers."""

    model_config = ConfigDict(frozen=True)

    to_add: frozenset[int]
    to_drop: frozenset[int]
    credit_delta: int


class ScheduleItem(BaseModel):
    """Ein Eintrag der kombinierten Wochenansicht."""

    source: Literal["enrolled", "added"]
    course_id: int
    course_code: str
    course_name: str
    section_id: int
    section_code: str
    credits: int
    instructor: Optional[str] = None
    history_id: Optional[int] = None  # nur bei source="enrolled"
    time_blocks: list[TimeBlock] = []


class SelectionLedger:
    """Menge vorzumerkender Grupos (to_add) und zurückzuziehender Matrículas (to_drop)."""

    def __init__(self) -> None:
        self._to_add: dict[int, int] = {}    # section_id → Credits
        self._to_drop: dict[int, int] = {}   # history_id → Credits

    # ─── Mutationen ───

    def add(self, section_id: int, credits: int) -> None:
        if section_id in self._to_add:
            raise ValueError(f"Grupo {section_id} ist bereits vorgemerkt.")
        if credits <= 0:
            raise ValueError(f"Credits müssen positiv sein: {credits}")
        self._to_add[section_id] = credits

    def remove(self, section_id: int) -> None:
        if section_id not in self._to_add:
            raise KeyError(section_id)
        del self._to_add[section_id]

    def drop(self, history_id: int, credits: int) -> None:
        if history_id in self._to_drop:
            raise ValueError(f"Matrícula {history_id} ist bereits zum Rückzug markiert.")
        if credits <= 0:
            raise ValueError(f"Credits müssen positiv sein: {credits}")
        self._to_drop[history_id] = credits

    def restore(self, history_id: int) -> None:
        if history_id not in self._to_drop:
            raise KeyError(history_id)
        del self._to_drop[history_id]

    def clear(self) -> None:
        self._to_add.clear()
        self._to_drop.clear()

    # ─── Abfragen ───

    @property
    def to_add(self) -> frozenset[int]:
        return frozenset(self._to_add)

    @property
    def to_drop(self) -> frozenset[int]:
        return frozenset(self._to_drop)

    @property
    def added_credits(self) -> int:
        return sum(self._to_add.values())

    @property
    def dropped_credits(self) -> int:
        return sum(self._to_drop.values())

    @property
    def credit_delta(self) -> int:
        return self.added_credits - self.dropped_credits

    @property
    def is_empty(self) -> bool:
        return not self._to_add and not self._to_drop

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            to_add=self.to_add,
            to_drop=self.to_drop,
            credit_delta=self.credit_delta,
        )

    # ─── Projektionen ───

    def schedule_view(self, directory: "Directory") -> list[ScheduleItem]:
        """Kombinierte Wochenansicht: nicht zurückgezogene Matrículas + vorgemerkte Grupos."""
        items: list[ScheduleItem] = []
        for entry in directory.entries:
            if entry.history_id in self._to_drop:
                continue
            section = directory.get_section(entry.section_id)
            course = directory.get_course(entry.course_id)
            items.append(ScheduleItem(
                source="enrolled",
                course_id=entry.course_id,
                course_code=course.code if course else entry.course_code,
                course_name=course.name if course else entry.course_name,
                section_id=entry.section_id,
                section_code=section.code if section else entry.section_code,
                credits=entry.credits,
                instructor=section.instructor if section else entry.instructor,
                history_id=entry.history_id,
                time_blocks=directory.blocks_of_entry(entry),
            ))
        for section_id in self._to_add:
            section = directory.get_section(section_id)
            if section is None:
                # Grupo nach Aktualisierung nicht mehr im Angebot
                continue
            course = directory.course_of(section)
            items.append(ScheduleItem(
                source="added",
                course_id=section.course_id,
                course_code=course.code if course else f"#{section.course_id}",
                course_name=course.name if course else "",
                section_id=section.id,
                section_code=section.code,
                credits=self._to_add[section_id],
                instructor=section.instructor,
                time_blocks=list(section.time_blocks),
            ))
        return items

    def credit_summary(self, accountant: "CreditAccountant") -> "CreditSummary":
        return accountant.summary(self)

    def __len__(self) -> int:
        return len(self._to_add) + len(self._to_drop)

    def __repr__(self) -> str:
        return f"SelectionLedger(+{len(self._to_add)}, -{len(self._to_drop)})"
