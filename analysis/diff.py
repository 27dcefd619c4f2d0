"""Vergleich einer offenen Solicitud mit dem aktuellen Angebot (Drift).

Zwischen Einreichung und Entscheidung kann sich das Angebot ändern: Grupos
fallen weg, Cupos laufen voll, Horarios werden verschoben. Der Revisor sieht
diese Unterschiede vor der Genehmigung.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from models.portal_data import PortalData
    from models.request import ModificationRequest


@dataclass
class ScheduleChange:
    """Ein Grupo, dessen Horarios sich seit der Einreichung geändert haben."""

    section_code: str
    old_blocks: list[str]
    new_blocks: list[str]


@dataclass
class RequestDrift:
    """Unterschiede zwischen Solicitud-Snapshot und aktuellem Datensatz."""

    request_id: int
    sections_removed: list[str] = field(default_factory=list)
    seats_exhausted: list[str] = field(default_factory=list)
    schedule_changes: list[ScheduleChange] = field(default_factory=list)
    drops_missing: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        """Gibt True zurück wenn kein Unterschied gefunden wurde."""
        return (
            not self.sections_removed
            and not self.seats_exhausted
            and not self.schedule_changes
            and not self.drops_missing
        )

    def lines(self) -> list[str]:
        """Lesbare Einzelzeilen für die Konsolen-Ausgabe."""
        out = [f"Grupo {s} nicht mehr im Angebot" for s in self.sections_removed]
        out += [f"Grupo {s} ohne freien Cupo" for s in self.seats_exhausted]
        out += [
            f"Horario von {c.section_code} geändert: "
            f"{', '.join(c.old_blocks)} → {', '.join(c.new_blocks)}"
            for c in self.schedule_changes
        ]
        out += [f"Matrícula {d} nicht mehr vorhanden" for d in self.drops_missing]
        return out

    def to_dict(self) -> dict:
        """Serialisiert den Drift als Dictionary (für JSON-Ausgabe)."""
        return {
            "request_id": self.request_id,
            "sections_removed": self.sections_removed,
            "seats_exhausted": self.seats_exhausted,
            "schedule_changes": [
                {
                    "section_code": c.section_code,
                    "old_blocks": c.old_blocks,
                    "new_blocks": c.new_blocks,
                }
                for c in self.schedule_changes
            ],
            "drops_missing": self.drops_missing,
        }

    def to_json(self, indent: int = 2) -> str:
        """Gibt den Drift als JSON-String zurück."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


def diff_request(request: "ModificationRequest", data: "PortalData") -> RequestDrift:
    """Vergleicht den Snapshot einer Solicitud mit dem aktuellen Datensatz.

    Vergleicht:
    - Hinzuzufügende Grupos (entfernt / ohne Cupo / Horario geändert)
    - Zurückzuziehende Matrículas (nicht mehr vorhanden)

    Args:
        request: Solicitud mit denormalisierten Snapshots.
        data:    Aktueller Datensatz des Studenten.

    Returns:
        RequestDrift mit allen gefundenen Unterschieden.
    """
    drift = RequestDrift(request_id=request.id)
    sections = {s.id: s for s in data.sections}

    for requested in request.sections_to_add:
        current = sections.get(requested.section_id)
        if current is None:
            drift.sections_removed.append(requested.section_code)
            continue
        if not current.has_seats:
            drift.seats_exhausted.append(current.code)
        old = sorted(b.label() for b in requested.time_blocks)
        new = sorted(b.label() for b in current.time_blocks)
        if old != new:
            drift.schedule_changes.append(
                ScheduleChange(section_code=current.code, old_blocks=old, new_blocks=new)
            )

    enrolled = {e.history_id for e in data.entries}
    for dropped in request.entries_to_drop:
        if dropped.history_id not in enrolled:
            drift.drops_missing.append(dropped.course_code)

    return drift
