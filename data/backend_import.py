"""Import der Backend-Antworten (JSON) in PortalData bzw. ModificationRequest.

Das Backend liefert spanische Feldnamen (asignaturas_disponibles,
materias_matriculadas, creditos, ...). Alle Fehler eines Payloads werden
gesammelt und gemeinsam als BackendImportError gemeldet.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from config.schema import PortalConfig
from models.course import Course, CourseState, PrerequisiteRef
from models.enrollment import EnrollmentEntry
from models.portal_data import PortalData
from models.request import ModificationRequest, RequestedDrop, RequestedSection
from models.section import Section
from models.timeblock import TimeBlock, Weekday

logger = logging.getLogger(__name__)


class BackendImportError(Exception):
    """Fehler beim Import einer Backend-Antwort."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(
            f"{len(errors)} Fehler beim Import:\n" + "\n".join(f"  • {e}" for e in errors)
        )


# ─── Einzelteile ──────────────────────────────────────────────────────────────

def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    return f"{loc}: {err['msg']}" if loc else err["msg"]


def _parse_horarios(raw: Optional[list[dict]]) -> list[TimeBlock]:
    return [
        TimeBlock(
            day=Weekday(h["dia"]),
            start=h["hora_inicio"],
            end=h["hora_fin"],
            room=h.get("salon") or None,
        )
        for h in (raw or [])
    ]


def _parse_prerequisites(
    raw: Optional[list[dict]], kind: str = "prerequisito"
) -> list[PrerequisiteRef]:
    refs = []
    for p in raw or []:
        refs.append(PrerequisiteRef(
            course_id=p.get("prerequisito_id", p.get("id")),
            satisfied=bool(p.get("completado", p.get("cumplido", False))),
            code=p.get("codigo"),
            kind=p.get("tipo") or kind,
        ))
    return refs


def _parse_state(value: Optional[str]) -> CourseState:
    if not value:
        return CourseState.ACTIVE
    return CourseState(value.strip().lower())


def _parse_course(raw: dict) -> tuple[Course, list[Section]]:
    course = Course(
        id=raw["id"],
        code=raw["codigo"],
        name=raw["nombre"],
        credits=raw["creditos"],
        category=raw.get("categoria") or "obligatoria",
        semester=raw.get("semestre"),
        state=_parse_state(raw.get("estado")),
        prerequisites=(
            _parse_prerequisites(raw.get("prerequisitos"))
            + _parse_prerequisites(raw.get("correquisitos"), kind="correquisito")
        ),
    )
    sections = [
        Section(
            id=g["id"],
            course_id=course.id,
            code=g.get("codigo") or f"{course.code}-{g['id']}",
            instructor=g.get("docente") or None,
            seats_max=g.get("cupo_max", g.get("cupo_disponible", 0)),
            seats_available=g.get("cupo_disponible", 0),
            time_blocks=_parse_horarios(g.get("horarios")),
        )
        for g in raw.get("grupos") or []
    ]
    return course, sections


def _parse_entry(raw: dict) -> EnrollmentEntry:
    if "puede_retirar" in raw:
        withdrawable = bool(raw["puede_retirar"])
    else:
        withdrawable = not (raw.get("es_atrasada") or raw.get("es_perdida"))
    return EnrollmentEntry(
        history_id=raw["historial_id"],
        section_id=raw["grupo_id"],
        course_id=raw["asignatura_id"],
        credits=raw["creditos"],
        withdrawable=withdrawable,
        course_code=raw.get("codigo", ""),
        course_name=raw.get("nombre", ""),
        section_code=raw.get("grupo_codigo", ""),
        instructor=raw.get("docente") or None,
        time_blocks=_parse_horarios(raw.get("horarios")),
    )


def _term_label(periodo: Optional[dict], config: PortalConfig) -> str:
    if not periodo:
        return config.term.label
    return f"{periodo.get('year', config.term.year)}-{periodo.get('semestre', config.term.semester)}"


# ─── Öffentliche Funktionen ──────────────────────────────────────────────────

def parse_portal_payload(
    payload: dict[str, Any], student_id: str, config: PortalConfig
) -> PortalData:
    """Backend-Antwort (Modificaciones/Inscripción) → PortalData.

    Fehlende Gates und Credit-Obergrenze werden aus der Konfiguration ergänzt.

    Raises:
        BackendImportError: mit allen gesammelten Fehlern.
    """
    errors: list[str] = []
    courses: list[Course] = []
    sections: list[Section] = []
    entries: list[EnrollmentEntry] = []

    offering = payload.get("asignaturas_disponibles", payload.get("asignaturas")) or []
    for i, raw in enumerate(offering):
        label = raw.get("codigo", f"#{i}") if isinstance(raw, dict) else f"#{i}"
        try:
            course, course_sections = _parse_course(raw)
        except ValidationError as e:
            errors.append(f"Asignatura {label}: {_first_error(e)}")
            continue
        except (KeyError, TypeError, ValueError) as e:
            errors.append(f"Asignatura {label}: ungültiger Eintrag ({e})")
            continue
        courses.append(course)
        sections.extend(course_sections)

    for i, raw in enumerate(payload.get("materias_matriculadas") or []):
        label = raw.get("codigo", f"#{i}") if isinstance(raw, dict) else f"#{i}"
        try:
            entries.append(_parse_entry(raw))
        except ValidationError as e:
            errors.append(f"Matrícula {label}: {_first_error(e)}")
        except (KeyError, TypeError, ValueError) as e:
            errors.append(f"Matrícula {label}: ungültiger Eintrag ({e})")

    if errors:
        raise BackendImportError(errors)

    # Belegte Asignaturas, die nicht im Angebot stehen, als matriculada ergänzen
    known = {c.id for c in courses}
    for entry in entries:
        if entry.course_id in known:
            continue
        courses.append(Course(
            id=entry.course_id,
            code=entry.course_code or f"#{entry.course_id}",
            name=entry.course_name or entry.course_code,
            credits=entry.credits,
            state=CourseState.ENROLLED_CURRENT,
        ))
        known.add(entry.course_id)

    creditos = payload.get("creditos") or {}
    ceiling = creditos.get("maximo")
    if ceiling is None:
        ceiling = config.credits.default_ceiling
        logger.info(f"Keine Credit-Obergrenze geliefert – Fallback {ceiling}")
    clamped = config.credits.clamp(int(ceiling))
    if clamped != ceiling:
        logger.warning(f"Credit-Obergrenze {ceiling} auf {clamped} begrenzt")

    data = PortalData(
        student_id=student_id,
        term=_term_label(payload.get("periodo"), config),
        credit_ceiling=clamped,
        enrollment_open=payload.get("puede_inscribir", config.gates.enrollment_open),
        modification_open=payload.get("puede_modificar", config.gates.modification_open),
        gate_reason=payload.get("razon") or config.gates.closed_reason,
        courses=courses,
        sections=sections,
        entries=entries,
        fetched_at=datetime.now(timezone.utc),
    )
    logger.info(
        f"Import: {len(courses)} Asignaturas, {len(sections)} Grupos, "
        f"{len(entries)} Matrículas für {student_id}"
    )
    return data


def load_portal_payload(path: Path, student_id: str, config: PortalConfig) -> PortalData:
    """Liest eine Backend-Antwort aus einer JSON-Datei."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"JSON-Datei nicht gefunden: {path}")
    with open(path, "r", encoding="utf-8") as f:
        try:
            payload = json.load(f)
        except json.JSONDecodeError as e:
            raise BackendImportError([f"{path.name}: kein gültiges JSON ({e})"]) from e
    if not isinstance(payload, dict):
        raise BackendImportError([f"{path.name}: JSON-Objekt erwartet"])
    return parse_portal_payload(payload, student_id, config)


def parse_request_payload(payload: dict[str, Any]) -> ModificationRequest:
    """Lesemodell einer Solicitud → ModificationRequest.

    Raises:
        BackendImportError: bei fehlenden oder ungültigen Feldern.
    """
    try:
        return ModificationRequest(
            id=payload.get("id", 0),
            student_id=str(payload["estudiante_id"]),
            state=payload.get("estado", "pendiente"),
            submitted_at=payload.get("fecha_solicitud"),
            resolved_at=payload.get("fecha_resolucion"),
            reviewer_id=payload.get("revisor_id"),
            observation=payload.get("observacion") or None,
            sections_to_add=[
                RequestedSection(
                    section_id=g["grupo_id"],
                    course_id=g["asignatura_id"],
                    course_code=g.get("codigo", ""),
                    course_name=g.get("nombre", ""),
                    section_code=g.get("grupo_codigo", ""),
                    credits=g["creditos"],
                    instructor=g.get("docente") or None,
                    time_blocks=_parse_horarios(g.get("horarios")),
                )
                for g in payload.get("grupos_agregar") or []
            ],
            entries_to_drop=[
                RequestedDrop(
                    history_id=m["historial_id"],
                    section_id=m["grupo_id"],
                    course_id=m["asignatura_id"],
                    course_code=m.get("codigo", ""),
                    course_name=m.get("nombre", ""),
                    section_code=m.get("grupo_codigo", ""),
                    credits=m["creditos"],
                    time_blocks=_parse_horarios(m.get("horarios")),
                )
                for m in payload.get("materias_retirar") or []
            ],
        )
    except ValidationError as e:
        raise BackendImportError([f"Solicitud: {_first_error(e)}"]) from e
    except KeyError as e:
        raise BackendImportError([f"Solicitud: Feld {e} fehlt"]) from e
    except (TypeError, ValueError) as e:
        raise BackendImportError([f"Solicitud: ungültiger Eintrag ({e})"]) from e
