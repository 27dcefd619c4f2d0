"""Directory – Nachschlagewerk für Asignaturas, Grupos und Matrículas eines Datensatzes."""

from typing import Optional

from models.course import Course, CourseState
from models.enrollment import EnrollmentEntry
from models.portal_data import PortalData
from models.section import Section
from models.timeblock import TimeBlock


class Directory:
    """Indexiert einen PortalData-Datensatz nach IDs.

    Unveränderlich: bei neuen Backend-Daten wird ein neues Directory gebaut.
    """

    def __init__(self, data: PortalData) -> None:
        self.data = data
        self._courses: dict[int, Course] = {c.id: c for c in data.courses}
        self._sections: dict[int, Section] = {s.id: s for s in data.sections}
        self._entries: dict[int, EnrollmentEntry] = {e.history_id: e for e in data.entries}
        self._by_course: dict[int, list[Section]] = {}
        for section in data.sections:
            self._by_course.setdefault(section.course_id, []).append(section)

    # ─── Lookups ───

    def get_course(self, course_id: int) -> Optional[Course]:
        return self._courses.get(course_id)

    def get_section(self, section_id: int) -> Optional[Section]:
        return self._sections.get(section_id)

    def get_entry(self, history_id: int) -> Optional[EnrollmentEntry]:
        return self._entries.get(history_id)

    def course_of(self, section: Section) -> Optional[Course]:
        return self._courses.get(section.course_id)

    def sections_of(self, course_id: int) -> list[Section]:
        """Alle Grupos einer Asignatura (Reihenfolge wie geliefert)."""
        return list(self._by_course.get(course_id, []))

    @property
    def entries(self) -> list[EnrollmentEntry]:
        return list(self.data.entries)

    @property
    def courses(self) -> list[Course]:
        return list(self.data.courses)

    def mandatory_repeat_courses(self) -> list[Course]:
        return [c for c in self.data.courses if c.state == CourseState.MANDATORY_REPEAT]

    def blocks_of_entry(self, entry: EnrollmentEntry) -> list[TimeBlock]:
        """Horarios einer Matrícula.

        Grupo im Angebot → dessen Horarios, sonst die im Eintrag gespeicherten.
        """
        section = self._sections.get(entry.section_id)
        if section is not None:
            return list(section.time_blocks)
        return list(entry.time_blocks)

    def course_label(self, course_id: int, fallback: str = "") -> str:
        course = self._courses.get(course_id)
        if course is not None:
            return course.code
        return fallback or f"#{course_id}"

    def __repr__(self) -> str:
        return (
            f"Directory({len(self._courses)} Asignaturas, "
            f"{len(self._sections)} Grupos, {len(self._entries)} Matrículas)"
        )
