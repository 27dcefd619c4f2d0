"""Tests für Einreichungsprüfung und Solicitud-Drift."""

import json
import pytest
from datetime import time

from models.timeblock import TimeBlock, Weekday
from models.course import Course, CourseState, PrerequisiteRef
from models.section import Section
from models.enrollment import EnrollmentEntry
from models.portal_data import PortalData
from engine.directory import Directory
from engine.credits import CreditAccountant
from engine.ledger import SelectionLedger
from engine.workflow import ModificationWorkflow
from analysis.submission_validator import SubmissionValidator, ValidationReport
from analysis.diff import RequestDrift, diff_request


# ─── Testdaten-Hilfsfunktionen ────────────────────────────────────────────────

def _block(day: Weekday, start: int, end: int) -> TimeBlock:
    return TimeBlock(day=day, start=time(start), end=time(end))


def _make_mini_portal_data(mandatory_seats: int = 2, enrolled_mandatory: bool = True) -> PortalData:
    entries = [
        EnrollmentEntry(history_id=100, section_id=11, course_id=1, credits=4,
                        course_code="MATH101", section_code="MATH101-01"),
    ]
    if enrolled_mandatory:
        entries.append(EnrollmentEntry(history_id=101, section_id=31, course_id=3, credits=4,
                                       course_code="CALC201", section_code="CALC201-01"))
    return PortalData(
        student_id="S1",
        term="2025-1",
        credit_ceiling=12,
        modification_open=True,
        courses=[
            Course(id=1, code="MATH101", name="Mathematik I", credits=4,
                   state=CourseState.ENROLLED_CURRENT),
            Course(id=2, code="PHYS101", name="Physik I", credits=3),
            Course(id=3, code="CALC201", name="Analysis II", credits=4,
                   state=CourseState.MANDATORY_REPEAT),
            Course(id=4, code="CHEM101", name="Chemie", credits=3),
        ],
        sections=[
            Section(id=11, course_id=1, code="MATH101-01", seats_max=30, seats_available=3,
                    time_blocks=[_block(Weekday.MONDAY, 8, 10)]),
            Section(id=21, course_id=2, code="PHYS101-01", seats_max=30, seats_available=3,
                    time_blocks=[_block(Weekday.MONDAY, 9, 11)]),
            Section(id=22, course_id=2, code="PHYS101-02", seats_max=30, seats_available=0,
                    time_blocks=[_block(Weekday.THURSDAY, 8, 10)]),
            Section(id=31, course_id=3, code="CALC201-01", seats_max=30,
                    seats_available=mandatory_seats,
                    time_blocks=[_block(Weekday.TUESDAY, 8, 10)]),
            Section(id=41, course_id=4, code="CHEM101-01", seats_max=30, seats_available=3,
                    time_blocks=[_block(Weekday.WEDNESDAY, 8, 10)]),
        ],
        entries=entries,
    )


def _with_corequisite(data: PortalData, coreq_id: int = 2, satisfied: bool = False) -> PortalData:
    """CHEM101 verlangt eine weitere Asignatura als Correquisito (Standard: PHYS101)."""
    coreq = PrerequisiteRef(course_id=coreq_id, satisfied=satisfied, kind="correquisito")
    courses = [
        c.model_copy(update={"prerequisites": [coreq]}) if c.id == 4 else c
        for c in data.courses
    ]
    return data.model_copy(update={"courses": courses})


def _validate(data: PortalData, ledger: SelectionLedger) -> ValidationReport:
    directory = Directory(data)
    return SubmissionValidator().validate(
        ledger, directory, CreditAccountant(directory, data.credit_ceiling)
    )


def _constraints(report: ValidationReport) -> list[str]:
    return [v.constraint for v in report.violations]


# ─── EINREICHUNGSPRÜFUNG ──────────────────────────────────────────────────────

class TestSubmissionValidator:
    def test_valid_selection(self):
        ledger = SelectionLedger()
        ledger.add(41, 3)
        report = _validate(_make_mini_portal_data(), ledger)
        assert report.is_valid
        assert report.violations == []

    def test_mandatory_not_included(self):
        ledger = SelectionLedger()
        ledger.add(41, 3)
        report = _validate(_make_mini_portal_data(enrolled_mandatory=False), ledger)
        assert not report.is_valid
        assert "mandatory_not_included" in _constraints(report)

    def test_mandatory_included_via_addition(self):
        ledger = SelectionLedger()
        ledger.add(31, 4)
        report = _validate(_make_mini_portal_data(enrolled_mandatory=False), ledger)
        assert "mandatory_not_included" not in _constraints(report)

    def test_mandatory_without_seats(self):
        ledger = SelectionLedger()
        ledger.add(41, 3)
        data = _make_mini_portal_data(mandatory_seats=0, enrolled_mandatory=False)
        report = _validate(data, ledger)
        assert "mandatory_without_seats" in _constraints(report)
        assert SubmissionValidator().mandatory_without_seats(Directory(data)) == ["CALC201"]

    def test_enrolled_mandatory_not_listed_without_seats(self):
        data = _make_mini_portal_data(mandatory_seats=0)
        assert SubmissionValidator().mandatory_without_seats(Directory(data)) == []

    def test_time_overlap(self):
        """Ledger am Checker vorbei befüllt: Prüfung findet die Überschneidung."""
        ledger = SelectionLedger()
        ledger.add(21, 3)
        report = _validate(_make_mini_portal_data(), ledger)
        overlap = [v for v in report.errors if v.constraint == "time_overlap"]
        assert len(overlap) == 1
        assert "MATH101" in overlap[0].description

    def test_credit_ceiling(self):
        ledger = SelectionLedger()
        ledger.add(41, 3)
        ledger.add(21, 3)
        report = _validate(_make_mini_portal_data(), ledger)
        assert "credit_ceiling" in _constraints(report)

    def test_vanished_ids(self):
        ledger = SelectionLedger()
        ledger.add(999, 3)
        ledger.drop(555, 2)
        report = _validate(_make_mini_portal_data(), ledger)
        assert {"section_not_offered", "entry_not_enrolled"} <= set(_constraints(report))

    def test_full_section_is_warning(self):
        ledger = SelectionLedger()
        ledger.add(22, 3)
        report = _validate(_make_mini_portal_data(), ledger)
        assert report.is_valid
        assert [w.constraint for w in report.warnings] == ["no_seats_anymore"]

    def test_corequisite_missing(self):
        ledger = SelectionLedger()
        ledger.add(41, 3)
        report = _validate(_with_corequisite(_make_mini_portal_data()), ledger)
        assert not report.is_valid
        missing = [v for v in report.errors if v.constraint == "corequisite_missing"]
        assert len(missing) == 1
        assert missing[0].entity == "CHEM101"
        assert "PHYS101" in missing[0].description

    def test_corequisite_in_same_selection(self):
        """PHYS101 im selben Ledger: Correquisito erfüllt."""
        ledger = SelectionLedger()
        ledger.drop(100, 4)      # macht Mo 09–11 frei
        ledger.add(41, 3)
        ledger.add(21, 3)
        report = _validate(_with_corequisite(_make_mini_portal_data()), ledger)
        assert report.is_valid, report.errors

    def test_corequisite_already_enrolled(self):
        ledger = SelectionLedger()
        ledger.add(41, 3)
        report = _validate(_with_corequisite(_make_mini_portal_data(), coreq_id=1), ledger)
        assert "corequisite_missing" not in _constraints(report)

    def test_corequisite_dropped_in_same_selection(self):
        """Belegter Correquisito wird zurückgezogen: nicht mehr erfüllt."""
        ledger = SelectionLedger()
        ledger.add(41, 3)
        ledger.drop(100, 4)
        report = _validate(_with_corequisite(_make_mini_portal_data(), coreq_id=1), ledger)
        assert "corequisite_missing" in _constraints(report)

    def test_corequisite_already_passed(self):
        ledger = SelectionLedger()
        ledger.add(41, 3)
        report = _validate(_with_corequisite(_make_mini_portal_data(), satisfied=True), ledger)
        assert report.is_valid

    def test_print_rich(self, capsys):
        ledger = SelectionLedger()
        ledger.add(21, 3)
        _validate(_make_mini_portal_data(), ledger).print_rich()
        assert "BLOCKIERT" in capsys.readouterr().out


# ─── DRIFT ────────────────────────────────────────────────────────────────────

@pytest.fixture(scope="module")
def submitted_request():
    """Solicitud: +CHEM101-01, +PHYS101-02, -MATH101."""
    data = _make_mini_portal_data()
    ledger = SelectionLedger()
    ledger.add(41, 3)
    ledger.add(22, 3)
    ledger.drop(100, 4)
    return ModificationWorkflow.build_request("S1", ledger, Directory(data))


class TestRequestDrift:
    def test_no_drift(self, submitted_request):
        drift = diff_request(submitted_request, _make_mini_portal_data())
        # PHYS101-02 war schon bei Einreichung voll
        assert drift.seats_exhausted == ["PHYS101-02"]
        assert drift.sections_removed == []
        assert drift.schedule_changes == []

    def test_removed_and_moved(self, submitted_request):
        data = _make_mini_portal_data()
        moved = data.sections[4].model_copy(
            update={"time_blocks": [_block(Weekday.FRIDAY, 14, 16)]}
        )
        current = data.model_copy(update={
            "sections": [s for s in data.sections if s.id not in (22, 41)] + [moved],
            "entries": [e for e in data.entries if e.history_id != 100],
        })
        drift = diff_request(submitted_request, current)
        assert drift.sections_removed == ["PHYS101-02"]
        assert len(drift.schedule_changes) == 1
        change = drift.schedule_changes[0]
        assert change.section_code == "CHEM101-01"
        assert change.new_blocks == ["VIERNES 14:00–16:00"]
        assert drift.drops_missing == ["MATH101"]
        assert not drift.is_empty()
        assert len(drift.lines()) == 3

    def test_empty_drift(self):
        drift = RequestDrift(request_id=5)
        assert drift.is_empty()
        assert drift.lines() == []

    def test_to_json(self, submitted_request):
        drift = diff_request(submitted_request, _make_mini_portal_data())
        raw = json.loads(drift.to_json())
        assert raw["request_id"] == submitted_request.id
        assert raw["seats_exhausted"] == ["PHYS101-02"]
