"""Tests für Solicitud-Speicher, ModificationWorkflow und EnrollmentSession."""

import json
import threading
import pytest
from datetime import datetime, time, timezone
from pathlib import Path
from time import sleep

from config.defaults import default_portal_config
from data.fake_data import FakePortalGenerator
from models.timeblock import TimeBlock, Weekday
from models.course import Course, CourseState
from models.section import Section
from models.enrollment import EnrollmentEntry
from models.portal_data import PortalData
from models.request import ModificationRequest, RequestState
from analysis.submission_validator import SubmissionValidator
from engine import (
    BackendUnavailableError,
    DuplicateRequestError,
    EmptySelectionError,
    EnrollmentSession,
    GateClosedError,
    InMemoryRequestStore,
    InvalidTransitionError,
    JsonRequestStore,
    MissingObservationError,
    ModificationWorkflow,
    ReasonCode,
    RequestNotFoundError,
    SubmissionBlockedError,
)


# ─── Testdaten-Hilfsfunktionen ────────────────────────────────────────────────

_FIXED_NOW = datetime(2025, 2, 3, 10, 30, tzinfo=timezone.utc)


def _block(day: Weekday, start: int, end: int) -> TimeBlock:
    return TimeBlock(day=day, start=time(start), end=time(end))


def _make_mini_portal_data(student_id: str = "S1", **overrides) -> PortalData:
    values = dict(
        student_id=student_id,
        term="2025-1",
        credit_ceiling=18,
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
                    time_blocks=[_block(Weekday.MONDAY, 10, 12)]),
            Section(id=31, course_id=3, code="CALC201-01", seats_max=30, seats_available=3,
                    time_blocks=[_block(Weekday.TUESDAY, 8, 10)]),
            Section(id=41, course_id=4, code="CHEM101-01", seats_max=30, seats_available=3,
                    time_blocks=[_block(Weekday.WEDNESDAY, 8, 10)]),
        ],
        entries=[
            EnrollmentEntry(history_id=100, section_id=11, course_id=1, credits=4,
                            course_code="MATH101", section_code="MATH101-01"),
            EnrollmentEntry(history_id=101, section_id=31, course_id=3, credits=4,
                            course_code="CALC201", section_code="CALC201-01"),
        ],
    )
    values.update(overrides)
    return PortalData(**values)


def _make_workflow(store=None, **kwargs) -> ModificationWorkflow:
    return ModificationWorkflow(
        store or InMemoryRequestStore(),
        validator=SubmissionValidator(),
        clock=lambda: _FIXED_NOW,
        **kwargs,
    )


def _make_session(data: PortalData = None, workflow: ModificationWorkflow = None):
    return EnrollmentSession(data or _make_mini_portal_data(), workflow or _make_workflow())


@pytest.fixture(scope="module")
def fake_data() -> PortalData:
    return FakePortalGenerator(default_portal_config(), seed=42).generate()


# ─── SPEICHER ─────────────────────────────────────────────────────────────────

class TestRequestStore:
    def test_ids_are_sequential(self):
        store = InMemoryRequestStore()
        a = store.create_pending(ModificationRequest(student_id="A"))
        b = store.create_pending(ModificationRequest(student_id="B"))
        assert (a.id, b.id) == (1, 2)
        assert a.submitted_at is not None
        assert len(store) == 2

    def test_single_pending_per_student(self):
        store = InMemoryRequestStore()
        store.create_pending(ModificationRequest(student_id="A"))
        with pytest.raises(DuplicateRequestError):
            store.create_pending(ModificationRequest(student_id="A"))

    def test_concurrent_create_only_one_wins(self):
        """Zwei gleichzeitige Einreichungen desselben Studenten: genau eine gewinnt."""
        store = InMemoryRequestStore()
        barrier = threading.Barrier(8)
        results: list[str] = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            try:
                store.create_pending(ModificationRequest(student_id="A"))
                outcome = "ok"
            except DuplicateRequestError:
                outcome = "dup"
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("ok") == 1
        assert results.count("dup") == 7
        assert len(store.list_requests(RequestState.PENDING)) == 1

    def test_only_pending_can_be_stored(self):
        approved = ModificationRequest(student_id="A", state=RequestState.APPROVED)
        with pytest.raises(ValueError):
            InMemoryRequestStore().create_pending(approved)

    def test_transition_is_compare_and_set(self):
        store = InMemoryRequestStore()
        r = store.create_pending(ModificationRequest(student_id="A"))
        store.transition(r.id, RequestState.APPROVED)
        with pytest.raises(InvalidTransitionError):
            store.transition(r.id, RequestState.REJECTED, observation="zu spät")

    def test_unknown_id(self):
        store = InMemoryRequestStore()
        with pytest.raises(RequestNotFoundError):
            store.get(7)
        with pytest.raises(RequestNotFoundError):
            store.transition(7, RequestState.APPROVED)

    def test_latest_for(self):
        store = InMemoryRequestStore()
        first = store.create_pending(ModificationRequest(student_id="A"))
        store.transition(first.id, RequestState.APPROVED)
        second = store.create_pending(ModificationRequest(student_id="A"))
        assert store.latest_for("A").id == second.id
        assert store.latest_for("Z") is None

    def test_json_store_persists(self, tmp_path: Path):
        path = tmp_path / "requests.json"
        store = JsonRequestStore(path)
        r = store.create_pending(ModificationRequest(student_id="A"))
        store.transition(r.id, RequestState.REJECTED, observation="Sin cupo")

        reopened = JsonRequestStore(path)
        loaded = reopened.get(r.id)
        assert loaded.state == RequestState.REJECTED
        assert loaded.observation == "Sin cupo"
        assert not (tmp_path / "requests.json.tmp").exists()

    def test_json_store_missing_file_is_empty(self, tmp_path: Path):
        assert JsonRequestStore(tmp_path / "none.json").list_requests() == []

    def test_json_store_corrupt_file(self, tmp_path: Path):
        path = tmp_path / "requests.json"
        path.write_text("{kein json", encoding="utf-8")
        with pytest.raises(BackendUnavailableError):
            JsonRequestStore(path).list_requests()

    def test_json_store_two_instances_single_pending(self, tmp_path: Path):
        """Zwei Speicher-Instanzen (wie zwei CLI-Prozesse) auf derselben Datei.

        Die erste liest langsam; die zweite muss warten und dann die offene
        Solicitud der ersten sehen.
        """
        path = tmp_path / "requests.json"
        reading = threading.Event()

        class _SlowStore(JsonRequestStore):
            def _read(self):
                requests = super()._read()
                reading.set()
                sleep(0.3)
                return requests

        results: dict[str, object] = {}

        def submit(name: str, store: JsonRequestStore) -> None:
            try:
                results[name] = store.create_pending(ModificationRequest(student_id="S1")).id
            except DuplicateRequestError:
                results[name] = "dup"

        slow = threading.Thread(target=submit, args=("slow", _SlowStore(path)))
        slow.start()
        assert reading.wait(timeout=5)
        submit("fast", JsonRequestStore(path))
        slow.join()

        assert results == {"slow": 1, "fast": "dup"}
        stored = JsonRequestStore(path).list_requests()
        assert [(r.id, r.state) for r in stored] == [(1, RequestState.PENDING)]

    def test_json_store_file_format(self, tmp_path: Path):
        path = tmp_path / "requests.json"
        JsonRequestStore(path).create_pending(ModificationRequest(student_id="A"))
        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw[0]["state"] == "pendiente"
        assert raw[0]["student_id"] == "A"


# ─── WORKFLOW ─────────────────────────────────────────────────────────────────

class TestModificationWorkflow:
    def test_empty_submit(self):
        """Leere Auswahl → EmptySelectionError, keine Solicitud."""
        session = _make_session()
        with pytest.raises(EmptySelectionError):
            session.submit()
        assert session.workflow.list_requests() == []

    def test_submit_one_addition(self):
        """Ein Grupo vorgemerkt → pendiente, Ledger geleert."""
        session = _make_session()
        assert session.can_add(21).ok
        request = session.submit()
        assert request.state == RequestState.PENDING
        assert request.submitted_at == _FIXED_NOW
        assert [s.section_code for s in request.sections_to_add] == ["PHYS101-01"]
        assert request.sections_to_add[0].time_blocks[0].day == Weekday.MONDAY
        assert session.ledger.is_empty
        assert session.outstanding_request_id == request.id

    def test_drop_is_denormalized(self):
        session = _make_session()
        assert session.can_drop(100).ok
        request = session.submit()
        drop = request.entries_to_drop[0]
        assert (drop.history_id, drop.course_code, drop.credits) == (100, "MATH101", 4)
        assert request.credit_delta == -4

    def test_second_submit_while_pending(self):
        workflow = _make_workflow()
        first = _make_session(workflow=workflow)
        first.can_add(21)
        first.submit()

        second = _make_session(workflow=workflow)
        second.can_add(41)
        with pytest.raises(DuplicateRequestError):
            second.submit()
        assert second.ledger.to_add == frozenset({41})

    def test_gate_closed(self):
        workflow = _make_workflow()
        session = _make_session(workflow=workflow)
        session.can_add(21)
        session.apply_refresh(session.begin_refresh(), _make_mini_portal_data(
            modification_open=False, gate_reason="Plazo vencido"))
        with pytest.raises(GateClosedError) as exc:
            session.submit()
        assert "Plazo vencido" in str(exc.value)
        assert session.ledger.to_add == frozenset({21})

    def test_blocked_by_validator(self):
        """Pflicht-Wiederholung fehlt in der Auswahl → SubmissionBlockedError."""
        data = _make_mini_portal_data(entries=[
            EnrollmentEntry(history_id=100, section_id=11, course_id=1, credits=4),
        ])
        session = _make_session(data)
        assert session.can_add(21).ok
        with pytest.raises(SubmissionBlockedError) as exc:
            session.submit()
        constraints = [v.constraint for v in exc.value.report.errors]
        assert "mandatory_not_included" in constraints
        assert not session.ledger.is_empty

    def test_default_workflow_validates(self):
        """Ohne expliziten Validator: fehlende obligatoria_repeticion blockiert trotzdem."""
        data = _make_mini_portal_data(entries=[
            EnrollmentEntry(history_id=100, section_id=11, course_id=1, credits=4),
        ])
        session = EnrollmentSession(data, ModificationWorkflow(InMemoryRequestStore()))
        assert session.can_add(41).ok
        with pytest.raises(SubmissionBlockedError) as exc:
            session.submit()
        assert [v.constraint for v in exc.value.report.errors] == ["mandatory_not_included"]
        assert session.workflow.list_requests() == []
        assert session.ledger.to_add == frozenset({41})

    def test_reject_requires_observation(self):
        """Ablehnung ohne Text scheitert; mit Text → rechazada; erneut → ungültig."""
        session = _make_session()
        session.can_add(21)
        request = session.submit()
        workflow = session.workflow

        with pytest.raises(MissingObservationError):
            workflow.reject(request.id, "   ")
        assert workflow.get(request.id).is_pending

        rejected = workflow.reject(request.id, "  Sin cupo  ", reviewer_id="JD1")
        assert rejected.state == RequestState.REJECTED
        assert rejected.observation == "Sin cupo"
        assert rejected.reviewer_id == "JD1"
        assert rejected.resolved_at == _FIXED_NOW

        with pytest.raises(InvalidTransitionError):
            workflow.reject(request.id, "nochmal")
        with pytest.raises(InvalidTransitionError):
            workflow.approve(request.id)

    def test_approve_notifies_and_drops_observation(self):
        applied: list[ModificationRequest] = []
        session = _make_session(workflow=_make_workflow(on_approved=applied.append))
        session.can_add(21)
        request = session.submit()

        approved = session.workflow.resolve(request.id, RequestState.APPROVED,
                                            observation="egal")
        assert approved.state == RequestState.APPROVED
        assert approved.observation is None
        assert [r.id for r in applied] == [request.id]

    def test_resolve_to_pending_rejected(self):
        session = _make_session()
        session.can_add(21)
        request = session.submit()
        with pytest.raises(ValueError):
            session.workflow.resolve(request.id, RequestState.PENDING)

    def test_new_submit_after_resolution(self):
        session = _make_session()
        session.can_add(21)
        first = session.submit()
        session.workflow.reject(first.id, "Sin cupo")
        assert session.can_add(41).ok
        second = session.submit()
        assert second.id == first.id + 1


# ─── SITZUNG ──────────────────────────────────────────────────────────────────

class TestEnrollmentSession:
    def test_toggle_section_is_idempotent_pair(self):
        session = _make_session()
        before = session.ledger.snapshot()
        assert session.toggle_section(21).ok
        assert session.toggle_section(21).ok
        assert session.ledger.snapshot() == before

    def test_toggle_entry_is_idempotent_pair(self):
        session = _make_session()
        before = session.ledger.snapshot()
        assert session.toggle_entry(100).ok
        assert session.toggle_entry(100).ok
        assert session.ledger.snapshot() == before

    def test_unknown_ids(self):
        session = _make_session()
        assert session.can_add(999).reason == ReasonCode.UNKNOWN_SECTION
        assert session.can_drop(999).reason == ReasonCode.UNKNOWN_ENTRY

    def test_gate_closed_blocks_mutations(self):
        session = _make_session(_make_mini_portal_data(modification_open=False))
        decision = session.can_add(21)
        assert decision.reason == ReasonCode.GATE_CLOSED
        assert session.can_drop(100).reason == ReasonCode.GATE_CLOSED
        assert session.ledger.is_empty

    def test_removal_allowed_after_gate_closes(self):
        session = _make_session()
        session.can_add(21)
        session.apply_refresh(session.begin_refresh(),
                              _make_mini_portal_data(modification_open=False))
        assert session.toggle_section(21).ok
        assert session.ledger.is_empty

    def test_stale_refresh_discarded(self):
        session = _make_session()
        old_token = session.begin_refresh()
        new_token = session.begin_refresh()
        newer = _make_mini_portal_data(credit_ceiling=12)

        assert session.apply_refresh(new_token, newer)
        assert not session.apply_refresh(old_token, _make_mini_portal_data(credit_ceiling=30))
        assert session.accountant.ceiling == 12

    def test_refresh_for_other_student_rejected(self):
        session = _make_session()
        with pytest.raises(ValueError):
            session.apply_refresh(session.begin_refresh(), _make_mini_portal_data("S2"))

    def test_refresh_keeps_ledger(self):
        session = _make_session()
        session.can_add(21)
        session.apply_refresh(session.begin_refresh(), _make_mini_portal_data())
        assert session.ledger.to_add == frozenset({21})

    def test_restore_vanished_entry(self):
        """Matrícula verschwindet nach Aktualisierung: Markierung wird verworfen."""
        session = _make_session()
        session.can_drop(100)
        session.apply_refresh(session.begin_refresh(), _make_mini_portal_data(entries=[
            EnrollmentEntry(history_id=101, section_id=31, course_id=3, credits=4),
        ]))
        assert session.toggle_entry(100).ok
        assert session.ledger.is_empty

    def test_sync_request_state(self):
        session = _make_session()
        session.can_add(21)
        request = session.submit()
        assert session.sync_request_state() is None

        session.can_add(41)
        session.workflow.approve(request.id)
        resolved = session.sync_request_state()
        assert resolved.state == RequestState.APPROVED
        assert session.outstanding_request_id is None
        assert session.ledger.is_empty

    def test_lost_race_tracks_winning_request(self):
        """Sitzung startet vor der fremden Einreichung und verliert: sync sieht die Auflösung."""
        workflow = _make_workflow()
        winner = _make_session(workflow=workflow)
        loser = _make_session(workflow=workflow)
        assert loser.outstanding_request_id is None

        winner.can_add(21)
        request = winner.submit()
        loser.can_add(41)
        with pytest.raises(DuplicateRequestError):
            loser.submit()
        assert loser.outstanding_request_id == request.id

        workflow.reject(request.id, "Sin cupo")
        resolved = loser.sync_request_state()
        assert resolved.state == RequestState.REJECTED
        assert loser.outstanding_request_id is None

    def test_outstanding_request_loaded_on_start(self):
        workflow = _make_workflow()
        first = _make_session(workflow=workflow)
        first.can_add(21)
        request = first.submit()
        assert _make_session(workflow=workflow).outstanding_request_id == request.id

    def test_cancel(self):
        session = _make_session()
        session.can_add(21)
        session.can_drop(100)
        session.cancel()
        assert session.ledger.is_empty

    def test_credit_summary(self):
        session = _make_session()
        session.can_add(21)
        summary = session.credit_summary()
        assert (summary.base, summary.projected, summary.remaining) == (8, 11, 7)


# ─── TESTDATEN-SZENARIEN ──────────────────────────────────────────────────────

class TestFakeDataSession:
    def test_rules_on_fake_data(self, fake_data):
        session = _make_session(fake_data)
        assert session.can_add(101).reason == ReasonCode.COURSE_PASSED
        assert session.can_add(901).reason == ReasonCode.PREREQUISITES_PENDING
        assert session.can_add(501).reason == ReasonCode.NO_SEATS
        assert session.can_add(601).reason == ReasonCode.TIME_CONFLICT
        assert session.can_add(202).reason == ReasonCode.DUPLICATE_COURSE
        assert session.can_drop(1002).reason == ReasonCode.NOT_WITHDRAWABLE
        assert session.ledger.is_empty

    def test_credit_buffer_on_fake_data(self, fake_data):
        session = _make_session(fake_data)
        assert session.can_add(502).ok      # 14
        assert session.can_add(1001).ok     # 16
        assert session.can_add(701).reason == ReasonCode.CREDIT_LIMIT

    def test_submit_on_fake_data(self, fake_data):
        session = _make_session(fake_data)
        session.can_add(502)
        session.can_drop(1003)
        request = session.submit()
        assert request.student_id == "2020114001"
        assert request.credit_delta == 0
