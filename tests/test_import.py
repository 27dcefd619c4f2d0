"""Tests für den Import von Backend-Antworten (Modificaciones, Solicitudes)."""

import copy
import json
import pytest
from pathlib import Path

from config.defaults import default_portal_config
from data.backend_import import (
    BackendImportError, load_portal_payload, parse_portal_payload, parse_request_payload,
)
from data.fake_data import FakePortalGenerator
from models.course import CourseState
from models.request import RequestState
from models.timeblock import Weekday


# ─── Testdaten-Hilfsfunktionen ────────────────────────────────────────────────

def _make_payload() -> dict:
    return {
        "periodo": {"year": 2025, "semestre": 2},
        "asignaturas_disponibles": [
            {
                "id": 1, "codigo": "MAT101", "nombre": "Cálculo", "creditos": 4,
                "estado": "activa",
                "prerequisitos": [{"prerequisito_id": 9, "codigo": "MAT001", "completado": True}],
                "grupos": [{
                    "id": 101, "codigo": "MAT101-01", "docente": "Ana Rodríguez",
                    "cupo_max": 30, "cupo_disponible": 4,
                    "horarios": [
                        {"dia": "Miércoles", "hora_inicio": "08:00", "hora_fin": "10:00",
                         "salon": "A-101"},
                    ],
                }],
            },
        ],
        "materias_matriculadas": [
            {
                "historial_id": 500, "asignatura_id": 7, "codigo": "HUM201",
                "nombre": "Humanidades", "creditos": 2, "grupo_id": 701,
                "grupo_codigo": "HUM201-01", "es_perdida": True,
                "horarios": [{"dia": "VIERNES", "hora_inicio": "07:00", "hora_fin": "09:00"}],
            },
        ],
        "creditos": {"maximo": 20, "inscritos": 2, "disponibles": 18},
        "puede_inscribir": False,
        "puede_modificar": True,
    }


def _parse(payload: dict):
    return parse_portal_payload(payload, "S1", default_portal_config())


# ─── PORTAL-DATEN ─────────────────────────────────────────────────────────────

class TestParsePortalPayload:
    def test_basic_fields(self):
        data = _parse(_make_payload())
        assert data.term == "2025-2"
        assert data.credit_ceiling == 20
        assert data.modification_open is True
        assert data.enrollment_open is False
        assert data.fetched_at is not None

    def test_time_blocks_normalized(self):
        section = _parse(_make_payload()).sections[0]
        block = section.time_blocks[0]
        assert block.day == Weekday.WEDNESDAY
        assert block.label() == "MIERCOLES 08:00–10:00"
        assert block.room == "A-101"

    def test_entry_withdrawable_from_flags(self):
        entry = _parse(_make_payload()).entries[0]
        assert entry.withdrawable is False

    def test_puede_retirar_has_priority(self):
        payload = _make_payload()
        payload["materias_matriculadas"][0]["puede_retirar"] = True
        assert _parse(payload).entries[0].withdrawable is True

    def test_unoffered_enrollment_becomes_course(self):
        """Belegte Asignatura ohne Angebot wird als matriculada ergänzt."""
        data = _parse(_make_payload())
        extra = next(c for c in data.courses if c.id == 7)
        assert extra.code == "HUM201"
        assert extra.state == CourseState.ENROLLED_CURRENT
        assert data.check_consistency().is_consistent

    def test_corequisites_parsed(self):
        payload = _make_payload()
        payload["asignaturas_disponibles"][0]["correquisitos"] = [
            {"prerequisito_id": 7, "codigo": "HUM201", "completado": False},
        ]
        course = _parse(payload).courses[0]
        assert [p.code for p in course.missing_corequisites] == ["HUM201"]
        assert course.missing_prerequisites == []

    def test_missing_ceiling_uses_default(self):
        payload = _make_payload()
        del payload["creditos"]
        assert _parse(payload).credit_ceiling == 18

    def test_ceiling_is_clamped(self):
        payload = _make_payload()
        payload["creditos"]["maximo"] = 99
        assert _parse(payload).credit_ceiling == 30

    def test_missing_gates_use_config(self):
        payload = _make_payload()
        del payload["puede_modificar"]
        del payload["puede_inscribir"]
        payload["razon"] = "Fuera de calendario"
        data = _parse(payload)
        assert data.modification_open is True
        assert data.gate_reason == "Fuera de calendario"

    def test_alternative_offering_key(self):
        payload = _make_payload()
        payload["asignaturas"] = payload.pop("asignaturas_disponibles")
        assert len(_parse(payload).sections) == 1

    def test_errors_are_collected(self):
        payload = _make_payload()
        payload["asignaturas_disponibles"][0]["grupos"][0]["horarios"][0]["dia"] = "FUNDAY"
        payload["materias_matriculadas"][0]["creditos"] = 0
        with pytest.raises(BackendImportError) as exc:
            _parse(payload)
        assert len(exc.value.errors) == 2
        assert "MAT101" in exc.value.errors[0]
        assert "HUM201" in exc.value.errors[1]

    def test_inverted_block_is_error(self):
        payload = _make_payload()
        horario = payload["asignaturas_disponibles"][0]["grupos"][0]["horarios"][0]
        horario["hora_inicio"], horario["hora_fin"] = horario["hora_fin"], horario["hora_inicio"]
        with pytest.raises(BackendImportError):
            _parse(payload)

    def test_fake_payload_parses(self):
        payload = FakePortalGenerator(default_portal_config(), seed=1).generate_payload()
        data = _parse(copy.deepcopy(payload))
        assert len(data.sections) == 13


class TestLoadPortalPayload:
    def test_load_from_file(self, tmp_path: Path):
        path = tmp_path / "antwort.json"
        path.write_text(json.dumps(_make_payload()), encoding="utf-8")
        data = load_portal_payload(path, "S1", default_portal_config())
        assert data.student_id == "S1"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_portal_payload(tmp_path / "fehlt.json", "S1", default_portal_config())

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "kaputt.json"
        path.write_text("[1, 2", encoding="utf-8")
        with pytest.raises(BackendImportError):
            load_portal_payload(path, "S1", default_portal_config())

    def test_json_must_be_object(self, tmp_path: Path):
        path = tmp_path / "liste.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(BackendImportError):
            load_portal_payload(path, "S1", default_portal_config())

    def test_cli_import(self):
        from click.testing import CliRunner
        from main import cli
        runner = CliRunner()
        with runner.isolated_filesystem():
            Path("antwort.json").write_text(json.dumps(_make_payload()), encoding="utf-8")
            result = runner.invoke(cli, ["import", "antwort.json", "--student", "S1"])
            assert result.exit_code == 0, result.output
            assert Path("data/portal_data.json").exists()

    def test_cli_import_errors(self):
        from click.testing import CliRunner
        from main import cli
        runner = CliRunner()
        with runner.isolated_filesystem():
            payload = _make_payload()
            payload["materias_matriculadas"][0]["creditos"] = -1
            Path("antwort.json").write_text(json.dumps(payload), encoding="utf-8")
            result = runner.invoke(cli, ["import", "antwort.json", "--student", "S1"])
            assert result.exit_code == 1
            assert "Import fehlgeschlagen" in result.output


# ─── SOLICITUDES ──────────────────────────────────────────────────────────────

class TestParseRequestPayload:
    def test_rejected_request(self):
        request = parse_request_payload({
            "id": 12,
            "estudiante_id": 2020114001,
            "estado": "rechazada",
            "fecha_solicitud": "2025-02-03T10:30:00Z",
            "fecha_resolucion": "2025-02-04T09:00:00Z",
            "revisor_id": "JD7",
            "observacion": "Sin cupo",
            "grupos_agregar": [{
                "grupo_id": 502, "asignatura_id": 5, "codigo": "ALG101",
                "grupo_codigo": "ALG101-02", "creditos": 3,
                "horarios": [{"dia": "MARTES", "hora_inicio": "09:00", "hora_fin": "11:00"}],
            }],
            "materias_retirar": [{
                "historial_id": 1003, "grupo_id": 401, "asignatura_id": 4,
                "codigo": "PRG101", "creditos": 3,
            }],
        })
        assert request.student_id == "2020114001"
        assert request.state == RequestState.REJECTED
        assert request.observation == "Sin cupo"
        assert request.credit_delta == 0
        assert request.sections_to_add[0].time_blocks[0].day == Weekday.TUESDAY

    def test_missing_student(self):
        with pytest.raises(BackendImportError):
            parse_request_payload({"id": 1, "estado": "pendiente"})

    def test_unknown_day(self):
        """Unbekannter Tag im Horario → BackendImportError statt ValueError."""
        with pytest.raises(BackendImportError) as exc:
            parse_request_payload({
                "estudiante_id": "S1",
                "grupos_agregar": [{
                    "grupo_id": 502, "asignatura_id": 5, "creditos": 3,
                    "horarios": [{"dia": "FUNDAY", "hora_inicio": "09:00", "hora_fin": "11:00"}],
                }],
            })
        assert "Solicitud" in exc.value.errors[0]

    def test_rejected_without_observation(self):
        with pytest.raises(BackendImportError):
            parse_request_payload({"estudiante_id": "S1", "estado": "rechazada"})

    def test_empty_observation_on_approval_ignored(self):
        request = parse_request_payload({
            "estudiante_id": "S1", "estado": "aprobada", "observacion": "",
            "fecha_resolucion": "2025-02-04T09:00:00Z",
        })
        assert request.observation is None
