"""Testdaten-Generator für das Portal de Matrícula.

Erzeugt eine Backend-Antwort im Originalformat mit absichtlichen Engpässen,
damit jede Prüfregel der Engine mindestens einmal greift.

Absichtliche Engpässe:
  1. Bestandene Asignatura: MAT101 (cursada) kann nicht erneut belegt werden
  2. Pflicht-Wiederholung: MAT201 (obligatoria_repeticion) ist belegt und
     nicht zurückziehbar (perdida)
  3. Voller Grupo: ALG101-01 hat keinen freien Cupo, ALG101-02 schon
  4. Zeitkonflikt: QUI101-01 überschneidet die belegte FIS101-01
  5. Fehlende Prerrequisitos: PRG201 (en_espera) wegen PRG101
  6. Credit-Puffer: 11 von 18 Credits belegt → höchstens zwei weitere 3er-Asignaturas

Die Daten sind ein explizites Fixture für Tests und den 'generate'-Befehl,
kein Ersatz für fehlende Backend-Daten.
"""

import random
from typing import Optional

from config.schema import PortalConfig
from data.backend_import import parse_portal_payload
from models.portal_data import PortalData

# ─── Namens-Listen ────────────────────────────────────────────────────────────

_INSTRUCTORS = [
    "Ana Rodríguez", "Carlos Gómez", "Diana Martínez", "Eduardo López",
    "Fernanda Díaz", "Gustavo Herrera", "Isabel Castro", "Jorge Ramírez",
    "Laura Torres", "Manuel Vargas", "Natalia Rojas", "Óscar Jiménez",
]

_ROOMS = ["A-101", "A-204", "B-110", "B-305", "C-Lab1", "C-Lab2", "D-201"]

# ─── Katalog ─────────────────────────────────────────────────────────────────
# (id, codigo, nombre, creditos, semestre, categoria, estado, prerequisitos, grupos)
# grupos: (nr, horarios[(dia, inicio, fin)], voll?)

_CATALOG = [
    (1, "MAT101", "Cálculo Diferencial", 4, 1, "obligatoria", "cursada", [], [
        (1, [("LUNES", "07:00", "09:00"), ("MIERCOLES", "07:00", "09:00")], False),
    ]),
    (2, "FIS101", "Física Mecánica", 4, 2, "obligatoria", "matriculada", [(1, "MAT101", True)], [
        (1, [("LUNES", "09:00", "11:00"), ("JUEVES", "09:00", "11:00")], False),
        (2, [("MARTES", "14:00", "16:00"), ("VIERNES", "14:00", "16:00")], False),
    ]),
    (3, "MAT201", "Cálculo Integral", 4, 2, "obligatoria", "obligatoria_repeticion",
     [(1, "MAT101", True)], [
        (1, [("MARTES", "07:00", "09:00"), ("JUEVES", "07:00", "09:00")], False),
    ]),
    (4, "PRG101", "Programación I", 3, 1, "obligatoria", "matriculada", [], [
        (1, [("MIERCOLES", "09:00", "12:00")], False),
    ]),
    (5, "ALG101", "Álgebra Lineal", 3, 2, "obligatoria", "activa", [], [
        (1, [("LUNES", "14:00", "16:00"), ("MIERCOLES", "14:00", "16:00")], True),
        (2, [("MARTES", "09:00", "11:00"), ("VIERNES", "09:00", "11:00")], False),
    ]),
    (6, "QUI101", "Química General", 3, 2, "obligatoria", "activa", [], [
        (1, [("LUNES", "10:00", "12:00"), ("JUEVES", "10:00", "12:00")], False),
        (2, [("MARTES", "16:00", "18:00"), ("JUEVES", "16:00", "18:00")], False),
    ]),
    (7, "EST201", "Estadística", 3, 3, "obligatoria", "activa", [(1, "MAT101", True)], [
        (1, [("MIERCOLES", "16:00", "18:00"), ("VIERNES", "16:00", "18:00")], False),
    ]),
    (8, "ECO101", "Fundamentos de Economía", 2, 3, "electiva", "activa", [], [
        (1, [("SABADO", "08:00", "10:00")], False),
    ]),
    (9, "PRG201", "Programación II", 3, 2, "obligatoria", "en_espera", [(4, "PRG101", False)], [
        (1, [("LUNES", "16:00", "18:00")], False),
    ]),
    (10, "HUM101", "Ética Profesional", 2, 1, "nucleo_comun", "activa", [], [
        (1, [("VIERNES", "07:00", "09:00")], False),
    ]),
]

# (historial_id, asignatura_id, grupo_nr, es_perdida)
_ENROLLED = [
    (1001, 2, 1, False),
    (1002, 3, 1, True),
    (1003, 4, 1, False),
]


class FakePortalGenerator:
    """Erzeugt Fake-Backend-Antworten für einen Studenten."""

    def __init__(self, config: PortalConfig, seed: Optional[int] = None) -> None:
        self.config = config
        self.rng = random.Random(seed)

    @staticmethod
    def section_id(course_id: int, number: int) -> int:
        """Grupo-ID aus Asignatura-ID und laufender Nummer (z.B. 5, 2 → 502)."""
        return course_id * 100 + number

    def _horarios(self, slots: list[tuple[str, str, str]]) -> list[dict]:
        room = self.rng.choice(_ROOMS)
        return [
            {"dia": day, "hora_inicio": start, "hora_fin": end, "salon": room}
            for day, start, end in slots
        ]

    def _grupos(self, course_id: int, code: str, groups: list) -> list[dict]:
        result = []
        for number, slots, full in groups:
            cupo_max = self.rng.choice([25, 30, 35, 40])
            result.append({
                "id": self.section_id(course_id, number),
                "codigo": f"{code}-{number:02d}",
                "docente": self.rng.choice(_INSTRUCTORS),
                "cupo_max": cupo_max,
                "cupo_disponible": 0 if full else self.rng.randint(3, cupo_max),
                "horarios": self._horarios(slots),
            })
        return result

    # ─── Vollständige Antwort ─────────────────────────────────────────────────

    def generate_payload(self) -> dict:
        """Backend-Antwort im Format von GET /modificaciones."""
        asignaturas = []
        by_id: dict[int, dict] = {}
        for cid, code, name, credits, semester, category, state, prereqs, groups in _CATALOG:
            item = {
                "id": cid,
                "codigo": code,
                "nombre": name,
                "creditos": credits,
                "semestre": semester,
                "categoria": category,
                "estado": state,
                "prerequisitos": [
                    {"prerequisito_id": pid, "codigo": pcode, "completado": done}
                    for pid, pcode, done in prereqs
                ],
                "grupos": self._grupos(cid, code, groups),
            }
            asignaturas.append(item)
            by_id[cid] = item

        matriculadas = []
        for history_id, course_id, number, lost in _ENROLLED:
            course = by_id[course_id]
            grupo = next(
                g for g in course["grupos"] if g["id"] == self.section_id(course_id, number)
            )
            matriculadas.append({
                "historial_id": history_id,
                "asignatura_id": course_id,
                "codigo": course["codigo"],
                "nombre": course["nombre"],
                "creditos": course["creditos"],
                "grupo_id": grupo["id"],
                "grupo_codigo": grupo["codigo"],
                "docente": grupo["docente"],
                "horarios": grupo["horarios"],
                "es_atrasada": False,
                "es_perdida": lost,
                "puede_retirar": not lost,
            })

        inscritos = sum(m["creditos"] for m in matriculadas)
        maximo = self.config.credits.default_ceiling
        return {
            "periodo": {"year": self.config.term.year, "semestre": self.config.term.semester},
            "materias_matriculadas": matriculadas,
            "asignaturas_disponibles": asignaturas,
            "creditos": {
                "maximo": maximo,
                "inscritos": inscritos,
                "disponibles": max(0, maximo - inscritos),
            },
            "puede_inscribir": self.config.gates.enrollment_open,
            "puede_modificar": self.config.gates.modification_open,
        }

    def generate(self, student_id: str = "2020114001") -> PortalData:
        """Erzeugt den vollständigen Datensatz als PortalData-Objekt."""
        return parse_portal_payload(self.generate_payload(), student_id, self.config)

    # ─── Ausgabe ──────────────────────────────────────────────────────────────

    def print_summary(self, data: PortalData) -> None:
        """Gibt eine Rich-Tabelle mit Übersicht der erzeugten Daten aus."""
        from rich.console import Console
        from rich.table import Table
        from rich import box

        console = Console()
        table = Table(title="Erzeugte Testdaten", box=box.ROUNDED)
        table.add_column("Kategorie", style="bold cyan")
        table.add_column("Anzahl", justify="right")
        table.add_column("Details")

        full = sum(1 for s in data.sections if not s.has_seats)
        table.add_row("Asignaturas", str(len(data.courses)), "")
        table.add_row("Grupos", str(len(data.sections)), f"{full} ohne Cupo")
        table.add_row("Matrículas", str(len(data.entries)),
                      f"{data.enrolled_credits}/{data.credit_ceiling} Credits")

        console.print(table)
