"""Standardkonfiguration und Meldungstexte der Prüfentscheidungen."""

from config.schema import (
    CreditPolicy,
    GateConfig,
    PortalConfig,
    ScheduleGridConfig,
    StorageConfig,
    TermConfig,
)


def default_portal_config() -> PortalConfig:
    """Standardkonfiguration eines Semesters.

    Wochenraster 07–22 Uhr, Montag bis Samstag, 18 Credits Obergrenze.
    Modificaciones offen, Inscripción geschlossen (typische Lage nach der
    ersten Einschreibungswoche).
    """
    return PortalConfig(
        portal_name="Portal de Matrícula",
        term=TermConfig(year=2025, semester=1),
        credits=CreditPolicy(default_ceiling=18, min_ceiling=0, max_ceiling=30),
        gates=GateConfig(enrollment_open=False, modification_open=True),
        schedule_grid=ScheduleGridConfig(first_hour=7, last_hour=22),
        storage=StorageConfig(),
    )


# Meldungstexte der Prüfentscheidungen (Schlüssel = ReasonCode-Wert).
# Platzhalter werden per str.format befüllt.
REASON_TEXTS: dict[str, str] = {
    "course_passed": "{course} wurde bereits bestanden und kann nicht erneut belegt werden.",
    "prerequisites_pending": "{course}: Prerrequisitos fehlen ({missing}).",
    "already_selected": "Grupo {section} ist bereits ausgewählt.",
    "duplicate_course": "Pro Asignatura nur ein Grupo: {course} ist bereits mit {other} belegt.",
    "no_seats": "Grupo {section} hat keinen freien Cupo.",
    "time_conflict": "Zeitkonflikt mit {other}: {block_a} überschneidet {block_b}.",
    "credit_limit": "Credit-Obergrenze überschritten: {projected} + {extra} > {ceiling}.",
    "not_withdrawable": "{course} kann nicht zurückgezogen werden (atrasada/perdida).",
    "mandatory_repeat": "{course} ist obligatoria_repeticion und muss belegt bleiben.",
    "already_marked": "{course} ist bereits zum Rückzug markiert.",
    "not_marked": "{course} ist nicht zum Rückzug markiert.",
    "gate_closed": "{gate} ist geschlossen.{reason}",
    "unknown_section": "Grupo {section} ist nicht im Angebot.",
    "unknown_entry": "Matrícula {entry} existiert nicht.",
}
