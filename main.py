"""Portal de Matrícula: Haupt-CLI.

Verwendung:
  python main.py setup                       Ersteinrichtung (Konfiguration)
  python main.py config show                 Konfiguration anzeigen
  python main.py config edit                 Konfiguration bearbeiten
  python main.py generate                    Fake-Datensatz erzeugen + speichern
  python main.py import <antwort.json>       Backend-Antwort importieren
  python main.py validate                    Konsistenz-Check des Datensatzes
  python main.py schedule --add 502          Auswahl prüfen, Wochenplan anzeigen
  python main.py submit --add 502 --drop 1003
                                             Solicitud einreichen
  python main.py requests list               Solicitudes auflisten
  python main.py requests show <id>          Solicitud + Drift anzeigen
  python main.py requests approve <id>       Solicitud genehmigen
  python main.py requests reject <id> -o ..  Solicitud ablehnen
  python main.py export --excel --pdf        Wochenplan / Beleg exportieren
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box

console = Console()


def _load_config_or_abort():
    """Lädt die Konfiguration (oder Standardwerte) und bricht bei Fehlern ab."""
    from config.manager import ConfigManager
    mgr = ConfigManager()
    try:
        return mgr, mgr.load_or_default()
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


def _load_data_or_abort(json_path: Optional[str], config):
    """Lädt den gespeicherten Datensatz oder bricht mit Hinweis ab."""
    from models.portal_data import PortalData

    p = Path(json_path or config.storage.data_path)
    if not p.exists():
        console.print(
            f"[red]Keine Datendatei gefunden: {p}[/red]\n"
            "Verwenden Sie [bold]python main.py generate[/bold] "
            "oder [bold]python main.py import <antwort.json>[/bold]."
        )
        sys.exit(1)
    return PortalData.load_json(p)


def _build_workflow(config, requests_path: Optional[str] = None):
    from analysis.submission_validator import SubmissionValidator
    from engine import JsonRequestStore, ModificationWorkflow

    store = JsonRequestStore(Path(requests_path or config.storage.requests_path))
    return ModificationWorkflow(store, validator=SubmissionValidator())


def _apply_selection(session, add: tuple[int, ...], drop: tuple[int, ...]) -> bool:
    """Spielt --add/--drop auf die Sitzung ein. Gibt False bei Ablehnung zurück."""
    all_ok = True
    for section_id in add:
        decision = session.toggle_section(section_id)
        all_ok &= _print_decision(f"+ Grupo {section_id}", decision)
    for history_id in drop:
        decision = session.toggle_entry(history_id)
        all_ok &= _print_decision(f"- Matrícula {history_id}", decision)
    return all_ok


def _print_decision(label: str, decision) -> bool:
    if decision.ok:
        console.print(f"[green]✓[/green] {label}")
    else:
        console.print(f"[red]✗[/red] {label}: {decision.message} [dim]({decision.reason.value})[/dim]")
    return decision.ok


def _print_request(request) -> None:
    """Gibt eine Solicitud als Rich-Tabelle aus."""
    color = {"pendiente": "yellow", "aprobada": "green", "rechazada": "red"}[request.state.value]
    header = [
        f"[bold]Solicitud #{request.id}[/bold]  |  {request.student_id}  |  "
        f"[{color}]{request.state.value}[/{color}]",
    ]
    if request.submitted_at:
        header.append(f"Enviada: {request.submitted_at:%d.%m.%Y %H:%M}")
    if request.resolved_at:
        header.append(
            f"Resuelta: {request.resolved_at:%d.%m.%Y %H:%M} "
            f"(Revisor: {request.reviewer_id or '-'})"
        )
    if request.observation:
        header.append(f"Observación: {request.observation}")
    console.print(Panel("\n".join(header), border_style=color))

    table = Table(box=box.ROUNDED)
    table.add_column("Acción")
    table.add_column("Código", style="bold")
    table.add_column("Asignatura")
    table.add_column("Grupo")
    table.add_column("Créditos", justify="right")
    table.add_column("Horario")
    for s in request.sections_to_add:
        table.add_row("[green]agregar[/green]", s.course_code, s.course_name, s.section_code,
                      f"+{s.credits}", ", ".join(b.label() for b in s.time_blocks))
    for d in request.entries_to_drop:
        table.add_row("[red]retirar[/red]", d.course_code, d.course_name, d.section_code,
                      f"-{d.credits}", ", ".join(b.label() for b in d.time_blocks))
    console.print(table)
    console.print(f"[bold]Δ Créditos:[/bold] {request.credit_delta:+d}")


# ─── SETUP ────────────────────────────────────────────────────────────────────

@click.command("setup")
@click.option("--defaults", "use_defaults", is_flag=True, default=False,
              help="Standardkonfiguration ohne Rückfragen speichern.")
def cmd_setup(use_defaults: bool):
    """Ersteinrichtung: Portal-Konfiguration anlegen."""
    from config.defaults import default_portal_config
    from config.manager import ConfigManager

    mgr = ConfigManager()
    if not mgr.first_run_check() and not use_defaults:
        console.print(
            "[yellow]Eine Konfiguration existiert bereits.[/yellow]\n"
            "Verwenden Sie [bold]python main.py config edit[/bold] zum Bearbeiten."
        )
        if not click.confirm("Trotzdem neu einrichten?", default=False):
            return

    config = default_portal_config()
    if not use_defaults:
        config = mgr.edit_interactive(config)
    mgr.save(config)
    console.print("[bold green]Einrichtung abgeschlossen![/bold green]")
    console.print("Führen Sie jetzt [bold]python main.py generate[/bold] aus.")


# ─── CONFIG ───────────────────────────────────────────────────────────────────

@click.group("config")
def cmd_config():
    """Konfiguration anzeigen oder bearbeiten."""


@cmd_config.command("show")
def config_show():
    """Zeigt die aktuelle Konfiguration an."""
    mgr, config = _load_config_or_abort()
    if mgr.first_run_check():
        console.print("[dim]Keine Konfigurationsdatei – Standardwerte aktiv.[/dim]")

    console.print(Panel(
        f"[bold]{config.portal_name}[/bold]  |  Periodo {config.term.label}",
        title="Portal-Konfiguration",
        border_style="cyan",
    ))

    cp = config.credits
    gates = config.gates
    table = Table(box=box.ROUNDED, show_header=False)
    table.add_column("Einstellung", style="bold")
    table.add_column("Wert")
    table.add_row("Credit-Obergrenze (Fallback)", str(cp.default_ceiling))
    table.add_row("Erlaubter Bereich", f"{cp.min_ceiling}–{cp.max_ceiling}")
    table.add_row("Inscripción offen", "ja" if gates.enrollment_open else "nein")
    table.add_row("Modificaciones offen", "ja" if gates.modification_open else "nein")
    if gates.closed_reason:
        table.add_row("Grund", gates.closed_reason)
    grid = config.schedule_grid
    table.add_row(
        "Wochenraster",
        f"{grid.first_hour:02d}:00–{grid.last_hour:02d}:00, "
        + " ".join(d.short_name for d in grid.days),
    )
    table.add_row("Datensatz", config.storage.data_path)
    table.add_row("Solicitudes", config.storage.requests_path)
    table.add_row("Export", config.storage.output_dir)
    console.print(table)


@cmd_config.command("edit")
def config_edit():
    """Bearbeitet die Konfiguration interaktiv."""
    mgr, config = _load_config_or_abort()
    mgr.save(mgr.edit_interactive(config))


# ─── GENERATE ─────────────────────────────────────────────────────────────────

@click.command("generate")
@click.option("--seed", default=42, help="Zufalls-Seed für reproduzierbare Daten.")
@click.option("--student", default="2020114001", help="ID des Studenten.")
@click.option("--json-path", default=None, help="Pfad für den Datensatz (JSON).")
def cmd_generate(seed: int, student: str, json_path: Optional[str]):
    """Erzeugt einen Test-Datensatz (Asignaturas, Grupos, Matrículas)."""
    mgr, config = _load_config_or_abort()
    from data.fake_data import FakePortalGenerator

    console.print("[bold]Testdaten werden generiert...[/bold]")
    gen = FakePortalGenerator(config, seed=seed)
    data = gen.generate(student_id=student)
    gen.print_summary(data)
    console.print(f"\n[dim]{data.summary()}[/dim]")

    data.check_consistency().print_rich()

    out_path = Path(json_path or config.storage.data_path)
    data.save_json(out_path)
    console.print(f"[green]✓[/green] JSON gespeichert: {out_path}")


# ─── IMPORT ───────────────────────────────────────────────────────────────────

@click.command("import")
@click.argument("datei", type=click.Path(exists=True, path_type=Path))
@click.option("--student", required=True, help="ID des Studenten.")
@click.option("--json-path", default=None, help="Pfad für den Datensatz (JSON).")
def cmd_import(datei: Path, student: str, json_path: Optional[str]):
    """Importiert eine Backend-Antwort (JSON) als Datensatz."""
    mgr, config = _load_config_or_abort()
    from data.backend_import import BackendImportError, load_portal_payload

    console.print(f"[bold]Importiere:[/bold] {datei}")
    try:
        data = load_portal_payload(datei, student, config)
    except BackendImportError as e:
        console.print(f"[red bold]Import fehlgeschlagen:[/red bold]\n{e}")
        sys.exit(1)

    console.print("[green]✓[/green] Import erfolgreich!")
    console.print(f"\n{data.summary()}")
    data.check_consistency().print_rich()

    out_path = Path(json_path or config.storage.data_path)
    data.save_json(out_path)
    console.print(f"[green]✓[/green] Daten gespeichert: {out_path}")


# ─── VALIDATE ─────────────────────────────────────────────────────────────────

@click.command("validate")
@click.option("--json-path", default=None, help="Pfad zur gespeicherten JSON-Datei.")
@click.option("--generate", "gen_first", is_flag=True, default=False,
              help="Testdaten zunächst generieren (Seed 42).")
def cmd_validate(json_path: Optional[str], gen_first: bool):
    """Führt einen Konsistenz-Check auf dem aktuellen Datensatz durch."""
    mgr, config = _load_config_or_abort()

    if gen_first:
        from data.fake_data import FakePortalGenerator
        data = FakePortalGenerator(config, seed=42).generate()
    else:
        data = _load_data_or_abort(json_path, config)

    console.print(f"\n{data.summary()}\n")
    report = data.check_consistency()
    report.print_rich()

    from analysis.submission_validator import SubmissionValidator
    from engine import Directory
    for code in SubmissionValidator().mandatory_without_seats(Directory(data)):
        console.print(f"[yellow]⚠[/yellow] Pflicht-Wiederholung {code} ohne Grupo mit Cupo")

    sys.exit(0 if report.is_consistent else 1)


# ─── SCHEDULE ─────────────────────────────────────────────────────────────────

@click.command("schedule")
@click.option("--add", "add", multiple=True, type=int, help="Grupo-ID vormerken (mehrfach).")
@click.option("--drop", "drop", multiple=True, type=int,
              help="Matrícula (historial_id) zum Rückzug markieren (mehrfach).")
@click.option("--json-path", default=None, help="Pfad zur gespeicherten JSON-Datei.")
def cmd_schedule(add: tuple[int, ...], drop: tuple[int, ...], json_path: Optional[str]):
    """Prüft eine Auswahl und zeigt den kombinierten Wochenplan."""
    mgr, config = _load_config_or_abort()
    data = _load_data_or_abort(json_path, config)
    from engine import EnrollmentSession
    from export.tui_renderer import print_schedule

    session = EnrollmentSession(data, _build_workflow(config))
    if not session.gate_open:
        reason = f" ({data.gate_reason})" if data.gate_reason else ""
        console.print(f"[yellow]Modificaciones geschlossen{reason}.[/yellow]")
    _apply_selection(session, add, drop)

    summary = session.credit_summary()
    print_schedule(session.schedule_view(), config.schedule_grid,
                   title=f"Horario {data.term} – {data.student_id}")
    console.print(
        f"[bold]Créditos:[/bold] {summary.label()}  |  Disponibles: {summary.remaining}"
    )
    if session.outstanding_request_id is not None:
        console.print(
            f"[yellow]Offene Solicitud #{session.outstanding_request_id} vorhanden.[/yellow]"
        )


# ─── SUBMIT ───────────────────────────────────────────────────────────────────

@click.command("submit")
@click.option("--add", "add", multiple=True, type=int, help="Grupo-ID vormerken (mehrfach).")
@click.option("--drop", "drop", multiple=True, type=int,
              help="Matrícula (historial_id) zum Rückzug markieren (mehrfach).")
@click.option("--json-path", default=None, help="Pfad zur gespeicherten JSON-Datei.")
@click.option("--requests-path", default=None, help="Pfad zur Solicitud-Datei.")
def cmd_submit(add: tuple[int, ...], drop: tuple[int, ...],
               json_path: Optional[str], requests_path: Optional[str]):
    """Reicht die Auswahl als Solicitud de modificación ein."""
    from engine import EnrollmentError, SubmissionBlockedError, EnrollmentSession

    mgr, config = _load_config_or_abort()
    data = _load_data_or_abort(json_path, config)
    session = EnrollmentSession(data, _build_workflow(config, requests_path))

    if not _apply_selection(session, add, drop):
        console.print("[red]Auswahl enthält abgelehnte Änderungen – nichts eingereicht.[/red]")
        sys.exit(1)

    try:
        request = session.submit()
    except SubmissionBlockedError as e:
        e.report.print_rich()
        sys.exit(1)
    except EnrollmentError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    console.print(f"[green]✓[/green] Solicitud #{request.id} eingereicht.")
    _print_request(request)


# ─── REQUESTS ─────────────────────────────────────────────────────────────────

@click.group("requests")
def cmd_requests():
    """Solicitudes auflisten, anzeigen und auflösen."""


@cmd_requests.command("list")
@click.option("--state", type=click.Choice(["pendiente", "aprobada", "rechazada"]),
              default=None, help="Nur Solicitudes in diesem Zustand.")
@click.option("--requests-path", default=None, help="Pfad zur Solicitud-Datei.")
def requests_list(state: Optional[str], requests_path: Optional[str]):
    """Listet alle Solicitudes auf."""
    from engine import EnrollmentError
    from models.request import RequestState

    mgr, config = _load_config_or_abort()
    workflow = _build_workflow(config, requests_path)
    try:
        requests = workflow.list_requests(RequestState(state) if state else None)
    except EnrollmentError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if not requests:
        console.print("[dim]Keine Solicitudes vorhanden.[/dim]")
        return

    table = Table(title="Solicitudes", box=box.ROUNDED)
    table.add_column("#", justify="right")
    table.add_column("Student")
    table.add_column("Estado")
    table.add_column("Enviada")
    table.add_column("Änderungen")
    table.add_column("Δ Cr.", justify="right")
    for r in requests:
        changes = " ".join(
            [f"+{s.course_code}" for s in r.sections_to_add]
            + [f"-{d.course_code}" for d in r.entries_to_drop]
        )
        table.add_row(
            str(r.id), r.student_id, r.state.value,
            f"{r.submitted_at:%d.%m.%Y %H:%M}" if r.submitted_at else "",
            changes, f"{r.credit_delta:+d}",
        )
    console.print(table)


@cmd_requests.command("show")
@click.argument("request_id", type=int)
@click.option("--json-path", default=None, help="Datensatz für den Drift-Vergleich.")
@click.option("--requests-path", default=None, help="Pfad zur Solicitud-Datei.")
def requests_show(request_id: int, json_path: Optional[str], requests_path: Optional[str]):
    """Zeigt eine Solicitud und Änderungen am Angebot seit der Einreichung."""
    from analysis.diff import diff_request
    from engine import EnrollmentError
    from models.portal_data import PortalData

    mgr, config = _load_config_or_abort()
    workflow = _build_workflow(config, requests_path)
    try:
        request = workflow.get(request_id)
    except EnrollmentError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    _print_request(request)

    data_path = Path(json_path or config.storage.data_path)
    if request.is_pending and data_path.exists():
        drift = diff_request(request, PortalData.load_json(data_path))
        if drift.is_empty():
            console.print("[dim]Keine Änderungen am Angebot seit der Einreichung.[/dim]")
        else:
            console.print("[bold yellow]Änderungen seit der Einreichung:[/bold yellow]")
            for line in drift.lines():
                console.print(f"  • {line}")


@cmd_requests.command("approve")
@click.argument("request_id", type=int)
@click.option("--reviewer", default=None, help="ID des Revisors.")
@click.option("--requests-path", default=None, help="Pfad zur Solicitud-Datei.")
def requests_approve(request_id: int, reviewer: Optional[str], requests_path: Optional[str]):
    """Genehmigt eine offene Solicitud."""
    from engine import EnrollmentError

    mgr, config = _load_config_or_abort()
    workflow = _build_workflow(config, requests_path)
    try:
        request = workflow.approve(request_id, reviewer_id=reviewer)
    except EnrollmentError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    console.print(f"[green]✓[/green] {request.summary()}")


@cmd_requests.command("reject")
@click.argument("request_id", type=int)
@click.option("--observation", "-o", default="", help="Begründung (Pflicht).")
@click.option("--reviewer", default=None, help="ID des Revisors.")
@click.option("--requests-path", default=None, help="Pfad zur Solicitud-Datei.")
def requests_reject(request_id: int, observation: str, reviewer: Optional[str],
                    requests_path: Optional[str]):
    """Lehnt eine offene Solicitud mit Begründung ab."""
    from engine import EnrollmentError

    mgr, config = _load_config_or_abort()
    workflow = _build_workflow(config, requests_path)
    try:
        request = workflow.reject(request_id, observation, reviewer_id=reviewer)
    except EnrollmentError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    console.print(f"[green]✓[/green] {request.summary()}")


# ─── EXPORT ───────────────────────────────────────────────────────────────────

@click.command("export")
@click.option("--excel/--no-excel", default=True, help="Excel-Datei erzeugen.")
@click.option("--pdf/--no-pdf", default=True, help="PDF-Datei erzeugen.")
@click.option("--add", "add", multiple=True, type=int, help="Grupo-ID vormerken (mehrfach).")
@click.option("--drop", "drop", multiple=True, type=int,
              help="Matrícula (historial_id) zum Rückzug markieren (mehrfach).")
@click.option("--request", "request_id", type=int, default=None,
              help="Solicitud als Beleg beilegen.")
@click.option("--json-path", default=None, help="Pfad zur gespeicherten JSON-Datei.")
@click.option("--output-dir", default=None, help="Zielverzeichnis.")
def cmd_export(excel: bool, pdf: bool, add: tuple[int, ...], drop: tuple[int, ...],
               request_id: Optional[int], json_path: Optional[str],
               output_dir: Optional[str]):
    """Exportiert Wochenplan (und optional Solicitud-Beleg) als Excel und PDF."""
    from engine import EnrollmentError, EnrollmentSession
    from export import ExcelExporter, PdfExporter

    mgr, config = _load_config_or_abort()
    data = _load_data_or_abort(json_path, config)
    workflow = _build_workflow(config)
    session = EnrollmentSession(data, workflow)
    _apply_selection(session, add, drop)

    request = None
    if request_id is not None:
        try:
            request = workflow.get(request_id)
        except EnrollmentError as e:
            console.print(f"[red]{e}[/red]")
            sys.exit(1)

    items = session.schedule_view()
    summary = session.credit_summary()
    out_dir = Path(output_dir or config.storage.output_dir)
    stem = f"horario_{data.student_id}"

    if excel:
        path = out_dir / f"{stem}.xlsx"
        ExcelExporter(items, data, config, credits=summary, request=request).export(path)
        console.print(f"[green]✓[/green] Excel gespeichert: {path}")
    if pdf:
        path = out_dir / f"{stem}.pdf"
        PdfExporter(items, data, config, credits=summary, request=request).export(path)
        console.print(f"[green]✓[/green] PDF gespeichert: {path}")


# ─── HAUPT-CLI ────────────────────────────────────────────────────────────────

@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Debug-Ausgaben anzeigen.")
def cli(verbose: bool):
    """Portal de Matrícula: Auswahl, Prüfung und Solicitudes de modificación.

    Starten Sie mit: python main.py setup
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


def main():
    """Einstiegspunkt. Startet automatisch die Einrichtung beim ersten Aufruf."""
    from config.manager import ConfigManager
    mgr = ConfigManager()

    if len(sys.argv) == 1 and mgr.first_run_check():
        console.print(Panel(
            "[bold]Willkommen im Portal de Matrícula![/bold]\n\n"
            "Keine Konfiguration gefunden.\n"
            "Die Einrichtung wird jetzt gestartet...",
            border_style="cyan",
        ))
        sys.argv.append("setup")

    cli()


# Befehle registrieren
cli.add_command(cmd_setup)
cli.add_command(cmd_config)
cli.add_command(cmd_generate)
cli.add_command(cmd_import)
cli.add_command(cmd_validate)
cli.add_command(cmd_schedule)
cli.add_command(cmd_submit)
cli.add_command(cmd_requests)
cli.add_command(cmd_export)


if __name__ == "__main__":
    main()
