"""Konfigurationsmanager: Laden, Speichern und interaktives Bearbeiten.

Nutzt ruamel.yaml für YAML-Serialisierung mit Kommentaren.
"""

import json
from datetime import date
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap

from config.schema import CreditPolicy, GateConfig, PortalConfig, TermConfig

console = Console()
yaml = YAML()
yaml.default_flow_style = False
yaml.width = 120


# ─── YAML-KOMMENTAR-AUFBAU ───

_YAML_HEADER = f"""\
# ============================================
# Portal de Matrícula - Konfiguration
# Erstellt: {date.today().isoformat()}
# ============================================
"""

_SECTION_COMMENTS = {
    "term": (
        "Periodo",
        None,
    ),
    "credits": (
        "Credits",
        "default_ceiling gilt nur, wenn das Backend kein creditos.maximo liefert.",
    ),
    "gates": (
        "Gates",
        "Standardwerte, falls der Datensatz keine Gate-Angaben enthält.",
    ),
    "schedule_grid": (
        "Wochenraster",
        "Stunden first_hour..last_hour (exklusiv), Tage als LUNES..DOMINGO.",
    ),
    "storage": (
        "Speicherorte",
        None,
    ),
}


class ConfigManager:
    CONFIG_DIR = Path("config")
    DEFAULT_CONFIG = CONFIG_DIR / "portal_config.yaml"

    def first_run_check(self) -> bool:
        """Gibt True zurück wenn noch keine Config existiert (Erstaufruf)."""
        return not self.DEFAULT_CONFIG.exists()

    # ─── Laden ───

    def load(self, path: Optional[Path] = None) -> PortalConfig:
        """Lade Config aus YAML. Validiert automatisch via Pydantic."""
        target = path or self.DEFAULT_CONFIG
        if not target.exists():
            raise FileNotFoundError(
                f"Konfigurationsdatei nicht gefunden: {target}\n"
                f"Führen Sie 'python main.py setup' aus, um das Portal einzurichten."
            )
        with open(target, "r", encoding="utf-8") as f:
            raw = yaml.load(f)
        try:
            return PortalConfig.model_validate(dict(raw or {}))
        except Exception as e:
            raise ValueError(
                f"Konfigurationsdatei ungültig: {target}\n"
                f"Pydantic-Fehler: {e}"
            ) from e

    def load_or_default(self, path: Optional[Path] = None) -> PortalConfig:
        """Wie load(), aber Standardkonfiguration falls keine Datei existiert."""
        target = path or self.DEFAULT_CONFIG
        if not target.exists():
            from config.defaults import default_portal_config
            return default_portal_config()
        return self.load(target)

    # ─── Speichern ───

    def save(self, config: PortalConfig, path: Optional[Path] = None) -> None:
        """Speichere Config als YAML mit Kommentaren."""
        target = path or self.DEFAULT_CONFIG
        target.parent.mkdir(parents=True, exist_ok=True)

        data = self._build_commented_yaml(config)

        with open(target, "w", encoding="utf-8") as f:
            f.write(_YAML_HEADER + "\n")
            yaml.dump(data, f)

        console.print(f"[green]✓[/green] Konfiguration gespeichert: {target}")

    def _build_commented_yaml(self, config: PortalConfig) -> CommentedMap:
        """Baut die YAML-Struktur mit Kommentaren auf."""
        raw = json.loads(config.model_dump_json())
        cm = CommentedMap(raw)

        for field, (label, comment) in _SECTION_COMMENTS.items():
            cm.yaml_set_comment_before_after_key(
                field,
                before=f"\n─── {label} ───" + (f"\n{comment}" if comment else ""),
            )

        credits_map = CommentedMap(cm["credits"])
        credits_map.yaml_add_eol_comment("Fallback", "default_ceiling")
        cm["credits"] = credits_map

        return cm

    # ─── Interaktives Bearbeiten ───

    def edit_interactive(self, config: PortalConfig) -> PortalConfig:
        """Fragt die wichtigsten Einstellungen interaktiv ab."""
        console.print(Panel("[bold]Portal einrichten[/bold]", border_style="cyan"))

        name = Prompt.ask("Name des Portals", default=config.portal_name)
        year = IntPrompt.ask("Jahr des Periodo", default=config.term.year)
        semester = IntPrompt.ask("Semester (1/2)", default=config.term.semester)
        ceiling = IntPrompt.ask(
            "Credit-Obergrenze (Fallback)", default=config.credits.default_ceiling
        )
        modification_open = Confirm.ask(
            "Modificaciones standardmäßig offen?", default=config.gates.modification_open
        )

        max_ceiling = max(config.credits.max_ceiling, ceiling)
        return config.model_copy(update={
            "portal_name": name,
            "term": TermConfig(year=year, semester=semester),
            "credits": CreditPolicy(
                default_ceiling=ceiling,
                min_ceiling=min(config.credits.min_ceiling, ceiling),
                max_ceiling=max_ceiling,
            ),
            "gates": GateConfig(
                enrollment_open=config.gates.enrollment_open,
                modification_open=modification_open,
                closed_reason=config.gates.closed_reason,
            ),
        })
