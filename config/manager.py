"""Konfigurationsmanager: Laden, Speichern, Validieren und interaktives Bearbeiten.

Nutzt ruamel.yaml für YAML-Serialisierung mit Kommentaren.
"""

import json
from datetime import date
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table
from rich import box
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap

from config.schema import AppConfig, WorkingHoursConfig

console = Console()
yaml = YAML()
yaml.default_flow_style = False
yaml.width = 120


# ─── YAML-KOMMENTAR-AUFBAU ───

_YAML_HEADER = f"""\
# ============================================
# Raumbuchung — Konfiguration
# Version: 1.0
# Erstellt: {date.today().isoformat()}
# ============================================
"""

_SECTION_COMMENTS = {
    "working_hours": (
        "Arbeitszeit",
        "working_minutes_per_day ist der Nenner der Auslastung (Standard 600 = 10h).",
    ),
    "booking_rules": (
        "Buchungsregeln",
        None,
    ),
    "recurrence": (
        "Serienbuchungen",
        "Nur wöchentliche Serien, höchstens 52 Termine.",
    ),
    "analytics": (
        "Auswertung",
        "Zeiträume werden in UTC aufgelöst, Wochen beginnen am Montag.",
    ),
    "storage": (
        "Ablage",
        None,
    ),
}


class ConfigManager:
    CONFIG_DIR = Path("config")
    DEFAULT_CONFIG = CONFIG_DIR / "booking_config.yaml"

    def __init__(self, config_path: Optional[Path] = None) -> None:
        if config_path is not None:
            self.DEFAULT_CONFIG = Path(config_path)

    def first_run_check(self) -> bool:
        """Gibt True zurück wenn noch keine Config existiert (Erstaufruf)."""
        return not self.DEFAULT_CONFIG.exists()

    # ─── Laden ───

    def load(self, path: Optional[Path] = None) -> AppConfig:
        """Lade Config aus YAML. Validiert automatisch via Pydantic."""
        target = path or self.DEFAULT_CONFIG
        if not target.exists():
            raise FileNotFoundError(
                f"Konfigurationsdatei nicht gefunden: {target}\n"
                f"Führen Sie 'python main.py setup' aus, um die Konfiguration anzulegen."
            )
        with open(target, "r", encoding="utf-8") as f:
            raw = yaml.load(f)
        try:
            config = AppConfig.model_validate(dict(raw or {}))
            return config
        except Exception as e:
            raise ValueError(
                f"Konfigurationsdatei ungültig: {target}\n"
                f"Pydantic-Fehler: {e}"
            ) from e

    # ─── Speichern ───

    def save(self, config: AppConfig, path: Optional[Path] = None) -> None:
        """Speichere Config als YAML mit deutschen Kommentaren."""
        target = path or self.DEFAULT_CONFIG
        target.parent.mkdir(parents=True, exist_ok=True)

        data = self._build_commented_yaml(config)

        with open(target, "w", encoding="utf-8") as f:
            f.write(_YAML_HEADER + "\n")
            yaml.dump(data, f)

        console.print(f"[green]✓[/green] Konfiguration gespeichert: {target}")

    def _build_commented_yaml(self, config: AppConfig) -> CommentedMap:
        """Baut die YAML-Struktur mit Kommentaren auf."""
        raw = json.loads(config.model_dump_json())
        cm = CommentedMap(raw)

        for field, (label, comment) in _SECTION_COMMENTS.items():
            cm.yaml_set_comment_before_after_key(
                field,
                before=f"\n─── {label} ───" + (f"\n{comment}" if comment else ""),
            )

        if "working_hours" in cm:
            wh_map = CommentedMap(cm["working_hours"])
            wh_map.yaml_add_eol_comment("Nenner der Auslastung", "working_minutes_per_day")
            cm["working_hours"] = wh_map

        return cm

    # ─── Anzeige ───

    def show(self, config: AppConfig) -> None:
        """Zeigt die Konfiguration als Tabelle an."""
        table = Table(title=f"Konfiguration – {config.organization_name}", box=box.ROUNDED)
        table.add_column("Bereich", style="bold")
        table.add_column("Parameter")
        table.add_column("Wert")
        for section in ("working_hours", "booking_rules", "recurrence",
                        "analytics", "storage"):
            for k, v in getattr(config, section).model_dump().items():
                table.add_row(section, k, str(v))
        console.print(table)

    # ─── Interaktives Bearbeiten ───

    def edit_interactive(self, config: AppConfig) -> AppConfig:
        """Fragt die wichtigsten Parameter ab und speichert die Config."""
        name = Prompt.ask("Name der Organisation", default=config.organization_name)
        wh = config.working_hours
        day_start = Prompt.ask("Arbeitsbeginn (HH:MM, UTC)", default=wh.day_start)
        day_end = Prompt.ask("Arbeitsende (HH:MM, UTC)", default=wh.day_end)
        minutes = IntPrompt.ask("Verfügbare Minuten pro Tag",
                                default=wh.working_minutes_per_day)
        reject_past = Confirm.ask("Buchungen in der Vergangenheit ablehnen?",
                                  default=config.booking_rules.reject_past_bookings)

        config = config.model_copy(update={
            "organization_name": name,
            "working_hours": WorkingHoursConfig(
                day_start=day_start, day_end=day_end,
                working_minutes_per_day=minutes,
            ),
            "booking_rules": config.booking_rules.model_copy(
                update={"reject_past_bookings": reject_past}
            ),
        })
        self.save(config)
        return config
