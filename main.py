"""Raumbuchung — Haupt-CLI.

Verwendung:
  python main.py setup                          Ersteinrichtung (Config + Räume)
  python main.py config show                    Konfiguration anzeigen
  python main.py config edit                    Konfiguration bearbeiten
  python main.py generate                       Testdaten erzeugen
  python main.py rooms [add|update|activate|deactivate|delete]
  python main.py book R01 -u NAME -s .. -e ..   Raum buchen
  python main.py cancel <buchung>               Buchung stornieren
  python main.py update <buchung> -s .. -e ..   Buchung verschieben/ändern
  python main.py my-bookings NAME               Buchungen eines Nutzers
  python main.py check R01 -s .. -e ..          Verfügbarkeit prüfen
  python main.py availability R01 -d DATUM      Belegung eines Tages
  python main.py recurring create|update|cancel|skip|show
  python main.py utilization R01 --from .. --until ..
  python main.py analytics [--range month] [--json]
  python main.py export                         Auswertung als Excel
  python main.py notifications list|mark-read|delete
  python main.py validate                       Konsistenz des Bestands prüfen
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich import box

console = Console()
logger = logging.getLogger("raumbuchung")

DATETIME_FORMATS = ["%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M", "%Y-%m-%dT%H:%M:%S"]
DATE_FORMATS = ["%Y-%m-%d"]
WEEKDAYS = {"mo": 0, "di": 1, "mi": 2, "do": 3, "fr": 4, "sa": 5, "so": 6}


def _setup_logging(verbose: int) -> None:
    level = logging.WARNING if verbose == 0 else logging.INFO if verbose == 1 else logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_config_or_abort():
    """Lädt die Konfiguration oder bricht mit Fehlermeldung ab."""
    from config.manager import ConfigManager
    mgr = ConfigManager()
    if mgr.first_run_check():
        console.print(
            "[red]Keine Konfiguration gefunden.[/red]\n"
            "Führen Sie zunächst [bold]python main.py setup[/bold] aus."
        )
        sys.exit(1)
    try:
        config = mgr.load()
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    ctx = click.get_current_context(silent=True)
    if ctx is None or not ctx.find_root().params.get("verbose"):
        logging.getLogger().setLevel(config.log_level or "WARNING")
    return mgr, config


def _load_repository_or_abort(config):
    """Lädt den Buchungsbestand aus storage.data_file."""
    from store.repository import InMemoryRepository
    path = Path(config.storage.data_file)
    if not path.exists():
        console.print(
            f"[red]Kein Buchungsbestand gefunden: {path}[/red]\n"
            "Führen Sie [bold]python main.py setup[/bold] oder "
            "[bold]python main.py generate[/bold] aus."
        )
        sys.exit(1)
    logger.info(f"Lade Bestand: {path}")
    return InMemoryRepository.load_json(path)


def _build_service(repository, config):
    from services.booking_service import BookingService
    from services.notifications import NotificationCenter
    return BookingService(repository, config, notifications=NotificationCenter(repository))


def _save_repository(repository, config) -> None:
    repository.save_json(Path(config.storage.data_file))


def _fail(message: str) -> None:
    console.print(f"[red bold]Fehler:[/red bold] {message}")
    sys.exit(1)


def _fmt(dt: datetime) -> str:
    return dt.strftime("%d.%m.%Y %H:%M")


def _parse_weekday(value: str) -> int:
    key = value.strip().lower()[:2]
    if key in WEEKDAYS:
        return WEEKDAYS[key]
    try:
        day = int(value)
    except ValueError:
        raise click.BadParameter(f"Unbekannter Wochentag: {value}")
    if not 0 <= day <= 6:
        raise click.BadParameter("Wochentag muss 0–6 (0=Montag) sein")
    return day


def _bookings_table(title: str, bookings) -> Table:
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("ID", style="dim")
    table.add_column("Raum")
    table.add_column("Beginn (UTC)")
    table.add_column("Ende (UTC)")
    table.add_column("Nutzer")
    table.add_column("Zweck")
    table.add_column("Status")
    for b in bookings:
        status_color = "green" if b.is_confirmed else "red"
        table.add_row(
            b.id[:8], b.room_id, _fmt(b.start_time), _fmt(b.end_time),
            b.owner_id, b.purpose,
            f"[{status_color}]{b.status.value}[/{status_color}]"
            + (" ⟳" if b.is_recurring else ""),
        )
    return table


def _resolve_id(candidates, prefix: str, kind: str) -> str:
    """Erlaubt verkürzte IDs (wie in den Tabellen angezeigt)."""
    matches = [c for c in candidates if c == prefix or c.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        return prefix
    _fail(f"{kind}-ID '{prefix}' ist nicht eindeutig ({len(matches)} Treffer)")


# ─── SETUP ────────────────────────────────────────────────────────────────────

@click.command("setup")
@click.option("--organization", "-o", default=None, help="Name der Organisation.")
@click.option("--interactive", "-i", is_flag=True, default=False,
              help="Parameter interaktiv abfragen.")
@click.option("--force", is_flag=True, default=False,
              help="Bestehende Konfiguration überschreiben.")
def cmd_setup(organization: str, interactive: bool, force: bool):
    """Ersteinrichtung: Konfiguration und Standard-Räume anlegen."""
    from config.defaults import default_app_config, default_rooms
    from config.manager import ConfigManager
    from store.repository import InMemoryRepository

    mgr = ConfigManager()
    if not mgr.first_run_check() and not force:
        console.print(
            "[yellow]Eine Konfiguration existiert bereits.[/yellow]\n"
            "Verwenden Sie [bold]python main.py config edit[/bold] oder [bold]--force[/bold]."
        )
        return

    config = default_app_config()
    if organization:
        config = config.model_copy(update={"organization_name": organization})
    if interactive:
        config = mgr.edit_interactive(config)
    else:
        mgr.save(config)

    data_path = Path(config.storage.data_file)
    if not data_path.exists() or force:
        repository = InMemoryRepository()
        for room in default_rooms():
            repository.add_room(room)
        _save_repository(repository, config)
        console.print(f"[green]✓[/green] {len(default_rooms())} Räume angelegt: {data_path}")

    console.print("[bold green]Einrichtung abgeschlossen![/bold green]")


# ─── CONFIG ───────────────────────────────────────────────────────────────────

@click.group("config")
def cmd_config():
    """Konfiguration anzeigen oder bearbeiten."""


@cmd_config.command("show")
def config_show():
    """Zeigt die aktuelle Konfiguration an."""
    mgr, config = _load_config_or_abort()
    console.print(Panel(
        f"[bold]{config.organization_name}[/bold]  |  "
        f"Arbeitszeit {config.working_hours.day_start}–{config.working_hours.day_end} UTC  |  "
        f"{config.working_hours.working_minutes_per_day} min/Tag",
        title="Raumbuchung",
        border_style="cyan",
    ))
    mgr.show(config)


@cmd_config.command("edit")
def config_edit():
    """Bearbeitet die Konfiguration interaktiv."""
    mgr, config = _load_config_or_abort()
    mgr.edit_interactive(config)


# ─── GENERATE ─────────────────────────────────────────────────────────────────

@click.command("generate")
@click.option("--seed", default=42, help="Zufalls-Seed für reproduzierbare Daten.")
@click.option("--weeks", default=4, type=click.IntRange(1, 52),
              help="Anzahl Wochen ab kommendem Montag.")
@click.option("--bookings", "num_bookings", default=60, type=click.IntRange(0),
              help="Anzahl zufälliger Einzelbuchungs-Versuche.")
def cmd_generate(seed: int, weeks: int, num_bookings: int):
    """Erzeugt Testdaten (Räume, Serien, Einzelbuchungen) und speichert sie."""
    mgr, config = _load_config_or_abort()
    from data.fake_data import FakeDataGenerator

    console.print("[bold]Testdaten werden generiert...[/bold]")
    gen = FakeDataGenerator(config, seed=seed)
    repository = gen.generate(weeks=weeks, bookings=num_bookings)
    gen.print_summary(repository)

    _save_repository(repository, config)
    console.print(f"[green]✓[/green] Bestand gespeichert: {config.storage.data_file}")


# ─── ROOMS ────────────────────────────────────────────────────────────────────

@click.group("rooms", invoke_without_command=True)
@click.option("--all", "show_all", is_flag=True, default=False,
              help="Auch deaktivierte Räume anzeigen.")
@click.pass_context
def cmd_rooms(ctx, show_all: bool):
    """Listet die Räume auf (Unterbefehle: add, update, activate, deactivate, delete)."""
    if ctx.invoked_subcommand is not None:
        return
    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)

    table = Table(title="Räume", box=box.ROUNDED)
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("Ort")
    table.add_column("Kapazität", justify="right")
    table.add_column("Ausstattung")
    table.add_column("Aktiv")
    for room in repository.list_rooms(active_only=not show_all):
        table.add_row(
            room.id, room.name, room.location, str(room.capacity),
            ", ".join(room.amenities), "✓" if room.is_active else "✗",
        )
    console.print(table)


def _split_amenities(value: Optional[str]) -> Optional[list[str]]:
    if value is None:
        return None
    return [a.strip() for a in value.split(",") if a.strip()]


@cmd_rooms.command("add")
@click.argument("room_id")
@click.option("--name", "-n", required=True, help="Anzeigename.")
@click.option("--capacity", "-c", required=True, type=click.IntRange(1), help="Plätze.")
@click.option("--location", "-l", default="", help="Ort, z.B. 'Gebäude A, 2. OG'.")
@click.option("--amenities", default=None, help="Kommagetrennt, z.B. 'Beamer,Whiteboard'.")
def rooms_add(room_id, name, capacity, location, amenities):
    """Legt einen neuen Raum an."""
    from services.room_service import RoomService

    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    try:
        room = RoomService(repository).create_room(
            room_id, name, capacity, location=location,
            amenities=_split_amenities(amenities),
        )
    except ValueError as e:
        _fail(str(e))

    _save_repository(repository, config)
    console.print(f"[green]✓[/green] Raum {room.id} ({room.name}) angelegt.")


@cmd_rooms.command("update")
@click.argument("room_id")
@click.option("--name", "-n", default=None)
@click.option("--capacity", "-c", default=None, type=click.IntRange(1))
@click.option("--location", "-l", default=None)
@click.option("--amenities", default=None, help="Ersetzt die Ausstattung (kommagetrennt).")
def rooms_update(room_id, name, capacity, location, amenities):
    """Ändert Name, Kapazität, Ort oder Ausstattung eines Raums."""
    from models.errors import BookingError
    from services.room_service import RoomService

    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    try:
        room = RoomService(repository).update_room(
            room_id, name=name, location=location, capacity=capacity,
            amenities=_split_amenities(amenities),
        )
    except (BookingError, ValueError) as e:
        _fail(str(e))

    _save_repository(repository, config)
    console.print(f"[green]✓[/green] Raum {room.id} geändert.")


def _set_room_active(room_id: str, active: bool) -> None:
    from models.errors import BookingError
    from services.room_service import RoomService

    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    try:
        room = RoomService(repository).set_active(room_id, active)
    except BookingError as e:
        _fail(str(e))

    _save_repository(repository, config)
    state = "aktiviert" if room.is_active else "deaktiviert"
    console.print(f"[green]✓[/green] Raum {room.id} {state}.")


@cmd_rooms.command("deactivate")
@click.argument("room_id")
def rooms_deactivate(room_id):
    """Deaktiviert einen Raum (nicht mehr buchbar, nicht in der Auswertung)."""
    _set_room_active(room_id, False)


@cmd_rooms.command("activate")
@click.argument("room_id")
def rooms_activate(room_id):
    """Aktiviert einen deaktivierten Raum wieder."""
    _set_room_active(room_id, True)


@cmd_rooms.command("delete")
@click.argument("room_id")
def rooms_delete(room_id):
    """Löscht einen Raum, der noch nie gebucht wurde."""
    from models.errors import BookingError
    from services.room_service import RoomService

    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    try:
        RoomService(repository).delete_room(room_id)
    except BookingError as e:
        _fail(str(e))

    _save_repository(repository, config)
    console.print(f"[green]✓[/green] Raum {room_id} gelöscht.")


# ─── BOOK / CANCEL ────────────────────────────────────────────────────────────

@click.command("book")
@click.argument("room_id")
@click.option("--user", "-u", required=True, help="Nutzer-ID des Buchenden.")
@click.option("--start", "-s", required=True, type=click.DateTime(DATETIME_FORMATS),
              help="Beginn (UTC), z.B. '2030-01-07 09:00'.")
@click.option("--end", "-e", required=True, type=click.DateTime(DATETIME_FORMATS),
              help="Ende (UTC).")
@click.option("--purpose", "-p", default="", help="Zweck der Buchung.")
@click.option("--attendees", "-a", default=1, type=click.IntRange(1), help="Teilnehmerzahl.")
@click.option("--notes", default="", help="Notizen.")
def cmd_book(room_id, user, start, end, purpose, attendees, notes):
    """Bucht einen Raum für einen Zeitraum."""
    from models.errors import BookingError

    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    service = _build_service(repository, config)
    try:
        booking = service.create_booking(
            room_id, user, start, end, purpose=purpose, attendees=attendees, notes=notes,
        )
    except (BookingError, ValueError) as e:
        _fail(str(e))

    _save_repository(repository, config)
    console.print(
        f"[green]✓[/green] Buchung [bold]{booking.id[:8]}[/bold] bestätigt: "
        f"{room_id} {_fmt(booking.start_time)}–{booking.end_time:%H:%M} UTC"
    )


@click.command("cancel")
@click.argument("booking_id")
def cmd_cancel(booking_id: str):
    """Storniert eine Buchung (auch einen einzelnen Serientermin)."""
    from models.errors import BookingError

    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    service = _build_service(repository, config)
    booking_id = _resolve_id([b.id for b in repository.list_bookings()], booking_id, "Buchung")
    try:
        booking = service.cancel_booking(booking_id)
    except BookingError as e:
        _fail(str(e))

    _save_repository(repository, config)
    console.print(f"[green]✓[/green] Buchung {booking.id[:8]} storniert.")


@click.command("update")
@click.argument("booking_id")
@click.option("--start", "-s", default=None, type=click.DateTime(DATETIME_FORMATS),
              help="Neuer Beginn (UTC).")
@click.option("--end", "-e", default=None, type=click.DateTime(DATETIME_FORMATS),
              help="Neues Ende (UTC).")
@click.option("--purpose", "-p", default=None)
@click.option("--attendees", "-a", default=None, type=click.IntRange(1))
@click.option("--notes", default=None)
def cmd_update(booking_id, start, end, purpose, attendees, notes):
    """Verschiebt oder ändert eine bestätigte Buchung."""
    from models.errors import BookingError

    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    service = _build_service(repository, config)
    booking_id = _resolve_id([b.id for b in repository.list_bookings()], booking_id, "Buchung")
    try:
        booking = service.update_booking(
            booking_id, start_time=start, end_time=end,
            purpose=purpose, attendees=attendees, notes=notes,
        )
    except (BookingError, ValueError) as e:
        _fail(str(e))

    _save_repository(repository, config)
    console.print(
        f"[green]✓[/green] Buchung {booking.id[:8]} geändert: "
        f"{booking.room_id} {_fmt(booking.start_time)}–{booking.end_time:%H:%M} UTC"
    )


@click.command("my-bookings")
@click.argument("user_id")
@click.option("--confirmed", is_flag=True, default=False,
              help="Nur bestätigte Buchungen anzeigen.")
def cmd_my_bookings(user_id: str, confirmed: bool):
    """Listet die Buchungen eines Nutzers (neueste zuerst)."""
    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    bookings = _build_service(repository, config).user_bookings(user_id)
    if confirmed:
        bookings = [b for b in bookings if b.is_confirmed]
    if not bookings:
        console.print(f"[dim]Keine Buchungen für {user_id}.[/dim]")
        return
    console.print(_bookings_table(f"Buchungen – {user_id}", bookings))


# ─── CHECK / AVAILABILITY ─────────────────────────────────────────────────────

@click.command("check")
@click.argument("room_id")
@click.option("--start", "-s", required=True, type=click.DateTime(DATETIME_FORMATS))
@click.option("--end", "-e", required=True, type=click.DateTime(DATETIME_FORMATS))
@click.option("--exclude", default=None, help="Buchungs-ID, die ignoriert wird.")
def cmd_check(room_id, start, end, exclude):
    """Prüft, ob ein Raum im Zeitraum frei ist (Einzelbuchungen + Serien)."""
    from conflicts.checker import ConflictChecker
    from models.errors import BookingError
    from models.interval import Interval

    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    checker = ConflictChecker(repository)
    try:
        candidate = Interval(start, end)
        single = checker.check_overlap(room_id, candidate, exclude)
        recurring = checker.check_recurring_overlap(room_id, candidate, exclude)
    except BookingError as e:
        _fail(str(e))

    if not single and not recurring:
        console.print(f"[green]✓ {room_id} ist frei[/green] im Zeitraum {candidate}")
        return
    reasons = []
    if single:
        reasons.append("Einzelbuchung")
    if recurring:
        reasons.append("Serienbuchung")
    console.print(f"[red]✗ {room_id} ist belegt[/red] ({' und '.join(reasons)})")


@click.command("availability")
@click.argument("room_id")
@click.option("--date", "-d", "day", required=True, type=click.DateTime(DATE_FORMATS),
              help="Tag (UTC), z.B. 2030-01-07.")
def cmd_availability(room_id, day):
    """Zeigt die bestätigten Buchungen eines Raums an einem Tag."""
    from models.errors import BookingError

    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    service = _build_service(repository, config)
    try:
        bookings = service.room_availability(room_id, day.date())
    except BookingError as e:
        _fail(str(e))

    if not bookings:
        console.print(f"[green]{room_id} ist am {day:%d.%m.%Y} ganztägig frei.[/green]")
        return
    console.print(_bookings_table(f"Belegung {room_id} am {day:%d.%m.%Y}", bookings))


# ─── RECURRING ────────────────────────────────────────────────────────────────

@click.group("recurring")
def cmd_recurring():
    """Wöchentliche Serienbuchungen verwalten."""


@cmd_recurring.command("create")
@click.argument("room_id")
@click.option("--user", "-u", required=True)
@click.option("--day", "weekday", required=True,
              help="Wochentag: 0–6 (0=Montag) oder Mo/Di/Mi/Do/Fr/Sa/So.")
@click.option("--start", "-s", required=True, help="Beginn HH:MM (UTC).")
@click.option("--end", "-e", required=True, help="Ende HH:MM (UTC).")
@click.option("--from", "date_from", required=True, type=click.DateTime(DATE_FORMATS))
@click.option("--until", "date_until", required=True, type=click.DateTime(DATE_FORMATS))
@click.option("--purpose", "-p", default="")
@click.option("--attendees", "-a", default=1, type=click.IntRange(1))
def recurring_create(room_id, user, weekday, start, end, date_from, date_until,
                     purpose, attendees):
    """Legt eine wöchentliche Serie an; belegte Termine werden übersprungen."""
    from models.errors import BookingError

    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    service = _build_service(repository, config)
    try:
        result = service.create_recurring_series(
            room_id, user, _parse_weekday(weekday), start, end,
            date_from.date(), date_until.date(), purpose=purpose, attendees=attendees,
        )
    except (BookingError, ValueError) as e:
        _fail(str(e))

    _save_repository(repository, config)
    group = result.group
    console.print(
        f"[green]✓[/green] Serie [bold]{group.id[:8]}[/bold] angelegt "
        f"({group.day_name} {group.start_time}–{group.end_time}): "
        f"{result.created_count} Termine"
    )
    if result.skipped_dates:
        skipped = ", ".join(d.strftime("%d.%m.%Y") for d in result.skipped_dates)
        console.print(f"[yellow]Übersprungen (belegt):[/yellow] {skipped}")


@cmd_recurring.command("cancel")
@click.argument("group_id")
def recurring_cancel(group_id: str):
    """Storniert eine Serie mit allen offenen Terminen."""
    from models.errors import BookingError

    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    service = _build_service(repository, config)
    group_id = _resolve_id([g.id for g in repository.snapshot().recurrence_groups],
                           group_id, "Serie")
    try:
        count = service.cancel_series(group_id)
    except BookingError as e:
        _fail(str(e))

    _save_repository(repository, config)
    console.print(f"[green]✓[/green] Serie storniert, {count} Termine storniert.")


@cmd_recurring.command("update")
@click.argument("group_id")
@click.option("--purpose", "-p", default=None)
@click.option("--attendees", "-a", default=None, type=click.IntRange(1))
@click.option("--notes", default=None)
def recurring_update(group_id: str, purpose, attendees, notes):
    """Ändert Zweck, Teilnehmer oder Notizen der Serie und aller offenen Termine."""
    from models.errors import BookingError

    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    service = _build_service(repository, config)
    group_id = _resolve_id([g.id for g in repository.snapshot().recurrence_groups],
                           group_id, "Serie")
    try:
        count = service.update_series(group_id, purpose=purpose, attendees=attendees, notes=notes)
    except BookingError as e:
        _fail(str(e))

    _save_repository(repository, config)
    console.print(f"[green]✓[/green] Serie geändert, {count} Termine angepasst.")


@cmd_recurring.command("skip")
@click.argument("booking_id")
def recurring_skip(booking_id: str):
    """Storniert einen einzelnen Serientermin."""
    from models.errors import BookingError

    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    service = _build_service(repository, config)
    booking_id = _resolve_id([b.id for b in repository.list_bookings()], booking_id, "Buchung")
    try:
        booking = service.cancel_occurrence(booking_id)
    except (BookingError, ValueError) as e:
        _fail(str(e))

    _save_repository(repository, config)
    console.print(
        f"[green]✓[/green] Termin am {booking.start_time:%d.%m.%Y} storniert, Serie bleibt aktiv."
    )


@cmd_recurring.command("show")
@click.argument("group_id")
def recurring_show(group_id: str):
    """Zeigt eine Serie mit allen Terminen."""
    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    group_id = _resolve_id([g.id for g in repository.snapshot().recurrence_groups],
                           group_id, "Serie")
    group = repository.get_recurrence_group(group_id)
    if group is None:
        _fail(f"Serie nicht gefunden: {group_id}")

    exceptions = ", ".join(d.strftime("%d.%m.") for d in group.exception_dates) or "–"
    console.print(Panel(
        f"Raum: [bold]{group.room_id}[/bold] | {group.day_name} "
        f"{group.start_time}–{group.end_time} UTC\n"
        f"Zeitraum: {group.start_date:%d.%m.%Y} – {group.end_date:%d.%m.%Y} | "
        f"Status: {group.status.value}\n"
        f"Ausnahmen: {exceptions}",
        title=f"Serie {group.id[:8]} – {group.purpose or 'ohne Zweck'}",
        border_style="cyan",
    ))
    console.print(_bookings_table("Termine", repository.bookings_for_group(group_id)))


# ─── UTILIZATION / ANALYTICS ──────────────────────────────────────────────────

@click.command("utilization")
@click.argument("room_id")
@click.option("--from", "date_from", required=True, type=click.DateTime(DATE_FORMATS))
@click.option("--until", "date_until", required=True, type=click.DateTime(DATE_FORMATS),
              help="Letzter Tag (einschließlich).")
def cmd_utilization(room_id, date_from, date_until):
    """Auslastung eines Raums im Zeitraum (überlappende Buchungen einmal gezählt)."""
    from analysis.analytics import resolve_date_range
    from analysis.utilization import UtilizationCalculator
    from models.errors import BookingError

    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    calc = UtilizationCalculator(repository, config.working_hours.working_minutes_per_day)
    try:
        window = resolve_date_range(None, date_from, date_until)
        result = calc.compute_room_utilization(room_id, window.start, window.end)
    except (BookingError, ValueError) as e:
        _fail(str(e))

    console.print(Panel(
        f"Gebucht: [bold]{result.booked_hours:.2f} h[/bold] "
        f"({result.booked_minutes:.0f} von {result.available_minutes} min)\n"
        f"Buchungen: {result.count}\n"
        f"Auslastung: [bold]{result.rate:.2f}%[/bold]",
        title=f"Auslastung {room_id}: {date_from:%d.%m.%Y} – {date_until:%d.%m.%Y}",
        border_style="cyan",
    ))


def _aggregator(repository, config):
    from analysis.analytics import AnalyticsAggregator
    return AnalyticsAggregator(
        repository, config.working_hours.working_minutes_per_day, config.analytics,
    )


@click.command("analytics")
@click.option("--range", "range_name", default=None,
              type=click.Choice(["week", "month", "year"]),
              help="Symbolischer Zeitraum (Standard aus der Config).")
@click.option("--from", "date_from", default=None, type=click.DateTime(DATE_FORMATS))
@click.option("--until", "date_until", default=None, type=click.DateTime(DATE_FORMATS))
@click.option("--json", "as_json", is_flag=True, default=False,
              help="Ausgabe als JSON {success, message, data}.")
def cmd_analytics(range_name, date_from, date_until, as_json):
    """Dashboard-Auswertung über alle aktiven Räume."""
    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    try:
        report = _aggregator(repository, config).get_comprehensive_analytics(
            range_name or config.analytics.default_range, date_from, date_until,
        )
    except ValueError as e:
        if as_json:
            click.echo(json.dumps({"success": False, "message": str(e), "data": None},
                                  ensure_ascii=False))
            sys.exit(1)
        _fail(str(e))

    if as_json:
        click.echo(json.dumps(
            {"success": True, "message": "Auswertung erstellt", "data": report.to_dict()},
            ensure_ascii=False,
        ))
        return
    report.print_rich(title=config.organization_name)


# ─── EXPORT ───────────────────────────────────────────────────────────────────

@click.command("export")
@click.option("--output", "-o", default=None, help="Ausgabepfad (.xlsx).")
@click.option("--range", "range_name", default=None,
              type=click.Choice(["week", "month", "year"]))
@click.option("--from", "date_from", default=None, type=click.DateTime(DATE_FORMATS))
@click.option("--until", "date_until", default=None, type=click.DateTime(DATE_FORMATS))
@click.option("--with-bookings", is_flag=True, default=False,
              help="Zusätzliches Blatt mit allen Buchungen des Zeitraums.")
def cmd_export(output, range_name, date_from, date_until, with_bookings):
    """Exportiert die Auswertung als Excel-Datei."""
    from export.excel_export import AnalyticsExcelExporter

    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    try:
        report = _aggregator(repository, config).get_comprehensive_analytics(
            range_name or config.analytics.default_range, date_from, date_until,
        )
    except ValueError as e:
        _fail(str(e))

    bookings = None
    if with_bookings:
        bookings = repository.fetch_confirmed_bookings(
            None, report.date_range.start, report.date_range.end
        )
    out_path = Path(output or config.storage.export_file)
    AnalyticsExcelExporter(report, config.organization_name).export(out_path, bookings)
    console.print(f"[green]✓[/green] Excel gespeichert: {out_path}")


# ─── NOTIFICATIONS ────────────────────────────────────────────────────────────

@click.group("notifications")
def cmd_notifications():
    """Benachrichtigungen anzeigen, als gelesen markieren oder löschen."""


def _notification_center(repository):
    from services.notifications import NotificationCenter
    return NotificationCenter(repository)


@cmd_notifications.command("list")
@click.argument("user_id")
@click.option("--unread", is_flag=True, default=False, help="Nur ungelesene anzeigen.")
def notifications_list(user_id: str, unread: bool):
    """Zeigt die Benachrichtigungen eines Nutzers (neueste zuerst)."""
    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    center = _notification_center(repository)
    items = center.for_user(user_id, unread_only=unread)
    if not items:
        console.print(f"[dim]Keine Benachrichtigungen für {user_id}.[/dim]")
        return
    table = Table(
        title=f"Benachrichtigungen – {user_id} ({center.unread_count(user_id)} ungelesen)",
        box=box.SIMPLE,
    )
    table.add_column("ID", style="dim")
    table.add_column("Zeit (UTC)")
    table.add_column("Art")
    table.add_column("Nachricht")
    for n in items:
        style = "" if n.is_read else "bold"
        table.add_row(n.id[:8], _fmt(n.created_at), n.type.value, n.message, style=style)
    console.print(table)


@cmd_notifications.command("mark-read")
@click.argument("user_id")
@click.argument("notification_id", required=False)
@click.option("--all", "mark_all", is_flag=True, default=False,
              help="Alle Benachrichtigungen des Nutzers markieren.")
def notifications_mark_read(user_id: str, notification_id: Optional[str], mark_all: bool):
    """Markiert eine (oder mit --all alle) Benachrichtigungen als gelesen."""
    from models.errors import BookingError

    if not mark_all and notification_id is None:
        raise click.UsageError("Benachrichtigungs-ID oder --all angeben.")
    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    center = _notification_center(repository)
    if mark_all:
        count = center.mark_all_as_read(user_id)
    else:
        notification_id = _resolve_id(
            [n.id for n in repository.notifications_for_user(user_id)],
            notification_id, "Benachrichtigung",
        )
        try:
            center.mark_as_read(user_id, notification_id)
        except BookingError as e:
            _fail(str(e))
        count = 1

    _save_repository(repository, config)
    console.print(f"[green]✓[/green] {count} Benachrichtigung(en) als gelesen markiert.")


@cmd_notifications.command("delete")
@click.argument("user_id")
@click.argument("notification_id")
def notifications_delete(user_id: str, notification_id: str):
    """Löscht eine Benachrichtigung des Nutzers."""
    from models.errors import BookingError

    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    notification_id = _resolve_id(
        [n.id for n in repository.notifications_for_user(user_id)],
        notification_id, "Benachrichtigung",
    )
    try:
        _notification_center(repository).delete(user_id, notification_id)
    except BookingError as e:
        _fail(str(e))

    _save_repository(repository, config)
    console.print("[green]✓[/green] Benachrichtigung gelöscht.")


# ─── VALIDATE ─────────────────────────────────────────────────────────────────

@click.command("validate")
def cmd_validate():
    """Prüft den Bestand auf Doppelbelegungen und fehlende Referenzen."""
    mgr, config = _load_config_or_abort()
    repository = _load_repository_or_abort(config)
    data = repository.snapshot()

    console.print(f"\n{data.summary()}\n")
    report = data.validate_integrity()
    report.print_rich()

    sys.exit(0 if report.is_consistent else 1)


# ─── HAUPT-CLI ────────────────────────────────────────────────────────────────

@click.group()
@click.option("--verbose", "-v", count=True, help="Mehr Log-Ausgabe (-v INFO, -vv DEBUG).")
def cli(verbose: int):
    """Raumbuchung: Besprechungsräume buchen und auswerten.

    Starten Sie mit: python main.py setup
    """
    _setup_logging(verbose)


def main():
    """Einstiegspunkt. Legt beim ersten Aufruf ohne Argumente die Config an."""
    from config.manager import ConfigManager
    mgr = ConfigManager()

    if len(sys.argv) == 1 and mgr.first_run_check():
        console.print(Panel(
            "[bold]Willkommen bei der Raumbuchung![/bold]\n\n"
            "Keine Konfiguration gefunden.\n"
            "Die Ersteinrichtung wird jetzt gestartet...",
            border_style="cyan",
        ))
        sys.argv.append("setup")

    cli()


# Befehle registrieren
cli.add_command(cmd_setup)
cli.add_command(cmd_config)
cli.add_command(cmd_generate)
cli.add_command(cmd_rooms)
cli.add_command(cmd_book)
cli.add_command(cmd_cancel)
cli.add_command(cmd_update)
cli.add_command(cmd_my_bookings)
cli.add_command(cmd_check)
cli.add_command(cmd_availability)
cli.add_command(cmd_recurring)
cli.add_command(cmd_utilization)
cli.add_command(cmd_analytics)
cli.add_command(cmd_export)
cli.add_command(cmd_notifications)
cli.add_command(cmd_validate)


if __name__ == "__main__":
    main()
