"""Testdaten-Generator für die Raumbuchung.

Erzeugt Räume, wöchentliche Serien und zufällige Einzelbuchungen über die
Service-Schicht, d.h. alle Konfliktregeln gelten auch für die Testdaten.

Absichtliche Engpässe:
  1. Konferenzraum R03: Montag 09:00 ein Jour fixe, zufällige Buchungen
     kollidieren dort häufig
  2. Telefonbox R05: Kapazität 2, größere Gruppen werden abgelehnt
  3. Eine Serie überschneidet sich mit einer anderen → übersprungene Termine
"""

import logging
import random
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

from config.defaults import default_rooms
from config.schema import AppConfig
from models.booking_data import BookingData
from models.errors import BookingError
from services.booking_service import BookingService
from store.repository import InMemoryRepository

logger = logging.getLogger(__name__)

# ─── Nutzer und Zwecke ────────────────────────────────────────────────────────

_USERS = [
    "a.mueller", "b.schmidt", "c.schneider", "d.fischer", "e.weber",
    "f.meyer", "g.wagner", "h.becker", "i.schulz", "k.hoffmann",
]

_PURPOSES = [
    "Teambesprechung", "Kundentermin", "Projekt-Kickoff", "Retrospektive",
    "Bewerbungsgespräch", "Workshop", "1:1", "Planung", "Schulung",
]

# (Raum, Wochentag 0=Mo, Beginn, Ende, Zweck, Teilnehmer)
_SERIES: list[tuple[str, int, str, str, str, int]] = [
    ("R03", 0, "09:00", "10:00", "Jour fixe Geschäftsleitung", 12),
    ("R01", 2, "14:00", "15:30", "Entwickler-Runde", 6),
    ("R04", 4, "10:00", "12:00", "Sprint-Review", 8),
    # überschneidet sich mit dem Jour fixe → Termine werden übersprungen
    ("R03", 0, "09:30", "10:30", "Vertriebsrunde", 10),
]


class FakeDataGenerator:
    """Generiert einen vollständigen Buchungsbestand auf Basis der AppConfig."""

    def __init__(
        self, config: AppConfig, seed: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> None:
        self.config = config
        self.rng = random.Random(seed)
        self.now = now or datetime.now(timezone.utc)
        self.stats: dict[str, int] = {"created": 0, "rejected": 0, "skipped": 0}

    def _first_monday(self) -> date:
        """Montag der kommenden Woche (alle Testbuchungen liegen in der Zukunft)."""
        today = self.now.date()
        return today + timedelta(days=7 - today.weekday())

    # ─── Serien ───────────────────────────────────────────────────────────────

    def _generate_series(self, service: BookingService, weeks: int) -> None:
        start = self._first_monday()
        end = start + timedelta(weeks=weeks) - timedelta(days=1)
        for room_id, dow, t_start, t_end, purpose, attendees in _SERIES:
            owner = self.rng.choice(_USERS)
            try:
                result = service.create_recurring_series(
                    room_id, owner, dow, t_start, t_end, start, end,
                    purpose=purpose, attendees=attendees,
                )
            except BookingError as e:
                logger.info(f"Serie {purpose} abgelehnt: {e}")
                self.stats["rejected"] += 1
                continue
            self.stats["created"] += result.created_count
            self.stats["skipped"] += len(result.skipped_dates)

    # ─── Einzelbuchungen ──────────────────────────────────────────────────────

    def _generate_singles(self, service: BookingService, weeks: int, count: int) -> None:
        rooms = service.repository.list_rooms(active_only=True)
        start = self._first_monday()
        for _ in range(count):
            room = self.rng.choice(rooms)
            day = start + timedelta(days=self.rng.randrange(weeks * 7))
            if day.weekday() >= 5:
                continue
            hour = self.rng.randint(8, 16)
            minute = self.rng.choice([0, 30])
            begin = datetime.combine(day, time(hour, minute), tzinfo=timezone.utc)
            duration = timedelta(minutes=self.rng.choice([30, 60, 60, 90, 120]))
            attendees = self.rng.randint(1, min(room.capacity + 1, 12))
            try:
                service.create_booking(
                    room.id, self.rng.choice(_USERS), begin, begin + duration,
                    purpose=self.rng.choice(_PURPOSES), attendees=attendees,
                )
                self.stats["created"] += 1
            except BookingError as e:
                logger.debug(f"Testbuchung abgelehnt: {e}")
                self.stats["rejected"] += 1

    # ─── Vollständiger Datensatz ──────────────────────────────────────────────

    def generate(self, weeks: int = 4, bookings: int = 60) -> InMemoryRepository:
        """Erzeugt den vollständigen Bestand als InMemoryRepository."""
        repository = InMemoryRepository()
        for room in default_rooms():
            repository.add_room(room)

        service = BookingService(repository, self.config, clock=lambda: self.now)
        self._generate_series(service, weeks)
        self._generate_singles(service, weeks, bookings)
        logger.info(
            f"Testdaten: {self.stats['created']} Buchungen, "
            f"{self.stats['rejected']} abgelehnt, {self.stats['skipped']} Serientermine übersprungen"
        )
        return repository

    # ─── Ausgabe ──────────────────────────────────────────────────────────────

    def print_summary(self, data: Union[BookingData, InMemoryRepository]) -> None:
        """Gibt eine Rich-Tabelle mit Übersicht der erzeugten Daten aus."""
        from rich.console import Console
        from rich.table import Table
        from rich import box

        if isinstance(data, InMemoryRepository):
            data = data.snapshot()

        console = Console()
        table = Table(title="Erzeugte Testdaten", box=box.ROUNDED)
        table.add_column("Kategorie", style="bold cyan")
        table.add_column("Anzahl", justify="right")
        table.add_column("Details")

        recurring = sum(1 for b in data.bookings if b.is_recurring)
        table.add_row("Räume", str(len(data.rooms)),
                      f"{sum(r.capacity for r in data.rooms)} Plätze gesamt")
        table.add_row("Buchungen", str(len(data.bookings)),
                      f"{recurring} Serientermine, {len(data.bookings) - recurring} einzeln")
        table.add_row("Serien", str(len(data.recurrence_groups)),
                      f"{self.stats['skipped']} Termine übersprungen")
        table.add_row("Abgelehnt", str(self.stats["rejected"]), "Konflikt oder Kapazität")
        table.add_row("Benachrichtigungen", str(len(data.notifications)), "")

        console.print(table)
