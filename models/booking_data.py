"""BookingData: Vollständiger Buchungsdatensatz + Integritäts-Check (Pydantic v2)."""

from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from models.booking import Booking
from models.notification import Notification
from models.recurrence_group import RecurrenceGroup
from models.room import Room


class IntegrityReport(BaseModel):
    """Ergebnis des Integritäts-Checks."""

    is_consistent: bool
    errors: list[str]      # Doppelbuchungen, fehlende Räume
    warnings: list[str]    # z.B. Buchungen in inaktiven Räumen

    def print_rich(self) -> None:
        """Gibt den Report formatiert über Rich aus."""
        from rich.console import Console
        from rich.panel import Panel

        console = Console()
        if self.is_consistent:
            status = "[bold green]✓ KONSISTENT[/bold green]"
        else:
            status = "[bold red]✗ INKONSISTENT[/bold red]"

        lines = [status]
        if self.errors:
            lines.append("\n[red bold]Fehler:[/red bold]")
            for e in self.errors:
                lines.append(f"  [red]• {e}[/red]")
        if self.warnings:
            lines.append("\n[yellow bold]Warnungen:[/yellow bold]")
            for w in self.warnings:
                lines.append(f"  [yellow]• {w}[/yellow]")
        if not self.errors and not self.warnings:
            lines.append("[dim]Keine Probleme gefunden.[/dim]")

        console.print(Panel("\n".join(lines), title="Integritäts-Check", border_style="cyan"))


class BookingData(BaseModel):
    """Vollständiger Datensatz: Räume, Buchungen, Serien, Benachrichtigungen."""

    rooms: list[Room] = []
    bookings: list[Booking] = []
    recurrence_groups: list[RecurrenceGroup] = []
    notifications: list[Notification] = []
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    data_version: str = "1.0"

    # ─── Übersicht ───

    def summary(self) -> str:
        """Kurze Übersicht über den Datensatz."""
        active_rooms = sum(1 for r in self.rooms if r.is_active)
        confirmed = sum(1 for b in self.bookings if b.is_confirmed)
        recurring = sum(1 for b in self.bookings if b.is_recurring)
        active_groups = sum(1 for g in self.recurrence_groups if g.is_active)
        lines = [
            f"Räume: {len(self.rooms)} ({active_rooms} aktiv)",
            f"Buchungen: {len(self.bookings)} "
            f"({confirmed} bestätigt, {recurring} aus Serien)",
            f"Serien: {len(self.recurrence_groups)} ({active_groups} aktiv)",
            f"Benachrichtigungen: {len(self.notifications)}",
        ]
        return "\n".join(lines)

    # ─── Integritäts-Check ───

    def validate_integrity(self) -> IntegrityReport:
        """Prüft den Datensatz auf Widersprüche.

        Prüfungen:
        1. Jede Buchung / Serie verweist auf einen existierenden Raum
        2. Serien-Termine verweisen auf eine existierende Serie
        3. Keine zwei bestätigten Buchungen eines Raums überlappen sich
        4. Bestätigte Buchungen in inaktiven Räumen (nur Warnung)
        """
        from conflicts.intervals import overlaps

        errors: list[str] = []
        warnings: list[str] = []

        rooms = {r.id: r for r in self.rooms}
        group_ids = {g.id for g in self.recurrence_groups}

        for b in self.bookings:
            if b.room_id not in rooms:
                errors.append(f"Buchung {b.id}: Raum {b.room_id} existiert nicht")
            elif b.is_confirmed and not rooms[b.room_id].is_active:
                warnings.append(f"Buchung {b.id}: Raum {b.room_id} ist inaktiv")
            if b.recurrence_group_id and b.recurrence_group_id not in group_ids:
                errors.append(
                    f"Buchung {b.id}: Serie {b.recurrence_group_id} existiert nicht"
                )
        for g in self.recurrence_groups:
            if g.room_id not in rooms:
                errors.append(f"Serie {g.id}: Raum {g.room_id} existiert nicht")

        by_room: dict[str, list[Booking]] = defaultdict(list)
        for b in self.bookings:
            if b.is_confirmed:
                by_room[b.room_id].append(b)
        for room_id, items in sorted(by_room.items()):
            items.sort(key=lambda b: b.start_time)
            # Sweep: nur der Kandidat mit dem spätesten Ende kann noch überlappen
            latest: Optional[Booking] = None
            for b in items:
                if latest is not None and overlaps(b.interval, latest.interval):
                    errors.append(
                        f"Doppelbuchung in Raum {room_id}: {latest.id} und {b.id}"
                    )
                if latest is None or b.end_time > latest.end_time:
                    latest = b

        return IntegrityReport(
            is_consistent=not errors, errors=errors, warnings=warnings,
        )

    # ─── Persistenz ───

    def save_json(self, path: Path) -> None:
        """Speichert den kompletten Datensatz als JSON-Datei."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        now = datetime.now(timezone.utc)
        updated = self.model_copy(update={
            "modified_at": now,
            "created_at": self.created_at or now,
        })
        with open(path, "w", encoding="utf-8") as f:
            f.write(updated.model_dump_json(indent=2))

    @classmethod
    def load_json(cls, path: Path) -> "BookingData":
        """Lädt einen Datensatz aus einer JSON-Datei."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"JSON-Datei nicht gefunden: {path}")
        with open(path, "r", encoding="utf-8") as f:
            return cls.model_validate_json(f.read())
