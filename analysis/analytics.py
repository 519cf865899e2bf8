"""Dashboard-Auswertung über alle Räume.

Alle Kennzahlen werden aus EINEM vorab geladenen Schnappschuss berechnet
(aktive Räume + bestätigte Buchungen im Fenster); während der Berechnung
wird nicht erneut abgefragt.

Grundsätze:
  - Alle Zeitpunkte in UTC, Fenster halboffen [start, end)
  - Nur bestätigte Buchungen zählen
  - Gleiche Filter liefern in allen Kennzahlen dieselbe Buchungsmenge
"""

import logging
from collections import Counter, defaultdict
from datetime import date, datetime, time, timedelta, timezone
from typing import TYPE_CHECKING, Optional, Union

from pydantic import BaseModel

from analysis.utilization import (
    DEFAULT_WORKING_MINUTES_PER_DAY, utilization_from_bookings, utilization_rate,
)
from conflicts.intervals import overlaps
from models.booking import Booking
from models.interval import Interval, to_utc
from models.recurrence_group import WEEKDAY_NAMES
from models.room import Room

if TYPE_CHECKING:
    from config.schema import AnalyticsConfig
    from store.repository import BookingRepository

logger = logging.getLogger(__name__)

RANGES = ("week", "month", "year")


# ─── Report-Modelle ───────────────────────────────────────────────────────────

class DateRange(BaseModel):
    start: datetime
    end: datetime   # exklusiv


class RoomUtilizationEntry(BaseModel):
    """Auslastung eines einzelnen Raums im Fenster."""

    room_id: str
    room_name: str
    location: str
    capacity: int
    utilization_rate: float
    total_bookings: int
    total_booked_hours: float


class TimeSlotEntry(BaseModel):
    """Ein Stunden-Bucket (nach UTC-Startstunde) mit Anzahl Buchungen."""

    hour: int
    count: int
    time_slot: str   # "9:00 AM - 10:00 AM"


class FrequencyEntry(BaseModel):
    type: str        # "Single Bookings" / "Recurring Bookings"
    count: int
    percentage: int


class WeekdayUtilization(BaseModel):
    day: str
    date: date
    utilization: float


class UserStatEntry(BaseModel):
    owner_id: str
    total_bookings: int
    total_hours: float


class AggregateReport(BaseModel):
    """Vollständiger Dashboard-Report."""

    total_rooms: int
    utilization_rate: float          # Mittel der Raum-Auslastungen
    total_bookings: int
    peak_usage_hour: Optional[int]   # None = keine Buchungen
    room_utilization: list[RoomUtilizationEntry]
    popular_time_slots: list[TimeSlotEntry]
    booking_frequency: list[FrequencyEntry]
    weekly_utilization: list[WeekdayUtilization]
    top_users: list[UserStatEntry]
    date_range: DateRange

    @property
    def peak_usage(self) -> str:
        """Anzeige der Spitzenstunde ("9:00" bzw. "N/A")."""
        if self.peak_usage_hour is None:
            return "N/A"
        return f"{self.peak_usage_hour}:00"

    def to_dict(self) -> dict:
        data = self.model_dump(mode="json")
        data["peak_usage"] = self.peak_usage
        return data

    def print_rich(self, title: str = "Auswertung") -> None:
        """Gibt den Report formatiert über Rich aus."""
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()

        rate_color = (
            "green" if self.utilization_rate >= 60
            else "yellow" if self.utilization_rate >= 30
            else "red"
        )
        console.print(Panel(
            f"Zeitraum: [bold]{self.date_range.start:%d.%m.%Y}[/bold] – "
            f"[bold]{(self.date_range.end - timedelta(days=1)):%d.%m.%Y}[/bold] (UTC)\n"
            f"Räume: [bold]{self.total_rooms}[/bold] | "
            f"Buchungen: [bold]{self.total_bookings}[/bold] | "
            f"Spitzenstunde: [bold]{self.peak_usage}[/bold]\n"
            f"Ø Auslastung: [{rate_color}]{self.utilization_rate:.2f}%[/{rate_color}]",
            title=f"{title} – Übersicht",
            border_style="cyan",
        ))

        r_table = Table(title="Raum-Auslastung", box=box.ROUNDED)
        r_table.add_column("ID", width=6)
        r_table.add_column("Raum", width=26)
        r_table.add_column("Ort", width=20)
        r_table.add_column("Kap.", justify="right", width=5)
        r_table.add_column("Buchungen", justify="right", width=10)
        r_table.add_column("Stunden", justify="right", width=8)
        r_table.add_column("Auslastung", justify="right", width=10)
        for r in self.room_utilization:
            r_table.add_row(
                r.room_id, r.room_name, r.location, str(r.capacity),
                str(r.total_bookings), f"{r.total_booked_hours:.2f}",
                f"{r.utilization_rate:.2f}%",
            )
        console.print(r_table)

        if self.popular_time_slots:
            s_table = Table(title="Beliebteste Zeitfenster", box=box.SIMPLE)
            s_table.add_column("Zeitfenster")
            s_table.add_column("Buchungen", justify="right")
            for s in self.popular_time_slots:
                s_table.add_row(s.time_slot, str(s.count))
            console.print(s_table)

        f_table = Table(title="Buchungsarten", box=box.SIMPLE)
        f_table.add_column("Art")
        f_table.add_column("Anzahl", justify="right")
        f_table.add_column("Anteil", justify="right")
        for f in self.booking_frequency:
            f_table.add_row(f.type, str(f.count), f"{f.percentage}%")
        console.print(f_table)

        w_table = Table(title="Wochenverlauf", box=box.SIMPLE)
        w_table.add_column("Tag")
        w_table.add_column("Datum")
        w_table.add_column("Auslastung", justify="right")
        for w in self.weekly_utilization:
            w_table.add_row(w.day, f"{w.date:%d.%m.}", f"{w.utilization:.2f}%")
        console.print(w_table)


# ─── Zeitraum-Auflösung ───────────────────────────────────────────────────────

def start_of_day(value: Union[date, datetime]) -> datetime:
    """UTC-Tagesbeginn eines Datums oder Zeitpunkts."""
    if isinstance(value, datetime):
        value = to_utc(value).date()
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def resolve_date_range(
    range_name: Optional[str] = "week",
    start: Optional[Union[date, datetime]] = None,
    end: Optional[Union[date, datetime]] = None,
    now: Optional[datetime] = None,
) -> DateRange:
    """Löst einen symbolischen Zeitraum oder explizite Grenzen in [start, end) auf.

    Explizite Grenzen: Tagesbeginn(start) bis Tagesbeginn(end + 1 Tag), d.h.
    der End-Tag ist vollständig enthalten. Symbolisch: die aktuelle Woche
    (Montag–Sonntag), der aktuelle Monat oder das aktuelle Jahr relativ zu
    `now`. Unbekannte Namen fallen auf "week" zurück.
    """
    if (start is None) != (end is None):
        raise ValueError("Start und Ende müssen gemeinsam angegeben werden")

    if start is not None and end is not None:
        window_start = start_of_day(start)
        window_end = start_of_day(end) + timedelta(days=1)
        if window_end <= window_start:
            raise ValueError("Ende liegt vor dem Start")
        return DateRange(start=window_start, end=window_end)

    today = to_utc(now or datetime.now(timezone.utc)).date()
    if range_name not in RANGES:
        logger.warning("Unbekannter Zeitraum %r – verwende 'week'", range_name)
        range_name = "week"

    if range_name == "month":
        first = today.replace(day=1)
        nxt = (first.replace(year=first.year + 1, month=1) if first.month == 12
               else first.replace(month=first.month + 1))
    elif range_name == "year":
        first = date(today.year, 1, 1)
        nxt = date(today.year + 1, 1, 1)
    else:
        first = today - timedelta(days=today.weekday())
        nxt = first + timedelta(days=7)
    return DateRange(start=start_of_day(first), end=start_of_day(nxt))


# ─── Einzelkennzahlen (rein, auf dem Schnappschuss) ───────────────────────────

def hour_histogram(bookings: list[Booking]) -> Counter:
    """Anzahl Buchungen je UTC-Startstunde."""
    return Counter(b.start_time.hour for b in bookings)


def peak_usage_hour(bookings: list[Booking]) -> Optional[int]:
    """Stunde mit den meisten Buchungsbeginnen; bei Gleichstand die früheste."""
    histogram = hour_histogram(bookings)
    if not histogram:
        return None
    return min(histogram.items(), key=lambda item: (-item[1], item[0]))[0]


def format_hour_12h(hour: int) -> str:
    period = "PM" if hour >= 12 else "AM"
    display = 12 if hour % 12 == 0 else hour % 12
    return f"{display}:00 {period}"


def popular_time_slots(bookings: list[Booking], top_n: int = 2) -> list[TimeSlotEntry]:
    """Genau die Top-N Startstunden (Anzahl absteigend, bei Gleichstand Stunde aufsteigend)."""
    histogram = hour_histogram(bookings)
    ranked = sorted(histogram.items(), key=lambda item: (-item[1], item[0]))[:top_n]
    return [
        TimeSlotEntry(
            hour=hour,
            count=count,
            time_slot=f"{format_hour_12h(hour)} - {format_hour_12h((hour + 1) % 24)}",
        )
        for hour, count in ranked
    ]


def booking_frequency(bookings: list[Booking]) -> list[FrequencyEntry]:
    """Verhältnis Einzel- zu Serienbuchungen; Prozente ergeben zusammen 100."""
    total = len(bookings)
    recurring = sum(1 for b in bookings if b.is_recurring)
    single = total - recurring
    if total > 0:
        # kaufmännisch gerundet, Serien-Anteil als Rest
        single_pct = (200 * single + total) // (2 * total)
        recurring_pct = 100 - single_pct
    else:
        single_pct = recurring_pct = 0
    return [
        FrequencyEntry(type="Single Bookings", count=single, percentage=single_pct),
        FrequencyEntry(type="Recurring Bookings", count=recurring, percentage=recurring_pct),
    ]


def top_users(bookings: list[Booking], limit: int = 10) -> list[UserStatEntry]:
    """Aktivste Nutzer nach Anzahl Buchungen (dann Stunden, dann ID)."""
    counts: dict[str, int] = defaultdict(int)
    minutes: dict[str, float] = defaultdict(float)
    for b in bookings:
        counts[b.owner_id] += 1
        minutes[b.owner_id] += b.interval.minutes
    ranked = sorted(counts, key=lambda o: (-counts[o], -minutes[o], o))[:limit]
    return [
        UserStatEntry(owner_id=o, total_bookings=counts[o],
                      total_hours=round(minutes[o] / 60, 2))
        for o in ranked
    ]


# ─── Aggregator ───────────────────────────────────────────────────────────────

class AnalyticsAggregator:
    """Baut den Dashboard-Report für alle aktiven Räume.

    Verwendung:
        aggregator = AnalyticsAggregator(repository)
        report = aggregator.get_comprehensive_analytics("month")
    """

    def __init__(
        self,
        repository: "BookingRepository",
        working_minutes_per_day: int = DEFAULT_WORKING_MINUTES_PER_DAY,
        config: Optional["AnalyticsConfig"] = None,
    ) -> None:
        self.repository = repository
        self.working_minutes_per_day = working_minutes_per_day
        self.top_n = config.popular_slots_top_n if config else 2
        self.top_users_limit = config.top_users_limit if config else 10

    def get_comprehensive_analytics(
        self,
        range_name: Optional[str] = "week",
        start: Optional[Union[date, datetime]] = None,
        end: Optional[Union[date, datetime]] = None,
        now: Optional[datetime] = None,
    ) -> AggregateReport:
        """Hauptmethode: löst den Zeitraum auf, lädt den Schnappschuss, rechnet."""
        window = resolve_date_range(range_name, start, end, now)
        week_start = window.start - timedelta(days=window.start.weekday())
        week_end = week_start + timedelta(days=7)

        # Ein einziger Abruf, groß genug für Fenster UND Wochenverlauf
        rooms = self.repository.list_rooms(active_only=True)
        fetched = self.repository.fetch_confirmed_bookings(
            None, min(window.start, week_start), max(window.end, week_end)
        )
        logger.info(
            "Auswertung %s – %s: %d Räume, %d Buchungen im Schnappschuss",
            window.start.date(), window.end.date(), len(rooms), len(fetched),
        )
        return self.build_report(rooms, fetched, window)

    def build_report(
        self, rooms: list[Room], snapshot: list[Booking], window: DateRange
    ) -> AggregateReport:
        """Rein: berechnet alle Kennzahlen aus Räumen + Buchungs-Schnappschuss."""
        window_interval = Interval(window.start, window.end)
        room_ids = {r.id for r in rooms}
        in_window = [
            b for b in snapshot
            if b.is_confirmed and b.room_id in room_ids
            and overlaps(b.interval, window_interval)
        ]

        by_room: dict[str, list[Booking]] = defaultdict(list)
        for b in in_window:
            by_room[b.room_id].append(b)

        room_entries: list[RoomUtilizationEntry] = []
        for room in rooms:
            result = utilization_from_bookings(
                by_room.get(room.id, []), window.start, window.end,
                self.working_minutes_per_day,
            )
            room_entries.append(RoomUtilizationEntry(
                room_id=room.id,
                room_name=room.name,
                location=room.location,
                capacity=room.capacity,
                utilization_rate=result.rate,
                total_bookings=result.count,
                total_booked_hours=result.booked_hours,
            ))

        overall = (
            round(sum(r.utilization_rate for r in room_entries) / len(room_entries), 2)
            if room_entries else 0
        )
        room_entries.sort(key=lambda r: (-r.utilization_rate, r.room_id))

        return AggregateReport(
            total_rooms=len(rooms),
            utilization_rate=overall,
            total_bookings=len(in_window),
            peak_usage_hour=peak_usage_hour(in_window),
            room_utilization=room_entries,
            popular_time_slots=popular_time_slots(in_window, self.top_n),
            booking_frequency=booking_frequency(in_window),
            weekly_utilization=self._weekly_utilization(rooms, snapshot, window.start),
            top_users=top_users(in_window, self.top_users_limit),
            date_range=window,
        )

    def _weekly_utilization(
        self, rooms: list[Room], snapshot: list[Booking], anchor: datetime
    ) -> list[WeekdayUtilization]:
        """Auslastung je Wochentag der Woche, in der das Fenster beginnt."""
        week_start = start_of_day(anchor) - timedelta(days=anchor.weekday())
        room_ids = {r.id for r in rooms}

        by_room: dict[str, list[Booking]] = defaultdict(list)
        for b in snapshot:
            if b.room_id in room_ids:
                by_room[b.room_id].append(b)

        result: list[WeekdayUtilization] = []
        for i in range(7):
            day_start = week_start + timedelta(days=i)
            day_end = day_start + timedelta(days=1)
            booked = sum(
                utilization_from_bookings(
                    items, day_start, day_end, self.working_minutes_per_day
                ).booked_minutes
                for items in by_room.values()
            )
            available = len(rooms) * self.working_minutes_per_day
            result.append(WeekdayUtilization(
                day=WEEKDAY_NAMES[i],
                date=day_start.date(),
                utilization=utilization_rate(booked, available),
            ))
        return result
