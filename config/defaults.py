from config.schema import (
    AnalyticsConfig,
    AppConfig,
    BookingRulesConfig,
    RecurrenceConfig,
    StorageConfig,
    WorkingHoursConfig,
)
from models.room import Room


def default_working_hours() -> WorkingHoursConfig:
    """Standard-Arbeitszeit: 08:00 – 18:00 = 10 Stunden = 600 Minuten pro Tag."""
    return WorkingHoursConfig(
        day_start="08:00",
        day_end="18:00",
        working_minutes_per_day=600,
    )


def default_app_config() -> AppConfig:
    """Vollständige Default-Konfiguration."""
    return AppConfig(
        organization_name="Muster GmbH",
        working_hours=default_working_hours(),
        booking_rules=BookingRulesConfig(),
        recurrence=RecurrenceConfig(max_occurrences=52),
        analytics=AnalyticsConfig(),
        storage=StorageConfig(),
    )


# ─── Raum-Vorlagen für Testdaten ──────────────────────────────────────────────
# (id, Name, Ort, Kapazität, Ausstattung)

DEFAULT_ROOMS: list[tuple[str, str, str, int, list[str]]] = [
    ("R01", "Besprechungsraum Nord", "Gebäude A, 1. OG", 8,  ["Bildschirm", "Whiteboard"]),
    ("R02", "Besprechungsraum Süd",  "Gebäude A, 1. OG", 6,  ["Whiteboard"]),
    ("R03", "Konferenzraum",         "Gebäude A, EG",    20, ["Beamer", "Videokonferenz", "Whiteboard"]),
    ("R04", "Projektraum",           "Gebäude B, 2. OG", 10, ["Bildschirm", "Flipchart"]),
    ("R05", "Telefonbox",            "Gebäude B, 2. OG", 2,  ["Videokonferenz"]),
]


def default_rooms() -> list[Room]:
    """Standard-Raumliste aus DEFAULT_ROOMS."""
    return [
        Room(id=rid, name=name, location=loc, capacity=cap, amenities=list(am))
        for rid, name, loc, cap, am in DEFAULT_ROOMS
    ]
