from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional


# ─── ARBEITSZEIT ───

class WorkingHoursConfig(BaseModel):
    """Verfügbare Arbeitszeit pro Raum und Tag (Basis der Auslastung)."""
    # Beginn des Arbeitstags (nur Anzeige), Format "HH:MM"
    day_start: str = Field("08:00",
        description="Beginn des Arbeitstags (HH:MM, UTC)")
    # Ende des Arbeitstags (nur Anzeige), Format "HH:MM"
    day_end: str = Field("18:00",
        description="Ende des Arbeitstags (HH:MM, UTC)")
    # Verfügbare Minuten pro Raum und Tag (Nenner der Auslastung)
    working_minutes_per_day: int = Field(600, ge=0, le=1440,
        description="Verfügbare Minuten pro Raum und Tag")

    @field_validator("day_start", "day_end")
    @classmethod
    def _check_hhmm(cls, v: str) -> str:
        from conflicts.recurrence import parse_hhmm
        parse_hhmm(v)
        return v


# ─── BUCHUNGSREGELN ───

class BookingRulesConfig(BaseModel):
    """Regeln, die die Service-Schicht vor dem Anlegen prüft."""
    # Buchungen in der Vergangenheit ablehnen
    reject_past_bookings: bool = Field(True,
        description="Buchungen in der Vergangenheit ablehnen")
    # Maximale Dauer einer Einzelbuchung in Minuten (0 = unbegrenzt)
    max_duration_minutes: int = Field(0, ge=0,
        description="Maximale Buchungsdauer in Minuten (0 = unbegrenzt)")


# ─── SERIEN ───

class RecurrenceConfig(BaseModel):
    """Serienbuchungen (nur wöchentlich)."""
    # Obergrenze für Termine pro Serie
    max_occurrences: int = Field(52, ge=1, le=52,
        description="Maximale Anzahl Termine pro Serie")


# ─── AUSWERTUNG ───

class AnalyticsConfig(BaseModel):
    """Dashboard-Auswertung."""
    # Standard-Zeitraum wenn keine expliziten Grenzen angegeben sind
    default_range: Literal["week", "month", "year"] = Field("week",
        description="Standard-Zeitraum")
    # Anzahl beliebtester Zeitfenster im Report
    popular_slots_top_n: int = Field(2, ge=1, le=24,
        description="Anzahl beliebtester Zeitfenster")
    # Anzahl aktivster Nutzer im Report
    top_users_limit: int = Field(10, ge=1,
        description="Anzahl aktivster Nutzer")


# ─── SPEICHER ───

class StorageConfig(BaseModel):
    """Ablage des Buchungsdatensatzes."""
    # Pfad der JSON-Datei mit Räumen, Buchungen und Serien
    data_file: str = Field("output/booking_data.json",
        description="Pfad zum Buchungsdatensatz (JSON)")
    # Pfad für den Excel-Export der Auswertung
    export_file: str = Field("output/auswertung.xlsx",
        description="Pfad für den Excel-Export")


# ─── GESAMT-CONFIG ───

class AppConfig(BaseModel):
    """Gesamtkonfiguration der Raumbuchung."""
    # Name der Organisation (Report-Titel)
    organization_name: str = Field("Muster GmbH",
        description="Name der Organisation")
    # Arbeitszeit-Modell
    working_hours: WorkingHoursConfig = Field(default_factory=WorkingHoursConfig)
    # Buchungsregeln
    booking_rules: BookingRulesConfig = Field(default_factory=BookingRulesConfig)
    # Serienbuchungen
    recurrence: RecurrenceConfig = Field(default_factory=RecurrenceConfig)
    # Auswertung
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    # Ablage
    storage: StorageConfig = Field(default_factory=StorageConfig)
    # Log-Level für die CLI (z.B. "WARNING", "INFO")
    log_level: Optional[str] = Field("WARNING",
        description="Log-Level der CLI")
