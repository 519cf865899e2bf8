"""Fehlerklassen der Raumbuchung.

Der Kern wirft nur InvalidIntervalError und NotFoundError; die übrigen Arten
entstehen in der Service-Schicht und werden erst im CLI in Meldungen übersetzt.
"""


class BookingError(Exception):
    """Basisklasse aller fachlichen Fehler."""


class InvalidIntervalError(BookingError, ValueError):
    """Zeitintervall mit Ende <= Beginn."""


class NotFoundError(BookingError, LookupError):
    """Raum, Buchung oder Serie existiert nicht."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} nicht gefunden: {identifier}")


class ConflictError(BookingError):
    """Der Raum ist im gewünschten Zeitraum bereits belegt."""


class CapacityExceededError(BookingError):
    """Mehr Teilnehmer als der Raum fasst."""

    def __init__(self, capacity: int, attendees: int) -> None:
        self.capacity = capacity
        self.attendees = attendees
        super().__init__(
            f"Raumkapazität ist {capacity}, angefragt: {attendees} Teilnehmer"
        )


class InvalidStatusTransitionError(BookingError):
    """Unzulässiger Statuswechsel (z.B. erneutes Stornieren)."""
