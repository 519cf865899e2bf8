"""Konflikt-Kern: Intervall-Arithmetik, Serien-Expansion, Konfliktprüfung."""

from .intervals import overlaps, merge_intervals, clamp_interval, duration_minutes
from .recurrence import expand_recurrence, combine_date_and_time, occurrence_interval
from .checker import ConflictChecker

__all__ = [
    "overlaps",
    "merge_intervals",
    "clamp_interval",
    "duration_minutes",
    "expand_recurrence",
    "combine_date_and_time",
    "occurrence_interval",
    "ConflictChecker",
]
