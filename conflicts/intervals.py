"""Intervall-Arithmetik: Überlappung, Zuschnitt und Zusammenführung.

Alle Intervalle sind halboffen [start, end). Zwei Intervalle, die sich nur
in einem Randpunkt berühren, überlappen NICHT – weder beim Konfliktcheck
noch beim Zusammenführen. Beide Regeln müssen übereinstimmen, sonst
widersprechen sich Auslastung und Konfliktentscheidung.
"""

from datetime import datetime
from typing import Iterable, Optional

from models.interval import Interval, to_utc


def overlaps(candidate: Interval, existing: Interval) -> bool:
    """Strikte Überlappung; symmetrisch in beiden Argumenten."""
    return candidate.start < existing.end and existing.start < candidate.end


def clamp_interval(
    interval: Interval, range_start: datetime, range_end: datetime
) -> Optional[Interval]:
    """Schneidet ein Intervall auf [range_start, range_end) zu.

    Gibt None zurück wenn nach dem Zuschnitt nichts übrig bleibt.
    """
    start = max(interval.start, to_utc(range_start))
    end = min(interval.end, to_utc(range_end))
    if start >= end:
        return None
    return Interval(start, end)


def duration_minutes(interval: Interval) -> float:
    return interval.minutes


def total_minutes(intervals: Iterable[Interval]) -> float:
    return sum(i.minutes for i in intervals)


def merge_intervals(intervals: Iterable[Interval]) -> list[Interval]:
    """Führt überlappende Intervalle zu einer minimalen, sortierten Menge zusammen.

    Sweep über die nach Beginn sortierten Intervalle: liegt der nächste
    Beginn STRIKT vor dem aktuellen Ende, wird verlängert; sonst wird das
    aktuelle Intervall abgeschlossen. Aneinanderstoßende Intervalle
    (next.start == current.end) bleiben getrennt.
    """
    ordered = sorted(intervals, key=lambda i: (i.start, i.end))
    if not ordered:
        return []

    merged: list[Interval] = []
    cur_start, cur_end = ordered[0].start, ordered[0].end
    for nxt in ordered[1:]:
        if nxt.start < cur_end:
            cur_end = max(cur_end, nxt.end)
        else:
            merged.append(Interval(cur_start, cur_end))
            cur_start, cur_end = nxt.start, nxt.end
    merged.append(Interval(cur_start, cur_end))
    return merged
