"""Tests für Intervall-Arithmetik: Überlappung, Zuschnitt, Zusammenführung."""

from datetime import datetime, timedelta, timezone

import pytest

from conflicts.intervals import (
    clamp_interval, duration_minutes, merge_intervals, overlaps, total_minutes,
)
from models.errors import InvalidIntervalError
from models.interval import Interval, to_utc

DAY = datetime(2024, 1, 8, tzinfo=timezone.utc)


def _iv(start_h: float, end_h: float) -> Interval:
    """Intervall am Referenztag, Stunden als Kommazahl (9.5 = 09:30)."""
    return Interval(DAY + timedelta(hours=start_h), DAY + timedelta(hours=end_h))


# ─── Interval ─────────────────────────────────────────────────────────────────

class TestInterval:
    def test_end_before_start_rejected(self):
        """Ende vor Beginn → InvalidIntervalError."""
        with pytest.raises(InvalidIntervalError):
            _iv(11, 9)

    def test_empty_interval_rejected(self):
        """Ende == Beginn ist kein gültiges Intervall."""
        with pytest.raises(InvalidIntervalError):
            _iv(9, 9)

    def test_invalid_interval_is_value_error(self):
        """InvalidIntervalError ist auch ein ValueError."""
        with pytest.raises(ValueError):
            _iv(10, 9)

    def test_naive_datetime_treated_as_utc(self):
        """Naive Zeitstempel gelten als UTC."""
        iv = Interval(datetime(2024, 1, 8, 9), datetime(2024, 1, 8, 10))
        assert iv.start == datetime(2024, 1, 8, 9, tzinfo=timezone.utc)

    def test_aware_datetime_converted(self):
        """Zeitstempel mit anderer Zone werden nach UTC umgerechnet."""
        cet = timezone(timedelta(hours=1))
        iv = Interval(datetime(2024, 1, 8, 10, tzinfo=cet), datetime(2024, 1, 8, 11, tzinfo=cet))
        assert iv.start.hour == 9
        assert iv.start.tzinfo == timezone.utc

    def test_minutes(self):
        assert _iv(9, 10.5).minutes == 90

    def test_hashable(self):
        """Interval ist frozen und damit als Set-Element nutzbar."""
        assert len({_iv(9, 10), _iv(9, 10)}) == 1

    def test_to_utc_keeps_naive_wall_time(self):
        assert to_utc(datetime(2024, 1, 1, 12)).hour == 12


# ─── overlaps ─────────────────────────────────────────────────────────────────

class TestOverlaps:
    def test_partial_overlap(self):
        """Bestehend 09–11, Kandidat 10:30–11:30 → Überlappung."""
        assert overlaps(_iv(10.5, 11.5), _iv(9, 11))

    def test_touching_boundaries_do_not_overlap(self):
        """Gemeinsamer Randpunkt ist kein Konflikt."""
        assert not overlaps(_iv(9, 10), _iv(10, 11))
        assert not overlaps(_iv(10, 11), _iv(9, 10))

    def test_containment(self):
        assert overlaps(_iv(9, 12), _iv(10, 11))
        assert overlaps(_iv(10, 11), _iv(9, 12))

    def test_identical(self):
        assert overlaps(_iv(9, 10), _iv(9, 10))

    def test_disjoint(self):
        assert not overlaps(_iv(8, 9), _iv(13, 14))

    @pytest.mark.parametrize("a, b", [
        ((9, 11), (10, 12)),
        ((9, 10), (10, 11)),
        ((8, 9), (12, 13)),
        ((9, 12), (10, 11)),
    ])
    def test_symmetric(self, a, b):
        """overlaps(a, b) == overlaps(b, a)."""
        assert overlaps(_iv(*a), _iv(*b)) == overlaps(_iv(*b), _iv(*a))


# ─── clamp_interval ───────────────────────────────────────────────────────────

class TestClamp:
    def test_inside_unchanged(self):
        assert clamp_interval(_iv(9, 10), DAY, DAY + timedelta(days=1)) == _iv(9, 10)

    def test_clamped_at_range_start(self):
        """Buchung vom Vortag 22:00 bis 02:00 zählt nur ab Mitternacht."""
        result = clamp_interval(_iv(-2, 2), DAY, DAY + timedelta(days=1))
        assert result == _iv(0, 2)

    def test_clamped_at_range_end(self):
        result = clamp_interval(_iv(23, 26), DAY, DAY + timedelta(days=1))
        assert result == _iv(23, 24)

    def test_outside_returns_none(self):
        assert clamp_interval(_iv(30, 31), DAY, DAY + timedelta(days=1)) is None

    def test_touching_range_end_returns_none(self):
        assert clamp_interval(_iv(24, 25), DAY, DAY + timedelta(days=1)) is None


# ─── merge_intervals ──────────────────────────────────────────────────────────

class TestMerge:
    def test_overlapping_merged(self):
        """09–11 + 10–12 → 09–12."""
        assert merge_intervals([_iv(9, 11), _iv(10, 12)]) == [_iv(9, 12)]

    def test_adjacent_not_merged(self):
        """09–10 + 10–11 bleiben zwei Intervalle."""
        merged = merge_intervals([_iv(9, 10), _iv(10, 11)])
        assert merged == [_iv(9, 10), _iv(10, 11)]
        assert total_minutes(merged) == 120

    def test_unsorted_input(self):
        merged = merge_intervals([_iv(14, 15), _iv(9, 11), _iv(10, 12)])
        assert merged == [_iv(9, 12), _iv(14, 15)]

    def test_contained_interval_absorbed(self):
        assert merge_intervals([_iv(9, 13), _iv(10, 11)]) == [_iv(9, 13)]

    def test_empty(self):
        assert merge_intervals([]) == []

    def test_idempotent(self):
        """merge(merge(xs)) == merge(xs)."""
        xs = [_iv(9, 11), _iv(10, 12), _iv(12, 13), _iv(15, 16), _iv(15.5, 17)]
        once = merge_intervals(xs)
        assert merge_intervals(once) == once

    def test_total_never_increases(self):
        """Summe nach dem Zusammenführen ≤ Summe vorher."""
        xs = [_iv(9, 11), _iv(10, 12), _iv(14, 15)]
        assert total_minutes(merge_intervals(xs)) < total_minutes(xs)

    def test_total_equal_without_overlaps(self):
        """Ohne Überlappungen bleibt die Summe gleich."""
        xs = [_iv(9, 10), _iv(10, 11), _iv(13, 14)]
        assert total_minutes(merge_intervals(xs)) == total_minutes(xs)

    def test_duration_minutes(self):
        assert duration_minutes(_iv(9, 11)) == 120
