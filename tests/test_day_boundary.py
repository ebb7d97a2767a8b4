# tests/test_day_boundary.py
from datetime import date, datetime, time, timezone

from day_boundary import DayBoundary, ensure_aware

UTC = timezone.utc


def test_day_key_uses_local_midnight():
    boundary = DayBoundary("Europe/London")
    # 23:30 UTC in June is 00:30 BST the next day
    assert boundary.day_key(datetime(2024, 6, 1, 23, 30, tzinfo=UTC)) == date(2024, 6, 2)
    assert boundary.day_key(datetime(2024, 6, 1, 22, 30, tzinfo=UTC)) == date(2024, 6, 1)


def test_day_key_with_custom_cutoff():
    boundary = DayBoundary("Europe/London", cutoff=time(4, 0))
    # 03:00 BST still belongs to the previous day
    assert boundary.day_key(datetime(2024, 6, 2, 2, 0, tzinfo=UTC)) == date(2024, 6, 1)
    assert boundary.day_key(datetime(2024, 6, 2, 3, 30, tzinfo=UTC)) == date(2024, 6, 2)


def test_closing_day_at_cutoff_is_previous_day():
    boundary = DayBoundary("Europe/London")
    midnight_bst = datetime(2024, 6, 1, 23, 0, tzinfo=UTC)
    assert boundary.closing_day(midnight_bst) == date(2024, 6, 1)
    assert boundary.closing_day(datetime(2024, 6, 1, 12, 0, tzinfo=UTC)) == date(2024, 6, 1)


def test_next_cutoff_is_strictly_after_now():
    boundary = DayBoundary("Europe/London")
    assert boundary.next_cutoff(datetime(2024, 6, 1, 12, 0, tzinfo=UTC)) == datetime(2024, 6, 1, 23, 0, tzinfo=UTC)
    assert boundary.next_cutoff(datetime(2024, 6, 1, 23, 0, tzinfo=UTC)) == datetime(2024, 6, 2, 23, 0, tzinfo=UTC)


def test_next_cutoff_across_clock_change():
    boundary = DayBoundary("Europe/London")
    # clocks go forward on 2024-03-31
    assert boundary.next_cutoff(datetime(2024, 3, 30, 12, 0, tzinfo=UTC)) == datetime(2024, 3, 31, 0, 0, tzinfo=UTC)
    assert boundary.next_cutoff(datetime(2024, 3, 31, 12, 0, tzinfo=UTC)) == datetime(2024, 3, 31, 23, 0, tzinfo=UTC)


def test_naive_datetimes_are_utc():
    naive = datetime(2024, 1, 1, 12, 0)
    assert ensure_aware(naive) == datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
    assert DayBoundary("UTC").day_key(naive) == date(2024, 1, 1)


def test_last_cutoff_is_at_or_before_now():
    boundary = DayBoundary("Europe/London")
    assert boundary.last_cutoff(datetime(2024, 6, 1, 13, 0, tzinfo=UTC)) == datetime(2024, 5, 31, 23, 0, tzinfo=UTC)
    assert boundary.last_cutoff(datetime(2024, 6, 1, 23, 0, tzinfo=UTC)) == datetime(2024, 6, 1, 23, 0, tzinfo=UTC)
    assert boundary.last_cutoff(datetime(2024, 3, 31, 12, 0, tzinfo=UTC)) == datetime(2024, 3, 31, 0, 0, tzinfo=UTC)
