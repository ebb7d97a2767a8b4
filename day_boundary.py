# day_boundary.py
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def ensure_aware(ts: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with Firestore timestamps."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DayBoundary:
    """Where one habit day ends and the next begins.

    A day runs from `cutoff` local time in `timezone` until the same wall-clock
    time the next day. The nightly reset fires at the cutoff.
    """

    timezone: str = "Europe/London"
    cutoff: time = time(0, 0)

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def _offset(self) -> timedelta:
        return timedelta(hours=self.cutoff.hour, minutes=self.cutoff.minute)

    def day_key(self, ts: datetime) -> date:
        """Logical day an instant belongs to."""
        local = ensure_aware(ts).astimezone(self.tzinfo)
        return (local.replace(tzinfo=None) - self._offset()).date()

    def closing_day(self, as_of: datetime) -> date:
        """Day closed by a reset that runs at `as_of`.

        A run exactly at the cutoff closes the day that just ended; a manual
        run part-way through a day closes that day.
        """
        return self.day_key(ensure_aware(as_of) - timedelta(microseconds=1))

    def is_on_day(self, ts: datetime, day: date) -> bool:
        return self.day_key(ts) == day

    def next_cutoff(self, now: datetime) -> datetime:
        """Next cutoff instant strictly after `now`, returned in UTC."""
        tz = self.tzinfo
        local_now = ensure_aware(now).astimezone(tz)
        candidate = datetime.combine(local_now.date(), self.cutoff, tzinfo=tz)
        if candidate <= local_now:
            candidate = datetime.combine(local_now.date() + timedelta(days=1), self.cutoff, tzinfo=tz)
        return candidate.astimezone(timezone.utc)

    def last_cutoff(self, now: datetime) -> datetime:
        """Most recent cutoff instant at or before `now`, returned in UTC."""
        tz = self.tzinfo
        local_now = ensure_aware(now).astimezone(tz)
        candidate = datetime.combine(local_now.date(), self.cutoff, tzinfo=tz)
        if candidate > local_now:
            candidate = datetime.combine(local_now.date() - timedelta(days=1), self.cutoff, tzinfo=tz)
        return candidate.astimezone(timezone.utc)
