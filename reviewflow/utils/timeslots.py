import re
from datetime import date, datetime, timedelta
from typing import Any, Iterable, List, NamedTuple, Optional, Tuple

TIME_PATTERN = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)$')
DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')

DAY_NAMES = ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']
DAY_SHORT_NAMES = ['Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat']


class TimeOfDay(NamedTuple):
    """Wall-clock time with minute precision, ordered like a tuple"""
    hour: int
    minute: int

    @classmethod
    def parse(cls, value: str) -> 'TimeOfDay':
        """Parse a 24h ``H:MM`` or ``HH:MM`` string"""
        if not isinstance(value, str):
            raise ValueError(f"Expected a time string, got {value!r}")
        match = TIME_PATTERN.match(value.strip())
        if not match:
            raise ValueError(f"Invalid time {value!r}, expected HH:MM")
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def from_time(cls, value) -> 'TimeOfDay':
        """Truncate a ``time`` or ``datetime`` to the minute"""
        return cls(value.hour, value.minute)

    def __str__(self):
        return f"{self.hour:02d}:{self.minute:02d}"


class TimeRange(NamedTuple):
    """Half-open ``[start, end)`` interval within one day"""
    start: TimeOfDay
    end: TimeOfDay

    @classmethod
    def of(cls, start, end) -> 'TimeRange':
        start = start if isinstance(start, TimeOfDay) else TimeOfDay.parse(start)
        end = end if isinstance(end, TimeOfDay) else TimeOfDay.parse(end)
        if start >= end:
            raise ValueError(f"Start time {start} must be before end time {end}")
        return cls(start, end)

    def overlaps(self, other: 'TimeRange') -> bool:
        # Touching endpoints do not overlap
        return self.start < other.end and self.end > other.start

    def contains(self, moment: TimeOfDay) -> bool:
        return self.start <= moment < self.end

    def __str__(self):
        return f"{self.start} - {self.end}"


def parse_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string"""
    if not isinstance(value, str) or not DATE_PATTERN.match(value.strip()):
        raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD")
    return datetime.strptime(value.strip(), '%Y-%m-%d').date()


def day_of_week(value: date) -> int:
    """Day index with 0 = Sunday through 6 = Saturday"""
    return (value.weekday() + 1) % 7


def find_conflict(candidate: TimeRange, existing: Iterable[Tuple[Any, TimeRange]]) -> Optional[Tuple[str, Any]]:
    """
    Check a candidate range against existing ranges on the same day.
    Returns ('duplicate', item) for an identical range, ('overlap', item)
    for the earliest partially overlapping one, or None.
    """
    overlapping = [(item, other) for item, other in existing if candidate.overlaps(other)]
    if not overlapping:
        return None

    for item, other in overlapping:
        if other == candidate:
            return 'duplicate', item

    overlapping.sort(key=lambda pair: pair[1])
    return 'overlap', overlapping[0][0]


def next_available_slot(recurring: List[Tuple[int, TimeOfDay]],
                        specific: List[Tuple[date, TimeOfDay]],
                        now: datetime) -> Optional[Tuple[date, TimeOfDay]]:
    """
    Find the next window start after ``now``.

    Recurring windows are searched first: later today, later this week,
    earlier weekdays (next week), then today's weekday next week. One-off
    windows are the fallback. Returns the concrete (date, start) or None.
    """
    today = now.date()
    current_day = day_of_week(today)
    current_time = TimeOfDay.from_time(now)

    later_today = [start for dow, start in recurring if dow == current_day and start > current_time]
    if later_today:
        return today, min(later_today)

    later_this_week = [(dow, start) for dow, start in recurring if dow > current_day]
    if later_this_week:
        dow, start = min(later_this_week)
        return today + timedelta(days=dow - current_day), start

    next_week = [(dow, start) for dow, start in recurring if dow < current_day]
    if next_week:
        dow, start = min(next_week)
        return today + timedelta(days=7 - current_day + dow), start

    same_day_next_week = [start for dow, start in recurring if dow == current_day]
    if same_day_next_week:
        return today + timedelta(days=7), min(same_day_next_week)

    upcoming = [
        (slot_date, start) for slot_date, start in specific
        if slot_date > today or (slot_date == today and start > current_time)
    ]
    if upcoming:
        return min(upcoming)

    return None


def format_slot_label(slot_date: date, start: TimeOfDay, today: date) -> str:
    """Human label: 'Today 09:00', 'Tomorrow 09:00', 'Friday 09:00' or 'Nov 03 09:00'"""
    days_ahead = (slot_date - today).days
    if days_ahead == 0:
        return f"Today {start}"
    if days_ahead == 1:
        return f"Tomorrow {start}"
    if 1 < days_ahead < 7:
        return f"{DAY_NAMES[day_of_week(slot_date)]} {start}"
    return f"{slot_date.strftime('%b %d')} {start}"
