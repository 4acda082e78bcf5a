"""
SLA Value Objects
==================

Immutable value objects and pure calculations for the SLA domain.

Due dates are derived through a calendar. Two calendars share the same
contract (`add_minutes`, `minutes_between`, `is_business_time`):

- LinearCalendar: wall-clock minute arithmetic. Business hours are carried
  on the config but do not move due dates.
- BusinessHoursCalendar: walks the configured business days and hours, so
  only minutes inside the window are consumed. There is no holiday
  calendar.
"""

import math
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from helpdesk_sla.config import DueDateMode, SLAStatus

_CLOCK_RE = re.compile(r"^(\d{2}):(\d{2})$")

# A window that never opens would otherwise scan forever
MAX_CALENDAR_SCAN_DAYS = 3660


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise a datetime to aware UTC. Naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_clock(value: str) -> time:
    """Parse an "HH:MM" business-hours string."""
    match = _CLOCK_RE.match(value or "")
    if not match:
        raise ValueError(f"'{value}' is not a valid HH:MM time")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"'{value}' is not a valid HH:MM time")
    return time(hours, minutes)


def validate_timezone(name: str) -> str:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone '{name}'")
    return name


def validate_business_days(days: Iterable[int]) -> Tuple[int, ...]:
    normalized = tuple(sorted(set(int(d) for d in days)))
    if not normalized:
        raise ValueError("At least one business day is required")
    if any(d < 1 or d > 7 for d in normalized):
        raise ValueError("Business days must be ISO weekdays between 1 and 7")
    return normalized


@dataclass(frozen=True)
class BusinessHours:
    """
    The calendar window a config operates within.

    Days are ISO weekdays (1=Monday, 7=Sunday); the window is
    [start, end) in the given IANA timezone.
    """
    start: time
    end: time
    days: Tuple[int, ...]
    timezone: str

    @classmethod
    def from_strings(
        cls,
        start: str,
        end: str,
        days: Iterable[int],
        tz_name: str
    ) -> "BusinessHours":
        start_time = parse_clock(start)
        end_time = parse_clock(end)
        if end_time <= start_time:
            raise ValueError("Business hours must end after they start")
        return cls(
            start=start_time,
            end=end_time,
            days=validate_business_days(days),
            timezone=validate_timezone(tz_name),
        )

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def is_within(self, moment: datetime) -> bool:
        local = ensure_utc(moment).astimezone(self.tzinfo)
        return local.isoweekday() in self.days and self.start <= local.time() < self.end

    def local_date(self, moment: datetime) -> date:
        return ensure_utc(moment).astimezone(self.tzinfo).date()

    def window(self, day: date) -> Tuple[datetime, datetime]:
        """Opening and closing instants (UTC) of the window on a local date."""
        tz = self.tzinfo
        open_at = datetime.combine(day, self.start, tzinfo=tz).astimezone(timezone.utc)
        close_at = datetime.combine(day, self.end, tzinfo=tz).astimezone(timezone.utc)
        return open_at, close_at


class LinearCalendar:
    """Wall-clock calendar: every minute counts."""

    def __init__(self, business_hours: BusinessHours):
        self.business_hours = business_hours

    def add_minutes(self, start: datetime, minutes: int) -> datetime:
        return ensure_utc(start) + timedelta(minutes=minutes)

    def minutes_between(self, start: datetime, end: datetime) -> int:
        seconds = (ensure_utc(end) - ensure_utc(start)).total_seconds()
        return max(0, math.floor(seconds / 60))

    def is_business_time(self, moment: datetime) -> bool:
        return self.business_hours.is_within(moment)


class BusinessHoursCalendar:
    """Calendar that only counts minutes inside the business window."""

    def __init__(self, business_hours: BusinessHours):
        self.business_hours = business_hours

    def add_minutes(self, start: datetime, minutes: int) -> datetime:
        hours = self.business_hours
        cursor = ensure_utc(start)
        remaining = timedelta(minutes=minutes)
        day = hours.local_date(cursor)

        for _ in range(MAX_CALENDAR_SCAN_DAYS):
            if day.isoweekday() in hours.days:
                open_at, close_at = hours.window(day)
                begin = max(cursor, open_at)
                if begin < close_at:
                    available = close_at - begin
                    if remaining <= available:
                        return begin + remaining
                    remaining -= available
            day += timedelta(days=1)

        raise ValueError("Business calendar has no open window")

    def minutes_between(self, start: datetime, end: datetime) -> int:
        start, end = ensure_utc(start), ensure_utc(end)
        if end <= start:
            return 0

        hours = self.business_hours
        total = timedelta()
        day = hours.local_date(start)
        last_day = hours.local_date(end)
        while day <= last_day:
            if day.isoweekday() in hours.days:
                open_at, close_at = hours.window(day)
                overlap = min(end, close_at) - max(start, open_at)
                if overlap > timedelta():
                    total += overlap
            day += timedelta(days=1)

        return math.floor(total.total_seconds() / 60)

    def is_business_time(self, moment: datetime) -> bool:
        return self.business_hours.is_within(moment)


Calendar = Union[LinearCalendar, BusinessHoursCalendar]


def calendar_for(business_hours: BusinessHours, mode: str = DueDateMode.LINEAR) -> Calendar:
    """Pick the calendar implementation for the configured due-date mode."""
    if mode == DueDateMode.BUSINESS_HOURS:
        return BusinessHoursCalendar(business_hours)
    return LinearCalendar(business_hours)


class SLACalculator:
    """
    Pure functions for SLA calculations.

    Stateless utility class: all SLA arithmetic lives here so the engine,
    the tracker and the alert generator agree on every number.
    """

    @staticmethod
    def calculate_due_date(created_at: datetime, sla_minutes: int, calendar: Calendar) -> datetime:
        """Due date of a leg given its allotted minutes."""
        return calendar.add_minutes(created_at, sla_minutes)

    @staticmethod
    def calculate_time_remaining(current_time: datetime, due_at: datetime, calendar: Calendar) -> int:
        """Whole minutes left before the due date, never negative."""
        return calendar.minutes_between(current_time, due_at)

    @staticmethod
    def calculate_elapsed(started_at: datetime, finished_at: datetime, calendar: Calendar) -> int:
        """Whole minutes consumed between ticket creation and an event."""
        return calendar.minutes_between(started_at, finished_at)

    @staticmethod
    def determine_status(
        time_remaining: int,
        total_minutes: int,
        at_risk_ratio: float = 0.25
    ) -> str:
        """
        Thresholding rule for an open leg.

        breached when nothing remains, at_risk when the remaining share of
        the window is at or below the ratio, compliant otherwise.
        """
        if time_remaining <= 0:
            return SLAStatus.BREACHED
        if total_minutes <= 0 or time_remaining / total_minutes <= at_risk_ratio:
            return SLAStatus.AT_RISK
        return SLAStatus.COMPLIANT

    @staticmethod
    def determine_completion_status(elapsed_minutes: int, total_minutes: int) -> str:
        """Terminal status of a leg once its event happened."""
        if elapsed_minutes <= total_minutes:
            return SLAStatus.COMPLIANT
        return SLAStatus.BREACHED

    @staticmethod
    def consumed_percentage(time_remaining: int, total_minutes: int) -> int:
        """Share of the window already used, 0-100."""
        if total_minutes <= 0:
            return 100
        consumed = (1 - time_remaining / total_minutes) * 100
        return int(round(min(100.0, max(0.0, consumed))))

    @staticmethod
    def compliance_rate(compliant: int, total: int) -> float:
        """Percentage of compliant rows, 100 when nothing is tracked."""
        if total == 0:
            return 100.0
        return round(compliant / total * 100, 2)
