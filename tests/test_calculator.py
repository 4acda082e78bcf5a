"""
Tests for SLA arithmetic: thresholds, due dates and calendars
"""
from datetime import datetime, timedelta, timezone

import pytest

from helpdesk_sla.config import SLAStatus
from helpdesk_sla.sla.domain import (
    BusinessHours,
    BusinessHoursCalendar,
    LinearCalendar,
    SLACalculator,
    SlaStatus,
    calendar_for,
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def hours():
    return BusinessHours.from_strings("09:00", "18:00", [1, 2, 3, 4, 5], "UTC")


@pytest.mark.parametrize("remaining,expected", [
    (16, SLAStatus.COMPLIANT),
    (15, SLAStatus.AT_RISK),
    (1, SLAStatus.AT_RISK),
    (0, SLAStatus.BREACHED),
    (-5, SLAStatus.BREACHED),
])
def test_determine_status_thresholds(remaining, expected):
    assert SLACalculator.determine_status(remaining, 60, 0.25) == expected


def test_completion_on_the_due_minute_is_compliant():
    assert SLACalculator.determine_completion_status(60, 60) == SLAStatus.COMPLIANT
    assert SLACalculator.determine_completion_status(61, 60) == SLAStatus.BREACHED


def test_linear_due_dates(hours):
    calendar = LinearCalendar(hours)
    created = utc(2024, 1, 1, 10, 0)

    assert SLACalculator.calculate_due_date(created, 60, calendar) == utc(2024, 1, 1, 11, 0)
    assert SLACalculator.calculate_due_date(created, 480, calendar) == utc(2024, 1, 1, 18, 0)


def test_linear_time_remaining_is_floored_and_never_negative(hours):
    calendar = LinearCalendar(hours)
    due = utc(2024, 1, 1, 11, 0)

    assert SLACalculator.calculate_time_remaining(utc(2024, 1, 1, 10, 0, 30), due, calendar) == 59
    assert SLACalculator.calculate_time_remaining(utc(2024, 1, 1, 12, 0), due, calendar) == 0


def test_linear_calendar_ignores_weekends(hours):
    friday = utc(2024, 1, 5, 17, 0)
    assert LinearCalendar(hours).add_minutes(friday, 120) == utc(2024, 1, 5, 19, 0)


def test_business_hours_due_date_within_one_day(hours):
    calendar = BusinessHoursCalendar(hours)
    assert calendar.add_minutes(utc(2024, 1, 1, 10, 0), 480) == utc(2024, 1, 1, 18, 0)


def test_business_hours_rolls_over_to_next_morning(hours):
    calendar = BusinessHoursCalendar(hours)
    assert calendar.add_minutes(utc(2024, 1, 1, 10, 0), 540) == utc(2024, 1, 2, 10, 0)


def test_business_hours_skip_weekend(hours):
    calendar = BusinessHoursCalendar(hours)
    friday = utc(2024, 1, 5, 17, 0)
    assert calendar.add_minutes(friday, 120) == utc(2024, 1, 8, 10, 0)


def test_business_hours_start_outside_window(hours):
    calendar = BusinessHoursCalendar(hours)
    saturday = utc(2024, 1, 6, 12, 0)
    assert calendar.add_minutes(saturday, 30) == utc(2024, 1, 8, 9, 30)


def test_business_hours_minutes_between_counts_open_time_only(hours):
    calendar = BusinessHoursCalendar(hours)
    assert calendar.minutes_between(utc(2024, 1, 5, 17, 0), utc(2024, 1, 8, 10, 0)) == 120
    assert calendar.minutes_between(utc(2024, 1, 8, 10, 0), utc(2024, 1, 5, 17, 0)) == 0


def test_business_hours_respect_timezone():
    hours = BusinessHours.from_strings("09:00", "18:00", [1, 2, 3, 4, 5], "America/Sao_Paulo")
    # 11:00 UTC is 08:00 in Sao Paulo: the window opens at 12:00 UTC
    calendar = BusinessHoursCalendar(hours)
    assert calendar.add_minutes(utc(2024, 1, 1, 11, 0), 60) == utc(2024, 1, 1, 13, 0)


def test_is_within_business_hours(hours):
    assert hours.is_within(utc(2024, 1, 1, 9, 0))
    assert not hours.is_within(utc(2024, 1, 1, 18, 0))
    assert not hours.is_within(utc(2024, 1, 6, 12, 0))


def test_calendar_for_mode(hours):
    assert isinstance(calendar_for(hours, "linear"), LinearCalendar)
    assert isinstance(calendar_for(hours, "business_hours"), BusinessHoursCalendar)


@pytest.mark.parametrize("start,end,days,tz", [
    ("18:00", "09:00", [1], "UTC"),
    ("9:00", "18:00", [1], "UTC"),
    ("09:00", "18:00", [], "UTC"),
    ("09:00", "18:00", [0, 8], "UTC"),
    ("09:00", "18:00", [1], "Mars/Olympus"),
])
def test_invalid_business_hours_rejected(start, end, days, tz):
    with pytest.raises(ValueError):
        BusinessHours.from_strings(start, end, days, tz)


def test_consumed_percentage():
    assert SLACalculator.consumed_percentage(15, 60) == 75
    assert SLACalculator.consumed_percentage(0, 60) == 100
    assert SLACalculator.consumed_percentage(60, 60) == 0


def test_compliance_rate():
    assert SLACalculator.compliance_rate(0, 0) == 100.0
    assert SLACalculator.compliance_rate(2, 3) == 66.67


def test_overall_status_is_worst_leg():
    created = utc(2024, 1, 1, 10, 0)
    status = SlaStatus(
        ticket_id="T-1",
        tenant_id="tenant-1",
        priority="high",
        ticket_created_at=created,
        first_response_target_minutes=60,
        resolution_target_minutes=480,
        first_response_due_at=created + timedelta(minutes=60),
        resolution_due_at=created + timedelta(minutes=480),
        first_response_status=SLAStatus.AT_RISK,
        resolution_status=SLAStatus.COMPLIANT,
    )
    assert status.overall_status == SLAStatus.AT_RISK

    status.resolution_status = SLAStatus.BREACHED
    assert status.overall_status == SLAStatus.BREACHED


def test_naive_datetimes_are_taken_as_utc():
    status = SlaStatus(
        ticket_id="T-1",
        tenant_id="tenant-1",
        priority="high",
        ticket_created_at=datetime(2024, 1, 1, 10, 0),
        first_response_target_minutes=60,
        resolution_target_minutes=480,
        first_response_due_at=datetime(2024, 1, 1, 11, 0),
        resolution_due_at=datetime(2024, 1, 1, 18, 0),
    )
    assert status.ticket_created_at == utc(2024, 1, 1, 10, 0)
