import datetime
from types import SimpleNamespace

import pytest

from finova.services import slots
from finova.utils import add_months, day_number, generate_order_number, week_end, week_start


def test_week_start_is_monday_and_sunday_belongs_to_previous_week():
    """Sunday 2024-03-10 is the last day of the week starting Monday 2024-03-04."""
    assert week_start(datetime.date(2024, 3, 4)) == datetime.date(2024, 3, 4)
    assert week_start(datetime.date(2024, 3, 10)) == datetime.date(2024, 3, 4)
    assert week_start(datetime.datetime(2024, 3, 11, 6, 30)) == datetime.date(2024, 3, 11)
    assert week_end(datetime.date(2024, 3, 6)) == datetime.date(2024, 3, 10)


def test_day_number_counts_from_sunday():
    assert day_number(datetime.date(2024, 3, 10)) == 0  # Sunday
    assert day_number(datetime.date(2024, 3, 11)) == 1
    assert day_number(datetime.date(2024, 3, 16)) == 6


def test_add_months_clamps_to_month_end():
    assert add_months(datetime.date(2024, 1, 31), 1) == datetime.date(2024, 2, 29)
    assert add_months(datetime.date(2023, 1, 31), 1) == datetime.date(2023, 2, 28)
    assert add_months(datetime.date(2024, 11, 15), 3) == datetime.date(2025, 2, 15)
    assert add_months(datetime.date(2100, 1, 31), 1) == datetime.date(2100, 2, 28)


def test_order_number_format():
    number = generate_order_number()
    prefix, millis, suffix = number.split('-')
    assert prefix == 'ORD'
    assert millis.isdigit()
    assert len(suffix) == 9 and suffix.isalnum() and suffix.upper() == suffix


def test_day_windows_respect_break_and_closing_time():
    windows = slots.day_windows(datetime.time(9, 0), datetime.time(12, 0), 60, 15)
    assert windows == [
        (datetime.time(9, 0), datetime.time(10, 0)),
        (datetime.time(10, 15), datetime.time(11, 15)),
    ]


def test_day_windows_rejects_zero_duration():
    with pytest.raises(ValueError):
        slots.day_windows(datetime.time(9, 0), datetime.time(12, 0), 0)


def test_batch_slots_only_on_selected_weekdays():
    """Monday 2024-03-04 to Sunday 2024-03-10, Mondays and Fridays only."""
    generated = slots.batch_slots(datetime.date(2024, 3, 4), datetime.date(2024, 3, 10), [1, 5],
                                  datetime.time(9, 0), datetime.time(11, 0), 60, 0)
    assert [(s['date'].isoformat(), s['start_time'].strftime('%H:%M')) for s in generated] == [
        ('2024-03-04', '09:00'), ('2024-03-04', '10:00'),
        ('2024-03-08', '09:00'), ('2024-03-08', '10:00'),
    ]


def test_period_end_units():
    start = datetime.date(2024, 1, 31)
    assert slots.period_end(start, 3, 'days') == datetime.date(2024, 2, 3)
    assert slots.period_end(start, 2, 'weeks') == datetime.date(2024, 2, 14)
    assert slots.period_end(start, 1, 'months') == datetime.date(2024, 2, 29)
    with pytest.raises(ValueError):
        slots.period_end(start, 1, 'years')


def test_peak_hours_are_inclusive():
    peak_start, peak_end = datetime.time(17, 0), datetime.time(20, 0)
    assert slots.is_peak(datetime.time(17, 0), peak_start, peak_end)
    assert slots.is_peak(datetime.time(20, 0), peak_start, peak_end)
    assert not slots.is_peak(datetime.time(16, 0), peak_start, peak_end)
    assert not slots.is_peak(datetime.time(17, 0), None, peak_end)


def test_slot_price_rounds_half_up():
    facility = SimpleNamespace(base_price=1001.0, peak_hours_start=datetime.time(17, 0),
                               peak_hours_end=datetime.time(20, 0), peak_price_multiplier=1.5)
    assert slots.slot_price(facility, datetime.time(18, 0)) == ('peak', 1502)
    assert slots.slot_price(facility, datetime.time(9, 0)) == ('off_peak', 1001)


def test_member_price_applies_discount():
    assert slots.member_price(1500, 15) == 1275.0
    assert slots.member_price(999, None) == 999
