"""
Slot arithmetic shared by trainer batches and facility calendars.

Nothing here touches the database; the functions return plain dicts that
the routes turn into rows.
"""
import datetime
import math

from ..utils import add_months, day_number, minutes_of, time_from_minutes

MINUTES_PER_DAY = 24 * 60


def dates_in_range(start, end, weekdays):
    """Every date in [start, end] whose weekday number (0 = Sunday) is in ``weekdays``."""
    wanted = set(weekdays)
    day = start
    while day <= end:
        if day_number(day) in wanted:
            yield day
        day += datetime.timedelta(days=1)


def day_windows(start_time, end_time, duration, gap=0):
    """(start, end) times of slots lasting ``duration`` minutes, ``gap`` minutes apart, that end by ``end_time``."""
    if duration <= 0:
        raise ValueError('Slot duration must be positive')
    windows = []
    current = minutes_of(start_time)
    closing = minutes_of(end_time)
    while current + duration <= closing and current + duration < MINUTES_PER_DAY:
        windows.append((time_from_minutes(current), time_from_minutes(current + duration)))
        current += duration + gap
    return windows


def batch_slots(start_date, end_date, selected_days, daily_start_time, daily_end_time,
                slot_duration, break_duration):
    slots = []
    windows = day_windows(daily_start_time, daily_end_time, slot_duration, break_duration)
    for day in dates_in_range(start_date, end_date, selected_days):
        for start, end in windows:
            slots.append({'date': day, 'start_time': start, 'end_time': end, 'slot_duration': slot_duration})
    return slots


def period_end(start, period, period_type):
    if period_type == 'days':
        return start + datetime.timedelta(days=period)
    if period_type == 'weeks':
        return start + datetime.timedelta(weeks=period)
    if period_type == 'months':
        return add_months(start, period)
    raise ValueError(f'Invalid period type: {period_type}')


def is_peak(start_time, peak_start, peak_end):
    if not peak_start or not peak_end:
        return False
    return peak_start <= start_time <= peak_end


def round_price(value):
    """Round half up to whole currency units."""
    return int(math.floor(value + 0.5))


def slot_price(facility, start_time):
    base = facility.base_price or 0
    if is_peak(start_time, facility.peak_hours_start, facility.peak_hours_end):
        return 'peak', round_price(base * (facility.peak_price_multiplier or 1))
    return 'off_peak', round_price(base)


def facility_slots(facility, days, opening_time, closing_time, duration, start_date, end_date):
    slots = []
    windows = day_windows(opening_time, closing_time, duration)
    for day in dates_in_range(start_date, end_date, days):
        for start, end in windows:
            slot_type, price = slot_price(facility, start)
            slots.append({
                'facility_id': facility.id,
                'date': day,
                'start_time': start,
                'end_time': end,
                'status': 'available',
                'base_price': facility.base_price,
                'final_price': price,
                'slot_type': slot_type,
                'max_capacity': facility.max_capacity,
                'current_bookings': 0,
            })
    return slots


def member_price(price, discount_percentage):
    return round(price * (1 - (discount_percentage or 0) / 100), 2)
