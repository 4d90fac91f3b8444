import calendar
import datetime
import math
import random
import string
import time


def utcnow():
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def today():
    return utcnow().date()


def day_bounds(day):
    start = datetime.datetime.combine(day, datetime.time.min)
    return start, start + datetime.timedelta(days=1)


def day_number(day):
    """Weekday number as the client sends it: 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def week_start(value):
    """Monday of the calendar week containing ``value`` (Sunday belongs to the week before)."""
    day = value.date() if isinstance(value, datetime.datetime) else value
    return day - datetime.timedelta(days=day.weekday())


def week_end(value):
    return week_start(value) + datetime.timedelta(days=6)


def add_months(day, months):
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return day.replace(year=year, month=month, day=min(day.day, calendar.monthrange(year, month)[1]))


def minutes_of(value):
    return value.hour * 60 + value.minute


def time_from_minutes(minutes):
    return datetime.time(minutes // 60, minutes % 60)


def money(value):
    return round(float(value or 0), 2)


def random_suffix(length=9, alphabet=string.ascii_uppercase + string.digits):
    return ''.join(random.choices(alphabet, k=length))


def generate_order_number():
    return f'ORD-{int(time.time() * 1000)}-{random_suffix()}'


def days_between(start, end):
    return max(0, math.ceil((end - start).days))


def serialize(value):
    if isinstance(value, datetime.datetime):
        return value.isoformat()
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, datetime.time):
        return value.strftime('%H:%M')
    return value


def time_ago(date):
    if not date: return 'never'
    diff = utcnow() - date
    if diff.days > 0: return f'{diff.days}d ago'
    if diff.seconds > 3600: return f'{diff.seconds // 3600}h ago'
    return f'{diff.seconds // 60}m ago' if diff.seconds > 60 else 'just now'
