import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import GymRevenue, User
from ..utils import day_bounds, money, utcnow


def record_revenue(amount, payment_method, source='membership_fees', user_id=None, reference_id=None, notes=None):
    row = GymRevenue(
        user_id=user_id,
        reference_id=reference_id,
        amount=money(amount),
        payment_method=payment_method,
        revenue_source=source,
        revenue_date=utcnow(),
        notes=notes,
    )
    db.session.add(row)
    return row


def _between(query, start_date, end_date):
    start, _ = day_bounds(start_date)
    _, end = day_bounds(end_date)
    return query.filter(GymRevenue.revenue_date >= start, GymRevenue.revenue_date < end)


def _grouped(column, start_date, end_date):
    query = db.session.query(column, func.count(GymRevenue.id), func.coalesce(func.sum(GymRevenue.amount), 0))
    rows = _between(query, start_date, end_date).group_by(column).all()
    return [{'key': key, 'transaction_count': count, 'total_amount': money(total)} for key, count, total in rows]


def revenue_stats(start_date, end_date):
    total_query = db.session.query(func.count(GymRevenue.id), func.coalesce(func.sum(GymRevenue.amount), 0))
    count, total = _between(total_query, start_date, end_date).one()
    by_method = [{'payment_method': row.pop('key'), **row} for row in _grouped(GymRevenue.payment_method, start_date, end_date)]
    by_source = [{'revenue_source': row.pop('key'), **row} for row in _grouped(GymRevenue.revenue_source, start_date, end_date)]
    return {
        'start_date': start_date.isoformat(),
        'end_date': end_date.isoformat(),
        'total_revenue': money(total),
        'total_transactions': count,
        'by_payment_method': by_method,
        'by_source': by_source,
    }


def day_summary(day):
    """Totals for one day, used by the front desk point-of-sale screen."""
    stats = revenue_stats(day, day)
    return {
        'date': day.isoformat(),
        'total_revenue': stats['total_revenue'],
        'total_transactions': stats['total_transactions'],
        'payment_methods': stats['by_payment_method'],
    }


def recent_transactions(limit=10):
    rows = (db.session.query(GymRevenue, User).outerjoin(User, GymRevenue.user_id == User.id)
            .order_by(GymRevenue.revenue_date.desc()).limit(limit).all())
    return [row.to_dict(member_name=user.full_name if user else None) for row, user in rows]


def month_range(day):
    start = day.replace(day=1)
    next_month = (start + datetime.timedelta(days=32)).replace(day=1)
    return start, next_month - datetime.timedelta(days=1)
