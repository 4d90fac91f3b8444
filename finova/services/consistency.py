"""
Weekly consistency tracking.

A member is consistent for a calendar week (Monday to Sunday) after
checking in on at least ``CONSISTENCY_DAYS_REQUIRED`` distinct days. The
first time a week becomes consistent the member earns
``CONSISTENCY_POINTS`` loyalty points; later check-ins that week earn
nothing more.
"""
from flask import current_app

from ..extensions import db
from ..logger import log_consistency
from ..models import ConsistencyAchievement, GymVisit
from ..utils import days_between, today, week_end, week_start
from . import loyalty


def weekly_visits(user_id, start):
    return (GymVisit.query.filter_by(user_id=user_id, consistency_week_start=start)
            .order_by(GymVisit.check_in_time.asc()).all())


def distinct_visit_days(visits):
    return len({visit.visit_date for visit in visits})


def is_consistent(days_count):
    return days_count >= current_app.config['CONSISTENCY_DAYS_REQUIRED']


def process_week(user_id, start):
    """Recount the week's visits, upsert its record and award points once when consistent."""
    start = week_start(start)
    count = distinct_visit_days(weekly_visits(user_id, start))
    achieved = is_consistent(count)

    record = ConsistencyAchievement.query.filter_by(user_id=user_id, week_start_date=start).first()
    if record is None:
        record = ConsistencyAchievement(user_id=user_id, week_start_date=start, week_end_date=week_end(start),
                                        points_awarded=0)
        db.session.add(record)
    record.check_ins_count = count
    record.consistency_achieved = achieved

    points_awarded = 0
    if achieved and not record.points_awarded:
        points = current_app.config['CONSISTENCY_POINTS']
        loyalty.award_points(user_id, points, 'consistency_achievement', reference_id=f'week:{start.isoformat()}')
        record.points_awarded = points
        points_awarded = points
    db.session.flush()

    log_consistency('User %s has %s check-in days for week %s, consistent=%s, points_awarded=%s',
                    user_id, count, start, achieved, points_awarded)
    return {
        'updated': points_awarded > 0,
        'consistency_achieved': achieved,
        'check_ins_count': count,
        'points_awarded': points_awarded,
        'week_start': start.isoformat(),
    }


def current_week(user_id):
    start = week_start(today())
    visits = weekly_visits(user_id, start)
    count = distinct_visit_days(visits)
    end = week_end(start)
    return {
        'week_start': start.isoformat(),
        'week_end': end.isoformat(),
        'check_ins_count': count,
        'consistency_achieved': is_consistent(count),
        'days_required': current_app.config['CONSISTENCY_DAYS_REQUIRED'],
        'days_remaining': days_between(today(), end),
        'check_ins': [visit.to_dict() for visit in visits],
    }


def history(user_id, weeks=8):
    rows = (ConsistencyAchievement.query.filter_by(user_id=user_id)
            .order_by(ConsistencyAchievement.week_start_date.desc()).limit(weeks).all())
    log_consistency('Retrieved %s consistency records for user %s', len(rows), user_id)
    return [row.to_dict() for row in rows]


def totals(user_id):
    rows = ConsistencyAchievement.query.filter_by(user_id=user_id).all()
    return {
        'total_weeks_tracked': len(rows),
        'consistent_weeks': sum(1 for row in rows if row.consistency_achieved),
        'total_points_from_consistency': sum(row.points_awarded or 0 for row in rows),
    }
