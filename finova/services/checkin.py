import logging

from sqlalchemy import case, func, or_

from ..errors import NotFoundError, ValidationError
from ..extensions import atomic, db
from ..logger import log_check_in, log_search
from ..models import GymVisit, MemberProfile, MembershipPlan, User, log_activity
from ..utils import utcnow, week_start
from . import consistency

logger = logging.getLogger(__name__)


def _member_row(user, profile, plan):
    return {
        'id': user.id,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'full_name': user.full_name,
        'email': user.email,
        'membership_status': profile.subscription_status,
        'membership_plan': plan.name if plan else 'Basic',
        'loyalty_points': profile.loyalty_points,
        'membership_start_date': profile.membership_start_date.isoformat() if profile.membership_start_date else None,
        'membership_end_date': profile.membership_end_date.isoformat() if profile.membership_end_date else None,
    }


def search_active_members(term, limit=10):
    """Active users with an active membership matching ``term``; exact matches first."""
    log_search('Searching active members with term: %s', term)
    lowered = term.lower()
    pattern = f'%{lowered}%'
    term_id = int(term) if term.isdigit() else -1

    first = func.lower(User.first_name)
    last = func.lower(User.last_name)
    email = func.lower(User.email)
    full_name = func.lower(User.first_name + ' ' + User.last_name)

    rank = case(
        (first == lowered, 1),
        (last == lowered, 2),
        (email == lowered, 3),
        (User.id == term_id, 4),
        else_=5,
    )
    rows = (db.session.query(User, MemberProfile, MembershipPlan)
            .join(MemberProfile, MemberProfile.user_id == User.id)
            .outerjoin(MembershipPlan, MemberProfile.current_plan_id == MembershipPlan.id)
            .filter(User.is_active.is_(True), MemberProfile.subscription_status == 'active')
            .filter(or_(first.like(pattern), last.like(pattern), full_name.like(pattern),
                        email.like(pattern), User.id == term_id))
            .order_by(rank, User.first_name, User.last_name)
            .limit(limit).all())

    log_search('Found %s active members for term: %s', len(rows), term)
    return [_member_row(user, profile, plan) for user, profile, plan in rows]


def record_check_in(user_id, check_in_time=None, check_in_type='manual', recorded_by=None):
    """
    Store a gym visit, then recount the member's week.

    The visit is committed on its own. Consistency processing runs in a
    second transaction; when it fails the error is logged and the check-in
    still succeeds with no points awarded.
    """
    now = utcnow()
    check_in_time = check_in_time or now
    if check_in_time > now:
        raise ValidationError('Check-in time cannot be in the future', field='check_in_time')

    log_check_in('Recording check-in for user %s at %s', user_id, check_in_time.isoformat())
    with atomic('Failed to record check-in'):
        member = (db.session.query(User).join(MemberProfile, MemberProfile.user_id == User.id)
                  .filter(User.id == user_id).first())
        if not member:
            raise NotFoundError('Member not found or inactive')
        visit = GymVisit(
            user_id=user_id,
            visit_date=check_in_time.date(),
            check_in_time=check_in_time,
            check_in_type=check_in_type,
            consistency_week_start=week_start(check_in_time),
        )
        db.session.add(visit)
        log_activity(recorded_by.full_name if recorded_by else member.full_name,
                     f"checked in {member.full_name} ({check_in_type}).")
    log_check_in('Recorded check-in %s for user %s', visit.id, user_id)

    consistency_updated = False
    points_awarded = 0
    try:
        with atomic('Failed to award loyalty points'):
            result = consistency.process_week(user_id, visit.consistency_week_start)
        consistency_updated = result['updated']
        points_awarded = result['points_awarded']
    except Exception:
        logger.exception('Error processing consistency for user %s', user_id)

    return {
        'check_in_id': visit.id,
        'user_id': visit.user_id,
        'check_in_time': visit.check_in_time.isoformat(),
        'check_in_type': visit.check_in_type,
        'consistency_updated': consistency_updated,
        'loyalty_points_awarded': points_awarded,
    }


def recent_check_ins(limit=20, offset=0):
    rows = (db.session.query(GymVisit, User, MembershipPlan)
            .join(User, GymVisit.user_id == User.id)
            .join(MemberProfile, MemberProfile.user_id == User.id)
            .outerjoin(MembershipPlan, MemberProfile.current_plan_id == MembershipPlan.id)
            .order_by(GymVisit.check_in_time.desc(), GymVisit.id.desc())
            .offset(offset).limit(limit).all())
    log_check_in('Retrieved %s recent check-ins', len(rows))
    return [{
        'id': visit.id,
        'user_id': visit.user_id,
        'visit_date': visit.visit_date.isoformat(),
        'check_in_time': visit.check_in_time.isoformat(),
        'check_in_type': visit.check_in_type,
        'member_name': user.full_name,
        'member_email': user.email,
        'membership_plan': plan.name if plan else 'Basic',
    } for visit, user, plan in rows]


def member_history(user_id, limit=50, offset=0, start_date=None, end_date=None):
    if not db.session.get(User, user_id):
        raise NotFoundError('Member not found')
    query = GymVisit.query.filter_by(user_id=user_id)
    if start_date:
        query = query.filter(GymVisit.visit_date >= start_date)
    if end_date:
        query = query.filter(GymVisit.visit_date <= end_date)
    total = query.count()
    visits = query.order_by(GymVisit.check_in_time.desc()).offset(offset).limit(limit).all()
    return {
        'check_ins': [visit.to_dict() for visit in visits],
        'total': total,
        'limit': limit,
        'offset': offset,
    }
