from flask import Blueprint, g

from ..auth import roles_required
from ..errors import NotFoundError
from ..extensions import atomic, db
from ..models import (DietPlanRequest, FacilityBooking, MembershipPlan, MonthlyPlanSubscription, Trainer,
                      TrainingRequest, TrainingSession, User, log_activity)
from ..responses import created, ok
from ..schemas import DietPlanRequestCreate, TrainingRequestCreate
from ..services import consistency, loyalty
from ..utils import today
from ..validation import parse_body

members_bp = Blueprint('members', __name__)


def trainer_card(trainer):
    return trainer.to_dict(first_name=trainer.user.first_name, last_name=trainer.user.last_name,
                           email=trainer.user.email, phone=trainer.user.phone)


def _session_row(session):
    return session.to_dict(trainer_name=session.trainer.user.full_name if session.trainer else None)


@members_bp.route('/dashboard', methods=['GET'])
@roles_required('member')
def dashboard():
    user = g.current_user
    profile = user.member_profile
    upcoming = (TrainingSession.query.filter(TrainingSession.client_id == user.id,
                                             TrainingSession.session_date >= today(),
                                             TrainingSession.status == 'scheduled')
                .order_by(TrainingSession.session_date, TrainingSession.start_time).limit(5).all())
    subscriptions = MonthlyPlanSubscription.query.filter_by(member_id=user.id, status='active').all()
    return ok({
        'user': user.to_dict(full_name=user.full_name),
        'profile': profile.to_dict(plan_name=profile.plan.name if profile.plan else None) if profile else None,
        'loyalty_points': profile.loyalty_points if profile else 0,
        'consistency': consistency.current_week(user.id),
        'upcoming_sessions': [_session_row(session) for session in upcoming],
        'active_subscriptions': [sub.to_dict(plan_name=sub.plan.plan_name) for sub in subscriptions],
    })


@members_bp.route('/bookings', methods=['GET'])
@roles_required('member')
def bookings():
    user = g.current_user
    sessions = (TrainingSession.query.filter_by(client_id=user.id)
                .order_by(TrainingSession.session_date.desc(), TrainingSession.start_time.desc()).all())
    facility_bookings = (FacilityBooking.query.filter_by(user_id=user.id)
                         .order_by(FacilityBooking.booking_date.desc(), FacilityBooking.start_time.desc()).all())
    return ok({
        'training_sessions': [_session_row(session) for session in sessions],
        'facility_bookings': [booking.to_dict(facility_name=booking.facility.name) for booking in facility_bookings],
    })


@members_bp.route('/trainers', methods=['GET'])
@roles_required('member')
def trainers():
    rows = (Trainer.query.join(User, Trainer.user_id == User.id)
            .filter(User.is_active.is_(True)).order_by(User.first_name, User.last_name).all())
    return ok([trainer_card(trainer) for trainer in rows])


@members_bp.route('/nutritionists', methods=['GET'])
@roles_required('member')
def nutritionists():
    rows = (User.query.filter_by(role='nutritionist', is_active=True)
            .order_by(User.first_name, User.last_name).all())
    return ok([user.public_dict() for user in rows])


@members_bp.route('/membership-plans', methods=['GET'])
@roles_required('member')
def membership_plans():
    plans = MembershipPlan.query.filter_by(is_active=True).order_by(MembershipPlan.price.asc()).all()
    return ok([plan.to_dict() for plan in plans])


@members_bp.route('/training-request', methods=['POST'])
@roles_required('member')
def training_request():
    data = parse_body(TrainingRequestCreate)
    trainer = db.session.get(Trainer, data.trainer_id)
    if not trainer or not trainer.user.is_active:
        raise NotFoundError('Trainer not found')
    user = g.current_user
    with atomic('Failed to create training request'):
        request_row = TrainingRequest(requester_id=user.id, status='pending', **data.model_dump())
        db.session.add(request_row)
        log_activity(user.full_name, f"requested {data.request_type} training with {trainer.user.full_name}.")
    return created(request_row.to_dict(), 'Training request sent successfully')


@members_bp.route('/diet-plan-requests', methods=['POST'])
@roles_required('member')
def create_diet_plan_request():
    data = parse_body(DietPlanRequestCreate)
    nutritionist = db.session.get(User, data.nutritionist_id)
    if not nutritionist or nutritionist.role != 'nutritionist' or not nutritionist.is_active:
        raise NotFoundError('Nutritionist not found')
    user = g.current_user
    with atomic('Failed to create diet plan request'):
        diet_request = DietPlanRequest(user_id=user.id, status='pending', **data.model_dump())
        db.session.add(diet_request)
        log_activity(user.full_name, f'requested a diet plan from {nutritionist.full_name}.')
    return created(diet_request.to_dict(), 'Diet plan request submitted successfully')


@members_bp.route('/diet-plan-requests', methods=['GET'])
@roles_required('member')
def list_diet_plan_requests():
    rows = (DietPlanRequest.query.filter_by(user_id=g.current_user.id)
            .order_by(DietPlanRequest.created_at.desc(), DietPlanRequest.id.desc()).all())
    return ok([row.to_dict(nutritionist_name=row.nutritionist.full_name) for row in rows])


@members_bp.route('/loyalty', methods=['GET'])
@roles_required('member')
def loyalty_summary():
    user_id = g.current_user.id
    return ok({
        'balance': loyalty.get_balance(user_id),
        'transactions': loyalty.get_transactions(user_id),
    })
