from flask import Blueprint, g, request
from sqlalchemy import func

from ..auth import roles_required
from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import atomic, db
from ..models import (ActivityLog, GymVisit, MemberProfile, MembershipPlan, Trainer, TrainerMonthlyPlan, TrainingSession, User,
                      log_activity)
from ..responses import created, ok
from ..schemas import MembershipPlanCreate, MembershipPlanUpdate, UserStatusUpdate
from ..services import revenue
from ..utils import day_bounds, today, time_ago
from ..validation import parse_body, parse_date, provided_fields, validate_date_range

admin_bp = Blueprint('admin', __name__)


@admin_bp.route('/users/<int:user_id>/status', methods=['PUT'])
@roles_required('admin')
def update_user_status(user_id):
    data = parse_body(UserStatusUpdate)
    admin = g.current_user
    if admin.id == user_id and not data.is_active:
        raise ValidationError('You cannot deactivate your own account.', field='is_active')
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError('User not found')
    with atomic('Failed to update user status'):
        user.is_active = data.is_active
        action = 'activated' if data.is_active else 'deactivated'
        log_activity(admin.full_name, f"{action} user '{user.full_name}' (ID: {user_id}).")
    return ok(user.to_dict(), f"User '{user.full_name}' has been {action}.")


@admin_bp.route('/dashboard', methods=['GET'])
@roles_required('admin')
def dashboard():
    start, end = day_bounds(today())
    by_status = dict(db.session.query(MemberProfile.subscription_status, func.count(MemberProfile.id))
                     .group_by(MemberProfile.subscription_status).all())
    todays = revenue.day_summary(today())
    recent = [{'user': log.user_name, 'message': log.message, 'when': time_ago(log.timestamp)}
              for log in ActivityLog.query.order_by(ActivityLog.timestamp.desc()).limit(10)]
    return ok({
        'members': {
            'total': sum(by_status.values()),
            'by_status': by_status,
        },
        'trainers': Trainer.query.count(),
        'pending_monthly_plans': TrainerMonthlyPlan.query.filter(TrainerMonthlyPlan.admin_approved.is_(None)).count(),
        'todays_check_ins': GymVisit.query.filter(GymVisit.check_in_time >= start, GymVisit.check_in_time < end).count(),
        'revenue_today': todays['total_revenue'],
        'recent_activity': recent,
    })


@admin_bp.route('/revenue/stats', methods=['GET'])
@roles_required('admin')
def revenue_stats():
    default_start, default_end = revenue.month_range(today())
    start = parse_date(request.args.get('start_date'), 'start_date') or default_start
    end = parse_date(request.args.get('end_date'), 'end_date') or default_end
    validate_date_range(start, end)
    data = revenue.revenue_stats(start, end)
    data['recent_transactions'] = revenue.recent_transactions()
    return ok(data)


@admin_bp.route('/sessions/stats', methods=['GET'])
@roles_required('admin')
def session_stats():
    rows = (db.session.query(TrainingSession.status, func.count(TrainingSession.id))
            .group_by(TrainingSession.status).all())
    by_status = dict(rows)
    return ok({'total': sum(by_status.values()), 'by_status': by_status})


# ----------------- MEMBERSHIP PLANS -----------------
@admin_bp.route('/membership-plans', methods=['GET'])
@roles_required('admin')
def list_membership_plans():
    plans = MembershipPlan.query.order_by(MembershipPlan.price.asc()).all()
    return ok([plan.to_dict() for plan in plans])


@admin_bp.route('/membership-plans', methods=['POST'])
@roles_required('admin')
def create_membership_plan():
    data = parse_body(MembershipPlanCreate)
    if MembershipPlan.query.filter_by(name=data.name).first():
        raise ConflictError('A membership plan with this name already exists')
    with atomic('Failed to create membership plan'):
        plan = MembershipPlan(**data.model_dump())
        db.session.add(plan)
        log_activity(g.current_user.full_name, f"created membership plan '{plan.name}'.")
    return created(plan.to_dict(), 'Membership plan created successfully')


@admin_bp.route('/membership-plans/<int:plan_id>', methods=['PUT'])
@roles_required('admin')
def update_membership_plan(plan_id):
    data = parse_body(MembershipPlanUpdate)
    plan = db.session.get(MembershipPlan, plan_id)
    if not plan:
        raise NotFoundError('Membership plan not found')
    changes = provided_fields(data)
    if 'name' in changes and changes['name'] != plan.name and MembershipPlan.query.filter_by(name=changes['name']).first():
        raise ConflictError('A membership plan with this name already exists')
    with atomic('Failed to update membership plan'):
        for field, value in changes.items():
            setattr(plan, field, value)
    return ok(plan.to_dict(), 'Membership plan updated successfully')
