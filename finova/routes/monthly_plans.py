"""
Trainer monthly plans and their admin approval.

A new or edited-after-rejection plan waits for an admin (``admin_approved``
is NULL). Only approved, active plans are offered to members.
"""
from flask import Blueprint, g
from sqlalchemy import func

from ..auth import roles_required, trainer_required
from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import atomic, db
from ..models import MonthlyPlanSubscription, TrainerMonthlyPlan, log_activity
from ..responses import created, ok
from ..schemas import MonthlyPlanCreate, MonthlyPlanUpdate, PlanDecision
from ..utils import utcnow
from ..validation import parse_body, provided_fields

monthly_plans_bp = Blueprint('monthly_plans', __name__)
admin_monthly_plans_bp = Blueprint('admin_monthly_plans', __name__)


def plan_row(plan):
    counts = dict(db.session.query(MonthlyPlanSubscription.status, func.count(MonthlyPlanSubscription.id))
                  .filter(MonthlyPlanSubscription.plan_id == plan.id)
                  .group_by(MonthlyPlanSubscription.status).all())
    active = counts.get('active', 0)
    return plan.to_dict(
        trainer_name=plan.trainer.user.full_name,
        approval_status=plan.approval_status,
        active_subscribers=active,
        pending_requests=counts.get('pending', 0),
        available_slots=max(0, plan.max_subscribers - active),
    )


def _own_plan(plan_id):
    plan = TrainerMonthlyPlan.query.filter_by(id=plan_id, trainer_id=g.trainer.id).first()
    if not plan:
        raise NotFoundError('Monthly plan not found')
    return plan


def _name_taken(trainer_id, name, exclude_id=None):
    query = TrainerMonthlyPlan.query.filter_by(trainer_id=trainer_id, plan_name=name)
    if exclude_id:
        query = query.filter(TrainerMonthlyPlan.id != exclude_id)
    return query.first() is not None


# ----------------- TRAINER SIDE -----------------
@monthly_plans_bp.route('/', methods=['POST'])
@trainer_required
def create_plan():
    data = parse_body(MonthlyPlanCreate)
    trainer = g.trainer
    if _name_taken(trainer.id, data.plan_name):
        raise ConflictError('You already have a plan with this name')
    with atomic('Failed to create monthly plan'):
        plan = TrainerMonthlyPlan(trainer_id=trainer.id, is_active=True, requires_admin_approval=True,
                                  admin_approved=None, **data.model_dump())
        db.session.add(plan)
        log_activity(trainer.user.full_name, f"submitted monthly plan '{plan.plan_name}' for approval.")
    return created(plan_row(plan), 'Monthly plan created and sent for admin approval')


@monthly_plans_bp.route('/mine', methods=['GET'])
@trainer_required
def my_plans():
    plans = (TrainerMonthlyPlan.query.filter_by(trainer_id=g.trainer.id)
             .order_by(TrainerMonthlyPlan.created_at.desc(), TrainerMonthlyPlan.id.desc()).all())
    return ok([plan_row(plan) for plan in plans])


@monthly_plans_bp.route('/approved', methods=['GET'])
def approved_plans():
    plans = (TrainerMonthlyPlan.query.filter(TrainerMonthlyPlan.admin_approved.is_(True),
                                             TrainerMonthlyPlan.is_active.is_(True))
             .order_by(TrainerMonthlyPlan.monthly_price.asc()).all())
    return ok([plan_row(plan) for plan in plans])


@monthly_plans_bp.route('/<int:plan_id>', methods=['PUT'])
@trainer_required
def update_plan(plan_id):
    data = parse_body(MonthlyPlanUpdate)
    plan = _own_plan(plan_id)
    changes = provided_fields(data)
    if 'plan_name' in changes and _name_taken(plan.trainer_id, changes['plan_name'], exclude_id=plan.id):
        raise ConflictError('You already have a plan with this name')
    if 'max_subscribers' in changes and changes['max_subscribers'] < plan.active_subscriber_count():
        raise ValidationError('Maximum subscribers cannot be lower than the current active subscribers',
                              field='max_subscribers')
    with atomic('Failed to update monthly plan'):
        for field, value in changes.items():
            setattr(plan, field, value)
        if plan.admin_approved is False:
            plan.admin_approved = None
            plan.admin_approval_date = None
            plan.admin_approval_notes = None
    return ok(plan_row(plan), 'Monthly plan updated successfully')


@monthly_plans_bp.route('/<int:plan_id>', methods=['DELETE'])
@trainer_required
def delete_plan(plan_id):
    plan = _own_plan(plan_id)
    if plan.active_subscriber_count():
        raise ValidationError('Cannot delete a plan with active subscriptions')
    with atomic('Failed to delete monthly plan'):
        name = plan.plan_name
        MonthlyPlanSubscription.query.filter_by(plan_id=plan.id).delete()
        db.session.delete(plan)
        log_activity(g.trainer.user.full_name, f"deleted monthly plan '{name}'.")
    return ok(message='Monthly plan deleted successfully')


# ----------------- ADMIN SIDE -----------------
@admin_monthly_plans_bp.route('/pending', methods=['GET'])
@roles_required('admin')
def pending_plans():
    plans = (TrainerMonthlyPlan.query.filter(TrainerMonthlyPlan.admin_approved.is_(None))
             .order_by(TrainerMonthlyPlan.created_at.asc()).all())
    return ok([plan_row(plan) for plan in plans])


@admin_monthly_plans_bp.route('/approved', methods=['GET'])
@roles_required('admin')
def admin_approved_plans():
    plans = (TrainerMonthlyPlan.query.filter(TrainerMonthlyPlan.admin_approved.is_(True))
             .order_by(TrainerMonthlyPlan.admin_approval_date.desc()).all())
    return ok([plan_row(plan) for plan in plans])


@admin_monthly_plans_bp.route('/stats', methods=['GET'])
@roles_required('admin')
def plan_stats():
    plans = TrainerMonthlyPlan.query.all()
    active_subs = MonthlyPlanSubscription.query.filter_by(status='active').all()
    return ok({
        'total_plans': len(plans),
        'pending_plans': sum(1 for plan in plans if plan.admin_approved is None),
        'approved_plans': sum(1 for plan in plans if plan.admin_approved is True),
        'rejected_plans': sum(1 for plan in plans if plan.admin_approved is False),
        'active_subscriptions': len(active_subs),
        'monthly_revenue': round(sum(sub.total_paid or 0 for sub in active_subs), 2),
    })


@admin_monthly_plans_bp.route('/<int:plan_id>', methods=['GET'])
@roles_required('admin')
def plan_detail(plan_id):
    plan = db.session.get(TrainerMonthlyPlan, plan_id)
    if not plan:
        raise NotFoundError('Monthly plan not found')
    return ok(plan_row(plan))


def _decide(plan_id, approved):
    data = parse_body(PlanDecision)
    plan = db.session.get(TrainerMonthlyPlan, plan_id)
    if not plan:
        raise NotFoundError('Monthly plan not found')
    if plan.admin_approved is not None:
        raise ValidationError(f'Plan has already been {plan.approval_status}')
    with atomic('Failed to update plan approval'):
        plan.admin_approved = approved
        plan.admin_approval_date = utcnow()
        plan.admin_approval_notes = data.comments
        log_activity(g.current_user.full_name,
                     f"{plan.approval_status} monthly plan '{plan.plan_name}' by {plan.trainer.user.full_name}.")
    return plan


@admin_monthly_plans_bp.route('/<int:plan_id>/approve', methods=['POST'])
@roles_required('admin')
def approve_plan(plan_id):
    plan = _decide(plan_id, True)
    return ok(plan_row(plan), 'Monthly plan approved successfully')


@admin_monthly_plans_bp.route('/<int:plan_id>/reject', methods=['POST'])
@roles_required('admin')
def reject_plan(plan_id):
    plan = _decide(plan_id, False)
    return ok(plan_row(plan), 'Monthly plan rejected')
