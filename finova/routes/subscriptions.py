"""
Member subscriptions to trainer monthly plans.

A member asks to join a plan (``pending``); the plan's trainer approves it
(``active``) or rejects it. Capacity is checked on both steps.
"""
from flask import Blueprint, g, request
from sqlalchemy import func

from ..auth import roles_required, trainer_required
from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import atomic, db
from ..models import MemberProfile, MonthlyPlanSubscription, TrainerMonthlyPlan, log_activity
from ..responses import created, ok
from ..schemas import SubscriptionApprove, SubscriptionCancel, SubscriptionReject, SubscriptionRequest
from ..utils import add_months, today, utcnow
from ..validation import parse_body
from .monthly_plans import plan_row

member_plans_bp = Blueprint('member_monthly_plans', __name__)
trainer_subscriptions_bp = Blueprint('trainer_subscriptions', __name__)

OPEN_STATUSES = ('pending', 'active')


def subscription_row(sub):
    return sub.to_dict(
        plan_name=sub.plan.plan_name,
        session_type=sub.plan.session_type,
        sessions_per_month=sub.plan.sessions_per_month,
        trainer_name=sub.trainer.user.full_name,
        member_name=sub.member.full_name,
        member_email=sub.member.email,
    )


def _offered_plan(plan_id):
    return TrainerMonthlyPlan.query.filter(TrainerMonthlyPlan.id == plan_id,
                                           TrainerMonthlyPlan.admin_approved.is_(True),
                                           TrainerMonthlyPlan.is_active.is_(True)).first()


# ----------------- MEMBER SIDE -----------------
@member_plans_bp.route('/available', methods=['GET'])
@roles_required('member')
def available_plans():
    plans = (TrainerMonthlyPlan.query.filter(TrainerMonthlyPlan.admin_approved.is_(True),
                                             TrainerMonthlyPlan.is_active.is_(True))
             .order_by(TrainerMonthlyPlan.monthly_price.asc()).all())
    rows = [plan_row(plan) for plan in plans]
    return ok([row for row in rows if row['available_slots'] > 0])


@member_plans_bp.route('/request-subscription', methods=['POST'])
@roles_required('member')
def request_subscription():
    data = parse_body(SubscriptionRequest)
    member = g.current_user
    plan = _offered_plan(data.plan_id)
    if not plan:
        raise NotFoundError('Plan not found or not available')

    existing = MonthlyPlanSubscription.query.filter(
        MonthlyPlanSubscription.member_id == member.id,
        MonthlyPlanSubscription.plan_id == plan.id,
        MonthlyPlanSubscription.status.in_(OPEN_STATUSES),
    ).first()
    if existing:
        raise ConflictError(f'You already have a {existing.status} subscription to this plan')
    if plan.active_subscriber_count() >= plan.max_subscribers:
        raise ValidationError('This plan has reached its maximum number of subscribers')

    start = today()
    with atomic('Failed to request subscription'):
        sub = MonthlyPlanSubscription(
            member_id=member.id,
            trainer_id=plan.trainer_id,
            plan_id=plan.id,
            subscription_start_date=start,
            subscription_end_date=add_months(start, 1),
            status='pending',
            sessions_remaining=plan.sessions_per_month,
            total_paid=plan.monthly_price,
        )
        db.session.add(sub)
        log_activity(member.full_name, f"requested to subscribe to '{plan.plan_name}'.")
    return created(subscription_row(sub), 'Subscription request sent to the trainer')


@member_plans_bp.route('/subscriptions', methods=['GET'])
@roles_required('member')
def my_subscriptions():
    subs = (MonthlyPlanSubscription.query.filter_by(member_id=g.current_user.id)
            .order_by(MonthlyPlanSubscription.created_at.desc(), MonthlyPlanSubscription.id.desc()).all())
    return ok([subscription_row(sub) for sub in subs])


@member_plans_bp.route('/subscriptions/<int:subscription_id>', methods=['GET'])
@roles_required('member')
def my_subscription(subscription_id):
    sub = MonthlyPlanSubscription.query.filter_by(id=subscription_id, member_id=g.current_user.id).first()
    if not sub:
        raise NotFoundError('Subscription not found')
    return ok(subscription_row(sub))


@member_plans_bp.route('/cancel-subscription', methods=['POST'])
@roles_required('member')
def cancel_subscription():
    data = parse_body(SubscriptionCancel)
    member = g.current_user
    sub = MonthlyPlanSubscription.query.filter_by(id=data.subscription_id, member_id=member.id).first()
    if not sub:
        raise NotFoundError('Subscription not found')
    if sub.status == 'cancelled':
        raise ValidationError('Subscription is already cancelled')
    with atomic('Failed to cancel subscription'):
        sub.status = 'cancelled'
        sub.cancellation_date = utcnow()
        sub.cancellation_reason = data.reason
        log_activity(member.full_name, f"cancelled the subscription to '{sub.plan.plan_name}'.")
    return ok(subscription_row(sub), 'Subscription cancelled successfully')


# ----------------- TRAINER SIDE -----------------
def _own_subscription(subscription_id, status=None):
    query = MonthlyPlanSubscription.query.filter_by(id=subscription_id, trainer_id=g.trainer.id)
    if status:
        query = query.filter_by(status=status)
    sub = query.first()
    if not sub:
        raise NotFoundError('Subscription request not found')
    return sub


@trainer_subscriptions_bp.route('/pending', methods=['GET'])
@trainer_required
def pending_requests():
    subs = (MonthlyPlanSubscription.query.filter_by(trainer_id=g.trainer.id, status='pending')
            .order_by(MonthlyPlanSubscription.created_at.asc()).all())
    return ok([subscription_row(sub) for sub in subs])


@trainer_subscriptions_bp.route('/subscriptions', methods=['GET'])
@trainer_required
def trainer_subscriptions():
    query = MonthlyPlanSubscription.query.filter_by(trainer_id=g.trainer.id)
    status = request.args.get('status')
    if status:
        query = query.filter_by(status=status)
    subs = query.order_by(MonthlyPlanSubscription.created_at.desc(), MonthlyPlanSubscription.id.desc()).all()
    return ok([subscription_row(sub) for sub in subs])


@trainer_subscriptions_bp.route('/stats', methods=['GET'])
@trainer_required
def subscription_stats():
    counts = dict(db.session.query(MonthlyPlanSubscription.status, func.count(MonthlyPlanSubscription.id))
                  .filter(MonthlyPlanSubscription.trainer_id == g.trainer.id)
                  .group_by(MonthlyPlanSubscription.status).all())
    revenue = (db.session.query(func.coalesce(func.sum(MonthlyPlanSubscription.total_paid), 0))
               .filter(MonthlyPlanSubscription.trainer_id == g.trainer.id,
                       MonthlyPlanSubscription.status == 'active').scalar())
    return ok({
        'total_subscriptions': sum(counts.values()),
        'by_status': counts,
        'pending_requests': counts.get('pending', 0),
        'active_subscriptions': counts.get('active', 0),
        'monthly_revenue': round(float(revenue or 0), 2),
    })


@trainer_subscriptions_bp.route('/subscriptions/<int:subscription_id>', methods=['GET'])
@trainer_required
def trainer_subscription(subscription_id):
    return ok(subscription_row(_own_subscription(subscription_id)))


@trainer_subscriptions_bp.route('/approve', methods=['POST'])
@trainer_required
def approve_subscription():
    data = parse_body(SubscriptionApprove)
    sub = _own_subscription(data.subscription_id, status='pending')
    plan = sub.plan
    if plan.active_subscriber_count() >= plan.max_subscribers:
        raise ValidationError('This plan has reached its maximum number of subscribers')
    with atomic('Failed to approve subscription'):
        sub.status = 'active'
        sub.trainer_approval_date = utcnow()
        sub.trainer_approval_notes = data.notes
        sub.payment_date = utcnow()
        profile = MemberProfile.query.filter_by(user_id=sub.member_id).first()
        if profile:
            profile.subscription_status = 'active'
        log_activity(g.trainer.user.full_name,
                     f"approved {sub.member.full_name}'s subscription to '{plan.plan_name}'.")
    return ok(subscription_row(sub), 'Subscription approved successfully')


@trainer_subscriptions_bp.route('/reject', methods=['POST'])
@trainer_required
def reject_subscription():
    data = parse_body(SubscriptionReject)
    sub = _own_subscription(data.subscription_id, status='pending')
    with atomic('Failed to reject subscription'):
        sub.status = 'rejected'
        sub.rejection_reason = data.reason
        sub.trainer_approval_date = utcnow()
        log_activity(g.trainer.user.full_name,
                     f"rejected {sub.member.full_name}'s subscription to '{sub.plan.plan_name}'.")
    return ok(subscription_row(sub), 'Subscription rejected')
