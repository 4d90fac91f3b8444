import datetime

from flask import current_app

from ..errors import ConflictError, ValidationError
from ..extensions import atomic, bcrypt, db
from ..models import MemberProfile, MembershipPlan, User, log_activity
from ..utils import add_months, today
from . import revenue


def create_member(data, created_by):
    """
    Register a walk-in member who paid at the desk.

    The user, the active member profile and the membership revenue row are
    written in one transaction. The membership starts tomorrow.
    """
    default_password = current_app.config['FRONT_DESK_DEFAULT_PASSWORD']
    with atomic('Failed to create member'):
        plan = db.session.get(MembershipPlan, data.membership_plan_id)
        if not plan:
            raise ValidationError('Invalid membership plan', field='membership_plan_id')
        if User.query.filter_by(email=data.email).first():
            raise ConflictError('A user with this email already exists')

        user = User(
            email=data.email,
            password_hash=bcrypt.generate_password_hash(default_password).decode('utf-8'),
            first_name=data.first_name,
            last_name=data.last_name,
            role='member',
            phone=data.phone,
            date_of_birth=data.date_of_birth,
            gender=data.gender,
            address=data.address,
            emergency_contact=data.emergency_contact,
            is_active=True,
        )
        db.session.add(user)
        db.session.flush()

        start = today() + datetime.timedelta(days=1)
        end = add_months(start, plan.duration_months)
        profile = MemberProfile(
            user_id=user.id,
            current_plan_id=plan.id,
            membership_start_date=start,
            membership_end_date=end,
            subscription_status='active',
            loyalty_points=0,
        )
        db.session.add(profile)
        revenue.record_revenue(plan.price, data.payment_method, 'membership_fees', user_id=user.id,
                               reference_id=plan.id, notes=f'New member registration - {plan.name}')
        log_activity(created_by.full_name, f"registered walk-in member '{user.full_name}' on {plan.name}.")

    return {
        'user': user.public_dict(),
        'profile': profile.to_dict(),
        'membership_plan': plan.to_dict(),
        'default_password': default_password,
        'payment_details': {
            'method': data.payment_method,
            'amount': plan.price,
            'confirmed': data.payment_confirmed,
        },
    }
