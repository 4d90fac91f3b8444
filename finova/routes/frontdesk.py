from flask import Blueprint, g

from ..auth import roles_required
from ..models import MembershipPlan
from ..responses import created, ok
from ..schemas import FrontDeskMemberCreate
from ..services import frontdesk, revenue
from ..utils import today
from ..validation import parse_body

frontdesk_bp = Blueprint('frontdesk', __name__)


@frontdesk_bp.route('/create-member', methods=['POST'])
@roles_required('front_desk')
def create_member():
    data = parse_body(FrontDeskMemberCreate)
    result = frontdesk.create_member(data, g.current_user)
    return created(result, 'Member created successfully')


@frontdesk_bp.route('/membership-plans', methods=['GET'])
@roles_required('front_desk')
def membership_plans():
    plans = MembershipPlan.query.filter_by(is_active=True).order_by(MembershipPlan.price.asc()).all()
    return ok([plan.to_dict() for plan in plans])


@frontdesk_bp.route('/pos-summary', methods=['GET'])
@roles_required('front_desk')
def pos_summary():
    return ok(revenue.day_summary(today()))
