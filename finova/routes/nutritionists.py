from flask import Blueprint, g
from sqlalchemy import func

from ..auth import roles_required
from ..errors import NotFoundError
from ..extensions import atomic, db
from ..models import DietPlanRequest, log_activity
from ..responses import ok
from ..schemas import DietPlanRequestUpdate
from ..validation import parse_body, provided_fields

nutritionists_bp = Blueprint('nutritionists', __name__)


@nutritionists_bp.route('/dashboard', methods=['GET'])
@roles_required('nutritionist')
def dashboard():
    rows = (db.session.query(DietPlanRequest.status, func.count(DietPlanRequest.id))
            .filter(DietPlanRequest.nutritionist_id == g.current_user.id)
            .group_by(DietPlanRequest.status).all())
    by_status = dict(rows)
    return ok({
        'total_requests': sum(by_status.values()),
        'pending': by_status.get('pending', 0),
        'in_progress': by_status.get('in_progress', 0),
        'completed': by_status.get('completed', 0),
        'rejected': by_status.get('rejected', 0),
    })


@nutritionists_bp.route('/diet-plan-requests', methods=['GET'])
@roles_required('nutritionist')
def list_requests():
    rows = (DietPlanRequest.query.filter_by(nutritionist_id=g.current_user.id)
            .order_by(DietPlanRequest.created_at.desc(), DietPlanRequest.id.desc()).all())
    return ok([row.to_dict(client_name=row.member.full_name, client_email=row.member.email) for row in rows])


@nutritionists_bp.route('/diet-plan-requests/<int:request_id>', methods=['PUT'])
@roles_required('nutritionist')
def update_request(request_id):
    data = parse_body(DietPlanRequestUpdate)
    user = g.current_user
    row = DietPlanRequest.query.filter_by(id=request_id, nutritionist_id=user.id).first()
    if not row:
        raise NotFoundError('Diet plan request not found')
    with atomic('Failed to update diet plan request'):
        for field, value in provided_fields(data).items():
            setattr(row, field, value)
        log_activity(user.full_name, f"updated the diet plan for {row.member.full_name} ({row.status}).")
    return ok(row.to_dict(), 'Diet plan request updated successfully')
