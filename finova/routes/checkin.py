"""
Front desk check-in endpoints.

Staff search members, record visits and read visit history. A member may
read their own history and consistency data, nobody else's.
"""
from flask import Blueprint, g, request

from ..auth import roles_required
from ..errors import AuthorizationError, ValidationError
from ..responses import created, ok
from ..schemas import CheckInRequest
from ..services import checkin as checkin_service
from ..services import consistency, loyalty
from ..validation import (parse_body, parse_date, validate_date_range, validate_limit, validate_offset,
                          validate_positive_int, validate_search_term)

checkin_bp = Blueprint('checkin', __name__)

STAFF_ROLES = ('front_desk', 'admin')


def _check_member_access(user_id):
    user = g.current_user
    if user.role not in STAFF_ROLES and user.id != user_id:
        raise AuthorizationError('Access denied')


@checkin_bp.route('/search', methods=['GET'])
@roles_required(*STAFF_ROLES)
def search():
    term = validate_search_term(request.args.get('q'))
    limit = validate_limit(request.args.get('limit'))
    members = checkin_service.search_active_members(term, limit)
    return ok(members, count=len(members))


@checkin_bp.route('/checkin', methods=['POST'])
@roles_required(*STAFF_ROLES)
def check_in():
    data = parse_body(CheckInRequest)
    result = checkin_service.record_check_in(data.user_id, data.check_in_time, data.check_in_type,
                                             recorded_by=g.current_user)
    message = 'Check-in recorded successfully'
    if result['loyalty_points_awarded']:
        message = f"Check-in recorded. Consistency achieved, {result['loyalty_points_awarded']} loyalty points awarded"
    return created(result, message)


@checkin_bp.route('/recent', methods=['GET'])
@roles_required(*STAFF_ROLES)
def recent():
    limit = validate_limit(request.args.get('limit'), default=20)
    offset = validate_offset(request.args.get('offset'))
    rows = checkin_service.recent_check_ins(limit, offset)
    return ok(rows, count=len(rows))


@checkin_bp.route('/history/<user_id>', methods=['GET'])
@roles_required('member', *STAFF_ROLES)
def history(user_id):
    user_id = validate_positive_int(user_id, 'user_id')
    _check_member_access(user_id)
    start = parse_date(request.args.get('start_date'), 'start_date')
    end = parse_date(request.args.get('end_date'), 'end_date')
    validate_date_range(start, end)
    limit = validate_limit(request.args.get('limit'), default=50, maximum=50)
    offset = validate_offset(request.args.get('offset'))
    return ok(checkin_service.member_history(user_id, limit, offset, start, end))


@checkin_bp.route('/consistency/<user_id>', methods=['GET'])
@roles_required('member', *STAFF_ROLES)
def consistency_summary(user_id):
    user_id = validate_positive_int(user_id, 'user_id')
    _check_member_access(user_id)
    weeks = request.args.get('weeks', 8)
    try:
        weeks = int(weeks)
    except (TypeError, ValueError):
        raise ValidationError('Weeks must be a number', field='weeks')
    if weeks < 1 or weeks > 52:
        raise ValidationError('Weeks must be between 1 and 52', field='weeks')
    return ok({
        'user_id': user_id,
        'current_week': consistency.current_week(user_id),
        'history': consistency.history(user_id, weeks),
        'loyalty_points': loyalty.get_balance(user_id),
        'totals': consistency.totals(user_id),
    })
