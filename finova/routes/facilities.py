from flask import Blueprint, g, request

from ..auth import roles_required, token_required
from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import atomic, db
from ..models import Facility, FacilityAnalytics, FacilityBooking, FacilitySlot, FacilityWaitlist, log_activity
from ..responses import created, ok
from ..schemas import (FacilityBookingCancel, FacilityBookingCreate, FacilityCreate, FacilitySlotGeneration,
                       FacilityUpdate, WaitlistCreate)
from ..services import facilities as booking_service
from ..services import slots as slot_math
from ..utils import today
from ..validation import date_range_args, parse_body, provided_fields, validate_limit

facilities_bp = Blueprint('facilities', __name__)


def _facility(facility_id, active_only=False):
    facility = db.session.get(Facility, facility_id)
    if not facility or (active_only and not facility.is_active):
        raise NotFoundError('Facility not found')
    return facility


def _facility_row(facility):
    upcoming = FacilitySlot.query.filter(FacilitySlot.facility_id == facility.id,
                                         FacilitySlot.date >= today()).count()
    return facility.to_dict(upcoming_slots=upcoming)


def _booking_row(booking):
    return booking.to_dict(facility_name=booking.facility.name, user_name=booking.user.full_name,
                           user_email=booking.user.email)


# ----------------- ADMIN -----------------
@facilities_bp.route('/admin/facilities', methods=['GET'])
@roles_required('admin')
def admin_list():
    return ok([_facility_row(f) for f in Facility.query.order_by(Facility.name).all()])


@facilities_bp.route('/admin/facilities', methods=['POST'])
@roles_required('admin')
def admin_create():
    data = parse_body(FacilityCreate)
    if Facility.query.filter_by(name=data.name).first():
        raise ConflictError('A facility with this name already exists')
    with atomic('Failed to create facility'):
        facility = Facility(is_active=True, **data.model_dump())
        db.session.add(facility)
        log_activity(g.current_user.full_name, f"created facility '{facility.name}'.")
    return created(facility.to_dict(), 'Facility created successfully')


@facilities_bp.route('/admin/facilities/<int:facility_id>', methods=['GET'])
@roles_required('admin')
def admin_detail(facility_id):
    return ok(_facility_row(_facility(facility_id)))


@facilities_bp.route('/admin/facilities/<int:facility_id>', methods=['PUT'])
@roles_required('admin')
def admin_update(facility_id):
    data = parse_body(FacilityUpdate)
    facility = _facility(facility_id)
    changes = provided_fields(data)
    if 'name' in changes and changes['name'] != facility.name and Facility.query.filter_by(name=changes['name']).first():
        raise ConflictError('A facility with this name already exists')
    with atomic('Failed to update facility'):
        for field, value in changes.items():
            setattr(facility, field, value)
    return ok(facility.to_dict(), 'Facility updated successfully')


@facilities_bp.route('/admin/facilities/<int:facility_id>', methods=['DELETE'])
@roles_required('admin')
def admin_delete(facility_id):
    facility = _facility(facility_id)
    with atomic('Failed to delete facility'):
        facility.is_active = False
        log_activity(g.current_user.full_name, f"deactivated facility '{facility.name}'.")
    return ok(message='Facility deactivated successfully')


@facilities_bp.route('/admin/facilities/<int:facility_id>/slots', methods=['POST'])
@roles_required('admin')
def admin_generate_slots(facility_id):
    data = parse_body(FacilitySlotGeneration)
    facility = _facility(facility_id, active_only=True)
    start = data.start_date or today()
    end = slot_math.period_end(start, data.generation_period, data.period_type)
    generated = slot_math.facility_slots(facility, data.available_days, data.opening_time, data.closing_time,
                                         data.duration, start, end)
    with atomic('Failed to generate facility slots'):
        removed = (FacilitySlot.query.filter_by(facility_id=facility.id, current_bookings=0)
                   .delete(synchronize_session=False))
        booked = {(slot.date, slot.start_time) for slot in FacilitySlot.query.filter_by(facility_id=facility.id)}
        added = 0
        for slot in generated:
            if (slot['date'], slot['start_time']) in booked:
                continue
            db.session.add(FacilitySlot(**slot))
            added += 1
        log_activity(g.current_user.full_name, f"generated {added} slots for '{facility.name}'.")
    return created({
        'slots_generated': added,
        'slots_removed': removed,
        'date_range': {'start': start.isoformat(), 'end': end.isoformat()},
        'facility': facility.name,
    }, 'Slots generated successfully' if added else 'No slots generated')


@facilities_bp.route('/admin/facilities/<int:facility_id>/slots', methods=['GET'])
@roles_required('admin')
def admin_list_slots(facility_id):
    facility = _facility(facility_id)
    start, end = date_range_args(request.args)
    query = FacilitySlot.query.filter_by(facility_id=facility.id)
    if start:
        query = query.filter(FacilitySlot.date >= start)
    if end:
        query = query.filter(FacilitySlot.date <= end)
    slots = query.order_by(FacilitySlot.date, FacilitySlot.start_time).all()
    return ok([slot.to_dict() for slot in slots])


@facilities_bp.route('/admin/facilities/<int:facility_id>/slots', methods=['DELETE'])
@roles_required('admin')
def admin_clear_slots(facility_id):
    facility = _facility(facility_id)
    with atomic('Failed to clear facility slots'):
        removed = (FacilitySlot.query.filter_by(facility_id=facility.id, current_bookings=0)
                   .delete(synchronize_session=False))
    return ok({'slots_removed': removed}, 'Unbooked slots cleared')


@facilities_bp.route('/admin/bookings', methods=['GET'])
@roles_required('admin')
def admin_bookings():
    query = FacilityBooking.query
    status = request.args.get('status')
    if status:
        query = query.filter_by(status=status)
    facility_id = request.args.get('facility_id', type=int)
    if facility_id:
        query = query.filter_by(facility_id=facility_id)
    limit = validate_limit(request.args.get('limit'), default=50, maximum=200)
    rows = query.order_by(FacilityBooking.booking_date.desc(), FacilityBooking.start_time.desc()).limit(limit).all()
    return ok([_booking_row(row) for row in rows])


@facilities_bp.route('/admin/facilities/<int:facility_id>/waitlist', methods=['GET'])
@roles_required('admin')
def admin_waitlist(facility_id):
    facility = _facility(facility_id)
    rows = (FacilityWaitlist.query.filter_by(facility_id=facility.id, status='waiting')
            .order_by(FacilityWaitlist.preferred_date, FacilityWaitlist.priority, FacilityWaitlist.created_at).all())
    return ok([row.to_dict(user_name=row.user.full_name, user_email=row.user.email) for row in rows])


@facilities_bp.route('/admin/facilities/<int:facility_id>/analytics', methods=['GET'])
@roles_required('admin')
def admin_analytics(facility_id):
    facility = _facility(facility_id)
    start, end = date_range_args(request.args)
    query = FacilityAnalytics.query.filter_by(facility_id=facility.id)
    if start:
        query = query.filter(FacilityAnalytics.date >= start)
    if end:
        query = query.filter(FacilityAnalytics.date <= end)
    rows = query.order_by(FacilityAnalytics.date.desc()).all()
    return ok({
        'facility': facility.name,
        'daily': [row.to_dict() for row in rows],
        'total_bookings': sum(row.total_bookings for row in rows),
        'total_revenue': round(sum(row.total_revenue for row in rows), 2),
    })


# ----------------- USERS -----------------
@facilities_bp.route('/', methods=['GET'])
def list_facilities():
    facilities = Facility.query.filter_by(is_active=True).order_by(Facility.name).all()
    return ok([facility.to_dict() for facility in facilities])


@facilities_bp.route('/<int:facility_id>/slots', methods=['GET'])
@token_required
def facility_slots(facility_id):
    facility = _facility(facility_id, active_only=True)
    start, end = date_range_args(request.args)
    if not start or not end:
        raise ValidationError('Either date or start_date and end_date are required', field='date')
    slots = (FacilitySlot.query.filter(FacilitySlot.facility_id == facility.id, FacilitySlot.status == 'available',
                                       FacilitySlot.date >= start, FacilitySlot.date <= end)
             .order_by(FacilitySlot.date, FacilitySlot.start_time).all())
    is_member = g.current_user.role == 'member'
    rows = []
    for slot in slots:
        extra = {'facility_name': facility.name}
        if is_member:
            extra['member_price'] = slot_math.member_price(slot.final_price, facility.member_discount_percentage)
        rows.append(slot.to_dict(**extra))
    return ok(rows)


@facilities_bp.route('/bookings', methods=['POST'])
@token_required
def book():
    data = parse_body(FacilityBookingCreate)
    booking = booking_service.book_slot(g.current_user, data.slot_id, data.notes)
    return created(_booking_row(booking), 'Slot booked successfully')


@facilities_bp.route('/bookings/mine', methods=['GET'])
@token_required
def my_bookings():
    rows = (FacilityBooking.query.filter_by(user_id=g.current_user.id)
            .order_by(FacilityBooking.booking_date.desc(), FacilityBooking.start_time.desc()).all())
    return ok([_booking_row(row) for row in rows])


@facilities_bp.route('/bookings/<int:booking_id>/cancel', methods=['PUT'])
@token_required
def cancel(booking_id):
    data = parse_body(FacilityBookingCancel)
    result = booking_service.cancel_booking(g.current_user, booking_id, data.cancellation_reason)
    return ok(result, 'Booking cancelled successfully')


@facilities_bp.route('/waitlist', methods=['POST'])
@token_required
def join_waitlist():
    data = parse_body(WaitlistCreate)
    entry = booking_service.join_waitlist(g.current_user, data)
    return created(entry.to_dict(facility_name=entry.facility.name), 'Added to waitlist')


@facilities_bp.route('/waitlist/mine', methods=['GET'])
@token_required
def my_waitlist():
    rows = (FacilityWaitlist.query.filter_by(user_id=g.current_user.id)
            .order_by(FacilityWaitlist.preferred_date, FacilityWaitlist.created_at).all())
    return ok([row.to_dict(facility_name=row.facility.name) for row in rows])


@facilities_bp.route('/waitlist/<int:entry_id>', methods=['DELETE'])
@token_required
def leave_waitlist(entry_id):
    booking_service.leave_waitlist(g.current_user, entry_id)
    return ok(message='Removed from waitlist')
