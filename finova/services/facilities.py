"""
Facility bookings, cancellations and the waitlist.

Slot capacity and the daily analytics row change together with the booking
in a single transaction.
"""
import datetime

from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..extensions import atomic, db
from ..models import (Facility, FacilityAnalytics, FacilityBooking, FacilitySlot, FacilityWaitlist,
                      log_activity)
from ..utils import money, utcnow
from . import revenue
from .slots import member_price


def _analytics_row(facility_id, day):
    row = FacilityAnalytics.query.filter_by(facility_id=facility_id, date=day).first()
    if row is None:
        row = FacilityAnalytics(facility_id=facility_id, date=day, total_bookings=0, total_revenue=0.0,
                                peak_hour_bookings=0, off_peak_bookings=0, member_bookings=0,
                                non_member_bookings=0)
        db.session.add(row)
    return row


def _track(facility_id, slot, price, is_member, step):
    row = _analytics_row(facility_id, slot.date)
    row.total_bookings = max(0, row.total_bookings + step)
    row.total_revenue = money(max(0.0, row.total_revenue + step * price))
    if slot.slot_type == 'peak':
        row.peak_hour_bookings = max(0, row.peak_hour_bookings + step)
    else:
        row.off_peak_bookings = max(0, row.off_peak_bookings + step)
    if is_member:
        row.member_bookings = max(0, row.member_bookings + step)
    else:
        row.non_member_bookings = max(0, row.non_member_bookings + step)


def book_slot(user, slot_id, notes=None):
    with atomic('Failed to book slot'):
        slot = (FacilitySlot.query.filter_by(id=slot_id, status='available')
                .with_for_update().first())
        if not slot:
            raise ValidationError('Slot is no longer available', field='slot_id')

        clash = FacilityBooking.query.filter(
            FacilityBooking.user_id == user.id,
            FacilityBooking.booking_date == slot.date,
            FacilityBooking.start_time == slot.start_time,
            FacilityBooking.status.in_(('confirmed', 'pending')),
        ).first()
        if clash:
            raise ValidationError('You already have a booking for this time', field='slot_id')
        if slot.current_bookings >= slot.max_capacity:
            raise ValidationError('Slot is at maximum capacity', field='slot_id')

        facility = slot.facility
        is_member = user.role == 'member'
        price = member_price(slot.final_price, facility.member_discount_percentage) if is_member else slot.final_price

        booking = FacilityBooking(
            user_id=user.id,
            slot_id=slot.id,
            facility_id=slot.facility_id,
            booking_date=slot.date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            status='confirmed',
            price_paid=money(price),
            notes=notes,
        )
        db.session.add(booking)
        slot.current_bookings += 1
        slot.status = 'booked' if slot.current_bookings >= slot.max_capacity else 'available'
        _track(slot.facility_id, slot, price, is_member, 1)
        db.session.flush()
        revenue.record_revenue(price, 'online_payment', 'facility_bookings', user_id=user.id,
                               reference_id=booking.id, notes=f'{facility.name} booking')
        log_activity(user.full_name, f"booked '{facility.name}' on {slot.date.isoformat()} at "
                                     f"{slot.start_time.strftime('%H:%M')}.")
    return booking


def cancel_booking(user, booking_id, reason=None):
    with atomic('Failed to cancel booking'):
        booking = db.session.get(FacilityBooking, booking_id)
        if not booking or booking.status == 'cancelled':
            raise NotFoundError('Booking not found')
        if booking.user_id != user.id and user.role != 'admin':
            raise AuthorizationError('Access denied')

        facility = booking.facility
        starts_at = datetime.datetime.combine(booking.booking_date, booking.start_time)
        hours_until = (starts_at - utcnow()).total_seconds() / 3600
        if hours_until < facility.cancellation_hours:
            raise ValidationError(
                f'Cancellation must be made at least {facility.cancellation_hours} hours before the booking')

        booking.status = 'cancelled'
        booking.cancellation_reason = reason
        booking.cancelled_at = utcnow()

        slot = db.session.get(FacilitySlot, booking.slot_id) if booking.slot_id else None
        if slot:
            slot.current_bookings = max(0, slot.current_bookings - 1)
            if slot.current_bookings < slot.max_capacity:
                slot.status = 'available'
            _track(booking.facility_id, slot, booking.price_paid, booking.user.role == 'member', -1)

        refund = money(booking.price_paid * facility.refund_percentage / 100)
        if refund:
            revenue.record_revenue(-refund, 'online_payment', 'facility_bookings', user_id=booking.user_id,
                                   reference_id=booking.id, notes=f'{facility.name} booking refund')
        log_activity(user.full_name, f"cancelled a booking for '{facility.name}'.")
    return {'booking': booking.to_dict(), 'refund_amount': refund}


def join_waitlist(user, data):
    with atomic('Failed to join waitlist'):
        facility = db.session.get(Facility, data.facility_id)
        if not facility or not facility.is_active:
            raise NotFoundError('Facility not found')
        existing = FacilityWaitlist.query.filter_by(user_id=user.id, facility_id=facility.id,
                                                    preferred_date=data.preferred_date, status='waiting').first()
        if existing:
            raise ValidationError('You are already on the waitlist for this facility and date')
        position = FacilityWaitlist.query.filter_by(facility_id=facility.id, preferred_date=data.preferred_date,
                                                    status='waiting').count()
        entry = FacilityWaitlist(
            user_id=user.id,
            facility_id=facility.id,
            preferred_date=data.preferred_date,
            preferred_start_time=data.preferred_start_time,
            preferred_end_time=data.preferred_end_time,
            status='waiting',
            priority=position + 1,
        )
        db.session.add(entry)
        log_activity(user.full_name, f"joined the waitlist for '{facility.name}'.")
    return entry


def leave_waitlist(user, entry_id):
    with atomic('Failed to leave waitlist'):
        entry = FacilityWaitlist.query.filter_by(id=entry_id, user_id=user.id).first()
        if not entry:
            raise NotFoundError('Waitlist entry not found')
        db.session.delete(entry)
