"""
Trainer slot batches and the assignments made against their slots.
"""
from flask import Blueprint, g, request

from ..auth import trainer_required
from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import atomic, db
from ..models import (MonthlyPlanSubscription, SlotAssignment, SlotGenerationBatch, TrainerMasterSlot, TrainingSession,
                      User, log_activity)
from ..responses import created, ok
from ..schemas import AssignmentUpdate, MonthlyPlanAssignment, OneTimeAssignment, SlotBatchCreate, SlotBatchUpdate
from ..services import slots as slot_math
from ..validation import date_range_args, parse_body, provided_fields

slot_generation_bp = Blueprint('slot_generation', __name__)
slot_assignments_bp = Blueprint('slot_assignments', __name__)

TIMING_FIELDS = ('slot_duration', 'break_duration', 'selected_days', 'daily_start_time', 'daily_end_time')


def _active_assignments(slot_id, start, end, exclude_id=None):
    query = SlotAssignment.query.filter(
        SlotAssignment.slot_id == slot_id,
        SlotAssignment.status == 'active',
        SlotAssignment.assignment_start_date <= end,
        SlotAssignment.assignment_end_date >= start,
    )
    if exclude_id:
        query = query.filter(SlotAssignment.id != exclude_id)
    return query


def _add_slots(batch, skip=()):
    generated = slot_math.batch_slots(batch.generation_start_date, batch.generation_end_date, batch.selected_days,
                                      batch.daily_start_time, batch.daily_end_time, batch.slot_duration,
                                      batch.break_duration)
    added = 0
    for slot in generated:
        if (slot['date'], slot['start_time']) in skip:
            continue
        db.session.add(TrainerMasterSlot(batch_id=batch.id, is_active=batch.is_active, **slot))
        added += 1
    return added


def _own_batch(batch_id):
    batch = SlotGenerationBatch.query.filter_by(id=batch_id, trainer_id=g.trainer.id).first()
    if not batch:
        raise NotFoundError('Slot generation batch not found')
    return batch


def _own_slot(slot_id):
    slot = (TrainerMasterSlot.query.join(SlotGenerationBatch, TrainerMasterSlot.batch_id == SlotGenerationBatch.id)
            .filter(TrainerMasterSlot.id == slot_id, SlotGenerationBatch.trainer_id == g.trainer.id).first())
    if not slot:
        raise NotFoundError('Slot not found or does not belong to this trainer')
    return slot


def _batch_has_active_assignments(batch):
    return (SlotAssignment.query.join(TrainerMasterSlot, SlotAssignment.slot_id == TrainerMasterSlot.id)
            .filter(TrainerMasterSlot.batch_id == batch.id, SlotAssignment.status == 'active').count() > 0)


# ----------------- SLOT GENERATION -----------------
@slot_generation_bp.route('/create', methods=['POST'])
@trainer_required
def create_batch():
    data = parse_body(SlotBatchCreate)
    trainer = g.trainer
    if SlotGenerationBatch.query.filter_by(trainer_id=trainer.id, batch_name=data.batch_name).first():
        raise ConflictError('A batch with this name already exists')
    with atomic('Failed to create slot generation batch'):
        batch = SlotGenerationBatch(trainer_id=trainer.id, is_active=True, **data.model_dump())
        db.session.add(batch)
        db.session.flush()
        batch.total_slots_generated = _add_slots(batch)
        log_activity(trainer.user.full_name,
                     f"generated {batch.total_slots_generated} slots in batch '{batch.batch_name}'.")
    return created(batch.to_dict(),
                   f'Slot generation batch created successfully. Generated {batch.total_slots_generated} slots.')


@slot_generation_bp.route('/batches', methods=['GET'])
@trainer_required
def list_batches():
    batches = (SlotGenerationBatch.query.filter_by(trainer_id=g.trainer.id)
               .order_by(SlotGenerationBatch.generation_date.desc(), SlotGenerationBatch.id.desc()).all())
    rows = []
    for batch in batches:
        assigned = (SlotAssignment.query.join(TrainerMasterSlot, SlotAssignment.slot_id == TrainerMasterSlot.id)
                    .filter(TrainerMasterSlot.batch_id == batch.id, SlotAssignment.status == 'active').count())
        rows.append(batch.to_dict(active_assignments=assigned))
    return ok(rows)


@slot_generation_bp.route('/available-slots', methods=['GET'])
@trainer_required
def available_slots():
    start, end = date_range_args(request.args)
    if not start or not end:
        raise ValidationError('Either date or start_date and end_date are required', field='date')
    slots = (TrainerMasterSlot.query.join(SlotGenerationBatch, TrainerMasterSlot.batch_id == SlotGenerationBatch.id)
             .filter(SlotGenerationBatch.trainer_id == g.trainer.id,
                     SlotGenerationBatch.is_active.is_(True),
                     TrainerMasterSlot.is_active.is_(True),
                     TrainerMasterSlot.date >= start, TrainerMasterSlot.date <= end)
             .order_by(TrainerMasterSlot.date, TrainerMasterSlot.start_time).all())
    rows = []
    for slot in slots:
        assignment = _active_assignments(slot.id, slot.date, slot.date).first()
        rows.append(slot.to_dict(
            batch_name=slot.batch.batch_name,
            is_available=assignment is None,
            assignment_id=assignment.id if assignment else None,
            assigned_member_name=assignment.assigned_member.full_name if assignment and assignment.assigned_member else None,
        ))
    return ok(rows)


@slot_generation_bp.route('/batch/<int:batch_id>', methods=['PUT'])
@trainer_required
def update_batch(batch_id):
    data = parse_body(SlotBatchUpdate)
    batch = _own_batch(batch_id)
    changes = provided_fields(data)
    if 'batch_name' in changes and changes['batch_name'] != batch.batch_name and \
            SlotGenerationBatch.query.filter_by(trainer_id=batch.trainer_id, batch_name=changes['batch_name']).first():
        raise ConflictError('A batch with this name already exists')

    retime = any(field in changes for field in TIMING_FIELDS)
    start_time = changes.get('daily_start_time', batch.daily_start_time)
    end_time = changes.get('daily_end_time', batch.daily_end_time)
    if retime and start_time >= end_time:
        raise ValidationError('Daily start time must be before daily end time', field='daily_start_time')

    with atomic('Failed to update slot generation batch'):
        for field, value in changes.items():
            setattr(batch, field, value)
        if 'is_active' in changes:
            TrainerMasterSlot.query.filter_by(batch_id=batch.id).update(
                {TrainerMasterSlot.is_active: batch.is_active}, synchronize_session=False)
        if retime:
            kept = set()
            for slot in batch.slots.all():
                if slot.assignments.filter_by(status='active').count():
                    kept.add((slot.date, slot.start_time))
                else:
                    db.session.delete(slot)
            db.session.flush()
            _add_slots(batch, skip=kept)
            db.session.flush()
            batch.total_slots_generated = batch.slots.count()
    return ok(batch.to_dict(), 'Slot generation batch updated successfully')


@slot_generation_bp.route('/batch/<int:batch_id>', methods=['DELETE'])
@trainer_required
def delete_batch(batch_id):
    batch = _own_batch(batch_id)
    if _batch_has_active_assignments(batch):
        raise ValidationError('Cannot delete a batch with active slot assignments')
    with atomic('Failed to delete slot generation batch'):
        name = batch.batch_name
        db.session.delete(batch)
        log_activity(g.trainer.user.full_name, f"deleted slot batch '{name}'.")
    return ok(message='Slot generation batch deleted successfully')


# ----------------- SLOT ASSIGNMENTS -----------------
def assignment_row(assignment):
    slot = assignment.slot
    member = assignment.assigned_member or (assignment.subscription.member if assignment.subscription else None)
    return assignment.to_dict(
        date=slot.date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        member_name=member.full_name if member else None,
        plan_name=assignment.subscription.plan.plan_name if assignment.subscription else None,
    )


@slot_assignments_bp.route('/monthly-plan', methods=['POST'])
@trainer_required
def assign_monthly_plan():
    data = parse_body(MonthlyPlanAssignment)
    trainer = g.trainer
    slot = _own_slot(data.slot_id)
    sub = MonthlyPlanSubscription.query.filter_by(id=data.subscription_id, trainer_id=trainer.id,
                                                  status='active').first()
    if not sub:
        raise NotFoundError('Active subscription not found for this trainer')
    if _active_assignments(slot.id, data.start_date, data.end_date).first():
        raise ConflictError('Slot is already assigned for the specified date range')
    with atomic('Failed to assign slot'):
        assignment = SlotAssignment(
            slot_id=slot.id,
            subscription_id=sub.id,
            assigned_member_id=sub.member_id,
            assignment_type=data.assignment_type,
            assignment_start_date=data.start_date,
            assignment_end_date=data.end_date,
            is_permanent=data.is_permanent,
            assignment_reason=data.notes,
            status='active',
        )
        db.session.add(assignment)
        log_activity(trainer.user.full_name, f'assigned a slot to {sub.member.full_name}.')
    return created(assignment_row(assignment), 'Slot assigned to monthly plan successfully')


@slot_assignments_bp.route('/one-time', methods=['POST'])
@trainer_required
def assign_one_time():
    data = parse_body(OneTimeAssignment)
    trainer = g.trainer
    slot = _own_slot(data.slot_id)
    client = db.session.get(User, data.client_id)
    if not client:
        raise NotFoundError('Client not found')
    if _active_assignments(slot.id, data.session_date, data.session_date).first():
        raise ConflictError('Slot is already assigned for the specified date')
    with atomic('Failed to assign slot'):
        assignment = SlotAssignment(
            slot_id=slot.id,
            assigned_member_id=client.id,
            assignment_type=data.session_type,
            assignment_start_date=data.session_date,
            assignment_end_date=data.session_date,
            is_permanent=False,
            assignment_reason=data.notes,
            status='active',
        )
        db.session.add(assignment)
        db.session.add(TrainingSession(
            trainer_id=trainer.id,
            client_id=client.id,
            session_date=data.session_date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            session_type=data.session_type,
            status='scheduled',
            notes=data.notes,
            price=trainer.hourly_rate or 0,
        ))
        log_activity(trainer.user.full_name, f'booked a one-time session with {client.full_name}.')
    return created(assignment_row(assignment), 'Slot assigned for one-time training session successfully')


@slot_assignments_bp.route('/mine', methods=['GET'])
@trainer_required
def my_assignments():
    query = (SlotAssignment.query.join(TrainerMasterSlot, SlotAssignment.slot_id == TrainerMasterSlot.id)
             .join(SlotGenerationBatch, TrainerMasterSlot.batch_id == SlotGenerationBatch.id)
             .filter(SlotGenerationBatch.trainer_id == g.trainer.id))
    status = request.args.get('status')
    if status:
        query = query.filter(SlotAssignment.status == status)
    rows = query.order_by(TrainerMasterSlot.date, TrainerMasterSlot.start_time).all()
    return ok([assignment_row(row) for row in rows])


def _own_assignment(assignment_id):
    assignment = (SlotAssignment.query.join(TrainerMasterSlot, SlotAssignment.slot_id == TrainerMasterSlot.id)
                  .join(SlotGenerationBatch, TrainerMasterSlot.batch_id == SlotGenerationBatch.id)
                  .filter(SlotAssignment.id == assignment_id, SlotGenerationBatch.trainer_id == g.trainer.id)
                  .first())
    if not assignment:
        raise NotFoundError('Slot assignment not found')
    return assignment


@slot_assignments_bp.route('/<int:assignment_id>', methods=['PUT'])
@trainer_required
def update_assignment(assignment_id):
    data = parse_body(AssignmentUpdate)
    assignment = _own_assignment(assignment_id)
    if data.end_date:
        if data.end_date < assignment.assignment_start_date:
            raise ValidationError('End date cannot be before the start date', field='end_date')
        if _active_assignments(assignment.slot_id, assignment.assignment_start_date, data.end_date,
                               exclude_id=assignment.id).first():
            raise ConflictError('Slot is already assigned for the specified date range')
    with atomic('Failed to update slot assignment'):
        if data.status:
            assignment.status = data.status
        if data.notes is not None:
            assignment.assignment_reason = data.notes
        if data.end_date:
            assignment.assignment_end_date = data.end_date
    return ok(assignment_row(assignment), 'Slot assignment updated successfully')


@slot_assignments_bp.route('/<int:assignment_id>', methods=['DELETE'])
@trainer_required
def cancel_assignment(assignment_id):
    assignment = _own_assignment(assignment_id)
    with atomic('Failed to cancel slot assignment'):
        assignment.status = 'cancelled'
    return ok(assignment_row(assignment), 'Slot assignment cancelled successfully')
