import datetime

from flask import Blueprint, g
from sqlalchemy import func

from ..auth import trainer_required
from ..errors import NotFoundError, ValidationError
from ..extensions import atomic, db
from ..models import (MonthlyPlanSubscription, SessionNote, Trainer, TrainerSchedule, TrainingRequest, TrainingSession,
                      User, log_activity)
from ..responses import created, ok
from ..schemas import (ScheduleUpdate, SessionNoteSave, SessionUpdate, TrainerProfileUpdate,
                       TrainingRequestDecision)
from ..utils import today
from ..validation import parse_body, provided_fields
from .members import trainer_card

trainers_bp = Blueprint('trainers', __name__)

SESSION_MINUTES = 60


def _upcoming_sessions(trainer, limit=None):
    query = (TrainingSession.query.filter(TrainingSession.trainer_id == trainer.id,
                                          TrainingSession.session_date >= today(),
                                          TrainingSession.status == 'scheduled')
             .order_by(TrainingSession.session_date, TrainingSession.start_time))
    if limit:
        query = query.limit(limit)
    return [session.to_dict(client_name=session.client.full_name) for session in query.all()]


@trainers_bp.route('/', methods=['GET'])
def directory():
    rows = (Trainer.query.join(User, Trainer.user_id == User.id)
            .filter(User.is_active.is_(True), Trainer.is_available.is_(True))
            .order_by(User.first_name, User.last_name).all())
    return ok([trainer_card(trainer) for trainer in rows])


@trainers_bp.route('/dashboard', methods=['GET'])
@trainer_required
def dashboard():
    trainer = g.trainer
    month_start = today().replace(day=1)
    completed = (TrainingSession.query.filter(TrainingSession.trainer_id == trainer.id,
                                              TrainingSession.status == 'completed',
                                              TrainingSession.session_date >= month_start).count())
    return ok({
        'trainer': trainer_card(trainer),
        'upcoming_sessions': len(_upcoming_sessions(trainer)),
        'pending_requests': TrainingRequest.query.filter_by(trainer_id=trainer.id, status='pending').count(),
        'active_subscribers': MonthlyPlanSubscription.query.filter_by(trainer_id=trainer.id, status='active').count(),
        'pending_subscriptions': MonthlyPlanSubscription.query.filter_by(trainer_id=trainer.id,
                                                                         status='pending').count(),
        'sessions_completed_this_month': completed,
        'next_sessions': _upcoming_sessions(trainer, limit=5),
    })


@trainers_bp.route('/schedule', methods=['GET'])
@trainer_required
def get_schedule():
    trainer = g.trainer
    rows = trainer.schedules.order_by(TrainerSchedule.day_of_week, TrainerSchedule.start_time).all()
    return ok({
        'availability': [row.to_dict() for row in rows],
        'upcoming_sessions': _upcoming_sessions(trainer),
    })


@trainers_bp.route('/schedule', methods=['PUT'])
@trainer_required
def update_schedule():
    data = parse_body(ScheduleUpdate)
    trainer = g.trainer
    with atomic('Failed to update schedule'):
        TrainerSchedule.query.filter_by(trainer_id=trainer.id).delete()
        for entry in data.schedules:
            db.session.add(TrainerSchedule(trainer_id=trainer.id, **entry.model_dump()))
        log_activity(trainer.user.full_name, 'updated weekly availability.')
    rows = trainer.schedules.order_by(TrainerSchedule.day_of_week, TrainerSchedule.start_time).all()
    return ok([row.to_dict() for row in rows], 'Schedule updated successfully')


@trainers_bp.route('/requests', methods=['GET'])
@trainer_required
def list_requests():
    rows = (TrainingRequest.query.filter_by(trainer_id=g.trainer.id)
            .order_by(TrainingRequest.created_at.desc(), TrainingRequest.id.desc()).all())
    return ok([row.to_dict(requester_name=row.requester.full_name, requester_email=row.requester.email)
               for row in rows])


@trainers_bp.route('/requests/<int:request_id>', methods=['PUT'])
@trainer_required
def decide_request(request_id):
    data = parse_body(TrainingRequestDecision)
    trainer = g.trainer
    request_row = TrainingRequest.query.filter_by(id=request_id, trainer_id=trainer.id).first()
    if not request_row:
        raise NotFoundError('Training request not found')
    if request_row.status != 'pending':
        raise ValidationError(f'Request has already been {request_row.status}')

    session = None
    with atomic('Failed to update training request'):
        request_row.status = data.status
        request_row.trainer_response = data.response
        if data.status == 'approved' and request_row.preferred_date and request_row.preferred_time:
            starts = datetime.datetime.combine(request_row.preferred_date, request_row.preferred_time)
            session = TrainingSession(
                trainer_id=trainer.id,
                client_id=request_row.requester_id,
                session_date=request_row.preferred_date,
                start_time=request_row.preferred_time,
                end_time=(starts + datetime.timedelta(minutes=SESSION_MINUTES)).time(),
                session_type=request_row.request_type,
                status='scheduled',
                price=trainer.hourly_rate or 0,
            )
            db.session.add(session)
        log_activity(trainer.user.full_name,
                     f"{data.status} a training request from {request_row.requester.full_name}.")
    return ok({'request': request_row.to_dict(), 'session': session.to_dict() if session else None},
              f'Training request {data.status}')


@trainers_bp.route('/sessions/<int:session_id>', methods=['PUT'])
@trainer_required
def update_session(session_id):
    data = parse_body(SessionUpdate)
    session = TrainingSession.query.filter_by(id=session_id, trainer_id=g.trainer.id).first()
    if not session:
        raise NotFoundError('Session not found')
    with atomic('Failed to update session'):
        for field, value in provided_fields(data).items():
            setattr(session, field, value)
        if data.status:
            log_activity(g.trainer.user.full_name,
                         f'marked session with {session.client.full_name} as {data.status}.')
    return ok(session.to_dict(), 'Session updated successfully')


@trainers_bp.route('/session-notes', methods=['GET'])
@trainer_required
def list_session_notes():
    rows = (db.session.query(SessionNote, TrainingSession)
            .join(TrainingSession, SessionNote.training_session_id == TrainingSession.id)
            .filter(SessionNote.trainer_id == g.trainer.id)
            .order_by(TrainingSession.session_date.desc(), TrainingSession.start_time.desc()).all())
    return ok([note.to_dict(session_date=session.session_date, start_time=session.start_time,
                            end_time=session.end_time, client_name=note.client.full_name)
               for note, session in rows])


@trainers_bp.route('/session-notes', methods=['POST'])
@trainer_required
def save_session_notes():
    data = parse_body(SessionNoteSave)
    trainer = g.trainer
    session = TrainingSession.query.filter_by(id=data.training_session_id, trainer_id=trainer.id).first()
    if not session:
        raise NotFoundError('Session not found')
    note = SessionNote.query.filter_by(training_session_id=session.id).first()
    is_new = note is None
    with atomic('Failed to save session notes'):
        if is_new:
            note = SessionNote(training_session_id=session.id, trainer_id=trainer.id, client_id=session.client_id)
            db.session.add(note)
        for field, value in data.model_dump(exclude={'training_session_id'}).items():
            setattr(note, field, value)
    if is_new:
        return created(note.to_dict(), 'Session notes saved')
    return ok(note.to_dict(), 'Session notes updated')


@trainers_bp.route('/profile', methods=['GET'])
@trainer_required
def get_profile():
    trainer = g.trainer
    stats = (db.session.query(TrainingSession.status, func.count(TrainingSession.id))
             .filter(TrainingSession.trainer_id == trainer.id).group_by(TrainingSession.status).all())
    return ok({'profile': trainer_card(trainer), 'session_counts': dict(stats)})


@trainers_bp.route('/profile', methods=['PUT'])
@trainer_required
def update_profile():
    data = parse_body(TrainerProfileUpdate)
    trainer = g.trainer
    with atomic('Failed to update trainer profile'):
        for field, value in provided_fields(data).items():
            setattr(trainer, field, value)
    return ok(trainer_card(trainer), 'Profile updated successfully')
