"""
Loyalty point ledger.

The balance lives on the member profile; every change is also written to
``loyalty_transactions``. These functions only stage changes on the session,
the caller decides when to commit (usually inside ``atomic()``).
"""
import logging

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..logger import log_loyalty
from ..models import LoyaltyTransaction, MemberProfile

logger = logging.getLogger(__name__)


def _member_profile(user_id, lock=False):
    query = MemberProfile.query.filter_by(user_id=user_id)
    if lock:
        query = query.with_for_update()
    profile = query.first()
    if not profile:
        raise NotFoundError('User not found or no member profile exists')
    return profile


def _record(user_id, points_change, transaction_type, description, reference_id):
    transaction = LoyaltyTransaction(
        user_id=user_id,
        points_change=points_change,
        transaction_type=transaction_type,
        description=description,
        reference_id=str(reference_id) if reference_id is not None else None,
    )
    db.session.add(transaction)
    db.session.flush()
    return transaction


def award_points(user_id, points, reason, reference_id=None):
    if not user_id or not isinstance(points, int) or points <= 0:
        raise ValidationError('Invalid user ID or points amount')

    profile = _member_profile(user_id, lock=True)
    previous = profile.loyalty_points or 0
    profile.loyalty_points = previous + points
    transaction = _record(user_id, points, 'credit', reason, reference_id)

    log_loyalty('Awarded %s points to user %s for %s, new balance %s', points, user_id, reason,
                profile.loyalty_points)
    return {
        'transaction_id': transaction.id,
        'points_awarded': points,
        'previous_balance': previous,
        'new_balance': profile.loyalty_points,
        'reason': reason,
    }


def redeem_points(user_id, points, reason, reference_id=None):
    if not user_id or not isinstance(points, int) or points <= 0:
        raise ValidationError('Invalid user ID or points amount')

    profile = _member_profile(user_id, lock=True)
    previous = profile.loyalty_points or 0
    if points > previous:
        raise ValidationError('Insufficient loyalty points', field='loyalty_points_to_redeem')
    profile.loyalty_points = previous - points
    transaction = _record(user_id, -points, 'debit', reason, reference_id)

    log_loyalty('Redeemed %s points from user %s for %s, new balance %s', points, user_id, reason,
                profile.loyalty_points)
    return {
        'transaction_id': transaction.id,
        'points_redeemed': points,
        'previous_balance': previous,
        'new_balance': profile.loyalty_points,
    }


def get_balance(user_id):
    return _member_profile(user_id).loyalty_points or 0


def get_transactions(user_id, limit=20, offset=0):
    rows = (LoyaltyTransaction.query.filter_by(user_id=user_id)
            .order_by(LoyaltyTransaction.created_at.desc(), LoyaltyTransaction.id.desc())
            .offset(offset).limit(limit).all())
    return [row.to_dict() for row in rows]
