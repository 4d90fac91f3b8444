from flask import Blueprint, g

from ..auth import issue_token, roles_required, token_required
from ..errors import AuthenticationError, ConflictError
from ..extensions import atomic, bcrypt, db
from ..models import MemberProfile, Trainer, User, log_activity
from ..responses import created, ok
from ..schemas import LoginRequest, ProfileUpdate, RegisterRequest
from ..validation import parse_body, provided_fields

users_bp = Blueprint('users', __name__)


@users_bp.route('/register', methods=['POST'])
def register():
    data = parse_body(RegisterRequest)
    if User.query.filter_by(email=data.email).first():
        raise ConflictError('A user with this email already exists')

    with atomic('Failed to register user'):
        user = User(
            email=data.email,
            password_hash=bcrypt.generate_password_hash(data.password).decode('utf-8'),
            first_name=data.first_name,
            last_name=data.last_name,
            role=data.role,
            phone=data.phone,
            date_of_birth=data.date_of_birth,
            gender=data.gender,
            address=data.address,
            emergency_contact=data.emergency_contact,
        )
        db.session.add(user)
        db.session.flush()
        if data.role == 'trainer':
            db.session.add(Trainer(user_id=user.id, specialization=[], certification=[]))
        elif data.role == 'member':
            db.session.add(MemberProfile(user_id=user.id, subscription_status='pending', loyalty_points=0))
        log_activity(user.full_name, f'registered as {data.role}.')
    return created({'user': user.to_dict()}, 'User registered successfully')


@users_bp.route('/login', methods=['POST'])
def login():
    data = parse_body(LoginRequest)
    user = User.query.filter_by(email=data.email).first()
    if not user or not bcrypt.check_password_hash(user.password_hash, data.password):
        raise AuthenticationError('Invalid credentials')
    if not user.is_active:
        raise AuthenticationError('Account is deactivated')
    return ok({'token': issue_token(user), 'user': user.to_dict()}, 'Login successful')


@users_bp.route('/profile', methods=['GET'])
@token_required
def get_profile():
    user = g.current_user
    data = user.to_dict(full_name=user.full_name)
    if user.member_profile:
        data['member_profile'] = user.member_profile.to_dict()
    if user.trainer_profile:
        data['trainer_profile'] = user.trainer_profile.to_dict()
    return ok(data)


@users_bp.route('/profile', methods=['PUT'])
@token_required
def update_profile():
    data = parse_body(ProfileUpdate)
    user = g.current_user
    with atomic('Failed to update profile'):
        for field, value in provided_fields(data).items():
            setattr(user, field, value)
    return ok(user.to_dict(), 'Profile updated successfully')


@users_bp.route('/', methods=['GET'])
@roles_required('admin')
def list_users():
    users = User.query.order_by(User.created_at.desc(), User.id.desc()).all()
    return ok([user.to_dict() for user in users])
