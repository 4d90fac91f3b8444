import itertools

import pytest

from finova import create_app
from finova.auth import issue_token
from finova.extensions import bcrypt
from finova.extensions import db as _db
from finova.models import MemberProfile, MembershipPlan, Trainer, User


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def make_plan(db):
    def factory(name='Basic', price=3000.0, duration_months=1):
        plan = MembershipPlan(name=name, price=price, duration_months=duration_months, is_active=True)
        db.session.add(plan)
        db.session.commit()
        return plan
    return factory


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def factory(role='member', email=None, password='secret123', first_name='Test', last_name=None,
                subscription_status='active', loyalty_points=0, plan=None, is_active=True):
        n = next(counter)
        user = User(
            email=email or f'{role}{n}@finova.com',
            password_hash=bcrypt.generate_password_hash(password).decode('utf-8'),
            first_name=first_name,
            last_name=last_name or f'User{n}',
            role=role,
            is_active=is_active,
        )
        db.session.add(user)
        db.session.flush()
        if role == 'member':
            db.session.add(MemberProfile(user_id=user.id, current_plan_id=plan.id if plan else None,
                                         subscription_status=subscription_status, loyalty_points=loyalty_points))
        elif role == 'trainer':
            db.session.add(Trainer(user_id=user.id, specialization=['Strength'], certification=[],
                                   hourly_rate=2000.0))
        db.session.commit()
        return user
    return factory


@pytest.fixture
def auth_headers(app):
    def build(user):
        return {'Authorization': f'Bearer {issue_token(user)}'}
    return build


@pytest.fixture
def admin(make_user):
    return make_user('admin', email='admin@finova.com', first_name='Ada')


@pytest.fixture
def member(make_user):
    return make_user('member', email='alice@finova.com', first_name='Alice', last_name='Walker')


@pytest.fixture
def trainer(make_user):
    return make_user('trainer', email='sara@finova.com', first_name='Sara', last_name='Holmes')


@pytest.fixture
def front_desk(make_user):
    return make_user('front_desk', email='desk@finova.com', first_name='Front', last_name='Desk')


@pytest.fixture
def nutritionist(make_user):
    return make_user('nutritionist', email='nora@finova.com', first_name='Nora', last_name='Malik')
