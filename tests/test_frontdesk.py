import datetime

import pytest

from finova.models import GymRevenue, MemberProfile, User
from finova.utils import today


@pytest.fixture
def plan(make_plan):
    return make_plan('Premium', price=5000.0, duration_months=3)


def _member_body(plan, **overrides):
    body = {
        'first_name': 'Walk In',
        'last_name': 'Guest',
        'email': 'Walkin@Finova.com',
        'phone': '+94771234567',
        'membership_plan_id': plan.id,
        'payment_method': 'cash',
        'payment_confirmed': True,
    }
    body.update(overrides)
    return body


def test_create_member_at_the_desk(client, front_desk, auth_headers, plan):
    response = client.post('/api/frontdesk/create-member', json=_member_body(plan), headers=auth_headers(front_desk))
    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['default_password'] == 'Welcome123!'
    assert data['payment_details'] == {'method': 'cash', 'amount': 5000.0, 'confirmed': True}

    user = User.query.filter_by(email='walkin@finova.com').one()
    profile = MemberProfile.query.filter_by(user_id=user.id).one()
    assert profile.subscription_status == 'active'
    assert profile.membership_start_date == today() + datetime.timedelta(days=1)
    assert profile.current_plan_id == plan.id

    row = GymRevenue.query.one()
    assert (row.amount, row.revenue_source, row.user_id) == (5000.0, 'membership_fees', user.id)

    login = client.post('/api/users/login', json={'email': 'walkin@finova.com', 'password': 'Welcome123!'})
    assert login.status_code == 200


@pytest.mark.parametrize('overrides, message', [
    ({'phone': '12345'}, 'Please provide a valid phone number (minimum 8 digits)'),
    ({'payment_confirmed': False}, 'Payment must be confirmed before creating member'),
    ({'first_name': 'R2D2'}, 'First name can only contain letters and spaces'),
    ({'date_of_birth': '2024-01-01'}, 'Age must be between 13 and 100 years'),
])
def test_create_member_validation(client, front_desk, auth_headers, plan, overrides, message):
    response = client.post('/api/frontdesk/create-member', json=_member_body(plan, **overrides),
                           headers=auth_headers(front_desk))
    assert response.status_code == 400
    assert response.get_json()['error']['message'] == message
    assert User.query.filter_by(email='walkin@finova.com').count() == 0


def test_create_member_duplicate_email(client, front_desk, member, auth_headers, plan):
    response = client.post('/api/frontdesk/create-member', json=_member_body(plan, email=member.email),
                           headers=auth_headers(front_desk))
    assert response.status_code == 409
    assert GymRevenue.query.count() == 0


def test_create_member_unknown_plan(client, front_desk, auth_headers, plan):
    response = client.post('/api/frontdesk/create-member', json=_member_body(plan, membership_plan_id=999),
                           headers=auth_headers(front_desk))
    assert response.status_code == 400
    assert response.get_json()['error']['field'] == 'membership_plan_id'


def test_front_desk_only(client, member, auth_headers):
    response = client.get('/api/frontdesk/membership-plans', headers=auth_headers(member))
    assert response.status_code == 403
    assert response.get_json()['error']['message'] == 'You do not have permission to access this feature'


def test_membership_plans_and_pos_summary(client, front_desk, auth_headers, make_plan, plan):
    make_plan('Basic', price=3000.0)
    headers = auth_headers(front_desk)
    plans = client.get('/api/frontdesk/membership-plans', headers=headers).get_json()['data']
    assert [row['name'] for row in plans] == ['Basic', 'Premium']

    client.post('/api/frontdesk/create-member', json=_member_body(plan, payment_method='debit_card'), headers=headers)
    summary = client.get('/api/frontdesk/pos-summary', headers=headers).get_json()['data']
    assert summary['date'] == today().isoformat()
    assert summary['total_revenue'] == 5000.0
    assert summary['total_transactions'] == 1
    assert summary['payment_methods'][0]['payment_method'] == 'debit_card'
