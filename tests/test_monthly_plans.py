import pytest

from finova.models import MonthlyPlanSubscription, TrainerMonthlyPlan

PLAN = {
    'plan_name': 'Strength Foundations',
    'monthly_price': 12000,
    'sessions_per_month': 8,
    'session_duration': 60,
    'session_type': 'personal',
    'max_subscribers': 1,
}


@pytest.fixture
def plan_id(client, trainer, auth_headers):
    response = client.post('/api/monthly-plans/', json=PLAN, headers=auth_headers(trainer))
    assert response.status_code == 201
    return response.get_json()['data']['id']


@pytest.fixture
def approved_plan_id(client, admin, auth_headers, plan_id):
    response = client.post(f'/api/admin/monthly-plans/{plan_id}/approve', json={'comments': 'Looks good'},
                           headers=auth_headers(admin))
    assert response.status_code == 200
    return plan_id


def test_new_plan_waits_for_approval(client, db, member, auth_headers, plan_id):
    plan = db.session.get(TrainerMonthlyPlan, plan_id)
    assert plan.admin_approved is None
    assert plan.approval_status == 'pending'

    available = client.get('/api/member-monthly-plans/available', headers=auth_headers(member)).get_json()['data']
    assert available == []


def test_plan_name_unique_per_trainer(client, trainer, auth_headers, plan_id):
    response = client.post('/api/monthly-plans/', json=PLAN, headers=auth_headers(trainer))
    assert response.status_code == 409


def test_only_trainers_create_plans(client, member, auth_headers):
    response = client.post('/api/monthly-plans/', json=PLAN, headers=auth_headers(member))
    assert response.status_code == 403


def test_admin_pending_list_and_decision_is_final(client, admin, auth_headers, plan_id):
    pending = client.get('/api/admin/monthly-plans/pending', headers=auth_headers(admin)).get_json()['data']
    assert [row['id'] for row in pending] == [plan_id]
    assert pending[0]['trainer_name'] == 'Sara Holmes'

    assert client.post(f'/api/admin/monthly-plans/{plan_id}/reject', json={},
                       headers=auth_headers(admin)).status_code == 200
    response = client.post(f'/api/admin/monthly-plans/{plan_id}/approve', json={}, headers=auth_headers(admin))
    assert response.status_code == 400
    assert response.get_json()['error']['message'] == 'Plan has already been rejected'


def test_editing_rejected_plan_resubmits_it(client, admin, trainer, auth_headers, plan_id):
    client.post(f'/api/admin/monthly-plans/{plan_id}/reject', json={'comments': 'Too pricey'},
                headers=auth_headers(admin))
    response = client.put(f'/api/monthly-plans/{plan_id}', json={'monthly_price': 9000},
                          headers=auth_headers(trainer))
    assert response.status_code == 200
    assert response.get_json()['data']['approval_status'] == 'pending'


def test_subscription_flow(client, db, make_user, trainer, auth_headers, approved_plan_id):
    member = make_user('member', subscription_status='pending')
    available = client.get('/api/member-monthly-plans/available', headers=auth_headers(member)).get_json()['data']
    assert [row['id'] for row in available] == [approved_plan_id]

    response = client.post('/api/member-monthly-plans/request-subscription', json={'plan_id': approved_plan_id},
                           headers=auth_headers(member))
    assert response.status_code == 201
    sub_id = response.get_json()['data']['id']
    assert response.get_json()['data']['status'] == 'pending'

    again = client.post('/api/member-monthly-plans/request-subscription', json={'plan_id': approved_plan_id},
                        headers=auth_headers(member))
    assert again.status_code == 409

    pending = client.get('/api/trainer-subscriptions/pending', headers=auth_headers(trainer)).get_json()['data']
    assert [row['id'] for row in pending] == [sub_id]

    response = client.post('/api/trainer-subscriptions/approve', json={'subscription_id': sub_id, 'notes': 'Welcome'},
                           headers=auth_headers(trainer))
    assert response.status_code == 200
    sub = db.session.get(MonthlyPlanSubscription, sub_id)
    assert sub.status == 'active'
    assert member.member_profile.subscription_status == 'active'
    assert client.get('/api/trainer-subscriptions/pending', headers=auth_headers(trainer)).get_json()['data'] == []

    stats = client.get('/api/trainer-subscriptions/stats', headers=auth_headers(trainer)).get_json()['data']
    assert stats['active_subscriptions'] == 1
    assert stats['monthly_revenue'] == 12000


def test_full_plan_rejects_new_requests(client, make_user, member, trainer, auth_headers, approved_plan_id):
    response = client.post('/api/member-monthly-plans/request-subscription', json={'plan_id': approved_plan_id},
                           headers=auth_headers(member))
    client.post('/api/trainer-subscriptions/approve', json={'subscription_id': response.get_json()['data']['id']},
                headers=auth_headers(trainer))

    late = make_user('member')
    response = client.post('/api/member-monthly-plans/request-subscription', json={'plan_id': approved_plan_id},
                           headers=auth_headers(late))
    assert response.status_code == 400


def test_approval_rechecks_plan_capacity(client, make_user, trainer, auth_headers, approved_plan_id):
    sub_ids = []
    for _ in range(2):
        applicant = make_user('member')
        response = client.post('/api/member-monthly-plans/request-subscription', json={'plan_id': approved_plan_id},
                               headers=auth_headers(applicant))
        assert response.status_code == 201
        sub_ids.append(response.get_json()['data']['id'])

    first = client.post('/api/trainer-subscriptions/approve', json={'subscription_id': sub_ids[0]},
                        headers=auth_headers(trainer))
    assert first.status_code == 200
    second = client.post('/api/trainer-subscriptions/approve', json={'subscription_id': sub_ids[1]},
                         headers=auth_headers(trainer))
    assert second.status_code == 400
    assert second.get_json()['error']['message'] == 'This plan has reached its maximum number of subscribers'
    assert MonthlyPlanSubscription.query.filter_by(status='active').count() == 1


def test_cannot_subscribe_to_unapproved_plan(client, member, auth_headers, plan_id):
    response = client.post('/api/member-monthly-plans/request-subscription', json={'plan_id': plan_id},
                           headers=auth_headers(member))
    assert response.status_code == 404


def test_reject_and_cancel(client, member, trainer, auth_headers, approved_plan_id):
    sub_id = client.post('/api/member-monthly-plans/request-subscription', json={'plan_id': approved_plan_id},
                         headers=auth_headers(member)).get_json()['data']['id']
    response = client.post('/api/trainer-subscriptions/reject', json={'subscription_id': sub_id, 'reason': 'Full'},
                           headers=auth_headers(trainer))
    assert response.get_json()['data']['status'] == 'rejected'

    response = client.post('/api/member-monthly-plans/cancel-subscription', json={'subscription_id': sub_id},
                           headers=auth_headers(member))
    assert response.status_code == 200
    assert response.get_json()['data']['status'] == 'cancelled'

    response = client.post('/api/member-monthly-plans/cancel-subscription', json={'subscription_id': sub_id},
                           headers=auth_headers(member))
    assert response.status_code == 400


def test_plan_with_active_subscribers_cannot_be_deleted(client, member, trainer, auth_headers, approved_plan_id):
    sub_id = client.post('/api/member-monthly-plans/request-subscription', json={'plan_id': approved_plan_id},
                         headers=auth_headers(member)).get_json()['data']['id']
    client.post('/api/trainer-subscriptions/approve', json={'subscription_id': sub_id}, headers=auth_headers(trainer))

    response = client.delete(f'/api/monthly-plans/{approved_plan_id}', headers=auth_headers(trainer))
    assert response.status_code == 400
