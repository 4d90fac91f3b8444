from finova.models import ActivityLog, GymRevenue, User
from finova.services import revenue
from finova.utils import today


def test_admin_cannot_deactivate_self(client, admin, auth_headers):
    response = client.put(f'/api/admin/users/{admin.id}/status', json={'is_active': False},
                          headers=auth_headers(admin))
    assert response.status_code == 400
    assert response.get_json()['error']['message'] == 'You cannot deactivate your own account.'


def test_deactivated_user_is_locked_out(client, admin, member, auth_headers):
    headers = auth_headers(member)
    response = client.put(f'/api/admin/users/{member.id}/status', json={'is_active': False},
                          headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.get_json()['message'] == "User 'Alice Walker' has been deactivated."

    # The token issued before deactivation no longer works
    response = client.get('/api/users/profile', headers=headers)
    assert response.status_code == 401
    assert response.get_json()['error']['message'] == 'Account is deactivated'
    assert ActivityLog.query.filter(ActivityLog.message.like('deactivated%')).count() == 1


def test_dashboard(client, admin, member, trainer, auth_headers):
    data = client.get('/api/admin/dashboard', headers=auth_headers(admin)).get_json()['data']
    assert data['members']['total'] == 1
    assert data['members']['by_status'] == {'active': 1}
    assert data['trainers'] == 1
    assert data['revenue_today'] == 0


def test_revenue_stats_groups_by_source(client, db, admin, member, auth_headers):
    revenue.record_revenue(3000, 'cash', 'membership_fees', user_id=member.id)
    revenue.record_revenue(1200, 'credit_card', 'store_sales')
    db.session.commit()

    day = today().isoformat()
    response = client.get(f'/api/admin/revenue/stats?start_date={day}&end_date={day}', headers=auth_headers(admin))
    data = response.get_json()['data']
    assert data['total_revenue'] == 4200
    assert data['total_transactions'] == 2
    assert {row['revenue_source']: row['total_amount'] for row in data['by_source']} == {
        'membership_fees': 3000, 'store_sales': 1200}
    assert data['recent_transactions'][0]['amount'] in (3000, 1200)


def test_revenue_stats_rejects_bad_range(client, admin, auth_headers):
    response = client.get('/api/admin/revenue/stats?start_date=2024-05-01&end_date=2024-04-01',
                          headers=auth_headers(admin))
    assert response.status_code == 400


def test_membership_plan_management(client, admin, auth_headers):
    headers = auth_headers(admin)
    response = client.post('/api/admin/membership-plans', json={'name': 'Elite', 'price': 9000, 'duration_months': 12},
                           headers=headers)
    assert response.status_code == 201
    plan_id = response.get_json()['data']['id']

    assert client.post('/api/admin/membership-plans', json={'name': 'Elite', 'price': 1},
                       headers=headers).status_code == 409
    response = client.put(f'/api/admin/membership-plans/{plan_id}', json={'price': 9500}, headers=headers)
    assert response.get_json()['data']['price'] == 9500
    assert GymRevenue.query.count() == 0


def test_admin_routes_reject_members(client, member, auth_headers):
    response = client.get('/api/admin/dashboard', headers=auth_headers(member))
    assert response.status_code == 403


def test_health(client):
    response = client.get('/api/health')
    assert response.status_code == 200
    data = response.get_json()['data']
    assert data['status'] == 'ok'
    assert data['database'] == 'connected'


def test_api_index_lists_endpoints(client):
    data = client.get('/api').get_json()['data']
    assert data['name'] == 'Finova Fitness API'
    assert '/api/store' in data['endpoints']
    assert '/api/checkin' in data['endpoints']


def test_unknown_route_uses_error_envelope(client):
    response = client.get('/api/nope')
    body = response.get_json()
    assert response.status_code == 404
    assert body['success'] is False
    assert body['error']['type'] == 'NotFound'


def test_wrong_method(client):
    response = client.delete('/api/users/login')
    assert response.status_code == 405
    assert response.get_json()['error']['type'] == 'MethodNotAllowed'


def test_non_object_body_is_rejected(client):
    response = client.post('/api/users/login', json=['not', 'an', 'object'])
    assert response.status_code == 400
    assert response.get_json()['error']['message'] == 'Request body must be a JSON object'


def test_init_db_loads_sample_data(app):
    result = app.test_cli_runner().invoke(args=['init-db'])
    assert 'Database initialized successfully' in result.output
    assert User.query.filter_by(role='member').count() == 4
    assert User.query.filter_by(email='admin@finova.com').one().role == 'admin'
