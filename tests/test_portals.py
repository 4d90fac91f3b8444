import datetime

from finova.models import DietPlanRequest, SessionNote, TrainingSession
from finova.utils import today


def test_member_dashboard(client, member, auth_headers):
    data = client.get('/api/members/dashboard', headers=auth_headers(member)).get_json()['data']
    assert data['user']['full_name'] == 'Alice Walker'
    assert data['loyalty_points'] == 0
    assert data['consistency']['days_required'] == 5
    assert data['upcoming_sessions'] == []


def test_trainer_directory_is_public(client, trainer):
    rows = client.get('/api/trainers/').get_json()['data']
    assert [row['first_name'] for row in rows] == ['Sara']


def test_approved_training_request_books_session(client, member, trainer, auth_headers):
    day = today() + datetime.timedelta(days=2)
    response = client.post('/api/members/training-request', headers=auth_headers(member), json={
        'trainer_id': trainer.trainer_profile.id,
        'request_type': 'personal',
        'preferred_date': day.isoformat(),
        'preferred_time': '07:30',
    })
    assert response.status_code == 201
    request_id = response.get_json()['data']['id']

    requests = client.get('/api/trainers/requests', headers=auth_headers(trainer)).get_json()['data']
    assert requests[0]['requester_name'] == 'Alice Walker'

    response = client.put(f'/api/trainers/requests/{request_id}', json={'status': 'approved'},
                          headers=auth_headers(trainer))
    session = response.get_json()['data']['session']
    assert (session['start_time'], session['end_time']) == ('07:30', '08:30')
    assert session['price'] == 2000

    dashboard = client.get('/api/trainers/dashboard', headers=auth_headers(trainer)).get_json()['data']
    assert dashboard['upcoming_sessions'] == 1

    response = client.put(f"/api/trainers/sessions/{session['id']}", json={'status': 'completed'},
                          headers=auth_headers(trainer))
    assert response.get_json()['data']['status'] == 'completed'
    assert TrainingSession.query.one().status == 'completed'


def test_trainer_portal_requires_trainer(client, member, auth_headers):
    assert client.get('/api/trainers/dashboard', headers=auth_headers(member)).status_code == 403


def test_schedule_replaces_availability(client, trainer, auth_headers):
    body = {'schedules': [{'day_of_week': 1, 'start_time': '06:00', 'end_time': '10:00'},
                          {'day_of_week': 3, 'start_time': '16:00', 'end_time': '20:00'}]}
    response = client.put('/api/trainers/schedule', json=body, headers=auth_headers(trainer))
    assert [row['day_of_week'] for row in response.get_json()['data']] == [1, 3]

    body = {'schedules': [{'day_of_week': 2, 'start_time': '10:00', 'end_time': '09:00'}]}
    response = client.put('/api/trainers/schedule', json=body, headers=auth_headers(trainer))
    assert response.status_code == 400
    availability = client.get('/api/trainers/schedule', headers=auth_headers(trainer)).get_json()['data']
    assert len(availability['availability']) == 2


def test_diet_plan_request_flow(client, member, nutritionist, auth_headers):
    response = client.post('/api/members/diet-plan-requests', headers=auth_headers(member), json={
        'nutritionist_id': nutritionist.id,
        'fitness_goal': 'Weight loss',
        'current_weight': 82.5,
        'target_weight': 75,
    })
    assert response.status_code == 201
    request_id = response.get_json()['data']['id']

    rows = client.get('/api/nutritionists/diet-plan-requests', headers=auth_headers(nutritionist)).get_json()['data']
    assert rows[0]['client_name'] == 'Alice Walker'

    response = client.put(f'/api/nutritionists/diet-plan-requests/{request_id}',
                          json={'status': 'completed', 'meal_plan': 'Oats, rice, lentils'},
                          headers=auth_headers(nutritionist))
    assert response.status_code == 200
    dashboard = client.get('/api/nutritionists/dashboard', headers=auth_headers(nutritionist)).get_json()['data']
    assert dashboard['completed'] == 1

    mine = client.get('/api/members/diet-plan-requests', headers=auth_headers(member)).get_json()['data']
    assert mine[0]['nutritionist_name'] == 'Nora Malik'


def test_diet_plan_needs_a_nutritionist(client, member, trainer, auth_headers):
    response = client.post('/api/members/diet-plan-requests', headers=auth_headers(member), json={
        'nutritionist_id': trainer.id, 'fitness_goal': 'Bulk', 'current_weight': 60, 'target_weight': 70})
    assert response.status_code == 404
    assert DietPlanRequest.query.count() == 0


def test_member_loyalty_summary(client, make_user, auth_headers):
    rich = make_user('member', loyalty_points=40)
    data = client.get('/api/members/loyalty', headers=auth_headers(rich)).get_json()['data']
    assert data['balance'] == 40


def _approved_session(client, member, trainer, auth_headers):
    day = today() + datetime.timedelta(days=1)
    request_id = client.post('/api/members/training-request', headers=auth_headers(member), json={
        'trainer_id': trainer.trainer_profile.id, 'request_type': 'personal',
        'preferred_date': day.isoformat(), 'preferred_time': '18:00'}).get_json()['data']['id']
    response = client.put(f'/api/trainers/requests/{request_id}', json={'status': 'approved'},
                          headers=auth_headers(trainer))
    return request_id, response.get_json()['data']['session']


def test_decided_training_request_is_final(client, member, trainer, auth_headers):
    request_id, _ = _approved_session(client, member, trainer, auth_headers)

    for status in ('approved', 'rejected'):
        response = client.put(f'/api/trainers/requests/{request_id}', json={'status': status},
                              headers=auth_headers(trainer))
        assert response.status_code == 400
        assert response.get_json()['error']['message'] == 'Request has already been approved'
    assert TrainingSession.query.count() == 1


def test_session_notes_are_saved_once_per_session(client, member, trainer, auth_headers):
    _, session = _approved_session(client, member, trainer, auth_headers)
    headers = auth_headers(trainer)
    body = {'training_session_id': session['id'], 'exercises_performed': 'Squats, rows',
            'sets_and_reps': [{'exercise': 'Squat', 'sets': 4, 'reps': 8}], 'fitness_metrics': {'weight': 81.5}}
    response = client.post('/api/trainers/session-notes', json=body, headers=headers)
    assert response.status_code == 201
    assert response.get_json()['data']['client_id'] == member.id

    response = client.post('/api/trainers/session-notes', json=dict(body, client_feedback='Felt strong'),
                           headers=headers)
    assert response.status_code == 200
    assert SessionNote.query.count() == 1

    notes = client.get('/api/trainers/session-notes', headers=headers).get_json()['data']
    assert notes[0]['client_name'] == 'Alice Walker'
    assert notes[0]['start_time'] == '18:00'
    assert notes[0]['sets_and_reps'][0]['reps'] == 8


def test_session_notes_need_own_session(client, make_user, member, trainer, auth_headers):
    _, session = _approved_session(client, member, trainer, auth_headers)
    other = make_user('trainer')
    response = client.post('/api/trainers/session-notes', json={'training_session_id': session['id']},
                           headers=auth_headers(other))
    assert response.status_code == 404
