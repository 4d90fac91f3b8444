import datetime

import pytest

from finova.errors import NotFoundError, ValidationError
from finova.models import ConsistencyAchievement, GymVisit, LoyaltyTransaction
from finova.services import consistency, loyalty
from finova.utils import today, utcnow, week_start


def _last_week(day_offset, hour=10):
    """A time on the given day (0 = Monday) of last calendar week."""
    monday = week_start(today()) - datetime.timedelta(days=7)
    return datetime.datetime.combine(monday + datetime.timedelta(days=day_offset), datetime.time(hour, 0))


def _check_in(client, headers, user_id, when=None):
    body = {'user_id': user_id}
    if when:
        body['check_in_time'] = when.isoformat()
    return client.post('/api/checkin/checkin', json=body, headers=headers)


def test_search_finds_active_members_only(client, make_user, front_desk, auth_headers):
    alice = make_user('member', first_name='Alice', last_name='Walker')
    make_user('member', first_name='Alicia', last_name='Stone', subscription_status='pending')
    make_user('member', first_name='Bob', last_name='Alison')

    response = client.get('/api/checkin/search?q=ali', headers=auth_headers(front_desk))
    assert response.status_code == 200
    names = [row['full_name'] for row in response.get_json()['data']]
    assert 'Alicia Stone' not in names
    assert set(names) == {'Alice Walker', 'Bob Alison'}

    response = client.get('/api/checkin/search?q=alice', headers=auth_headers(front_desk))
    first = response.get_json()['data'][0]
    assert first['id'] == alice.id
    assert first['membership_plan'] == 'Basic'


def test_search_term_length_is_validated(client, front_desk, auth_headers):
    response = client.get('/api/checkin/search?q=a', headers=auth_headers(front_desk))
    assert response.status_code == 400
    assert response.get_json()['error']['message'] == 'Please enter at least 2 characters to search'

    response = client.get('/api/checkin/search?q=alice&limit=51', headers=auth_headers(front_desk))
    assert response.status_code == 400


def test_members_cannot_search(client, member, auth_headers):
    response = client.get('/api/checkin/search?q=alice', headers=auth_headers(member))
    assert response.status_code == 403


def test_check_in_records_visit_with_week_start(client, db, member, front_desk, auth_headers):
    when = _last_week(2)
    response = _check_in(client, auth_headers(front_desk), member.id, when)
    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['user_id'] == member.id
    assert data['check_in_type'] == 'manual'
    assert data['loyalty_points_awarded'] == 0

    visit = db.session.get(GymVisit, data['check_in_id'])
    assert visit.visit_date == when.date()
    assert visit.consistency_week_start == week_start(when)


def test_check_in_rejects_future_time(client, member, front_desk, auth_headers):
    future = utcnow() + datetime.timedelta(hours=2)
    response = _check_in(client, auth_headers(front_desk), member.id, future)
    assert response.status_code == 400
    assert response.get_json()['error']['field'] == 'check_in_time'


def test_check_in_requires_member_profile(client, trainer, front_desk, auth_headers):
    response = _check_in(client, auth_headers(front_desk), trainer.id)
    assert response.status_code == 404


def test_fifth_day_awards_points_once(client, db, member, front_desk, auth_headers):
    headers = auth_headers(front_desk)
    for day in range(4):
        assert _check_in(client, headers, member.id, _last_week(day)).get_json()['data']['loyalty_points_awarded'] == 0

    fifth = _check_in(client, headers, member.id, _last_week(4)).get_json()['data']
    assert fifth['consistency_updated'] is True
    assert fifth['loyalty_points_awarded'] == 10

    # Same day twice and a sixth day add nothing more
    assert _check_in(client, headers, member.id, _last_week(4, hour=18)).get_json()['data']['loyalty_points_awarded'] == 0
    assert _check_in(client, headers, member.id, _last_week(5)).get_json()['data']['loyalty_points_awarded'] == 0

    record = ConsistencyAchievement.query.filter_by(user_id=member.id).one()
    assert record.check_ins_count == 6
    assert record.consistency_achieved is True
    assert record.points_awarded == 10
    assert member.member_profile.loyalty_points == 10
    assert LoyaltyTransaction.query.filter_by(user_id=member.id, transaction_type='credit').count() == 1


def test_duplicate_days_do_not_count(app, db, member):
    for hour in (8, 12, 18):
        db.session.add(GymVisit(user_id=member.id, visit_date=_last_week(0).date(), check_in_time=_last_week(0, hour),
                                consistency_week_start=week_start(_last_week(0))))
    db.session.commit()
    result = consistency.process_week(member.id, _last_week(0).date())
    assert result['check_ins_count'] == 1
    assert result['consistency_achieved'] is False


def test_consistency_failure_does_not_fail_check_in(client, db, member, front_desk, auth_headers, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError('boom')
    monkeypatch.setattr(consistency, 'process_week', broken)

    response = _check_in(client, auth_headers(front_desk), member.id, _last_week(1))
    assert response.status_code == 201
    assert response.get_json()['data']['loyalty_points_awarded'] == 0
    assert GymVisit.query.filter_by(user_id=member.id).count() == 1


def test_recent_and_history(client, member, front_desk, auth_headers):
    headers = auth_headers(front_desk)
    _check_in(client, headers, member.id, _last_week(0))
    _check_in(client, headers, member.id, _last_week(1))

    recent = client.get('/api/checkin/recent', headers=headers).get_json()['data']
    assert [row['visit_date'] for row in recent] == [_last_week(1).date().isoformat(), _last_week(0).date().isoformat()]
    assert recent[0]['member_name'] == 'Alice Walker'

    url = f'/api/checkin/history/{member.id}?start_date={_last_week(1).date().isoformat()}'
    history = client.get(url, headers=headers).get_json()['data']
    assert history['total'] == 1


def test_member_reads_only_own_history(client, make_user, member, auth_headers):
    other = make_user('member')
    assert client.get(f'/api/checkin/history/{member.id}', headers=auth_headers(member)).status_code == 200
    assert client.get(f'/api/checkin/history/{other.id}', headers=auth_headers(member)).status_code == 403


def test_history_rejects_bad_range(client, member, front_desk, auth_headers):
    response = client.get(f'/api/checkin/history/{member.id}?start_date=2024-03-10&end_date=2024-03-01',
                          headers=auth_headers(front_desk))
    assert response.status_code == 400
    assert response.get_json()['error']['message'] == 'Invalid date range'


def test_consistency_summary(client, member, auth_headers):
    data = client.get(f'/api/checkin/consistency/{member.id}', headers=auth_headers(member)).get_json()['data']
    assert data['current_week']['days_required'] == 5
    assert data['loyalty_points'] == 0
    assert data['totals']['consistent_weeks'] == 0


def test_award_and_redeem_points(app, db, member):
    result = loyalty.award_points(member.id, 30, 'manual_bonus')
    assert result['previous_balance'] == 0
    assert result['new_balance'] == 30

    loyalty.redeem_points(member.id, 20, 'store_redemption', reference_id='ORD-1')
    db.session.commit()
    assert loyalty.get_balance(member.id) == 10
    debit = LoyaltyTransaction.query.filter_by(transaction_type='debit').one()
    assert debit.points_change == -20

    with pytest.raises(ValidationError):
        loyalty.redeem_points(member.id, 11, 'store_redemption')
    with pytest.raises(ValidationError):
        loyalty.award_points(member.id, 0, 'nothing')


def test_award_points_needs_member_profile(app, trainer):
    with pytest.raises(NotFoundError):
        loyalty.award_points(trainer.id, 5, 'bonus')
