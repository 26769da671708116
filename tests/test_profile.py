# tests/test_profile.py
import pytest
from sqlalchemy.orm.exc import StaleDataError

import lashwa_backend
from lashwa_backend import app, db
from models import User


def get_user(client, viewer, user):
    return client.get(f"/users/{user['id']}", headers=viewer['headers'])


def test_owner_sees_private_document(client, make_user):
    a = make_user(dateOfBirth='15/06/1990', languages=['Hebrew', 'English'])
    user = get_user(client, a, a).get_json()['user']
    assert user['email'] == a['email']
    assert user['genderVisible'] is True
    assert user['languages'] == ['Hebrew', 'English']
    assert isinstance(user['age'], int) and user['age'] >= 30
    for key in ('likedProfiles', 'receivedLikes', 'matches', 'blockedUsers', 'rejectedProfiles'):
        assert user[key] == []


def test_other_viewer_gets_public_profile(client, pair):
    a, b = pair
    user = get_user(client, b, a).get_json()['user']
    assert user['id'] == a['id']
    assert 'email' not in user
    assert 'likedProfiles' not in user
    assert user['gender'] == 'Male'


def test_visibility_round_trip(client, make_user):
    a = make_user(type='Straight')
    before = get_user(client, a, a).get_json()['user']

    resp = client.put(f"/users/{a['id']}/visibility", json={'genderVisible': False}, headers=a['headers'])
    assert resp.status_code == 200
    assert resp.get_json()['user'] == {
        'genderVisible': False, 'typeVisible': True, 'lookingForVisible': True
    }

    after = get_user(client, a, a).get_json()['user']
    assert after['genderVisible'] is False
    before.pop('genderVisible')
    after.pop('genderVisible')
    assert after == before


def test_hidden_fields_are_removed_for_other_viewers(client, pair):
    a, b = pair
    client.put(f"/users/{a['id']}/visibility", json={
        'genderVisible': False, 'lookingForVisible': False
    }, headers=a['headers'])
    user = get_user(client, b, a).get_json()['user']
    assert 'gender' not in user
    assert 'lookingFor' not in user
    assert 'firstName' in user


@pytest.mark.parametrize('payload', [
    {},
    {'isVisible': True},
    {'genderVisible': 'no'},
    {'genderVisible': False, 'email': 'x@y.com'},
])
def test_invalid_visibility_updates(client, make_user, payload):
    a = make_user()
    resp = client.put(f"/users/{a['id']}/visibility", json=payload, headers=a['headers'])
    assert resp.status_code == 400


def test_update_profile_fields(client, make_user):
    a = make_user()
    resp = client.put(f"/users/{a['id']}/profile", json={
        'bio': 'Coffee & hikes',
        'drinking': 'Occasionally',
        'children': '',
        'prompts': [{'question': 'Ideal Sunday?', 'answer': 'Beach'}],
        'favouriteColour': 'green',
    }, headers=a['headers'])
    assert resp.status_code == 200
    user = resp.get_json()['user']
    assert user['bio'] == 'Coffee &amp; hikes'
    assert user['drinking'] == 'Occasionally'
    assert user['children'] is None
    assert user['prompts'] == [{'question': 'Ideal Sunday?', 'answer': 'Beach'}]
    assert 'favouriteColour' not in user


@pytest.mark.parametrize('payload', [
    {'firstName': 'Bob'},
    {'dateOfBirth': '01/01/1990'},
    {'type': 'Gay'},
    {'age': 40},
])
def test_read_only_fields_are_rejected(client, make_user, payload):
    a = make_user()
    resp = client.put(f"/users/{a['id']}/profile", json=payload, headers=a['headers'])
    assert resp.status_code == 400


@pytest.mark.parametrize('payload', [
    {'smoking': 'Every day'},
    {'bio': 'x' * 501},
    {'languages': 'Hebrew'},
    {'lookingFor': ''},
    {'prompts': [{'question': 'Only a question'}]},
])
def test_profile_validation(client, make_user, payload):
    a = make_user()
    resp = client.put(f"/users/{a['id']}/profile", json=payload, headers=a['headers'])
    assert resp.status_code == 400


def test_cannot_update_someone_elses_profile(client, pair):
    a, b = pair
    resp = client.put(f"/users/{b['id']}/profile", json={'bio': 'hacked'}, headers=a['headers'])
    assert resp.status_code == 403


def test_update_photos(client, make_user):
    a = make_user()
    urls = ['https://cdn.example.com/1.jpg', 'https://cdn.example.com/2.jpg']
    resp = client.put(f"/users/{a['id']}/photos", json={'imageUrls': urls}, headers=a['headers'])
    assert resp.status_code == 200
    assert get_user(client, a, a).get_json()['user']['imageUrls'] == urls

    bad = client.put(f"/users/{a['id']}/photos", json={'imageUrls': ['ftp://x/1.jpg']}, headers=a['headers'])
    assert bad.status_code == 400


def test_missing_user_is_not_found(client, make_user):
    a = make_user()
    resp = client.get('/users/9999', headers=a['headers'])
    assert resp.status_code == 404
    assert resp.get_json()['code'] == 'NOT_FOUND'


def test_deactivate_scenario(client, make_user):
    a = make_user()
    wrong = client.post('/deactivate-account', json={'userId': a['id'], 'password': 'nope123'},
                        headers=a['headers'])
    assert wrong.status_code == 401

    resp = client.post('/deactivate-account', json={'userId': a['id'], 'password': 'secret1'},
                       headers=a['headers'])
    assert resp.status_code == 200

    status = client.get(f"/users/{a['id']}/account-status", headers=a['headers']).get_json()
    assert status['isActive'] is False
    assert status['deactivatedAt'] is not None

    blocked = get_user(client, a, a)
    assert blocked.status_code == 403
    assert blocked.get_json()['code'] == 'ACCOUNT_DEACTIVATED'

    # Signing in again reactivates the account
    login = client.post('/login', json={'email': a['email'], 'password': 'secret1'})
    assert login.status_code == 200
    status = client.get(f"/users/{a['id']}/account-status", headers=a['headers']).get_json()
    assert status['isActive'] is True


def test_deactivated_profile_is_hidden_from_others(client, pair):
    a, b = pair
    client.post('/deactivate-account', json={'userId': a['id'], 'password': 'secret1'}, headers=a['headers'])
    assert get_user(client, b, a).status_code == 403


def test_reactivate_account(client, make_user):
    a = make_user()
    client.post('/deactivate-account', json={'userId': a['id'], 'password': 'secret1'}, headers=a['headers'])
    resp = client.post('/reactivate-account', json={'userId': a['id']}, headers=a['headers'])
    assert resp.status_code == 200
    assert get_user(client, a, a).status_code == 200


def test_delete_account_is_soft_and_blocks_login(client, make_user):
    a = make_user()
    resp = client.post('/delete-account', json={'userId': a['id'], 'password': 'secret1'},
                       headers=a['headers'])
    assert resp.status_code == 200
    assert resp.get_json()['deletedAt']

    assert client.post('/login', json={'email': a['email'], 'password': 'secret1'}).status_code == 401
    assert get_user(client, a, a).status_code == 401

    with app.app_context():
        user = db.session.get(User, a['id'])
        assert user.is_deleted is True
        assert user.is_active is False


def test_suspended_account_cannot_log_in(client, make_user):
    a = make_user()
    with app.app_context():
        db.session.get(User, a['id']).visibility = 'hidden'
        db.session.commit()

    resp = client.post('/login', json={'email': a['email'], 'password': 'secret1'})
    assert resp.status_code == 403
    assert resp.get_json()['code'] == 'ACCOUNT_SUSPENDED'
    assert get_user(client, a, a).status_code == 403


def test_user_status(client, pair):
    a, b = pair
    data = client.get(f"/user-status/{b['id']}", headers=a['headers']).get_json()
    assert data['isOnline'] is False
    assert data['lastActive'] is not None


def test_concurrent_update_returns_conflict(client, make_user, monkeypatch):
    a = make_user()

    def stale(*args, **kwargs):
        raise StaleDataError('row version changed')

    monkeypatch.setattr(lashwa_backend.profile_service, 'update_profile', stale)
    resp = client.put(f"/users/{a['id']}/profile", json={'bio': 'hi'}, headers=a['headers'])
    assert resp.status_code == 409
    assert resp.get_json()['code'] == 'CONFLICT'


def test_unexpected_error_becomes_500(client, make_user, monkeypatch):
    a = make_user()

    def boom(*args, **kwargs):
        raise RuntimeError('database exploded')

    monkeypatch.setattr(lashwa_backend.profile_service, 'update_profile', boom)
    resp = client.put(f"/users/{a['id']}/profile", json={'bio': 'hi'}, headers=a['headers'])
    assert resp.status_code == 500
    body = resp.get_json()
    assert body['error'] == 'Failed to update profile'
    assert body['code'] == 'SERVER_ERROR'


def test_bio_keeps_basic_formatting_only(client, make_user):
    a = make_user()
    resp = client.put(f"/users/{a['id']}/profile", json={'bio': '<i>hi</i><img src=x>'},
                      headers=a['headers'])
    assert resp.get_json()['user']['bio'] == '<i>hi</i>'


def ban(client, admin, user, value):
    return client.patch(f"/admin/users/{user['id']}/ban", json={'ban': value}, headers=admin['headers'])


def test_admin_ban_suspends_and_unban_restores(client, pair, admin):
    a, b = pair
    assert ban(client, b, a, True).status_code == 403

    resp = ban(client, admin, a, True)
    assert resp.status_code == 200
    assert resp.get_json()['user']['visibility'] == 'hidden'

    login = client.post('/login', json={'email': a['email'], 'password': 'secret1'})
    assert login.status_code == 403
    assert login.get_json()['code'] == 'ACCOUNT_SUSPENDED'
    assert get_user(client, a, a).status_code == 403
    assert get_user(client, b, a).status_code == 403

    assert ban(client, admin, a, False).status_code == 200
    assert client.post('/login', json={'email': a['email'], 'password': 'secret1'}).status_code == 200
    assert get_user(client, b, a).status_code == 200


def test_banned_user_leaves_cached_feeds(client, pair, admin):
    a, b = pair
    feed = client.get(f"/matches?userId={a['id']}", headers=a['headers']).get_json()['matches']
    assert [card['id'] for card in feed] == [b['id']]

    ban(client, admin, b, True)
    feed = client.get(f"/matches?userId={a['id']}", headers=a['headers']).get_json()['matches']
    assert feed == []


@pytest.mark.parametrize('value', [None, 'yes', 1])
def test_ban_requires_boolean(client, make_user, admin, value):
    a = make_user()
    assert ban(client, admin, a, value).status_code == 400


def test_ban_unknown_user(client, admin):
    assert client.patch('/admin/users/9999/ban', json={'ban': True},
                        headers=admin['headers']).status_code == 404
