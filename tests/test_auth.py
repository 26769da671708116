# tests/test_auth.py
import jwt
import pytest

from auth.jwt_handler import generate_token, verify_token
from lashwa_backend import app
from tests.conftest import auth_headers


def register(client, **overrides):
    payload = {
        'email': 'a@x.com',
        'password': 'secret1',
        'firstName': 'Alice',
        'lookingFor': 'Long-term relationship',
    }
    payload.update(overrides)
    return client.post('/register', json=payload)


def test_register_returns_user_id_and_token(client):
    resp = register(client)
    assert resp.status_code == 201
    data = resp.get_json()
    assert isinstance(data['userId'], int)
    claims = jwt.decode(data['token'], 'test-secret-key', algorithms=['HS256'])
    assert claims['user_id'] == data['userId']
    assert 'exp' in claims and 'iat' in claims


def test_duplicate_email_is_case_insensitive(client):
    first = register(client, email='Dup@Example.com')
    second = register(client, email='dup@example.COM')
    assert first.status_code == 201
    assert second.status_code == 409
    assert second.get_json()['code'] == 'DUPLICATE_EMAIL'


@pytest.mark.parametrize('overrides, field', [
    ({'email': 'not-an-email'}, 'email'),
    ({'password': '12345'}, 'password'),
    ({'firstName': ''}, 'firstName'),
    ({'lookingFor': None}, 'lookingFor'),
    ({'smoking': 'Sometimes'}, 'smoking'),
    ({'dateOfBirth': '01/01/2015'}, 'dateOfBirth'),
])
def test_register_validation(client, overrides, field):
    resp = register(client, **overrides)
    assert resp.status_code == 400
    body = resp.get_json()
    assert body['code'] == 'VALIDATION_ERROR'
    assert body['details']['field'] == field
    assert 'request_id' in body


def test_login_scenario(client):
    register(client)
    ok = client.post('/login', json={'email': 'a@x.com', 'password': 'secret1'})
    assert ok.status_code == 200
    assert ok.get_json()['user']['email'] == 'a@x.com'

    bad = client.post('/login', json={'email': 'a@x.com', 'password': 'wrongpass'})
    assert bad.status_code == 401
    assert bad.get_json()['code'] == 'INVALID_CREDENTIALS'


def test_login_token_matches_registered_user(client):
    user_id = register(client).get_json()['userId']
    resp = client.post('/login', json={'email': 'A@X.com', 'password': 'secret1'})
    data = resp.get_json()
    assert data['user']['id'] == user_id
    with app.app_context():
        assert verify_token(data['token'])['user_id'] == user_id


@pytest.mark.parametrize('password', ['secret', 'secret12', 'Secret1', 'secreT1', 'sxcret1', 'ecret1'])
def test_single_character_password_mutations_fail(client, password):
    register(client)
    resp = client.post('/login', json={'email': 'a@x.com', 'password': password})
    assert resp.status_code == 401


def test_login_requires_both_fields(client):
    resp = client.post('/login', json={'email': 'a@x.com'})
    assert resp.status_code == 400


def test_check_email(client):
    register(client)
    assert client.post('/check-email', json={'email': 'a@x.com'}).status_code == 409
    assert client.post('/check-email', json={'email': 'b@x.com'}).status_code == 200
    assert client.post('/check-email', json={'email': 'nope'}).status_code == 400


def test_protected_route_requires_token(client, make_user):
    user = make_user()
    resp = client.get(f"/users/{user['id']}")
    assert resp.status_code == 401
    assert resp.get_json()['code'] == 'AUTH_REQUIRED'


def test_expired_token_is_rejected(client, make_user):
    user = make_user()
    with app.app_context():
        expired = generate_token(user['id'], expires_in=-1)
    resp = client.get(f"/users/{user['id']}", headers=auth_headers(expired))
    assert resp.status_code == 401
    assert resp.get_json()['code'] == 'INVALID_TOKEN'


def test_tampered_token_is_rejected(client, make_user):
    user = make_user()
    forged = jwt.encode({'user_id': user['id']}, 'another-secret', algorithm='HS256')
    resp = client.get(f"/users/{user['id']}", headers=auth_headers(forged))
    assert resp.status_code == 401


def test_acting_for_another_user_is_forbidden(client, pair):
    a, b = pair
    resp = client.post('/like-profile', json={
        'userId': b['id'], 'likedUserId': a['id'], 'image': 'img.png'
    }, headers=a['headers'])
    assert resp.status_code == 403


def test_response_carries_request_id(client):
    resp = client.get('/health')
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'healthy'
    assert resp.headers.get('X-Request-ID')


def test_disallowed_browser_origin_is_rejected(client):
    resp = client.get('/health', headers={'Origin': 'https://evil.example.com'})
    assert resp.status_code == 403


def test_script_in_query_string_is_rejected(client, make_user):
    user = make_user()
    resp = client.get('/matches?userId=<script>alert(1)</script>', headers=user['headers'])
    assert resp.status_code == 400
