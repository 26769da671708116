# tests/conftest.py
import itertools
import os

# Configure the app before it is imported
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['TESTING'] = '1'
os.environ['RATELIMIT_ENABLED'] = 'false'
os.environ['SECRET_KEY'] = 'test-secret-key'
os.environ['BCRYPT_LOG_ROUNDS'] = '4'

import pytest

from lashwa_backend import app, bcrypt, cache, db, logger, socketio, websocket_service
from utils.db_init import create_admin_user

DEFAULT_PASSWORD = 'secret1'


class FakeRedis:
    """Minimal in-memory stand-in for the redis client used by CacheManager"""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed


class BrokenRedis:
    def get(self, key):
        raise ConnectionError('redis is down')

    def setex(self, key, ttl, value):
        raise ConnectionError('redis is down')

    def delete(self, *keys):
        raise ConnectionError('redis is down')


@pytest.fixture(autouse=True)
def fake_redis():
    fake = FakeRedis()
    cache.redis = fake
    yield fake


@pytest.fixture(autouse=True)
def database():
    with app.app_context():
        db.create_all()
    yield db
    with app.app_context():
        db.session.remove()
        db.drop_all()
    websocket_service.connected_users.clear()


@pytest.fixture
def client():
    return app.test_client()


def auth_headers(token):
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def make_user(client):
    """Register a user through the API and return its id, token and headers"""
    counter = itertools.count(1)

    def _make(**overrides):
        n = next(counter)
        payload = {
            'email': f'user{n}@example.com',
            'password': DEFAULT_PASSWORD,
            'firstName': f'User{n}',
            'lastName': 'Test',
            'gender': 'Male',
            'lookingFor': 'Long-term relationship',
            'location': 'Tel Aviv',
        }
        payload.update(overrides)
        resp = client.post('/register', json=payload)
        assert resp.status_code == 201, resp.get_json()
        data = resp.get_json()
        return {
            'id': data['userId'],
            'token': data['token'],
            'email': payload['email'],
            'password': payload['password'],
            'headers': auth_headers(data['token']),
        }

    return _make


@pytest.fixture
def pair(make_user):
    """A man and a woman who can see each other in discovery"""
    return make_user(gender='Male'), make_user(gender='Female')


@pytest.fixture
def matched_pair(client, pair):
    a, b = pair
    resp = client.post('/create-match', json={
        'currentUserId': a['id'], 'selectedUserId': b['id']
    }, headers=a['headers'])
    assert resp.status_code == 200
    return a, b


@pytest.fixture
def admin(client):
    with app.app_context():
        create_admin_user(db, bcrypt, logger)
    resp = client.post('/login', json={'email': 'admin@lashwa.com', 'password': 'Admin123!'})
    assert resp.status_code == 200
    data = resp.get_json()
    return {'id': data['user']['id'], 'token': data['token'], 'headers': auth_headers(data['token'])}


@pytest.fixture
def socket_client_for(client):
    """Socket.IO test clients authenticated with a user's token"""
    clients = []

    def _connect(user):
        sio = socketio.test_client(app, flask_test_client=client, auth={'token': user['token']})
        clients.append(sio)
        return sio

    yield _connect
    for sio in clients:
        if sio.is_connected():
            sio.disconnect()
