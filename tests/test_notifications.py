# tests/test_notifications.py
import lashwa_backend
from lashwa_backend import app
from models.notification import MAX_NOTIFICATIONS_PER_USER


def like(client, user, target):
    return client.post('/like-profile', json={
        'userId': user['id'], 'likedUserId': target['id'], 'image': 'img.png'
    }, headers=user['headers'])


def notifications_for(client, user):
    resp = client.get(f"/notifications/{user['id']}", headers=user['headers'])
    assert resp.status_code == 200
    return resp.get_json()


def test_mark_single_notification_read(client, pair):
    a, b = pair
    like(client, a, b)
    notification_id = notifications_for(client, b)['notifications'][0]['id']

    resp = client.post(f"/notifications/{b['id']}/read/{notification_id}", headers=b['headers'])
    assert resp.status_code == 200
    data = notifications_for(client, b)
    assert data['unreadCount'] == 0
    assert data['notifications'][0]['read'] is True


def test_mark_all_read(client, make_user):
    me = make_user(gender='Female')
    for liker in (make_user(), make_user()):
        like(client, liker, me)
    assert notifications_for(client, me)['unreadCount'] == 2

    resp = client.post(f"/notifications/{me['id']}/read-all", headers=me['headers'])
    assert resp.get_json()['updated'] == 2
    assert notifications_for(client, me)['unreadCount'] == 0


def test_delete_notification(client, pair):
    a, b = pair
    like(client, a, b)
    notification_id = notifications_for(client, b)['notifications'][0]['id']

    resp = client.delete(f"/notifications/{b['id']}/{notification_id}", headers=b['headers'])
    assert resp.status_code == 200
    assert notifications_for(client, b)['notifications'] == []
    again = client.delete(f"/notifications/{b['id']}/{notification_id}", headers=b['headers'])
    assert again.status_code == 404


def test_cannot_touch_other_users_notifications(client, pair):
    a, b = pair
    like(client, a, b)
    notification_id = notifications_for(client, b)['notifications'][0]['id']

    assert client.get(f"/notifications/{b['id']}", headers=a['headers']).status_code == 403
    resp = client.post(f"/notifications/{a['id']}/read/{notification_id}", headers=a['headers'])
    assert resp.status_code == 404


def test_only_newest_notifications_are_kept(client, make_user):
    a = make_user()
    with app.app_context():
        for i in range(MAX_NOTIFICATIONS_PER_USER + 5):
            lashwa_backend.notification_service.create_notification(
                a['id'], 'system', 'Notice', f'Notice {i}'
            )

    notifications = notifications_for(client, a)['notifications']
    assert len(notifications) == MAX_NOTIFICATIONS_PER_USER
    assert notifications[0]['message'] == f'Notice {MAX_NOTIFICATIONS_PER_USER + 4}'
    assert notifications[-1]['message'] == 'Notice 5'


def test_notifications_are_pushed_to_user_room(client, pair, socket_client_for):
    a, b = pair
    sio = socket_client_for(b)
    sio.get_received()
    like(client, a, b)
    pushed = [p['args'][0] for p in sio.get_received() if p['name'] == 'notification']
    assert pushed[0]['type'] == 'like'
    assert pushed[0]['userId'] == b['id']
