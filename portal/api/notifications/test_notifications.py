# portal/api/notifications/test_notifications.py
from datetime import datetime, timedelta, timezone

from portal.api.notifications.services import is_visible
from portal.utils.datetime_utils import DateTimeUtils

NOW = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)
DAY = timedelta(hours=24)


def _put(db, notification_id, user_id, is_read=False, read_at=None, created_at=None):
    db.collection('notifications').document(notification_id).set({
        'id': notification_id,
        'user_id': user_id,
        'type': 'post_created',
        'content': f'notification {notification_id}',
        'link': '/forum',
        'source_id': None,
        'is_read': is_read,
        'read_at': read_at,
        'created_at': created_at or DateTimeUtils.now(),
    })


def test_visibility_rule():
    assert is_visible({'is_read': False, 'created_at': NOW - 30 * DAY}, NOW, DAY)
    assert is_visible({'is_read': True, 'read_at': NOW - timedelta(hours=23)}, NOW, DAY)
    assert not is_visible({'is_read': True, 'read_at': NOW - timedelta(hours=25)}, NOW, DAY)
    # read_at missing: created_at stands in
    assert not is_visible({'is_read': True, 'read_at': None, 'created_at': NOW - 2 * DAY}, NOW, DAY)
    assert is_visible({'is_read': True, 'read_at': None, 'created_at': NOW - timedelta(hours=1)}, NOW, DAY)


def test_inbox_lists_own_visible_notifications(client, db, make_profile, auth_headers):
    make_profile('ann')
    now = DateTimeUtils.now()
    _put(db, 'fresh', 'ann', created_at=now - timedelta(minutes=5))
    _put(db, 'old-unread', 'ann', created_at=now - 10 * DAY)
    _put(db, 'read-recently', 'ann', is_read=True, read_at=now - timedelta(hours=2), created_at=now - 2 * DAY)
    _put(db, 'read-long-ago', 'ann', is_read=True, read_at=now - 3 * DAY, created_at=now - 4 * DAY)
    _put(db, 'someone-else', 'bob')

    body = client.get('/api/notifications', headers=auth_headers('ann')).get_json()

    assert [n['id'] for n in body['notifications']] == ['fresh', 'read-recently', 'old-unread']
    assert body['unread_count'] == 2


def test_mark_read(client, db, make_profile, auth_headers):
    make_profile('ann')
    _put(db, 'n1', 'ann')
    _put(db, 'n2', 'bob')

    res = client.post('/api/notifications/n1/read', headers=auth_headers('ann'))
    assert res.get_json()['is_read'] is True
    stored = db.docs('notifications')['n1']
    assert stored['is_read'] is True
    assert stored['read_at'] is not None

    assert client.post('/api/notifications/n2/read', headers=auth_headers('ann')).status_code == 403
    assert client.post('/api/notifications/nope/read', headers=auth_headers('ann')).status_code == 404


def test_mark_all_read(client, db, make_profile, auth_headers):
    make_profile('ann')
    _put(db, 'n1', 'ann')
    _put(db, 'n2', 'ann')
    _put(db, 'n3', 'bob')

    res = client.post('/api/notifications/read-all', headers=auth_headers('ann'))

    assert res.get_json() == {'updated': 2}
    stored = db.docs('notifications')
    assert stored['n1']['is_read'] and stored['n2']['is_read']
    assert stored['n3']['is_read'] is False


def test_activity_report_fans_out(client, db, make_profile, auth_headers):
    make_profile('ann', 'special', 'Ann', 'Lee')
    make_profile('boss', 'superadmin')
    make_profile('vic', 'viewer')

    res = client.post('/api/notifications/activity', headers=auth_headers('ann', 'special'), json={
        'entity': 'risk', 'action': 'created', 'entity_id': 'r1', 'title': 'Venue cancellation'})

    assert res.status_code == 202
    assert res.get_json() == {'notified': 1}
    row = list(db.docs('notifications').values())[0]
    assert row['user_id'] == 'boss'
    assert row['content'] == 'Ann Lee added a new risk: Venue cancellation'
    assert row['link'] == '/risks?risk=r1'


def test_activity_report_rules(client, make_profile, auth_headers):
    make_profile('ann', 'special')
    make_profile('vic', 'viewer')
    body = {'entity': 'task', 'action': 'completed', 'entity_id': 't1', 'title': 'Book venue'}

    assert client.post('/api/notifications/activity', json=body,
                       headers=auth_headers('vic', 'viewer')).status_code == 403
    assert client.post('/api/notifications/activity', json=dict(body, entity='budget'),
                       headers=auth_headers('ann', 'special')).status_code == 400
    assert client.post('/api/notifications/activity', json=dict(body, entity='forum_post'),
                       headers=auth_headers('ann', 'special')).status_code == 400
