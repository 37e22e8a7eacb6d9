# portal/api/posts/test_posts.py
from datetime import datetime, timezone

import pytest

from portal.api.posts.services import sort_posts
from portal.services.realtime_service import ForumRealtimeView


def _create(client, headers, title='Agenda', content='Items for Friday'):
    return client.post('/api/forum/posts', json={'title': title, 'content': content}, headers=headers)


def test_create_post_notifies_other_non_viewers(client, db, make_profile, auth_headers):
    make_profile('ann', 'special', 'Ann', 'Lee')
    make_profile('sam', 'special')
    make_profile('vic', 'viewer')

    res = _create(client, auth_headers('ann', 'special'))

    assert res.status_code == 201
    body = res.get_json()
    assert body['is_edited'] is False
    assert body['like_count'] == 0
    assert body['author_name'] == 'Ann Lee'

    rows = list(db.docs('notifications').values())
    assert [(r['user_id'], r['type']) for r in rows] == [('sam', 'post_created')]


def test_blank_title_or_content_is_rejected(client, make_profile, auth_headers):
    make_profile('ann')
    headers = auth_headers('ann')

    assert _create(client, headers, title='   ').status_code == 400
    assert _create(client, headers, content='').status_code == 400
    assert client.post('/api/forum/posts', json={}, headers=headers).status_code == 400


def test_requires_a_token(client):
    assert client.get('/api/forum/posts').status_code == 401


def test_edit_marks_post_edited(client, db, make_profile, auth_headers):
    make_profile('ann')
    headers = auth_headers('ann')
    post_id = _create(client, headers).get_json()['id']

    res = client.patch(f'/api/forum/posts/{post_id}', json={'title': 'Agenda v2', 'content': 'Updated'}, headers=headers)

    assert res.status_code == 200
    assert res.get_json()['is_edited'] is True
    stored = db.docs('forum_posts')[post_id]
    assert stored['title'] == 'Agenda v2'
    assert stored['is_edited'] is True


def test_only_the_author_can_edit(client, make_profile, auth_headers):
    make_profile('ann')
    make_profile('bob', 'admin')
    post_id = _create(client, auth_headers('ann')).get_json()['id']

    res = client.patch(f'/api/forum/posts/{post_id}', json={'title': 'Mine', 'content': 'now'},
                       headers=auth_headers('bob', 'admin'))
    assert res.status_code == 403


def test_delete_requires_confirmation(client, db, make_profile, auth_headers):
    make_profile('ann')
    headers = auth_headers('ann')
    post_id = _create(client, headers).get_json()['id']

    res = client.delete(f'/api/forum/posts/{post_id}', headers=headers)

    assert res.status_code == 400
    assert res.get_json()['error_code'] == 'CONFIRMATION_REQUIRED'
    assert post_id in db.docs('forum_posts')


def test_delete_logs_post_and_comments(client, db, make_profile, auth_headers):
    make_profile('ann', 'special', 'Ann', 'Lee')
    make_profile('mod', 'admin')
    headers = auth_headers('ann', 'special')
    post_id = _create(client, headers).get_json()['id']
    comment_id = client.post(f'/api/forum/posts/{post_id}/comments', json={'content': 'First'},
                             headers=headers).get_json()['id']

    res = client.delete(f'/api/forum/posts/{post_id}?confirm=true', headers=headers)

    assert res.status_code == 200
    assert res.get_json()['deleted_comments'] == 1
    assert db.docs('forum_posts') == {}
    assert db.docs('forum_comments') == {}

    logs = {log['record_id']: log for log in db.docs('deletion_logs').values()}
    assert set(logs) == {post_id, comment_id}
    assert logs[post_id]['table_name'] == 'forum_posts'
    assert logs[post_id]['details']['title'] == 'Agenda'
    assert logs[post_id]['deleted_by'] == 'ann'
    assert logs[post_id]['deleted_by_name'] == 'Ann Lee'

    deleted_notices = [r for r in db.docs('notifications').values() if r['type'] == 'forum_post_deleted']
    assert [r['user_id'] for r in deleted_notices] == ['mod']


def test_reaction_toggle_over_http(client, db, make_profile, auth_headers):
    make_profile('ann')
    make_profile('bob')
    post_id = _create(client, auth_headers('ann')).get_json()['id']
    bob = auth_headers('bob')

    first = client.post(f'/api/forum/posts/{post_id}/reactions', json={'is_like': True}, headers=bob).get_json()
    assert first['outcome'] == 'added'
    assert first['like_count'] == 1
    assert first['my_reaction'] == 'like'

    switched = client.post(f'/api/forum/posts/{post_id}/reactions', json={'is_like': False}, headers=bob).get_json()
    assert switched['outcome'] == 'switched'
    assert switched['dislike_count'] == 1
    assert switched['like_count'] == 0

    summary = client.get(f'/api/forum/posts/{post_id}/reactions', headers=bob).get_json()
    assert summary['disliked_by'] == ['Bob Member']


def test_unknown_post_is_404(client, make_profile, auth_headers):
    make_profile('ann')
    assert client.get('/api/forum/posts/nope', headers=auth_headers('ann')).status_code == 404


def test_sort_posts():
    def post(post_id, day, likes):
        return {
            'id': post_id,
            'created_at': datetime(2024, 1, day, tzinfo=timezone.utc),
            'likes': [{'user_id': f'u{i}', 'is_like': is_like} for i, is_like in enumerate(likes)],
        }

    posts = [post('old-popular', 1, [True, True]), post('new', 3, []), post('mid-tie', 2, [True, True, True, False])]

    assert [p['id'] for p in sort_posts(posts, 'recent')] == ['new', 'mid-tie', 'old-popular']
    assert [p['id'] for p in sort_posts(posts, 'popular')] == ['mid-tie', 'old-popular', 'new']


def test_list_with_counts(client, make_profile, auth_headers):
    make_profile('ann')
    headers = auth_headers('ann')
    first = _create(client, headers, title='First').get_json()['id']
    _create(client, headers, title='Second')
    client.post(f'/api/forum/posts/{first}/comments', json={'content': 'hi'}, headers=headers)

    res = client.get('/api/forum/posts?sort=popular', headers=headers)
    posts = {p['id']: p for p in res.get_json()['posts']}
    assert posts[first]['comment_count'] == 1

    assert client.get('/api/forum/posts?sort=weird', headers=headers).status_code == 400


@pytest.fixture
def realtime_view(app, db):
    view = ForumRealtimeView(db=db)
    view.start()
    app.services['posts'].realtime_view = view
    app.services['comments'].realtime_view = view
    yield view
    view.stop()


def test_reads_follow_the_realtime_view(client, db, make_profile, auth_headers, realtime_view):
    make_profile('ann')
    headers = auth_headers('ann')
    post_id = _create(client, headers, title='Old').get_json()['id']

    # Nothing delivered by the listeners yet.
    assert client.get('/api/forum/posts', headers=headers).get_json()['posts'] == []

    db.deliver_snapshot('forum_posts')
    listed = client.get('/api/forum/posts', headers=headers).get_json()['posts']
    assert [p['title'] for p in listed] == ['Old']

    client.post(f'/api/forum/posts/{post_id}/comments', json={'content': 'hi'}, headers=headers)
    db.deliver_snapshot('forum_comments')
    threads = client.get(f'/api/forum/posts/{post_id}/comments', headers=headers).get_json()['threads']
    assert [t['content'] for t in threads] == ['hi']
    assert client.get(f'/api/forum/posts/{post_id}', headers=headers).get_json()['comment_count'] == 1


def test_edit_response_is_current_before_the_listener_catches_up(client, db, make_profile, auth_headers,
                                                                  realtime_view):
    make_profile('ann')
    headers = auth_headers('ann')
    post_id = _create(client, headers, title='Old').get_json()['id']
    db.deliver_snapshot('forum_posts')

    res = client.patch(f'/api/forum/posts/{post_id}', json={'title': 'New', 'content': 'Body'}, headers=headers)

    body = res.get_json()
    assert res.status_code == 200
    assert body['title'] == 'New'
    assert body['is_edited'] is True
    assert realtime_view.get_post(post_id)['title'] == 'Old'

    db.deliver_snapshot('forum_posts', 'MODIFIED', [post_id])
    assert client.get(f'/api/forum/posts/{post_id}', headers=headers).get_json()['title'] == 'New'
