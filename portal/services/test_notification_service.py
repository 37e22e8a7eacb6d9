# portal/services/test_notification_service.py
import pytest

from portal.models.notification import Action, EntityKind, NotificationType
from portal.services.notification_service import DomainEvent, NotificationService


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def service(db, sleeps):
    return NotificationService(db=db, batch_size=5, batch_delay=0.3, sleep=sleeps.append)


def _rows(db):
    return list(db.docs('notifications').values())


def test_post_created_reaches_other_non_viewers_only(db, service, make_profile):
    make_profile('author', 'special', 'Ann', 'Lee')
    make_profile('sam', 'special')
    make_profile('vic', 'viewer')

    written = service.notify(DomainEvent(
        kind=EntityKind.FORUM_POST, action=Action.CREATED,
        entity_id='p1', title='Hello', actor_id='author', actor_name='Ann Lee'))

    rows = _rows(db)
    assert written == 1
    assert [r['user_id'] for r in rows] == ['sam']
    assert rows[0]['type'] == 'post_created'
    assert rows[0]['content'] == 'Ann Lee created a new post: Hello'
    assert rows[0]['link'] == '/forum?post=p1'
    assert rows[0]['is_read'] is False
    assert rows[0]['read_at'] is None


def test_non_viewer_broadcast_is_batched_with_a_pause(db, service, sleeps, make_profile):
    for i in range(12):
        make_profile(f'user{i:02d}', 'admin')

    written = service.broadcast_to_non_viewers(NotificationType.POST_CREATED, 'x created a new post: y', '/forum')

    assert written == 12
    assert db.committed_batches == [5, 5, 2]
    assert sleeps == [0.3, 0.3]


def test_role_broadcast_skips_viewers_and_excluded(db, service, make_profile):
    make_profile('actor', 'admin')
    make_profile('boss', 'superadmin')
    make_profile('clerk', 'special')
    make_profile('guest', 'viewer')

    service.notify(DomainEvent(
        kind=EntityKind.BUDGET, action=Action.CREATED,
        entity_id='b1', title='Catering', actor_id='actor', actor_name='Actor Person'))

    rows = _rows(db)
    assert sorted(r['user_id'] for r in rows) == ['boss', 'clerk']
    assert all(r['type'] == 'budget_created' for r in rows)
    assert rows[0]['content'] == 'Actor Person added a new budget record: Catering'


def test_forum_post_deleted_goes_to_admins(db, service, make_profile):
    make_profile('author', 'special')
    make_profile('boss', 'superadmin')
    make_profile('mod', 'admin')
    make_profile('clerk', 'special')

    service.notify(DomainEvent(
        kind=EntityKind.FORUM_POST, action=Action.DELETED,
        entity_id='p1', title='Old news', actor_id='author', actor_name='Author'))

    assert sorted(r['user_id'] for r in _rows(db)) == ['boss', 'mod']


def test_single_recipient_skips_self_and_missing_profiles(db, service, make_profile):
    make_profile('ann', 'viewer')

    assert service.notify_user('ann', 'ann', NotificationType.POST_LIKED, 'liked') is False
    assert service.notify_user('ghost', 'ann', NotificationType.POST_LIKED, 'liked') is False
    assert _rows(db) == []

    assert service.notify_user('ann', 'bob', NotificationType.POST_LIKED, 'Bob liked your post: x') is True
    assert len(_rows(db)) == 1


def test_direct_template_wording(db, service, make_profile):
    make_profile('ann')
    service.notify(DomainEvent(
        kind=EntityKind.COMMENT, action=Action.REPLIED, entity_id='c2', title='Agenda',
        actor_id='bob', actor_name='Bob Smith', recipient_id='ann', post_id='p1'))

    row = _rows(db)[0]
    assert row['type'] == 'comment_reply'
    assert row['content'] == 'Bob Smith replied to your comment'
    assert row['link'] == '/forum?post=p1'


def test_display_name_resolution(service, make_profile):
    make_profile('ann', first_name='Ann', last_name='Lee')

    assert service.resolve_display_name('Annie', 'ann') == 'Annie'
    assert service.resolve_display_name('ann@example.org', 'ann') == 'Ann Lee'
    assert service.resolve_display_name('', 'ann') == 'Ann Lee'
    assert service.resolve_display_name('', 'nobody') == 'A user'
    assert service.resolve_display_name(None, None) == 'A user'


def test_write_failures_are_swallowed(db, service, make_profile):
    make_profile('sam', 'special')
    db.fail_batches = True

    written = service.notify(DomainEvent(
        kind=EntityKind.TASK, action=Action.COMPLETED,
        entity_id='t1', title='Book venue', actor_id='actor', actor_name='Someone'))

    assert written == 0
    assert _rows(db) == []


def test_unsupported_pair_writes_nothing(db, service, make_profile):
    make_profile('sam', 'special')
    assert service.notify(DomainEvent(
        kind=EntityKind.BUDGET, action=Action.COMPLETED, entity_id='b1', title='x', actor_id='a')) == 0
