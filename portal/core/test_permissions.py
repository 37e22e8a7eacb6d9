# portal/core/test_permissions.py
import pytest

from portal.core.permissions import (
    PAGE_MIN_ROLE, can_view_page, viewable_pages, is_admin, is_super_admin, is_special
)

ROLES = ['viewer', 'special', 'admin', 'superadmin']


@pytest.mark.parametrize('page', ['dashboard', 'calendar', 'forum', 'profile'])
def test_open_pages_visible_to_every_role(page):
    assert all(can_view_page(role, page) for role in ROLES)


@pytest.mark.parametrize('page', ['tasks', 'meetings', 'budget', 'risks', 'documents', 'contacts'])
def test_committee_pages_need_special(page):
    assert not can_view_page('viewer', page)
    assert can_view_page('special', page)
    assert can_view_page('admin', page)
    assert can_view_page('superadmin', page)


@pytest.mark.parametrize('page', ['users', 'deletion-logs'])
def test_admin_pages_need_admin(page):
    assert not can_view_page('viewer', page)
    assert not can_view_page('special', page)
    assert can_view_page('admin', page)
    assert can_view_page('superadmin', page)


def test_higher_roles_see_everything_lower_roles_see():
    """Visibility only grows with rank"""
    for lower, higher in zip(ROLES, ROLES[1:]):
        assert set(viewable_pages(lower)) <= set(viewable_pages(higher))
    assert set(viewable_pages('superadmin')) == set(PAGE_MIN_ROLE)


def test_bad_input_is_denied_without_raising():
    assert can_view_page(None, 'forum') is False
    assert can_view_page('owner', 'forum') is False
    assert can_view_page('admin', 'no-such-page') is False
    assert can_view_page('admin', None) is False
    assert can_view_page(42, 'forum') is False
    assert viewable_pages(None) == []


def test_role_predicates():
    assert [is_admin(r) for r in ROLES] == [False, False, True, True]
    assert [is_super_admin(r) for r in ROLES] == [False, False, False, True]
    assert [is_special(r) for r in ROLES] == [False, True, False, False]
    assert not is_admin(None)
