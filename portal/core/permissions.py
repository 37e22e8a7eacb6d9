# portal/core/permissions.py
"""
Role-based page access.

Roles are ranked viewer < special < admin < superadmin and every role can see
everything the roles below it can. All functions are pure and return False on
unknown input instead of raising.
"""

from typing import Optional

from portal.models.profile import Role

_ROLE_RANK = {
    Role.VIEWER.value: 0,
    Role.SPECIAL.value: 1,
    Role.ADMIN.value: 2,
    Role.SUPERADMIN.value: 3,
}

# Minimum role needed to open each page.
PAGE_MIN_ROLE = {
    'dashboard': Role.VIEWER.value,
    'calendar': Role.VIEWER.value,
    'forum': Role.VIEWER.value,
    'profile': Role.VIEWER.value,
    'tasks': Role.SPECIAL.value,
    'meetings': Role.SPECIAL.value,
    'budget': Role.SPECIAL.value,
    'risks': Role.SPECIAL.value,
    'documents': Role.SPECIAL.value,
    'contacts': Role.SPECIAL.value,
    'users': Role.ADMIN.value,
    'deletion-logs': Role.ADMIN.value,
}


def role_rank(role: Optional[str]) -> int:
    """-1 for missing or unknown roles."""
    if not isinstance(role, str):
        return -1
    return _ROLE_RANK.get(role, -1)


def has_role_at_least(role: Optional[str], minimum: str) -> bool:
    return role_rank(role) >= 0 and role_rank(role) >= role_rank(minimum)


def can_view_page(role: Optional[str], page: Optional[str]) -> bool:
    minimum = PAGE_MIN_ROLE.get(page) if isinstance(page, str) else None
    if minimum is None:
        return False
    return has_role_at_least(role, minimum)


def viewable_pages(role: Optional[str]) -> list:
    return [page for page in PAGE_MIN_ROLE if can_view_page(role, page)]


def is_admin(role: Optional[str]) -> bool:
    return role in (Role.ADMIN.value, Role.SUPERADMIN.value)


def is_super_admin(role: Optional[str]) -> bool:
    return role == Role.SUPERADMIN.value


def is_special(role: Optional[str]) -> bool:
    return role == Role.SPECIAL.value
