# portal/core/security.py
from dataclasses import dataclass
from functools import wraps
from typing import Optional

from flask import jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt, get_jwt_identity

from portal.core.permissions import can_view_page, has_role_at_least
from portal.models.profile import Role, full_name


@dataclass(frozen=True)
class Actor:
    """
    The authenticated user performing an operation.
    Passed explicitly into every service call instead of being looked up globally.
    """
    user_id: str
    role: str = Role.VIEWER.value
    display_name: str = ""
    email: Optional[str] = None


def actor_from_profile(user_id: str, profile: Optional[dict], fallback_role: Optional[str] = None) -> Actor:
    if not profile:
        return Actor(user_id=user_id, role=fallback_role or Role.VIEWER.value)
    return Actor(
        user_id=user_id,
        role=profile.get('role') or fallback_role or Role.VIEWER.value,
        display_name=full_name(profile) or profile.get('email') or "",
        email=profile.get('email')
    )


def current_actor() -> Actor:
    """Builds the Actor for the request's JWT. Must run inside a jwt_required view."""
    user_id = get_jwt_identity()
    claims = get_jwt()
    profile = current_app.services['users'].get_profile(user_id)
    return actor_from_profile(user_id, profile, claims.get('role'))


def role_required(page: str):
    """
    jwt_required() plus a page permission check on the token's role claim.
    """
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            role = get_jwt().get('role')
            if not can_view_page(role, page):
                return jsonify({"error_code": "FORBIDDEN", "message": "You do not have access to this page."}), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def min_role_required(minimum: str):
    """jwt_required() plus a minimum role check, for endpoints that are not tied to a page."""
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if not has_role_at_least(get_jwt().get('role'), minimum):
                return jsonify({"error_code": "FORBIDDEN", "message": "Your role does not allow this action."}), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator
