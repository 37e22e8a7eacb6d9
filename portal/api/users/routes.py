# portal/api/users/routes.py
import logging
from flask import Blueprint, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity, get_jwt

from portal.api.users.schemas import ProfileResponseSchema, MeResponseSchema
from portal.core.permissions import viewable_pages, is_admin, is_super_admin, is_special

users_bp = Blueprint('users_bp', __name__)


@users_bp.route('/me', methods=['GET'])
@jwt_required()
def get_me():
    """The caller's profile with the pages their role can open."""
    user_service = current_app.services['users']
    user_id = get_jwt_identity()
    try:
        profile = user_service.get_profile(user_id)
        if not profile:
            return jsonify({"error_code": "USER_NOT_FOUND", "message": "User not found."}), 404

        # The stored role wins over the token claim; it may have changed since login.
        role = profile.get('role') or get_jwt().get('role')
        profile.update(
            pages=viewable_pages(role),
            is_admin=is_admin(role),
            is_super_admin=is_super_admin(role),
            is_special=is_special(role)
        )
        return jsonify(MeResponseSchema().dump(profile)), 200
    except Exception as e:
        logging.error(f"Failed to load current user (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "PROFILE_FETCH_FAILED", "message": "Failed to load the profile."}), 500


@users_bp.route('/<string:user_id>', methods=['GET'])
@jwt_required()
def get_user_profile(user_id: str):
    user_service = current_app.services['users']
    try:
        profile = user_service.get_profile(user_id)
        if not profile:
            return jsonify({"error_code": "USER_NOT_FOUND", "message": "User not found."}), 404
        return jsonify(ProfileResponseSchema().dump(profile)), 200
    except Exception as e:
        logging.error(f"Failed to load profile (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "PROFILE_FETCH_FAILED", "message": "Failed to load the profile."}), 500
