# portal/api/auth/routes.py

import logging
import jwt
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    jwt_required,
    get_jwt_identity,
)
from marshmallow import ValidationError

from portal.api.auth.schemas import SessionRequestSchema, LogoutRequestSchema
from portal.core.permissions import viewable_pages
from portal.models.profile import Role
from .services import auth_service

auth_bp = Blueprint('auth_bp', __name__)


def _issue_tokens(user_id: str, role: str) -> dict:
    claims = {'role': role}
    return {
        "access_token": create_access_token(identity=user_id, additional_claims=claims),
        "refresh_token": create_refresh_token(identity=user_id, additional_claims=claims),
    }


@auth_bp.route('/session', methods=['POST'])
def create_session():
    """Exchanges a Firebase ID token for portal JWTs carrying the user's role."""
    user_service = current_app.services['users']
    try:
        data = SessionRequestSchema().load(request.get_json() or {})
        decoded = auth_service.verify_id_token(data['id_token'])

        user_id = decoded['uid']
        profile = user_service.get_or_create_profile(user_id, decoded.get('email'), decoded.get('name'))
        role = profile.get('role') or Role.VIEWER.value

        response = _issue_tokens(user_id, role)
        response.update(user_id=user_id, role=role, pages=viewable_pages(role))
        return jsonify(response), 200
    except ValidationError as e:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": e.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "INVALID_ID_TOKEN", "message": str(e)}), 401
    except Exception as e:
        logging.error(f"Session exchange failed: {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "Sign-in failed."}), 500


@auth_bp.route('/token/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh_token():
    """New access token; the role claim is re-read so role changes apply without signing out."""
    user_service = current_app.services['users']
    current_user_id = get_jwt_identity()
    profile = user_service.get_profile(current_user_id)
    if not profile:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": "User not found."}), 404

    role = profile.get('role') or Role.VIEWER.value
    new_access_token = create_access_token(identity=current_user_id, additional_claims={'role': role})
    return jsonify(access_token=new_access_token, role=role), 200


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Adds the given access and refresh tokens to the blocklist."""
    try:
        data = LogoutRequestSchema().load(request.get_json() or {})

        secret_key = current_app.config['JWT_SECRET_KEY']
        algorithm = current_app.config.get('JWT_ALGORITHM', 'HS256')

        # Expired tokens are still revoked.
        decoded_access = jwt.decode(data['access_token'], secret_key, algorithms=[algorithm], options={"verify_exp": False})
        decoded_refresh = jwt.decode(data['refresh_token'], secret_key, algorithms=[algorithm], options={"verify_exp": False})

        auth_service.logout_user(
            decoded_access['jti'], decoded_access['exp'],
            decoded_refresh['jti'], decoded_refresh['exp']
        )
        return jsonify({"message": "Logged out."}), 200

    except ValidationError as e:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": e.messages}), 400
    except jwt.PyJWTError as e:
        logging.error(f"JWT decode error: {e}", exc_info=True)
        return jsonify({"error_code": "INVALID_TOKEN", "message": "Invalid token."}), 422
    except Exception as e:
        logging.error(f"Logout failed: {e}", exc_info=True)
        return jsonify({"error_code": "LOGOUT_FAILED", "message": "Logout failed."}), 500
