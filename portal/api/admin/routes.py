# portal/api/admin/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from marshmallow import ValidationError

from portal.api.admin.schemas import DeletionLogResponseSchema
from portal.api.users.schemas import ProfileResponseSchema, RoleUpdateSchema
from portal.core.security import current_actor, role_required

admin_bp = Blueprint('admin_bp', __name__)


@admin_bp.route('/deletion-logs', methods=['GET'])
@role_required('deletion-logs')
def list_deletion_logs():
    """Newest first. ?table=forum_posts narrows to one table."""
    deletion_log_service = current_app.services['deletion_logs']
    table_name = request.args.get('table')
    limit = request.args.get('limit', 100, type=int)
    try:
        logs = deletion_log_service.list_logs(table_name, max(1, min(limit, 500)))
        return jsonify({"logs": DeletionLogResponseSchema(many=True).dump(logs)}), 200
    except Exception as e:
        logging.error(f"Failed to list deletion logs: {e}", exc_info=True)
        return jsonify({"error_code": "DELETION_LOG_FETCH_FAILED", "message": "Failed to load deletion logs."}), 500


@admin_bp.route('/users', methods=['GET'])
@role_required('users')
def list_users():
    user_service = current_app.services['users']
    return jsonify({"users": ProfileResponseSchema(many=True).dump(user_service.list_profiles())}), 200


@admin_bp.route('/users/<string:user_id>/role', methods=['PATCH'])
@role_required('users')
def update_user_role(user_id: str):
    user_service = current_app.services['users']
    try:
        data = RoleUpdateSchema().load(request.get_json() or {})
        profile = user_service.update_role(current_actor(), user_id, data['role'])
        return jsonify(ProfileResponseSchema().dump(profile)), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except ValueError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404
