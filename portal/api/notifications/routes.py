# portal/api/notifications/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from portal.api.notifications.schemas import NotificationResponseSchema, ActivityReportSchema
from portal.core.security import current_actor, min_role_required
from portal.models.notification import Action, EntityKind
from portal.models.profile import Role
from portal.services.notification_service import DomainEvent

notifications_bp = Blueprint('notifications_bp', __name__)


@notifications_bp.route('', methods=['GET'])
@jwt_required()
def get_notifications():
    """Newest first. Read notifications drop out after the retention period."""
    inbox_service = current_app.services['inbox']
    user_id = get_jwt_identity()
    try:
        inbox = inbox_service.list_for_user(user_id)
        return jsonify({
            "notifications": NotificationResponseSchema(many=True).dump(inbox['notifications']),
            "unread_count": inbox['unread_count']
        }), 200
    except Exception as e:
        logging.error(f"Failed to load notifications (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "NOTIFICATION_FETCH_FAILED", "message": "Failed to load notifications."}), 500


@notifications_bp.route('/<string:notification_id>/read', methods=['POST'])
@jwt_required()
def mark_read(notification_id: str):
    inbox_service = current_app.services['inbox']
    try:
        notification = inbox_service.mark_read(get_jwt_identity(), notification_id)
        return jsonify(NotificationResponseSchema().dump(notification)), 200
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except ValueError as e:
        return jsonify({"error_code": "NOTIFICATION_NOT_FOUND", "message": str(e)}), 404


@notifications_bp.route('/read-all', methods=['POST'])
@jwt_required()
def mark_all_read():
    inbox_service = current_app.services['inbox']
    user_id = get_jwt_identity()
    try:
        updated = inbox_service.mark_all_read(user_id)
        return jsonify({"updated": updated}), 200
    except Exception as e:
        logging.error(f"Failed to mark notifications read (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "NOTIFICATION_UPDATE_FAILED", "message": "Failed to update notifications."}), 500


@notifications_bp.route('/activity', methods=['POST'])
@min_role_required(Role.SPECIAL.value)
def report_activity():
    """Fan-out for changes made on the task/budget/risk/contact/document/meeting screens."""
    notification_service = current_app.services['notifications']
    try:
        data = ActivityReportSchema().load(request.get_json() or {})
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    actor = current_actor()
    written = notification_service.notify(DomainEvent(
        kind=EntityKind(data['entity']),
        action=Action(data['action']),
        entity_id=data['entity_id'],
        title=data['title'],
        actor_id=actor.user_id,
        actor_name=actor.display_name,
    ))
    return jsonify({"notified": written}), 202
