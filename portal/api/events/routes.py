# portal/api/events/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError

from portal.api.events.schemas import (
    DateRangeSchema, EventFormSchema, EventResponseSchema, ParticipantResponseSchema, ParticipantSchema
)
from portal.api.events.services import adjust_end_for_start
from portal.core.security import current_actor, role_required
from portal.utils.datetime_utils import DateTimeUtils
from portal.utils.request_utils import is_confirmed, confirmation_required_response

events_bp = Blueprint('events_bp', __name__)


@events_bp.route('/adjust-range', methods=['POST'])
@jwt_required()
def adjust_range():
    """
    Called while the start of the form is being edited.
    Returns the end date/time to show; it only changes when it fell before the start.
    """
    try:
        data = DateRangeSchema().load(request.get_json() or {})
        end_date, end_time = adjust_end_for_start(
            data['start_date'], data['start_time'], data['end_date'], data['end_time'])
        return jsonify({"end_date": end_date.isoformat(), "end_time": end_time}), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400


@events_bp.route('', methods=['GET'])
@role_required('calendar')
def list_events():
    """?start=ISO&end=ISO bounds the event start time."""
    event_service = current_app.services['events']
    try:
        start = request.args.get('start')
        end = request.args.get('end')
        events = event_service.list_events(
            DateTimeUtils.parse_iso_datetime(start) if start else None,
            DateTimeUtils.parse_iso_datetime(end) if end else None
        )
        return jsonify({"events": EventResponseSchema(many=True).dump(events)}), 200
    except ValueError as e:
        return jsonify({"error_code": "INVALID_RANGE", "message": str(e)}), 400
    except Exception as e:
        logging.error(f"Failed to list events: {e}", exc_info=True)
        return jsonify({"error_code": "EVENT_LIST_FAILED", "message": "Failed to load events."}), 500


@events_bp.route('', methods=['POST'])
@role_required('calendar')
def create_event():
    event_service = current_app.services['events']
    try:
        data = EventFormSchema().load(request.get_json() or {})
        event, created = event_service.create_event(current_actor(), data)
        return jsonify(EventResponseSchema().dump(event)), 201 if created else 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except Exception as e:
        logging.error(f"Event creation failed: {e}", exc_info=True)
        return jsonify({"error_code": "EVENT_CREATION_FAILED", "message": "Failed to create the event."}), 500


@events_bp.route('/<string:event_id>', methods=['GET'])
@role_required('calendar')
def get_event(event_id: str):
    event_service = current_app.services['events']
    try:
        return jsonify(EventResponseSchema().dump(event_service.get_event(event_id))), 200
    except ValueError as e:
        return jsonify({"error_code": "EVENT_NOT_FOUND", "message": str(e)}), 404


@events_bp.route('/<string:event_id>', methods=['PUT'])
@role_required('calendar')
def update_event(event_id: str):
    event_service = current_app.services['events']
    try:
        data = EventFormSchema().load(request.get_json() or {})
        event = event_service.update_event(event_id, current_actor(), data)
        return jsonify(EventResponseSchema().dump(event)), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except ValueError as e:
        return jsonify({"error_code": "EVENT_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"Event update failed (event_id: {event_id}): {e}", exc_info=True)
        return jsonify({"error_code": "EVENT_UPDATE_FAILED", "message": "Failed to update the event."}), 500


@events_bp.route('/<string:event_id>', methods=['DELETE'])
@role_required('calendar')
def delete_event(event_id: str):
    event_service = current_app.services['events']
    if not is_confirmed(request):
        return confirmation_required_response()
    try:
        event_service.delete_event(event_id, current_actor())
        return jsonify({"message": "Event deleted."}), 200
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except ValueError as e:
        return jsonify({"error_code": "EVENT_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"Event deletion failed (event_id: {event_id}): {e}", exc_info=True)
        return jsonify({"error_code": "EVENT_DELETION_FAILED", "message": "Failed to delete the event."}), 500


@events_bp.route('/<string:event_id>/response', methods=['POST'])
@role_required('calendar')
def respond_to_event(event_id: str):
    """Accept or decline an invitation."""
    event_service = current_app.services['events']
    try:
        data = ParticipantResponseSchema().load(request.get_json() or {})
        participant = event_service.respond(event_id, current_actor(), data['response'])
        return jsonify(ParticipantSchema().dump(participant)), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "PARTICIPANT_NOT_FOUND", "message": str(e)}), 404
