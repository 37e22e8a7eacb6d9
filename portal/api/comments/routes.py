# portal/api/comments/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from marshmallow import ValidationError

from portal.api.comments.schemas import (
    CommentCreateSchema, CommentUpdateSchema, CommentResponseSchema, CommentThreadSchema
)
from portal.api.posts.schemas import ReactionRequestSchema, ReactionSummarySchema
from portal.core.security import current_actor, role_required
from portal.services.reaction_service import ReactionConflictError
from portal.utils.request_utils import is_confirmed, confirmation_required_response

comments_bp = Blueprint('comments_bp', __name__)


@comments_bp.route('/posts/<string:post_id>/comments', methods=['GET'])
@role_required('forum')
def get_comments(post_id: str):
    comment_service = current_app.services['comments']
    try:
        threads = comment_service.get_threads(post_id, current_actor())
        return jsonify({"threads": CommentThreadSchema(many=True).dump(threads)}), 200
    except ValueError as e:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"Failed to list comments (post_id: {post_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "Failed to load comments."}), 500


@comments_bp.route('/posts/<string:post_id>/comments', methods=['POST'])
@role_required('forum')
def create_comment(post_id: str):
    """Adds a comment, or a reply when parent_comment_id is given."""
    comment_service = current_app.services['comments']
    try:
        data = CommentCreateSchema().load(request.get_json() or {})
        new_comment = comment_service.add_comment(post_id, current_actor(), data['content'], data['parent_comment_id'])
        return jsonify(CommentResponseSchema().dump(new_comment)), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "RESOURCE_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"Comment creation failed (post_id: {post_id}): {e}", exc_info=True)
        return jsonify({"error_code": "COMMENT_CREATION_FAILED", "message": "Failed to add the comment."}), 500


@comments_bp.route('/comments/<string:comment_id>', methods=['PATCH'])
@role_required('forum')
def update_comment(comment_id: str):
    comment_service = current_app.services['comments']
    try:
        data = CommentUpdateSchema().load(request.get_json() or {})
        comment = comment_service.update_comment(comment_id, current_actor(), data['content'])
        return jsonify(CommentResponseSchema().dump(comment)), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except ValueError as e:
        return jsonify({"error_code": "COMMENT_NOT_FOUND", "message": str(e)}), 404


@comments_bp.route('/comments/<string:comment_id>', methods=['DELETE'])
@role_required('forum')
def delete_comment(comment_id: str):
    """Author only, requires confirm=true. Replies of a top-level comment go with it."""
    comment_service = current_app.services['comments']
    if not is_confirmed(request):
        return confirmation_required_response()
    try:
        removed = comment_service.delete_comment(comment_id, current_actor())
        return jsonify({"message": "Comment deleted.", "deleted": removed}), 200
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except ValueError as e:
        return jsonify({"error_code": "COMMENT_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"Comment deletion failed (comment_id: {comment_id}): {e}", exc_info=True)
        return jsonify({"error_code": "COMMENT_DELETION_FAILED", "message": "Failed to delete the comment."}), 500


@comments_bp.route('/comments/<string:comment_id>/reactions', methods=['POST'])
@role_required('forum')
def react_to_comment(comment_id: str):
    comment_service = current_app.services['comments']
    try:
        data = ReactionRequestSchema().load(request.get_json() or {})
        outcome, summary = comment_service.react(comment_id, current_actor(), data['is_like'])
        response = ReactionSummarySchema().dump(summary)
        response['outcome'] = outcome.value
        return jsonify(response), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ReactionConflictError as e:
        return jsonify({"error_code": "REACTION_CONFLICT", "message": str(e)}), 409
    except ValueError as e:
        return jsonify({"error_code": "COMMENT_NOT_FOUND", "message": str(e)}), 404
