# portal/api/posts/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from marshmallow import ValidationError

from portal.api.posts.schemas import (
    PostCreateSchema, PostUpdateSchema, PostResponseSchema,
    ReactionRequestSchema, ReactionSummarySchema
)
from portal.api.posts.services import SORT_RECENT, SORT_POPULAR
from portal.core.security import current_actor, role_required
from portal.services.reaction_service import ReactionConflictError
from portal.utils.request_utils import is_confirmed, confirmation_required_response

posts_bp = Blueprint('posts_bp', __name__)


@posts_bp.route('/posts', methods=['GET'])
@role_required('forum')
def list_posts():
    """?sort=recent (default) or ?sort=popular"""
    post_service = current_app.services['posts']
    sort = request.args.get('sort', SORT_RECENT)
    if sort not in (SORT_RECENT, SORT_POPULAR):
        return jsonify({"error_code": "INVALID_SORT", "message": "sort must be 'recent' or 'popular'."}), 400
    try:
        posts = post_service.list_posts(current_actor(), sort)
        return jsonify({"posts": PostResponseSchema(many=True).dump(posts)}), 200
    except Exception as e:
        logging.error(f"Failed to list forum posts: {e}", exc_info=True)
        return jsonify({"error_code": "POST_LIST_FAILED", "message": "Failed to load posts."}), 500


@posts_bp.route('/posts', methods=['POST'])
@role_required('forum')
def create_post():
    post_service = current_app.services['posts']
    try:
        data = PostCreateSchema().load(request.get_json() or {})
        new_post = post_service.create_post(current_actor(), data['title'], data['content'])
        return jsonify(PostResponseSchema().dump(new_post)), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except Exception as e:
        logging.error(f"Post creation failed: {e}", exc_info=True)
        return jsonify({"error_code": "POST_CREATION_FAILED", "message": "Failed to create the post."}), 500


@posts_bp.route('/posts/<string:post_id>', methods=['GET'])
@role_required('forum')
def get_post(post_id: str):
    post_service = current_app.services['posts']
    try:
        post = post_service.get_post(post_id, current_actor())
        return jsonify(PostResponseSchema().dump(post)), 200
    except ValueError as e:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": str(e)}), 404


@posts_bp.route('/posts/<string:post_id>', methods=['PATCH'])
@role_required('forum')
def update_post(post_id: str):
    post_service = current_app.services['posts']
    try:
        data = PostUpdateSchema().load(request.get_json() or {})
        updated_post = post_service.update_post(post_id, current_actor(), data['title'], data['content'])
        return jsonify(PostResponseSchema().dump(updated_post)), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except ValueError as e:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"Post update failed (post_id: {post_id}): {e}", exc_info=True)
        return jsonify({"error_code": "POST_UPDATE_FAILED", "message": "Failed to update the post."}), 500


@posts_bp.route('/posts/<string:post_id>', methods=['DELETE'])
@role_required('forum')
def delete_post(post_id: str):
    """Requires confirm=true. Comments of the post are deleted too."""
    post_service = current_app.services['posts']
    if not is_confirmed(request):
        return confirmation_required_response()
    try:
        removed_comments = post_service.delete_post(post_id, current_actor())
        return jsonify({"message": "Post deleted.", "deleted_comments": removed_comments}), 200
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except ValueError as e:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"Post deletion failed (post_id: {post_id}): {e}", exc_info=True)
        return jsonify({"error_code": "POST_DELETION_FAILED", "message": "Failed to delete the post."}), 500


@posts_bp.route('/posts/<string:post_id>/reactions', methods=['POST'])
@role_required('forum')
def react_to_post(post_id: str):
    """Same reaction twice removes it; the opposite one switches it."""
    post_service = current_app.services['posts']
    try:
        data = ReactionRequestSchema().load(request.get_json() or {})
        outcome, summary = post_service.react(post_id, current_actor(), data['is_like'])
        response = ReactionSummarySchema().dump(summary)
        response['outcome'] = outcome.value
        return jsonify(response), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ReactionConflictError as e:
        return jsonify({"error_code": "REACTION_CONFLICT", "message": str(e)}), 409
    except ValueError as e:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"Post reaction failed (post_id: {post_id}): {e}", exc_info=True)
        return jsonify({"error_code": "REACTION_FAILED", "message": "Failed to save the reaction."}), 500


@posts_bp.route('/posts/<string:post_id>/reactions', methods=['GET'])
@role_required('forum')
def get_post_reactions(post_id: str):
    """Counts and the names of who liked/disliked."""
    post_service = current_app.services['posts']
    try:
        summary = post_service.get_reactions(post_id, current_actor())
        return jsonify(ReactionSummarySchema().dump(summary)), 200
    except ValueError as e:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": str(e)}), 404
