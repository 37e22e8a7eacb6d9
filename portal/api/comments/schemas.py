# portal/api/comments/schemas.py
from marshmallow import Schema, fields, validate

from portal.api.posts.schemas import StrippedSchema


class CommentCreateSchema(StrippedSchema):
    """
    POST /api/forum/posts/{post_id}/comments
    parent_comment_id makes the comment a reply.
    """
    content = fields.Str(required=True, validate=validate.Length(min=1, max=5000, error="Comment cannot be empty."))
    parent_comment_id = fields.Str(load_default=None, allow_none=True)


class CommentUpdateSchema(StrippedSchema):
    content = fields.Str(required=True, validate=validate.Length(min=1, max=5000, error="Comment cannot be empty."))


class CommentResponseSchema(Schema):
    id = fields.Str(required=True)
    post_id = fields.Str(required=True)
    content = fields.Str(required=True)
    author_id = fields.Str(required=True)
    author_name = fields.Str(dump_default="")
    parent_comment_id = fields.Str(allow_none=True)
    is_edited = fields.Bool(dump_default=False)
    created_at = fields.DateTime(required=True)
    updated_at = fields.DateTime(allow_none=True)

    like_count = fields.Int(dump_only=True, dump_default=0)
    dislike_count = fields.Int(dump_only=True, dump_default=0)
    score = fields.Int(dump_only=True, dump_default=0)
    my_reaction = fields.Str(dump_only=True, allow_none=True)
    liked_by = fields.List(fields.Str(), dump_only=True)
    disliked_by = fields.List(fields.Str(), dump_only=True)


class CommentThreadSchema(CommentResponseSchema):
    """A top-level comment with its replies."""
    replies = fields.List(fields.Nested(CommentResponseSchema), dump_default=list)
