# portal/api/posts/schemas.py
from marshmallow import Schema, fields, validate, pre_load


class StrippedSchema(Schema):
    """Trims surrounding whitespace from string inputs before validation."""
    @pre_load
    def strip_strings(self, data, **kwargs):
        if not isinstance(data, dict):
            return data
        return {k: v.strip() if isinstance(v, str) else v for k, v in data.items()}


class PostCreateSchema(StrippedSchema):
    """POST /api/forum/posts"""
    title = fields.Str(required=True, validate=validate.Length(min=1, max=200, error="Title cannot be empty."))
    content = fields.Str(required=True, validate=validate.Length(min=1, max=10000, error="Content cannot be empty."))


class PostUpdateSchema(PostCreateSchema):
    """PATCH /api/forum/posts/{post_id}"""


class ReactionRequestSchema(Schema):
    """POST .../reactions"""
    is_like = fields.Bool(required=True)


class ReactionSummarySchema(Schema):
    like_count = fields.Int(required=True)
    dislike_count = fields.Int(required=True)
    score = fields.Int(required=True)
    my_reaction = fields.Str(allow_none=True)
    liked_by = fields.List(fields.Str())
    disliked_by = fields.List(fields.Str())


class PostResponseSchema(Schema):
    id = fields.Str(required=True)
    title = fields.Str(required=True)
    content = fields.Str(required=True)
    author_id = fields.Str(required=True)
    author_name = fields.Str(dump_default="")
    is_edited = fields.Bool(dump_default=False)
    created_at = fields.DateTime(required=True)
    updated_at = fields.DateTime(allow_none=True)

    # Filled in by the service
    like_count = fields.Int(dump_only=True, dump_default=0)
    dislike_count = fields.Int(dump_only=True, dump_default=0)
    score = fields.Int(dump_only=True, dump_default=0)
    my_reaction = fields.Str(dump_only=True, allow_none=True)
    comment_count = fields.Int(dump_only=True, dump_default=0)
