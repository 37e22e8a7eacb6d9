# portal/api/users/schemas.py
from marshmallow import Schema, fields, validate

from portal.models.profile import Role


class ProfileResponseSchema(Schema):
    """A profile as returned to other users."""
    id = fields.Str(required=True)
    email = fields.Str(allow_none=True)
    first_name = fields.Str(allow_none=True)
    last_name = fields.Str(allow_none=True)
    role = fields.Str(required=True)
    created_at = fields.DateTime(allow_none=True)


class MeResponseSchema(ProfileResponseSchema):
    """GET /api/users/me: the caller's profile plus what the UI may show them."""
    pages = fields.List(fields.Str(), dump_only=True)
    is_admin = fields.Bool(dump_only=True)
    is_super_admin = fields.Bool(dump_only=True)
    is_special = fields.Bool(dump_only=True)


class RoleUpdateSchema(Schema):
    """PATCH /api/admin/users/{user_id}/role"""
    role = fields.Str(required=True, validate=validate.OneOf([r.value for r in Role]))
