# portal/api/admin/schemas.py
from marshmallow import Schema, fields


class DeletionLogResponseSchema(Schema):
    id = fields.Str(required=True)
    table_name = fields.Str(required=True)
    record_id = fields.Str(required=True)
    deleted_by = fields.Str(required=True)
    deleted_by_name = fields.Str(allow_none=True)
    details = fields.Dict()
    created_at = fields.DateTime(required=True)
