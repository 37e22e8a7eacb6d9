# portal/api/notifications/schemas.py
from marshmallow import Schema, fields, validate, validates_schema, ValidationError

from portal.models.notification import Action, EntityKind
from portal.services.notification_service import supports

# Kinds whose screens write straight to the database and only report activity here.
REPORTABLE_KINDS = [
    EntityKind.TASK, EntityKind.MEETING, EntityKind.BUDGET,
    EntityKind.RISK, EntityKind.CONTACT, EntityKind.REPOSITORY,
]


class NotificationResponseSchema(Schema):
    id = fields.Str(required=True)
    type = fields.Str(required=True)
    content = fields.Str(required=True)
    link = fields.Str(allow_none=True)
    source_id = fields.Str(allow_none=True)
    is_read = fields.Bool(required=True)
    read_at = fields.DateTime(allow_none=True)
    created_at = fields.DateTime(required=True)


class ActivityReportSchema(Schema):
    """POST /api/notifications/activity"""
    entity = fields.Str(required=True, validate=validate.OneOf([k.value for k in REPORTABLE_KINDS]))
    action = fields.Str(required=True, validate=validate.OneOf([a.value for a in Action]))
    entity_id = fields.Str(required=True, validate=validate.Length(min=1))
    title = fields.Str(required=True, validate=validate.Length(min=1))

    @validates_schema
    def validate_pair(self, data, **kwargs):
        if not supports(EntityKind(data['entity']), Action(data['action'])):
            raise ValidationError(f"'{data['action']}' is not reported for {data['entity']}.", field_name="action")
