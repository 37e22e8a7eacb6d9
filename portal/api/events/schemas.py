# portal/api/events/schemas.py
from marshmallow import Schema, fields, validate, validates_schema, ValidationError

from portal.api.posts.schemas import StrippedSchema
from portal.models.event import ParticipantResponse
from portal.utils.datetime_utils import DateTimeUtils

TIME_OF_DAY = validate.Regexp(r'^([01]?\d|2[0-3]):([0-5]\d)$', error="Time must be in HH:MM format.")


class DateRangeSchema(StrippedSchema):
    """A date and a time-of-day for each end of the range."""
    start_date = fields.Date(required=True)
    start_time = fields.Str(required=True, validate=TIME_OF_DAY)
    end_date = fields.Date(required=True)
    end_time = fields.Str(required=True, validate=TIME_OF_DAY)


class EventFormSchema(DateRangeSchema):
    """
    POST /api/events, PUT /api/events/{event_id}
    The end may equal the start but not precede it.
    """
    title = fields.Str(required=True, validate=validate.Length(min=2, error="Title must be at least 2 characters"))
    description = fields.Str(load_default="")
    location = fields.Str(load_default="")
    is_meeting = fields.Bool(load_default=False)
    participants = fields.List(fields.Str(), load_default=list)
    non_user_participants = fields.List(fields.Str(), load_default=list)

    @validates_schema
    def validate_range(self, data, **kwargs):
        try:
            start = DateTimeUtils.combine_date_time(data['start_date'], data['start_time'])
            end = DateTimeUtils.combine_date_time(data['end_date'], data['end_time'])
        except (KeyError, ValueError):
            # Missing or malformed parts are reported by their own fields.
            return
        if end < start:
            raise ValidationError("End date/time cannot be before start date/time", field_name="end_date")


class ParticipantResponseSchema(Schema):
    """POST /api/events/{event_id}/response"""
    response = fields.Str(required=True, validate=validate.OneOf([r.value for r in ParticipantResponse]))


class ParticipantSchema(Schema):
    user_id = fields.Str(required=True)
    response = fields.Str(required=True)


class EventResponseSchema(Schema):
    id = fields.Str(required=True)
    title = fields.Str(required=True)
    description = fields.Str(dump_default="")
    location = fields.Str(dump_default="")
    start_time = fields.DateTime(required=True)
    end_time = fields.DateTime(required=True)
    is_meeting = fields.Bool(dump_default=False)
    created_by = fields.Str(required=True)
    created_at = fields.DateTime(allow_none=True)
    updated_at = fields.DateTime(allow_none=True)
    participants = fields.List(fields.Nested(ParticipantSchema), dump_default=list)
