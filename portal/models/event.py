# portal/models/event.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from portal.utils.datetime_utils import DateTimeUtils


class ParticipantResponse(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


@dataclass
class CalendarEvent:
    """
    Document structure of the Firestore 'events' collection.
    start_time/end_time are absolute UTC timestamps and end_time >= start_time.
    """
    id: str
    title: str
    start_time: datetime
    end_time: datetime
    created_by: str
    description: str = ""
    location: str = ""
    is_meeting: bool = False
    created_at: datetime = field(default_factory=DateTimeUtils.now)
    updated_at: datetime = field(default_factory=DateTimeUtils.now)


@dataclass
class EventParticipant:
    """One row per invited user in 'event_participants' (document id: {event_id}_{user_id})."""
    id: str
    event_id: str
    user_id: str
    response: str = ParticipantResponse.PENDING.value
