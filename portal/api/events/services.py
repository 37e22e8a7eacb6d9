# portal/api/events/services.py
import logging
import uuid
from dataclasses import asdict
from datetime import date, datetime, timedelta
from typing import Optional, Dict, Any, List, Tuple

from firebase_admin import firestore
from google.api_core.exceptions import AlreadyExists

from portal.core.permissions import is_admin
from portal.core.security import Actor
from portal.models.event import CalendarEvent, EventParticipant
from portal.models.notification import Action, EntityKind
from portal.services.deletion_log_service import DeletionLogService
from portal.services.notification_service import DomainEvent, NotificationService
from portal.utils.datetime_utils import DateTimeUtils


def adjust_end_for_start(start_date: date, start_time: str,
                         end_date: date, end_time: str) -> Tuple[date, str]:
    """
    Keeps the end of a range from falling before its start while the start is
    being edited: an end before the start becomes start + 1 hour (rolling into
    the next day past midnight). Otherwise the end is returned unchanged.
    """
    start = DateTimeUtils.combine_date_time(start_date, start_time)
    end = DateTimeUtils.combine_date_time(end_date, end_time)
    if end < start:
        return DateTimeUtils.shift_time_of_day(start_date, start_time, 1)
    return end_date, DateTimeUtils.format_time_of_day(DateTimeUtils.parse_time_of_day(end_time))


def describe_with_non_users(description: str, non_user_participants: List[str]) -> str:
    names = [n.strip() for n in non_user_participants or [] if n and n.strip()]
    if not names:
        return description or ""
    line = f"Non-user participants: {', '.join(names)}"
    return f"{description}\n\n{line}" if description else line


class EventService:
    """
    Calendar events and meetings ('events', 'event_participants').
    """
    def __init__(self, notification_service: NotificationService, deletion_log_service: DeletionLogService,
                 db=None, timezone_name: Optional[str] = None, duplicate_window_seconds: int = 5):
        self.db = db or firestore.client()
        self.events_ref = self.db.collection('events')
        self.participants_ref = self.db.collection('event_participants')
        self.notification_service = notification_service
        self.deletion_log_service = deletion_log_service
        self.timezone_name = timezone_name
        self.duplicate_window_seconds = max(1, duplicate_window_seconds)

    # --- helpers ---

    def _to_fields(self, form: Dict[str, Any]) -> Dict[str, Any]:
        """Form values -> stored event fields (absolute UTC start/end)."""
        start = DateTimeUtils.combine_date_time(form['start_date'], form['start_time'])
        end = DateTimeUtils.combine_date_time(form['end_date'], form['end_time'])
        return {
            'title': form['title'].strip(),
            'description': describe_with_non_users(form.get('description', ''), form.get('non_user_participants')),
            'location': form.get('location') or "",
            'start_time': DateTimeUtils.localize(start, self.timezone_name),
            'end_time': DateTimeUtils.localize(end, self.timezone_name),
            'is_meeting': bool(form.get('is_meeting')),
        }

    def _load_event(self, event_id: str) -> Dict[str, Any]:
        doc = self.events_ref.document(event_id).get()
        if not doc.exists:
            raise ValueError("Event not found.")
        event = DateTimeUtils.from_firestore(doc.to_dict())
        event.setdefault('id', doc.id)
        return event

    def _can_manage(self, event: Dict[str, Any], actor: Actor) -> bool:
        return event.get('created_by') == actor.user_id or is_admin(actor.role)

    def _notify_meeting(self, action: Action, event_id: str, title: str, actor: Actor):
        self.notification_service.notify(DomainEvent(
            kind=EntityKind.MEETING,
            action=action,
            entity_id=event_id,
            title=title,
            actor_id=actor.user_id,
            actor_name=actor.display_name,
        ))

    def _deterministic_id(self, creator_id: str, title: str, now: datetime) -> str:
        bucket = int(now.timestamp()) // self.duplicate_window_seconds
        return str(uuid.uuid5(uuid.NAMESPACE_URL, f"portal/events/{creator_id}/{title}/{bucket}"))

    def _find_recent_duplicate(self, creator_id: str, title: str, since: Optional[datetime]) -> Optional[str]:
        query = (self.events_ref
                 .where('created_by', '==', creator_id)
                 .where('title', '==', title))
        if since is not None:
            query = query.where('created_at', '>', since)
        docs = list(query.order_by('created_at', direction=firestore.Query.DESCENDING).limit(1).stream())
        return docs[0].id if docs else None

    # --- participants ---

    def get_participants(self, event_id: str) -> List[Dict[str, Any]]:
        return [doc.to_dict() for doc in self.participants_ref.where('event_id', '==', event_id).stream()]

    def replace_participants(self, event_id: str, user_ids: List[str]) -> List[Dict[str, Any]]:
        """Drops the event's participant rows and inserts one pending row per selected user."""
        wanted = list(dict.fromkeys(uid for uid in user_ids if uid))
        batch = self.db.batch()
        for doc in self.participants_ref.where('event_id', '==', event_id).stream():
            batch.delete(doc.reference)
        batch.commit()

        rows = []
        batch = self.db.batch()
        for user_id in wanted:
            participant = EventParticipant(id=f"{event_id}_{user_id}", event_id=event_id, user_id=user_id)
            batch.set(self.participants_ref.document(participant.id), asdict(participant))
            rows.append(asdict(participant))
        batch.commit()
        return rows

    # --- reads ---

    def get_event(self, event_id: str) -> Dict[str, Any]:
        event = self._load_event(event_id)
        event['participants'] = self.get_participants(event_id)
        return event

    def list_events(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Events starting within [start, end], earliest first."""
        query = self.events_ref
        if start is not None:
            query = query.where('start_time', '>=', start)
        if end is not None:
            query = query.where('start_time', '<=', end)
        events = []
        for doc in query.order_by('start_time').stream():
            event = DateTimeUtils.from_firestore(doc.to_dict())
            event.setdefault('id', doc.id)
            events.append(event)
        return events

    # --- writes ---

    def create_event(self, actor: Actor, form: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        """
        Returns (event, created). A repeat submission of the same title by the
        same user within the duplicate window returns the existing event with
        created=False.
        """
        fields = self._to_fields(form)
        now = DateTimeUtils.now()

        existing_id = self._find_recent_duplicate(
            actor.user_id, fields['title'], now - timedelta(seconds=self.duplicate_window_seconds))
        if existing_id:
            logging.info(f"Duplicate event submission ignored: '{fields['title']}' by {actor.user_id}")
            return self.get_event(existing_id), False

        event_id = self._deterministic_id(actor.user_id, fields['title'], now)
        new_event = CalendarEvent(id=event_id, created_by=actor.user_id, created_at=now, updated_at=now, **fields)
        try:
            self.events_ref.document(event_id).create(DateTimeUtils.for_firestore(asdict(new_event)))
        except AlreadyExists:
            existing_id = self._find_recent_duplicate(actor.user_id, fields['title'], None)
            if not existing_id:
                raise
            logging.info(f"Concurrent duplicate event resolved to {existing_id}")
            return self.get_event(existing_id), False

        if new_event.is_meeting:
            self.replace_participants(event_id, form.get('participants') or [])
            self._notify_meeting(Action.CREATED, event_id, new_event.title, actor)

        logging.info(f"Event created: {event_id} by {actor.user_id}")
        return self.get_event(event_id), True

    def update_event(self, event_id: str, actor: Actor, form: Dict[str, Any]) -> Dict[str, Any]:
        event = self._load_event(event_id)
        if not self._can_manage(event, actor):
            raise PermissionError("Only the creator or an administrator can edit this event.")

        fields = self._to_fields(form)
        fields['updated_at'] = DateTimeUtils.now()
        self.events_ref.document(event_id).update(DateTimeUtils.for_firestore(fields))

        if fields['is_meeting']:
            self.replace_participants(event_id, form.get('participants') or [])
            self._notify_meeting(Action.UPDATED, event_id, fields['title'], actor)

        return self.get_event(event_id)

    def delete_event(self, event_id: str, actor: Actor) -> None:
        event = self._load_event(event_id)
        if not self._can_manage(event, actor):
            raise PermissionError("Only the creator or an administrator can delete this event.")

        self.deletion_log_service.record('events', event_id, actor, event)
        batch = self.db.batch()
        for doc in self.participants_ref.where('event_id', '==', event_id).stream():
            batch.delete(doc.reference)
        batch.delete(self.events_ref.document(event_id))
        batch.commit()

        if event.get('is_meeting'):
            self._notify_meeting(Action.DELETED, event_id, event.get('title', ''), actor)
        logging.info(f"Event deleted: {event_id} by {actor.user_id}")

    def respond(self, event_id: str, actor: Actor, response: str) -> Dict[str, Any]:
        """Sets the caller's own participant response."""
        participant_ref = self.participants_ref.document(f"{event_id}_{actor.user_id}")
        doc = participant_ref.get()
        if not doc.exists:
            raise ValueError("You are not a participant of this event.")
        participant_ref.update({'response': response})
        participant = doc.to_dict()
        participant['response'] = response
        return participant
