# portal/services/notification_service.py
import logging
import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, List, NamedTuple, Optional, Tuple

from firebase_admin import firestore

from portal.models.notification import Action, EntityKind, Notification, NotificationType
from portal.models.profile import Role, full_name
from portal.utils.datetime_utils import DateTimeUtils

# Recipients of broadcast-to-roles fan-out.
STAFF_ROLES = (Role.ADMIN.value, Role.SPECIAL.value, Role.SUPERADMIN.value)
ADMIN_ROLES = (Role.ADMIN.value, Role.SUPERADMIN.value)

# Firestore rejects write batches larger than this.
_MAX_BATCH_WRITES = 500


class Audience:
    STAFF = "staff"
    ADMINS = "admins"
    NON_VIEWERS = "non_viewers"


class _Template(NamedTuple):
    type: NotificationType
    text: str
    link: str
    audience: str
    # Used instead of type/text when the event targets a single recipient.
    direct_type: Optional[NotificationType] = None
    direct_text: Optional[str] = None


_T = _Template
_TEMPLATES: Dict[Tuple[EntityKind, Action], _Template] = {
    (EntityKind.TASK, Action.CREATED): _T(NotificationType.TASK_CREATED, "{actor} created a new task: {title}", "/tasks?task={id}", Audience.STAFF),
    (EntityKind.TASK, Action.UPDATED): _T(NotificationType.TASK_UPDATED, "{actor} updated task: {title}", "/tasks?task={id}", Audience.STAFF),
    (EntityKind.TASK, Action.COMPLETED): _T(NotificationType.TASK_COMPLETED, "{actor} marked task as complete: {title}", "/tasks?task={id}", Audience.STAFF),
    (EntityKind.TASK, Action.DELETED): _T(NotificationType.TASK_DELETED, "{actor} deleted task: {title}", "/tasks", Audience.STAFF),

    (EntityKind.MEETING, Action.CREATED): _T(NotificationType.MEETING_CREATED, "{actor} scheduled a new meeting: {title}", "/calendar?event={id}", Audience.STAFF),
    (EntityKind.MEETING, Action.UPDATED): _T(NotificationType.MEETING_UPDATED, "{actor} updated meeting: {title}", "/calendar?event={id}", Audience.STAFF),
    (EntityKind.MEETING, Action.DELETED): _T(NotificationType.MEETING_DELETED, "{actor} cancelled meeting: {title}", "/calendar", Audience.STAFF),

    (EntityKind.BUDGET, Action.CREATED): _T(NotificationType.BUDGET_CREATED, "{actor} added a new budget record: {title}", "/budget?record={id}", Audience.STAFF),
    (EntityKind.BUDGET, Action.UPDATED): _T(NotificationType.BUDGET_UPDATED, "{actor} updated budget record: {title}", "/budget?record={id}", Audience.STAFF),
    (EntityKind.BUDGET, Action.DELETED): _T(NotificationType.BUDGET_DELETED, "{actor} deleted budget record: {title}", "/budget", Audience.STAFF),

    (EntityKind.RISK, Action.CREATED): _T(NotificationType.RISK_CREATED, "{actor} added a new risk: {title}", "/risks?risk={id}", Audience.STAFF),
    (EntityKind.RISK, Action.UPDATED): _T(NotificationType.RISK_UPDATED, "{actor} updated risk: {title}", "/risks?risk={id}", Audience.STAFF),
    (EntityKind.RISK, Action.DELETED): _T(NotificationType.RISK_DELETED, "{actor} deleted risk: {title}", "/risks", Audience.STAFF),

    (EntityKind.REPOSITORY, Action.CREATED): _T(NotificationType.REPOSITORY_CREATED, "{actor} added a new document repository: {title}", "/documents", Audience.STAFF),
    (EntityKind.REPOSITORY, Action.UPDATED): _T(NotificationType.REPOSITORY_UPDATED, "{actor} updated document repository: {title}", "/documents", Audience.STAFF),
    (EntityKind.REPOSITORY, Action.DELETED): _T(NotificationType.REPOSITORY_DELETED, "{actor} deleted document repository: {title}", "/documents", Audience.STAFF),

    (EntityKind.CONTACT, Action.CREATED): _T(NotificationType.CONTACT_CREATED, "{actor} added a new contact: {title}", "/contacts", Audience.STAFF),
    (EntityKind.CONTACT, Action.UPDATED): _T(NotificationType.CONTACT_UPDATED, "{actor} updated contact: {title}", "/contacts", Audience.STAFF),
    (EntityKind.CONTACT, Action.DELETED): _T(NotificationType.CONTACT_DELETED, "{actor} deleted contact: {title}", "/contacts", Audience.STAFF),

    (EntityKind.FORUM_POST, Action.CREATED): _T(NotificationType.POST_CREATED, "{actor} created a new post: {title}", "/forum?post={id}", Audience.NON_VIEWERS),
    (EntityKind.FORUM_POST, Action.UPDATED): _T(NotificationType.POST_EDITED, "{actor} edited a post: {title}", "/forum?post={id}", Audience.STAFF),
    (EntityKind.FORUM_POST, Action.DELETED): _T(NotificationType.FORUM_POST_DELETED, "{actor} deleted forum post: {title}", "/forum", Audience.ADMINS),
    (EntityKind.FORUM_POST, Action.LIKED): _T(NotificationType.POST_LIKED, "{actor} liked your post: {title}", "/forum?post={id}", Audience.STAFF),
    (EntityKind.FORUM_POST, Action.DISLIKED): _T(NotificationType.POST_DISLIKED, "{actor} disliked your post: {title}", "/forum?post={id}", Audience.STAFF),

    (EntityKind.COMMENT, Action.CREATED): _T(
        NotificationType.COMMENT_CREATED, "{actor} commented on a post: {title}", "/forum?post={post_id}", Audience.NON_VIEWERS,
        direct_type=NotificationType.COMMENT_CREATED, direct_text="{actor} commented on your post: {title}"),
    (EntityKind.COMMENT, Action.REPLIED): _T(
        NotificationType.COMMENT_REPLY_CREATED, "{actor} replied to a comment on a post: {title}", "/forum?post={post_id}", Audience.NON_VIEWERS,
        direct_type=NotificationType.COMMENT_REPLY, direct_text="{actor} replied to your comment"),
    (EntityKind.COMMENT, Action.LIKED): _T(
        NotificationType.COMMENT_LIKED, "{actor} liked a comment", "/forum?post={post_id}", Audience.STAFF,
        direct_text="{actor} liked your comment"),
    (EntityKind.COMMENT, Action.DISLIKED): _T(
        NotificationType.COMMENT_DISLIKED, "{actor} disliked a comment", "/forum?post={post_id}", Audience.STAFF,
        direct_text="{actor} disliked your comment"),
}


@dataclass
class DomainEvent:
    """
    Something that happened to an entity and should be announced.

    recipient_id set -> single-recipient notification.
    Otherwise the template's audience is used, minus exclude_user_ids.
    """
    kind: EntityKind
    action: Action
    entity_id: str
    title: str
    actor_id: Optional[str]
    actor_name: str = ""
    recipient_id: Optional[str] = None
    exclude_user_ids: FrozenSet[str] = field(default_factory=frozenset)
    post_id: Optional[str] = None


def supports(kind: EntityKind, action: Action) -> bool:
    return (kind, action) in _TEMPLATES


class NotificationService:
    """
    Writes notification documents for other users.

    Best-effort by contract: failures are logged and swallowed so that the
    mutation that triggered them is never rolled back or blocked.
    """
    def __init__(self, db=None, batch_size: int = 5, batch_delay: float = 0.3,
                 sleep: Callable[[float], None] = time.sleep):
        self.db = db or firestore.client()
        self.notifications_ref = self.db.collection('notifications')
        self.profiles_ref = self.db.collection('profiles')
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self._sleep = sleep

    # --- display names ---

    def get_user_full_name(self, user_id: Optional[str]) -> str:
        if not user_id:
            return "A user"
        try:
            doc = self.profiles_ref.document(user_id).get()
            if not doc.exists:
                return "A user"
            return full_name(doc.to_dict()) or "A user"
        except Exception as e:
            logging.error(f"Profile name lookup failed (user_id: {user_id}): {e}", exc_info=True)
            return "A user"

    def resolve_display_name(self, display_name: Optional[str], user_id: Optional[str]) -> str:
        """Names that are empty or look like an email are replaced with the profile's full name."""
        if not display_name or '@' in display_name:
            return self.get_user_full_name(user_id)
        return display_name

    # --- domain events ---

    def notify(self, event: DomainEvent) -> int:
        """Renders the event and hands it to the matching fan-out policy. Returns rows written."""
        template = _TEMPLATES.get((event.kind, event.action))
        if template is None:
            logging.warning(f"No notification template for {event.kind.value}/{event.action.value}")
            return 0

        try:
            actor_name = self.resolve_display_name(event.actor_name, event.actor_id)
            values = {
                "actor": actor_name,
                "title": event.title,
                "id": event.entity_id,
                "post_id": event.post_id or event.entity_id,
            }
            link = template.link.format(**values)

            if event.recipient_id:
                n_type = template.direct_type or template.type
                content = (template.direct_text or template.text).format(**values)
                written = self.notify_user(event.recipient_id, event.actor_id, n_type, content, link, source_id=event.entity_id)
                return 1 if written else 0

            content = template.text.format(**values)
            excluded = set(event.exclude_user_ids)
            if event.actor_id:
                excluded.add(event.actor_id)

            if template.audience == Audience.NON_VIEWERS:
                return self.broadcast_to_non_viewers(template.type, content, link, excluded, source_id=event.entity_id)
            roles = ADMIN_ROLES if template.audience == Audience.ADMINS else STAFF_ROLES
            return self.broadcast_to_roles(roles, template.type, content, link, excluded, source_id=event.entity_id)
        except Exception as e:
            logging.error(f"Notification fan-out failed ({event.kind.value}/{event.action.value}, id: {event.entity_id}): {e}", exc_info=True)
            return 0

    # --- fan-out policies ---

    def notify_user(self, recipient_id: str, actor_id: Optional[str], n_type: NotificationType,
                    content: str, link: Optional[str] = None, source_id: Optional[str] = None) -> bool:
        """
        Single-recipient policy.
        Skipped when the recipient is the actor or has no profile.
        """
        if not recipient_id or recipient_id == actor_id:
            return False
        try:
            if not self.profiles_ref.document(recipient_id).get().exists:
                logging.warning(f"Notification skipped: recipient profile not found (user_id: {recipient_id})")
                return False

            notification = self._build(recipient_id, n_type, content, link, source_id)
            self.notifications_ref.document(notification['id']).set(notification)
            logging.info(f"{n_type.value} notification created: {actor_id} -> {recipient_id}")
            return True
        except Exception as e:
            logging.error(f"Notification creation failed (recipient: {recipient_id}): {e}", exc_info=True)
            return False

    def broadcast_to_roles(self, roles: Iterable[str], n_type: NotificationType, content: str,
                           link: Optional[str] = None, exclude_user_ids: Iterable[str] = (),
                           source_id: Optional[str] = None) -> int:
        """One notification per user whose role is in `roles`."""
        try:
            excluded = set(exclude_user_ids)
            docs = self.profiles_ref.where('role', 'in', list(roles)).stream()
            recipients = [doc.id for doc in docs if doc.id not in excluded]

            written = 0
            for start in range(0, len(recipients), _MAX_BATCH_WRITES):
                chunk = recipients[start:start + _MAX_BATCH_WRITES]
                written += self._write_batch(chunk, n_type, content, link, source_id)
            logging.info(f"{n_type.value} notifications created for {written} users")
            return written
        except Exception as e:
            logging.error(f"Role broadcast failed ({n_type.value}): {e}", exc_info=True)
            return 0

    def broadcast_to_non_viewers(self, n_type: NotificationType, content: str, link: Optional[str] = None,
                                 exclude_user_ids: Iterable[str] = (), source_id: Optional[str] = None) -> int:
        """
        One notification per non-viewer user, written in groups of batch_size
        with batch_delay seconds between groups to stay under write-rate limits.
        """
        try:
            excluded = set(exclude_user_ids)
            recipients = [
                doc.id for doc in self.profiles_ref.stream()
                if doc.id not in excluded and (doc.to_dict() or {}).get('role') != Role.VIEWER.value
            ]
        except Exception as e:
            logging.error(f"Recipient lookup failed ({n_type.value}): {e}", exc_info=True)
            return 0

        written = 0
        for start in range(0, len(recipients), self.batch_size):
            chunk = recipients[start:start + self.batch_size]
            try:
                written += self._write_batch(chunk, n_type, content, link, source_id)
            except Exception as e:
                logging.error(f"Notification batch failed ({n_type.value}, offset {start}): {e}", exc_info=True)
            if start + self.batch_size < len(recipients) and self.batch_delay > 0:
                self._sleep(self.batch_delay)

        logging.info(f"{n_type.value} notifications created for {written} of {len(recipients)} users")
        return written

    # --- helpers ---

    def _build(self, recipient_id: str, n_type: NotificationType, content: str,
               link: Optional[str], source_id: Optional[str]) -> dict:
        notification = Notification(
            id=str(uuid.uuid4()),
            user_id=recipient_id,
            type=n_type,
            content=content,
            link=link,
            source_id=source_id
        )
        notification_dict = asdict(notification)
        notification_dict['type'] = notification.type.value
        return DateTimeUtils.for_firestore(notification_dict)

    def _write_batch(self, recipient_ids: List[str], n_type: NotificationType, content: str,
                     link: Optional[str], source_id: Optional[str]) -> int:
        if not recipient_ids:
            return 0
        batch = self.db.batch()
        for recipient_id in recipient_ids:
            notification = self._build(recipient_id, n_type, content, link, source_id)
            batch.set(self.notifications_ref.document(notification['id']), notification)
        batch.commit()
        return len(recipient_ids)

