# portal/models/notification.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from portal.utils.datetime_utils import DateTimeUtils


class NotificationType(Enum):
    """String tags stored in the notification `type` field."""
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_COMPLETED = "task_completed"
    TASK_DELETED = "task_deleted"

    MEETING_CREATED = "meeting_created"
    MEETING_UPDATED = "meeting_updated"
    MEETING_DELETED = "meeting_deleted"

    BUDGET_CREATED = "budget_created"
    BUDGET_UPDATED = "budget_updated"
    BUDGET_DELETED = "budget_deleted"

    RISK_CREATED = "risk_created"
    RISK_UPDATED = "risk_updated"
    RISK_DELETED = "risk_deleted"

    REPOSITORY_CREATED = "repository_created"
    REPOSITORY_UPDATED = "repository_updated"
    REPOSITORY_DELETED = "repository_deleted"

    CONTACT_CREATED = "contact_created"
    CONTACT_UPDATED = "contact_updated"
    CONTACT_DELETED = "contact_deleted"

    POST_CREATED = "post_created"
    POST_EDITED = "post_edited"
    POST_LIKED = "post_liked"
    POST_DISLIKED = "post_disliked"
    FORUM_POST_DELETED = "forum_post_deleted"

    COMMENT_CREATED = "comment_created"
    COMMENT_REPLY = "comment_reply"
    COMMENT_REPLY_CREATED = "comment_reply_created"
    COMMENT_LIKED = "comment_liked"
    COMMENT_DISLIKED = "comment_disliked"


class EntityKind(Enum):
    """What a domain event is about."""
    TASK = "task"
    MEETING = "meeting"
    BUDGET = "budget"
    RISK = "risk"
    CONTACT = "contact"
    REPOSITORY = "repository"
    FORUM_POST = "forum_post"
    COMMENT = "comment"


class Action(Enum):
    CREATED = "created"
    UPDATED = "updated"
    COMPLETED = "completed"
    DELETED = "deleted"
    LIKED = "liked"
    DISLIKED = "disliked"
    REPLIED = "replied"


@dataclass
class Notification:
    """
    Document structure of the Firestore 'notifications' collection.
    Only is_read/read_at change after creation.
    """
    id: str
    user_id: str           # recipient
    type: NotificationType
    content: str           # pre-rendered text
    link: Optional[str] = None
    source_id: Optional[str] = None
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=DateTimeUtils.now)
