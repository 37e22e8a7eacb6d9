# portal/models/post.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Any

from portal.utils.datetime_utils import DateTimeUtils


@dataclass
class ForumPost:
    """
    Document structure of the Firestore 'forum_posts' collection.
    `likes` holds the canonical reaction list (see models.reaction).
    """
    id: str
    title: str
    content: str
    author_id: str
    likes: List[Dict[str, Any]] = field(default_factory=list)
    is_edited: bool = False
    created_at: datetime = field(default_factory=DateTimeUtils.now)
    updated_at: datetime = field(default_factory=DateTimeUtils.now)
