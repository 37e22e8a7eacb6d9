# portal/models/comment.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Any, Optional

from portal.utils.datetime_utils import DateTimeUtils


@dataclass
class ForumComment:
    """
    Document structure of the Firestore 'forum_comments' collection.
    A comment without parent_comment_id is top-level.
    """
    id: str
    post_id: str
    content: str
    author_id: str
    parent_comment_id: Optional[str] = None
    likes: List[Dict[str, Any]] = field(default_factory=list)
    is_edited: bool = False
    created_at: datetime = field(default_factory=DateTimeUtils.now)
    updated_at: datetime = field(default_factory=DateTimeUtils.now)
