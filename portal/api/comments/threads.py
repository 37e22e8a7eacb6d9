# portal/api/comments/threads.py
"""
Groups a post's flat comment list into one level of threads.

Input is expected oldest first. Parents keep their input order and so do the
replies under each parent.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class CommentThread:
    parent: Dict[str, Any]
    replies: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.parent, 'replies': list(self.replies)}


def is_reply(comment: Dict[str, Any]) -> bool:
    return bool(comment.get('parent_comment_id'))


def thread_comments(comments: List[Dict[str, Any]]) -> List[CommentThread]:
    threads: Dict[str, CommentThread] = {}
    for comment in comments:
        if not is_reply(comment):
            threads[comment['id']] = CommentThread(parent=comment)

    for comment in comments:
        if is_reply(comment):
            thread = threads.get(comment['parent_comment_id'])
            if thread is not None:
                thread.replies.append(comment)

    return list(threads.values())


def find_orphaned_replies(comments: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Replies whose parent is not a top-level comment in the same list."""
    top_level_ids = {c['id'] for c in comments if not is_reply(c)}
    return [c for c in comments if is_reply(c) and c['parent_comment_id'] not in top_level_ids]
