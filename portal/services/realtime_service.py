# portal/services/realtime_service.py
"""
In-memory forum view kept current by Firestore snapshot listeners.

Every change event patches only the affected post or comment. The first
snapshot delivered by a listener arrives as a set of ADDED changes, so the
initial load goes through the same path.
"""

import logging
import threading
from collections import Counter
from typing import Any, Dict, List, Optional

from firebase_admin import firestore

from portal.utils.datetime_utils import DateTimeUtils


class ForumRealtimeView:
    def __init__(self, db=None):
        self.db = db or firestore.client()
        self._posts: Dict[str, Dict[str, Any]] = {}
        self._comments: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._watches = []

    @property
    def running(self) -> bool:
        return bool(self._watches)

    def start(self):
        if self.running:
            return
        self._watches = [
            self.db.collection('forum_posts').on_snapshot(self._on_posts),
            self.db.collection('forum_comments').on_snapshot(self._on_comments),
        ]
        logging.info("Forum realtime listeners started")

    def stop(self):
        for watch in self._watches:
            try:
                watch.unsubscribe()
            except Exception as e:
                logging.warning(f"Failed to unsubscribe forum listener: {e}")
        self._watches = []
        with self._lock:
            self._posts.clear()
            self._comments.clear()
        logging.info("Forum realtime listeners stopped")

    # --- listener callbacks ---

    def _on_posts(self, docs, changes, read_time):
        self._apply(self._posts, changes)

    def _on_comments(self, docs, changes, read_time):
        self._apply(self._comments, changes)

    def _apply(self, target: Dict[str, Dict[str, Any]], changes):
        with self._lock:
            for change in changes:
                doc = change.document
                kind = change.type.name
                if kind == 'REMOVED':
                    target.pop(doc.id, None)
                elif kind in ('ADDED', 'MODIFIED'):
                    data = DateTimeUtils.from_firestore(doc.to_dict() or {})
                    data.setdefault('id', doc.id)
                    target[doc.id] = data
                else:
                    logging.warning(f"Unknown change type ignored: {kind}")

    # --- reads ---

    def posts(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(p) for p in self._posts.values()]

    def get_post(self, post_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            post = self._posts.get(post_id)
            return dict(post) if post else None

    def comments_for(self, post_id: str) -> List[Dict[str, Any]]:
        """Comments of one post, oldest first."""
        with self._lock:
            comments = [dict(c) for c in self._comments.values() if c.get('post_id') == post_id]
        return sorted(comments, key=lambda c: c.get('created_at') or DateTimeUtils.now())

    def comment_counts(self) -> Counter:
        with self._lock:
            return Counter(c.get('post_id') for c in self._comments.values())
