# portal/api/notifications/services.py
import logging
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List

from firebase_admin import firestore

from portal.utils.datetime_utils import DateTimeUtils


def is_visible(notification: Dict[str, Any], now: datetime, retention: timedelta) -> bool:
    """Unread notifications always show; read ones hide once `retention` has passed since reading."""
    if not notification.get('is_read'):
        return True
    read_at = notification.get('read_at') or notification.get('created_at')
    if read_at is None:
        return False
    return now - read_at < retention


class InboxService:
    """The signed-in user's view of the 'notifications' collection."""

    def __init__(self, db=None, retention_hours: int = 24):
        self.db = db or firestore.client()
        self.notifications_ref = self.db.collection('notifications')
        self.retention = timedelta(hours=retention_hours)

    def list_for_user(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or DateTimeUtils.now()
        docs = (self.notifications_ref
                .where('user_id', '==', user_id)
                .order_by('created_at', direction=firestore.Query.DESCENDING)
                .stream())
        rows = [DateTimeUtils.from_firestore(doc.to_dict()) for doc in docs]
        visible = [n for n in rows if is_visible(n, now, self.retention)]
        return {
            'notifications': visible,
            'unread_count': sum(1 for n in visible if not n.get('is_read')),
        }

    def mark_read(self, user_id: str, notification_id: str) -> Dict[str, Any]:
        """
        Raises:
            ValueError: no such notification
            PermissionError: the notification belongs to someone else
        """
        ref = self.notifications_ref.document(notification_id)
        doc = ref.get()
        if not doc.exists:
            raise ValueError("Notification not found.")
        notification = DateTimeUtils.from_firestore(doc.to_dict())
        if notification.get('user_id') != user_id:
            raise PermissionError("This notification belongs to another user.")

        if not notification.get('is_read'):
            update_data = {'is_read': True, 'read_at': DateTimeUtils.now()}
            ref.update(update_data)
            notification.update(update_data)
        return notification

    def mark_all_read(self, user_id: str) -> int:
        docs = list(self.notifications_ref
                    .where('user_id', '==', user_id)
                    .where('is_read', '==', False)
                    .stream())
        if not docs:
            return 0

        read_at = DateTimeUtils.now()
        for i in range(0, len(docs), 500):
            batch = self.db.batch()
            for doc in docs[i:i + 500]:
                batch.update(doc.reference, {'is_read': True, 'read_at': read_at})
            batch.commit()
        logging.info(f"{len(docs)} notifications marked read for {user_id}")
        return len(docs)
