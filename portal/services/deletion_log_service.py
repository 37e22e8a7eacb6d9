# portal/services/deletion_log_service.py
import logging
import uuid
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from firebase_admin import firestore

from portal.core.security import Actor
from portal.models.deletion_log import DeletionLog
from portal.utils.datetime_utils import DateTimeUtils


class DeletionLogService:
    """Append-only audit trail of deleted records ('deletion_logs')."""

    def __init__(self, db=None):
        self.db = db or firestore.client()
        self.logs_ref = self.db.collection('deletion_logs')

    def build(self, table_name: str, record_id: str, actor: Actor, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        log = DeletionLog(
            id=str(uuid.uuid4()),
            table_name=table_name,
            record_id=record_id,
            deleted_by=actor.user_id,
            deleted_by_name=actor.display_name or actor.email or actor.user_id,
            details=snapshot or {}
        )
        return DateTimeUtils.for_firestore(asdict(log))

    def record(self, table_name: str, record_id: str, actor: Actor, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        """Writes one log entry. Raises on failure so the delete is not carried out unaudited."""
        log_data = self.build(table_name, record_id, actor, snapshot)
        try:
            self.logs_ref.document(log_data['id']).set(log_data)
        except Exception as e:
            logging.error(f"Deletion log write failed ({table_name}: {record_id}): {e}", exc_info=True)
            raise
        logging.info(f"Deletion logged: {table_name}/{record_id} by {actor.user_id}")
        return log_data

    def list_logs(self, table_name: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        query = self.logs_ref
        if table_name:
            query = query.where('table_name', '==', table_name)
        docs = query.order_by('created_at', direction=firestore.Query.DESCENDING).limit(limit).stream()
        return [DateTimeUtils.from_firestore(doc.to_dict()) for doc in docs]
