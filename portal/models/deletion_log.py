# portal/models/deletion_log.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any

from portal.utils.datetime_utils import DateTimeUtils


@dataclass
class DeletionLog:
    """
    Append-only audit entry in the Firestore 'deletion_logs' collection.
    `details` is the full snapshot of the record as it was before deletion.
    """
    id: str
    table_name: str
    record_id: str
    deleted_by: str
    deleted_by_name: str
    details: Dict[str, Any]
    created_at: datetime = field(default_factory=DateTimeUtils.now)
