# portal/models/profile.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from portal.utils.datetime_utils import DateTimeUtils


class Role(Enum):
    """Portal roles, lowest to highest privilege."""
    VIEWER = "viewer"
    SPECIAL = "special"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


@dataclass
class Profile:
    """
    Document structure of the Firestore 'profiles' collection.
    The document id is the Firebase Auth uid.
    """
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str = Role.VIEWER.value
    created_at: datetime = field(default_factory=DateTimeUtils.now)


def full_name(profile: Optional[dict]) -> str:
    """"First Last" for a profile document, or an empty string."""
    if not profile:
        return ""
    return f"{profile.get('first_name') or ''} {profile.get('last_name') or ''}".strip()
