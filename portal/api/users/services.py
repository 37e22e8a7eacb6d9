# portal/api/users/services.py
import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from firebase_admin import firestore

from portal.core.permissions import is_admin, is_super_admin
from portal.core.security import Actor
from portal.models.profile import Profile, Role
from portal.utils.datetime_utils import DateTimeUtils


class UserService:
    """Reads and maintains the 'profiles' collection (document id = Firebase uid)."""

    def __init__(self, db=None):
        self.db = db or firestore.client()
        self.profiles_ref = self.db.collection('profiles')

    def get_profile(self, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not user_id:
            return None
        doc = self.profiles_ref.document(user_id).get()
        if not doc.exists:
            return None
        profile = DateTimeUtils.from_firestore(doc.to_dict())
        profile.setdefault('id', doc.id)
        return profile

    def get_or_create_profile(self, user_id: str, email: Optional[str], display_name: Optional[str] = None) -> Dict[str, Any]:
        """New accounts start as viewers. The Firebase display name is split into first/last name."""
        profile = self.get_profile(user_id)
        if profile:
            return profile

        first_name, _, last_name = (display_name or "").strip().partition(" ")
        new_profile = Profile(
            id=user_id,
            email=email or "",
            first_name=first_name or None,
            last_name=last_name.strip() or None,
            role=Role.VIEWER.value
        )
        profile_data = DateTimeUtils.for_firestore(asdict(new_profile))
        self.profiles_ref.document(user_id).set(profile_data)
        logging.info(f"Profile created for new user (user_id: {user_id})")
        return asdict(new_profile)

    def list_profiles(self) -> List[Dict[str, Any]]:
        profiles = []
        for doc in self.profiles_ref.stream():
            profile = DateTimeUtils.from_firestore(doc.to_dict())
            profile.setdefault('id', doc.id)
            profiles.append(profile)
        return sorted(profiles, key=lambda p: (p.get('first_name') or '').lower())

    def update_role(self, actor: Actor, user_id: str, role: str) -> Dict[str, Any]:
        """
        Admins manage roles; granting or revoking superadmin needs a superadmin.

        Raises:
            PermissionError: the actor may not make this change
            ValueError: the user does not exist
        """
        if not is_admin(actor.role):
            raise PermissionError("Only administrators can change roles.")

        profile = self.get_profile(user_id)
        if not profile:
            raise ValueError("User not found.")

        touches_superadmin = Role.SUPERADMIN.value in (role, profile.get('role'))
        if touches_superadmin and not is_super_admin(actor.role):
            raise PermissionError("Only a super administrator can grant or revoke the superadmin role.")

        self.profiles_ref.document(user_id).update({'role': role})
        logging.info(f"Role changed: {user_id} {profile.get('role')} -> {role} (by {actor.user_id})")
        profile['role'] = role
        return profile
