# portal/models/reaction.py
"""
Like/dislike entries stored on forum posts and comments.

Older rows store `likes` as a JSON string with camelCase keys
({"userId", "isLike", "userName"}); newer rows store a native list of
{"user_id", "is_like", "display_name"} maps. ReactionSet.from_storage reads
both and to_storage always writes the list form.
"""

import json
import logging
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class ReactionOutcome(Enum):
    ADDED = "added"
    SWITCHED = "switched"
    REMOVED = "removed"


@dataclass
class Reaction:
    user_id: str
    is_like: bool
    display_name: str = ""


class ReactionSet:
    """At most one reaction per user, kept in insertion order."""

    def __init__(self, reactions: Optional[List[Reaction]] = None):
        self._reactions: List[Reaction] = []
        for reaction in reactions or []:
            if self._index_of(reaction.user_id) is None:
                self._reactions.append(reaction)

    @classmethod
    def from_storage(cls, value: Any) -> "ReactionSet":
        if not value:
            return cls()
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                logger.warning(f"Unreadable reaction payload ignored: {value[:80]}")
                return cls()
        if not isinstance(value, list):
            return cls()

        reactions = []
        for entry in value:
            if not isinstance(entry, dict):
                continue
            user_id = entry.get('user_id', entry.get('userId'))
            is_like = entry.get('is_like', entry.get('isLike'))
            if not user_id or not isinstance(is_like, bool):
                continue
            display_name = entry.get('display_name', entry.get('userName')) or ""
            reactions.append(Reaction(user_id=str(user_id), is_like=is_like, display_name=display_name))
        return cls(reactions)

    def to_storage(self) -> List[Dict[str, Any]]:
        return [asdict(r) for r in self._reactions]

    def _index_of(self, user_id: str) -> Optional[int]:
        for i, reaction in enumerate(self._reactions):
            if reaction.user_id == user_id:
                return i
        return None

    def apply(self, user_id: str, is_like: bool, display_name: str = "") -> ReactionOutcome:
        """
        Toggle a reaction:
        - same reaction again removes it
        - the opposite reaction replaces it in place
        - otherwise it is appended
        """
        index = self._index_of(user_id)
        if index is not None:
            if self._reactions[index].is_like == is_like:
                del self._reactions[index]
                return ReactionOutcome.REMOVED
            self._reactions[index] = Reaction(user_id=user_id, is_like=is_like, display_name=display_name)
            return ReactionOutcome.SWITCHED

        self._reactions.append(Reaction(user_id=user_id, is_like=is_like, display_name=display_name))
        return ReactionOutcome.ADDED

    def count(self, is_like: bool) -> int:
        return sum(1 for r in self._reactions if r.is_like == is_like)

    def score(self) -> int:
        """likes minus dislikes"""
        return self.count(True) - self.count(False)

    def status_for(self, user_id: Optional[str]) -> Optional[str]:
        """'like', 'dislike' or None."""
        if not user_id:
            return None
        index = self._index_of(user_id)
        if index is None:
            return None
        return "like" if self._reactions[index].is_like else "dislike"

    def display_names(self, is_like: bool) -> List[str]:
        return [r.display_name or "Anonymous" for r in self._reactions if r.is_like == is_like]

    def __len__(self) -> int:
        return len(self._reactions)

    def __iter__(self):
        return iter(list(self._reactions))
