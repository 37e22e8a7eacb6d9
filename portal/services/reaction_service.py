# portal/services/reaction_service.py
import logging
from typing import Optional, Tuple

from firebase_admin import firestore
from google.api_core.exceptions import Aborted

from portal.core.security import Actor
from portal.models.notification import Action, EntityKind
from portal.models.reaction import ReactionOutcome, ReactionSet
from portal.services.notification_service import DomainEvent, NotificationService


class ReactionConflictError(Exception):
    """The reaction transaction could not commit within its retry budget."""


# Collection that stores the `likes` list for each reactable kind.
REACTION_COLLECTIONS = {
    EntityKind.FORUM_POST: 'forum_posts',
    EntityKind.COMMENT: 'forum_comments',
}


class ReactionService:
    """
    Like/dislike toggling for forum posts and comments.

    Each reaction is a read-modify-write of the item's `likes` list inside a
    Firestore transaction, which is retried when another write contends for
    the same item.
    """
    def __init__(self, notification_service: NotificationService, db=None):
        self.db = db or firestore.client()
        self.notification_service = notification_service

    def _collection(self, kind: EntityKind):
        if kind not in REACTION_COLLECTIONS:
            raise ValueError(f"{kind.value} items cannot be reacted to.")
        return self.db.collection(REACTION_COLLECTIONS[kind])

    def get_reactions(self, kind: EntityKind, item_id: str) -> ReactionSet:
        doc = self._collection(kind).document(item_id).get()
        if not doc.exists:
            raise ValueError("The item was not found.")
        return ReactionSet.from_storage(doc.to_dict().get('likes'))

    def react(self, kind: EntityKind, item_id: str, actor: Actor, is_like: bool) -> Tuple[ReactionOutcome, ReactionSet]:
        item_ref = self._collection(kind).document(item_id)

        @firestore.transactional
        def _react_in_transaction(transaction, item_ref):
            # Authoritative read; never trust the client's copy of the list.
            snapshot = item_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise ValueError("The item was not found.")
            item = snapshot.to_dict()

            reactions = ReactionSet.from_storage(item.get('likes'))
            outcome = reactions.apply(actor.user_id, is_like, actor.display_name)
            transaction.update(item_ref, {'likes': reactions.to_storage()})
            return outcome, item, reactions

        try:
            transaction = self.db.transaction()
            outcome, item, reactions = _react_in_transaction(transaction, item_ref)
        except ValueError as e:
            if isinstance(e.__cause__, Aborted):
                logging.warning(f"Reaction transaction kept aborting ({kind.value}: {item_id}, user: {actor.user_id}): {e}")
                raise ReactionConflictError("The item is being changed by others. Try again.") from e
            raise

        logging.info(f"Reaction {outcome.value} on {kind.value} {item_id} by {actor.user_id}")

        if outcome in (ReactionOutcome.ADDED, ReactionOutcome.SWITCHED):
            self._notify_author(kind, item_id, item, actor, is_like)

        return outcome, reactions

    def _notify_author(self, kind: EntityKind, item_id: str, item: dict, actor: Actor, is_like: bool) -> None:
        author_id = item.get('author_id')
        if not author_id or author_id == actor.user_id:
            return

        post_id: Optional[str] = item.get('post_id') if kind == EntityKind.COMMENT else item_id
        title = item.get('title', '')
        if kind == EntityKind.COMMENT:
            title = (item.get('content') or '')[:50]

        self.notification_service.notify(DomainEvent(
            kind=kind,
            action=Action.LIKED if is_like else Action.DISLIKED,
            entity_id=item_id,
            title=title,
            actor_id=actor.user_id,
            actor_name=actor.display_name,
            recipient_id=author_id,
            post_id=post_id,
        ))

