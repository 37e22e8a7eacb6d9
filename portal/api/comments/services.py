# portal/api/comments/services.py

import logging
import uuid
from dataclasses import asdict
from typing import Optional, Dict, Any, List, Tuple

from firebase_admin import firestore

from portal.api.comments.threads import thread_comments, find_orphaned_replies
from portal.api.posts.services import reaction_summary
from portal.core.security import Actor
from portal.models.comment import ForumComment
from portal.models.notification import Action, EntityKind
from portal.models.profile import full_name
from portal.models.reaction import ReactionOutcome, ReactionSet
from portal.services.deletion_log_service import DeletionLogService
from portal.services.notification_service import DomainEvent, NotificationService
from portal.services.reaction_service import ReactionService
from portal.services.realtime_service import ForumRealtimeView
from portal.utils.datetime_utils import DateTimeUtils


class CommentService:
    """
    Forum comments ('forum_comments').

    Threads are one level deep: a reply to a reply is stored against the
    top-level comment of that thread.
    """
    def __init__(self, notification_service: NotificationService, deletion_log_service: DeletionLogService,
                 reaction_service: ReactionService, realtime_view: Optional[ForumRealtimeView] = None, db=None):
        self.db = db or firestore.client()
        self.comments_ref = self.db.collection('forum_comments')
        self.posts_ref = self.db.collection('forum_posts')
        self.profiles_ref = self.db.collection('profiles')
        self.notification_service = notification_service
        self.deletion_log_service = deletion_log_service
        self.reaction_service = reaction_service
        self.realtime_view = realtime_view

    def _load_post(self, post_id: str) -> Dict[str, Any]:
        doc = self.posts_ref.document(post_id).get()
        if not doc.exists:
            raise ValueError("Post not found.")
        post = doc.to_dict()
        post.setdefault('id', doc.id)
        return post

    def _load_comment(self, comment_id: str) -> Dict[str, Any]:
        doc = self.comments_ref.document(comment_id).get()
        if not doc.exists:
            raise ValueError("Comment not found.")
        comment = DateTimeUtils.from_firestore(doc.to_dict())
        comment.setdefault('id', doc.id)
        return comment

    def _fetch_for_post(self, post_id: str) -> List[Dict[str, Any]]:
        if self.realtime_view is not None and self.realtime_view.running:
            return self.realtime_view.comments_for(post_id)

        comments = []
        for doc in self.comments_ref.where('post_id', '==', post_id).order_by('created_at').stream():
            comment = DateTimeUtils.from_firestore(doc.to_dict())
            comment.setdefault('id', doc.id)
            comments.append(comment)
        return comments

    def _decorate(self, comments: List[Dict[str, Any]], user_id: Optional[str]) -> List[Dict[str, Any]]:
        names = {}
        for author_id in {c.get('author_id') for c in comments if c.get('author_id')}:
            doc = self.profiles_ref.document(author_id).get()
            names[author_id] = (full_name(doc.to_dict()) if doc.exists else "") or "Unknown user"
        for comment in comments:
            comment.update(reaction_summary(ReactionSet.from_storage(comment.get('likes')), user_id))
            comment['author_name'] = names.get(comment.get('author_id'), "Unknown user")
        return comments

    # --- reads ---

    def get_threads(self, post_id: str, actor: Actor) -> List[Dict[str, Any]]:
        """Top-level comments oldest first, each with its replies."""
        self._load_post(post_id)
        comments = self._decorate(self._fetch_for_post(post_id), actor.user_id)

        orphans = find_orphaned_replies(comments)
        if orphans:
            logging.warning(f"{len(orphans)} orphaned replies hidden on post {post_id}")

        return [thread.to_dict() for thread in thread_comments(comments)]

    # --- writes ---

    def add_comment(self, post_id: str, actor: Actor, content: str,
                    parent_comment_id: Optional[str] = None) -> Dict[str, Any]:
        post = self._load_post(post_id)

        replied_to = None
        thread_parent_id = None
        if parent_comment_id:
            replied_to = self._load_comment(parent_comment_id)
            if replied_to.get('post_id') != post_id:
                raise ValueError("The parent comment belongs to a different post.")
            # Keep threads one level deep: a reply to a reply is stored under the top-level comment.
            thread_parent_id = replied_to.get('parent_comment_id') or replied_to['id']

        comment_id = str(uuid.uuid4())
        new_comment = ForumComment(
            id=comment_id,
            post_id=post_id,
            content=content,
            author_id=actor.user_id,
            parent_comment_id=thread_parent_id
        )
        try:
            self.comments_ref.document(comment_id).set(DateTimeUtils.for_firestore(asdict(new_comment)))
        except Exception as e:
            logging.error(f"Comment creation failed (post_id: {post_id}): {e}", exc_info=True)
            raise

        self._notify_new_comment(post, replied_to, comment_id, actor)
        return self._decorate([asdict(new_comment)], actor.user_id)[0]

    def _notify_new_comment(self, post: Dict[str, Any], replied_to: Optional[Dict[str, Any]],
                            comment_id: str, actor: Actor) -> None:
        """
        `replied_to` is the comment the user answered, which for a reply to a
        reply is not the thread parent the new comment is stored under.
        """
        post_author_id = post.get('author_id')
        parent_author_id = replied_to.get('author_id') if replied_to else None
        action = Action.REPLIED if replied_to else Action.CREATED
        title = post.get('title', '')

        def event(event_action, **kwargs):
            return DomainEvent(
                kind=EntityKind.COMMENT,
                action=event_action,
                entity_id=comment_id,
                title=title,
                actor_id=actor.user_id,
                actor_name=actor.display_name,
                post_id=post['id'],
                **kwargs
            )

        if parent_author_id:
            self.notification_service.notify(event(Action.REPLIED, recipient_id=parent_author_id))
        # The post author is told once even when they also wrote the parent comment.
        if post_author_id and post_author_id != parent_author_id:
            self.notification_service.notify(event(Action.CREATED, recipient_id=post_author_id))

        excluded = frozenset(uid for uid in (actor.user_id, post_author_id, parent_author_id) if uid)
        self.notification_service.notify(event(action, exclude_user_ids=excluded))

    def update_comment(self, comment_id: str, actor: Actor, content: str) -> Dict[str, Any]:
        comment = self._load_comment(comment_id)
        if comment.get('author_id') != actor.user_id:
            raise PermissionError("Only the author can edit this comment.")

        update_data = {'content': content, 'is_edited': True, 'updated_at': DateTimeUtils.now()}
        self.comments_ref.document(comment_id).update(update_data)
        comment.update(update_data)
        return self._decorate([comment], actor.user_id)[0]

    def delete_comment(self, comment_id: str, actor: Actor) -> int:
        """
        Deletes the comment, and its replies when it is top-level, logging each
        removed record. Returns the number of records removed.
        """
        comment = self._load_comment(comment_id)
        if comment.get('author_id') != actor.user_id:
            raise PermissionError("Only the author can delete this comment.")

        records: List[Tuple[Any, Dict[str, Any]]] = []
        if not comment.get('parent_comment_id'):
            for doc in self.comments_ref.where('parent_comment_id', '==', comment_id).stream():
                records.append((doc.reference, doc.to_dict()))
        records.append((self.comments_ref.document(comment_id), comment))

        try:
            batch = self.db.batch()
            for ref, snapshot in records:
                log_data = self.deletion_log_service.build('forum_comments', ref.id, actor, snapshot)
                batch.set(self.deletion_log_service.logs_ref.document(log_data['id']), log_data)
                batch.delete(ref)
            batch.commit()
        except Exception as e:
            logging.error(f"Comment deletion failed (comment_id: {comment_id}): {e}", exc_info=True)
            raise

        logging.info(f"Comment {comment_id} deleted with {len(records) - 1} replies by {actor.user_id}")
        return len(records)

    def react(self, comment_id: str, actor: Actor, is_like: bool) -> Tuple[ReactionOutcome, Dict[str, Any]]:
        outcome, reactions = self.reaction_service.react(EntityKind.COMMENT, comment_id, actor, is_like)
        return outcome, reaction_summary(reactions, actor.user_id)
