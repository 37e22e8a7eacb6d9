# portal/api/posts/services.py
import logging
import uuid
from collections import Counter
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List, Tuple

from firebase_admin import firestore

from portal.core.security import Actor
from portal.models.notification import Action, EntityKind
from portal.models.post import ForumPost
from portal.models.profile import full_name
from portal.models.reaction import ReactionOutcome, ReactionSet
from portal.services.deletion_log_service import DeletionLogService
from portal.services.notification_service import DomainEvent, NotificationService
from portal.services.reaction_service import ReactionService
from portal.services.realtime_service import ForumRealtimeView
from portal.utils.datetime_utils import DateTimeUtils

SORT_RECENT = 'recent'
SORT_POPULAR = 'popular'

# Firestore 'in' filters accept at most 30 values.
_IN_QUERY_LIMIT = 30
_MAX_BATCH_WRITES = 500

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _created_at(item: Dict[str, Any]) -> datetime:
    return item.get('created_at') or _EPOCH


def sort_posts(posts: List[Dict[str, Any]], sort: str = SORT_RECENT) -> List[Dict[str, Any]]:
    """
    recent: newest first.
    popular: likes minus dislikes, highest first; ties newest first.
    """
    if sort == SORT_POPULAR:
        return sorted(
            posts,
            key=lambda p: (ReactionSet.from_storage(p.get('likes')).score(), _created_at(p)),
            reverse=True
        )
    return sorted(posts, key=_created_at, reverse=True)


def reaction_summary(reactions: ReactionSet, user_id: Optional[str]) -> Dict[str, Any]:
    return {
        'like_count': reactions.count(True),
        'dislike_count': reactions.count(False),
        'score': reactions.score(),
        'my_reaction': reactions.status_for(user_id),
        'liked_by': reactions.display_names(True),
        'disliked_by': reactions.display_names(False),
    }


class PostService:
    """
    Forum post lifecycle ('forum_posts').
    Comments of a post live in 'forum_comments' and are removed with it.
    """
    def __init__(self, notification_service: NotificationService, deletion_log_service: DeletionLogService,
                 reaction_service: ReactionService, realtime_view: Optional[ForumRealtimeView] = None, db=None):
        self.db = db or firestore.client()
        self.posts_ref = self.db.collection('forum_posts')
        self.comments_ref = self.db.collection('forum_comments')
        self.profiles_ref = self.db.collection('profiles')
        self.notification_service = notification_service
        self.deletion_log_service = deletion_log_service
        self.reaction_service = reaction_service
        self.realtime_view = realtime_view

    # --- reads ---

    def _use_realtime(self) -> bool:
        return self.realtime_view is not None and self.realtime_view.running

    def _load_post(self, post_id: str) -> Dict[str, Any]:
        doc = self.posts_ref.document(post_id).get()
        if not doc.exists:
            raise ValueError("Post not found.")
        post = DateTimeUtils.from_firestore(doc.to_dict())
        post.setdefault('id', doc.id)
        return post

    def _author_names(self, author_ids) -> Dict[str, str]:
        names = {}
        for author_id in set(author_ids):
            doc = self.profiles_ref.document(author_id).get()
            names[author_id] = (full_name(doc.to_dict()) if doc.exists else "") or "Unknown user"
        return names

    def _comment_counts(self, post_ids: List[str]) -> Counter:
        if self._use_realtime():
            return self.realtime_view.comment_counts()

        counts = Counter()
        for i in range(0, len(post_ids), _IN_QUERY_LIMIT):
            chunk_ids = post_ids[i:i + _IN_QUERY_LIMIT]
            for doc in self.comments_ref.where('post_id', 'in', chunk_ids).stream():
                counts[doc.to_dict().get('post_id')] += 1
        return counts

    def _decorate(self, posts: List[Dict[str, Any]], user_id: Optional[str]) -> List[Dict[str, Any]]:
        names = self._author_names(p.get('author_id') for p in posts if p.get('author_id'))
        counts = self._comment_counts([p['id'] for p in posts])
        for post in posts:
            post.update(reaction_summary(ReactionSet.from_storage(post.get('likes')), user_id))
            post['author_name'] = names.get(post.get('author_id'), "Unknown user")
            post['comment_count'] = counts.get(post['id'], 0)
        return posts

    def list_posts(self, actor: Actor, sort: str = SORT_RECENT) -> List[Dict[str, Any]]:
        if self._use_realtime():
            posts = self.realtime_view.posts()
        else:
            posts = []
            for doc in self.posts_ref.order_by('created_at', direction=firestore.Query.DESCENDING).stream():
                post = DateTimeUtils.from_firestore(doc.to_dict())
                post.setdefault('id', doc.id)
                posts.append(post)
        return self._decorate(sort_posts(posts, sort), actor.user_id)

    def get_post(self, post_id: str, actor: Actor) -> Dict[str, Any]:
        post = self.realtime_view.get_post(post_id) if self._use_realtime() else None
        if post is None:
            post = self._load_post(post_id)
        return self._decorate([post], actor.user_id)[0]

    # --- writes ---

    def create_post(self, actor: Actor, title: str, content: str) -> Dict[str, Any]:
        post_id = str(uuid.uuid4())
        new_post = ForumPost(id=post_id, title=title, content=content, author_id=actor.user_id)
        post_data = DateTimeUtils.for_firestore(asdict(new_post))
        try:
            self.posts_ref.document(post_id).set(post_data)
        except Exception as e:
            logging.error(f"Post creation failed (user_id: {actor.user_id}): {e}", exc_info=True)
            raise

        self.notification_service.notify(DomainEvent(
            kind=EntityKind.FORUM_POST,
            action=Action.CREATED,
            entity_id=post_id,
            title=title,
            actor_id=actor.user_id,
            actor_name=actor.display_name,
        ))
        return self._decorate([asdict(new_post)], actor.user_id)[0]

    def update_post(self, post_id: str, actor: Actor, title: str, content: str) -> Dict[str, Any]:
        post = self._load_post(post_id)
        if post.get('author_id') != actor.user_id:
            raise PermissionError("Only the author can edit this post.")

        update_data = {
            'title': title,
            'content': content,
            'is_edited': True,
            'updated_at': DateTimeUtils.now(),
        }
        self.posts_ref.document(post_id).update(update_data)
        post.update(update_data)

        self.notification_service.notify(DomainEvent(
            kind=EntityKind.FORUM_POST,
            action=Action.UPDATED,
            entity_id=post_id,
            title=title,
            actor_id=actor.user_id,
            actor_name=actor.display_name,
        ))
        return self._decorate([post], actor.user_id)[0]

    def delete_post(self, post_id: str, actor: Actor) -> int:
        """
        Deletes the post and all of its comments, writing a deletion log for each
        removed record in the same write batches. Returns the number of comments removed.
        """
        post = self._load_post(post_id)
        if post.get('author_id') != actor.user_id:
            raise PermissionError("Only the author can delete this post.")

        comment_docs = list(self.comments_ref.where('post_id', '==', post_id).stream())

        writes: List[Tuple[str, Any, Dict[str, Any]]] = []
        for doc in comment_docs:
            writes.append(('forum_comments', doc.reference, doc.to_dict()))
        writes.append(('forum_posts', self.posts_ref.document(post_id), post))

        # Each record needs two writes: its log and its delete.
        per_batch = _MAX_BATCH_WRITES // 2
        try:
            for i in range(0, len(writes), per_batch):
                batch = self.db.batch()
                for table_name, ref, snapshot in writes[i:i + per_batch]:
                    log_data = self.deletion_log_service.build(table_name, ref.id, actor, snapshot)
                    batch.set(self.deletion_log_service.logs_ref.document(log_data['id']), log_data)
                    batch.delete(ref)
                batch.commit()
        except Exception as e:
            logging.error(f"Post deletion failed (post_id: {post_id}): {e}", exc_info=True)
            raise

        logging.info(f"Post {post_id} deleted with {len(comment_docs)} comments by {actor.user_id}")

        self.notification_service.notify(DomainEvent(
            kind=EntityKind.FORUM_POST,
            action=Action.DELETED,
            entity_id=post_id,
            title=post.get('title', ''),
            actor_id=actor.user_id,
            actor_name=actor.display_name,
        ))
        return len(comment_docs)

    # --- reactions ---

    def react(self, post_id: str, actor: Actor, is_like: bool) -> Tuple[ReactionOutcome, Dict[str, Any]]:
        outcome, reactions = self.reaction_service.react(EntityKind.FORUM_POST, post_id, actor, is_like)
        return outcome, reaction_summary(reactions, actor.user_id)

    def get_reactions(self, post_id: str, actor: Actor) -> Dict[str, Any]:
        reactions = self.reaction_service.get_reactions(EntityKind.FORUM_POST, post_id)
        return reaction_summary(reactions, actor.user_id)
