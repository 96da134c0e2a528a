"""
Notification service.
Notifications are append-mostly records in the flat ``notifications``
collection; they are written as best-effort side effects and soft-deleted.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from src.app.domain.errors import InvalidArgumentError, RemoteServiceError
from src.app.domain.models import NotificationType
from src.app.infra.db.base import SERVER_TIMESTAMP, DocumentStore
from src.app.services.events import EventType, InteractionEvent
from src.app.services.users import UserService, display_name

logger = logging.getLogger(__name__)

NOTIFICATIONS_COLLECTION = "notifications"

# Firestore caps a write batch at 500 operations
MAX_BATCH_WRITES = 500

_POST_RELATED = {
    NotificationType.LIKE.value,
    NotificationType.SAVE.value,
    NotificationType.COMMENT.value,
    NotificationType.COMMENT_LIKE.value,
    NotificationType.RATING.value,
}

_EVENT_TO_NOTIFICATION = {
    EventType.RECIPE_LIKED: NotificationType.LIKE,
    EventType.RECIPE_SAVED: NotificationType.SAVE,
    EventType.COMMENT_ADDED: NotificationType.COMMENT,
    EventType.COMMENT_LIKED: NotificationType.COMMENT_LIKE,
    EventType.RECIPE_RATED: NotificationType.RATING,
    EventType.USER_FOLLOWED: NotificationType.FOLLOW,
}


def _type_value(value: NotificationType | str) -> str:
    return value.value if isinstance(value, NotificationType) else str(value)


class NotificationService:
    """
    Responsibilities:
    - Create notifications (coalescing repeated likes on one post)
    - List, mark read and soft-delete a user's notifications
    - Turn interaction events into notifications for the affected author
    """

    def __init__(self, store: DocumentStore, users: Optional[UserService] = None):
        self._store = store
        self._users = users or UserService(store)

    def create_notification(
        self,
        recipient_user_id: str,
        actor_user_id: str,
        type: NotificationType | str,
        related_post_id: Optional[str] = None,
        message_thread_id: Optional[str] = None,
        rating_value: Optional[int] = None,
    ) -> Optional[str]:
        """
        Create (or coalesce) a notification.

        Returns:
            The notification id, or None when skipped or failed
        """
        if not recipient_user_id or not actor_user_id or not type:
            logger.warning(
                "Notification skipped, missing fields: recipient=%s actor=%s type=%s",
                recipient_user_id,
                actor_user_id,
                type,
            )
            return None

        if recipient_user_id == actor_user_id:
            return None

        type_value = _type_value(type)
        try:
            if type_value == NotificationType.LIKE.value and related_post_id:
                existing_id = self._find_like_notification(recipient_user_id, related_post_id)
                if existing_id:
                    self._store.update(
                        f"{NOTIFICATIONS_COLLECTION}/{existing_id}",
                        {"actorUserId": actor_user_id, "createdAt": SERVER_TIMESTAMP, "read": False},
                    )
                    return existing_id

            return self._store.add(
                NOTIFICATIONS_COLLECTION,
                {
                    "recipientUserId": recipient_user_id,
                    "actorUserId": actor_user_id,
                    "type": type_value,
                    "relatedPostId": related_post_id,
                    "messageThreadId": message_thread_id,
                    "ratingValue": rating_value,
                    "createdAt": SERVER_TIMESTAMP,
                    "read": False,
                    "deleted": False,
                },
            )
        except Exception:
            logger.exception("Error creating notification: type=%s recipient=%s", type_value, recipient_user_id)
            return None

    def _find_like_notification(self, recipient_user_id: str, post_id: str) -> Optional[str]:
        try:
            existing = self._store.query(
                NOTIFICATIONS_COLLECTION,
                [
                    ("recipientUserId", "==", recipient_user_id),
                    ("type", "==", NotificationType.LIKE.value),
                    ("relatedPostId", "==", post_id),
                    ("deleted", "==", False),
                ],
                limit=1,
            )
        except Exception as e:
            logger.warning("Error checking for existing like notification: %s", e)
            return None
        return existing[0]["id"] if existing else None

    def get_user_notifications(
        self,
        user_id: str,
        limit: int = 50,
        unread_only: bool = False,
    ) -> list[dict[str, Any]]:
        """Newest first, enriched with actor and post details. Empty list on failure."""
        if not user_id:
            return []

        filters = [("recipientUserId", "==", user_id), ("deleted", "==", False)]
        if unread_only:
            filters.append(("read", "==", False))

        try:
            rows = self._store.query(NOTIFICATIONS_COLLECTION, filters, order_by="createdAt", limit=limit)
        except Exception as e:
            logger.error("Error fetching notifications: user=%s error=%s", user_id, e)
            return []

        return [self._enrich(row) for row in rows]

    def _enrich(self, notification: dict[str, Any]) -> dict[str, Any]:
        actor = self._users.get_user_profile(notification.get("actorUserId"))
        notification["actorName"] = display_name(actor)
        notification["actorAvatar"] = (actor or {}).get("photoURL")

        post_id = notification.get("relatedPostId")
        if post_id and notification.get("type") in _POST_RELATED:
            try:
                recipe = self._store.get(f"recipes/{post_id}")
            except Exception as e:
                logger.warning("Error fetching recipe for notification: %s", e)
                recipe = None
            notification["postTitle"] = (recipe or {}).get("title") or "your post"
        return notification

    def mark_notification_as_read(self, notification_id: str) -> None:
        if not notification_id:
            raise InvalidArgumentError("Notification ID is required")
        try:
            self._store.update(f"{NOTIFICATIONS_COLLECTION}/{notification_id}", {"read": True})
        except Exception as e:
            logger.error("Error marking notification as read: %s", e)
            raise RemoteServiceError("mark notification as read", e) from e

    def mark_all_notifications_as_read(
        self,
        user_id: str,
        notification_ids: Optional[Iterable[str]] = None,
    ) -> int:
        """
        Mark the given notifications (or every unread one) as read.

        Returns:
            Number of notifications updated
        """
        if not user_id:
            raise InvalidArgumentError("User ID is required")

        try:
            ids = list(notification_ids or [])
            if not ids:
                rows = self._store.query(
                    NOTIFICATIONS_COLLECTION,
                    [
                        ("recipientUserId", "==", user_id),
                        ("deleted", "==", False),
                        ("read", "==", False),
                    ],
                    limit=MAX_BATCH_WRITES,
                )
                ids = [row["id"] for row in rows]

            if not ids:
                return 0

            with self._store.batch() as batch:
                for notification_id in ids[:MAX_BATCH_WRITES]:
                    batch.update(f"{NOTIFICATIONS_COLLECTION}/{notification_id}", {"read": True})
        except Exception as e:
            logger.error("Error marking all notifications as read: user=%s error=%s", user_id, e)
            raise RemoteServiceError("mark notifications as read", e) from e

        return min(len(ids), MAX_BATCH_WRITES)

    def delete_notification(self, notification_id: str) -> None:
        """Soft delete."""
        if not notification_id:
            raise InvalidArgumentError("Notification ID is required")
        try:
            self._store.update(f"{NOTIFICATIONS_COLLECTION}/{notification_id}", {"deleted": True})
        except Exception as e:
            logger.error("Error deleting notification: %s", e)
            raise RemoteServiceError("delete notification", e) from e

    def get_unread_notification_count(self, user_id: str) -> int:
        if not user_id:
            return 0
        try:
            return self._store.count(
                NOTIFICATIONS_COLLECTION,
                [
                    ("recipientUserId", "==", user_id),
                    ("deleted", "==", False),
                    ("read", "==", False),
                ],
            )
        except Exception as e:
            logger.error("Error counting unread notifications: %s", e)
            return 0

    # -- event subscriber -------------------------------------------------

    def handle_event(self, event: InteractionEvent) -> Optional[str]:
        notification_type = _EVENT_TO_NOTIFICATION.get(event.type)
        if notification_type is None:
            return None

        recipient = event.target_user_id or self._resolve_recipient(event)
        if not recipient:
            logger.info("No recipient resolved for event: type=%s recipe=%s", event.type.value, event.recipe_id)
            return None

        return self.create_notification(
            recipient,
            event.actor_id,
            notification_type,
            related_post_id=event.recipe_id,
            rating_value=event.meta.get("rating"),
        )

    def _resolve_recipient(self, event: InteractionEvent) -> Optional[str]:
        if not event.recipe_id:
            return None
        if event.type == EventType.COMMENT_LIKED and event.comment_id:
            comment = self._store.get(f"recipes/{event.recipe_id}/comments/{event.comment_id}")
            return (comment or {}).get("userId")
        recipe = self._store.get(f"recipes/{event.recipe_id}")
        return (recipe or {}).get("authorId")
