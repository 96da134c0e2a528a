from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from src.app.domain.models import ActivityType
from src.app.infra.db.base import SERVER_TIMESTAMP, DocumentStore
from src.app.services.events import EventType, InteractionEvent
from src.app.services.recipes import RecipeService
from src.app.services.users import UserService, display_name

logger = logging.getLogger(__name__)

ACTIVITY_LOGS_COLLECTION = "activityLogs"

_EVENT_TO_ACTIVITY = {
    EventType.RECIPE_LIKED: ActivityType.LIKE_POST,
    EventType.RECIPE_SAVED: ActivityType.SAVE,
    EventType.COMMENT_ADDED: ActivityType.COMMENT,
    EventType.COMMENT_LIKED: ActivityType.LIKE_COMMENT,
    EventType.RECIPE_RATED: ActivityType.RATING,
    EventType.USER_FOLLOWED: ActivityType.FOLLOW,
}

_UI_TYPES = {
    ActivityType.LIKE_POST.value: "like",
    ActivityType.LIKE_COMMENT.value: "like",
    ActivityType.COMMENT.value: "comment",
    ActivityType.FOLLOW.value: "follow",
    ActivityType.RATING.value: "rating",
    ActivityType.SAVE.value: "save",
}


def format_activity_date(value: Optional[datetime]) -> str:
    """e.g. ``28 August 2025``"""
    if not isinstance(value, datetime):
        return ""
    return f"{value.day} {value:%B} {value.year}"


def format_activity_time(value: Optional[datetime]) -> str:
    if not isinstance(value, datetime):
        return ""
    return f"{value:%H:%M}"


def _newest_first(entries: list[dict[str, Any]]) -> list[dict[str, Any]]:
    dated = [e for e in entries if isinstance(e.get("createdAt"), datetime)]
    undated = [e for e in entries if not isinstance(e.get("createdAt"), datetime)]
    dated.sort(key=lambda e: e["createdAt"], reverse=True)
    return dated + undated


def group_activity_logs_by_date(logs: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Group logs into ``{"date": ..., "activities": [...]}`` buckets.
    Buckets and the entries inside them are ordered newest first;
    entries without a timestamp sort last.
    """
    grouped: dict[str, list[dict[str, Any]]] = {}
    for log in _newest_first(list(logs)):
        created_at = log.get("createdAt")
        grouped.setdefault(format_activity_date(created_at), []).append(
            {
                "id": log.get("id"),
                "type": _UI_TYPES.get(log.get("type"), "comment"),
                "description": log.get("description") or "Activity",
                "time": format_activity_time(created_at),
                "recipeId": log.get("targetPostId"),
                "commentId": log.get("targetCommentId"),
                "userId": log.get("targetUserId"),
                "createdAt": created_at,
            }
        )
    return [{"date": date, "activities": activities} for date, activities in grouped.items()]


def _snippet(text: Optional[str], length: int = 50) -> str:
    if not text:
        return ""
    return f': "{text[:length]}{"..." if len(text) > length else ""}"'


class ActivityLogService:
    def __init__(
        self,
        store: DocumentStore,
        recipes: Optional[RecipeService] = None,
        users: Optional[UserService] = None,
    ):
        self._store = store
        self._recipes = recipes
        self._users = users

    def _recipe_author(self, recipe_id: Optional[str]) -> Optional[str]:
        if not recipe_id or self._recipes is None:
            return None
        try:
            recipe = self._recipes.get_recipe_by_id(recipe_id)
        except Exception as e:
            logger.error("Error fetching recipe for activity log: id=%s error=%s", recipe_id, e)
            return None
        if recipe is None:
            return None
        return recipe.get("authorName") or "a user"

    def describe(
        self,
        log: dict[str, Any],
        current_user_id: Optional[str] = None,
        profile_owner_name: Optional[str] = None,
    ) -> str:
        """
        Human-readable sentence for one activity log, e.g.
        ``You liked Ana's recipe``. Viewing your own profile reads as "You",
        anyone else's as the profile owner's name.
        """
        own_profile = bool(current_user_id) and log.get("userId") == current_user_id
        actor = "You" if own_profile else (profile_owner_name or "They")
        meta = log.get("meta") or {}
        kind = log.get("type")

        if kind == ActivityType.FOLLOW.value:
            target = log.get("targetUserId")
            if target and self._users is not None:
                profile = self._users.get_user_profile(target)
                if profile is not None:
                    return f"{actor} followed {display_name(profile, default='a user')}"
            return f"{actor} followed a user"

        author = self._recipe_author(log.get("targetPostId"))
        if kind == ActivityType.COMMENT.value:
            if author:
                return f"{actor} commented on {author}'s recipe{_snippet(meta.get('textSnippet'))}"
            return f"{actor} commented on a recipe"
        if kind == ActivityType.LIKE_POST.value:
            return f"{actor} liked {author}'s recipe" if author else f"{actor} liked a recipe"
        if kind == ActivityType.LIKE_COMMENT.value:
            if author and log.get("targetCommentId"):
                return f"{actor} liked a comment on {author}'s recipe"
            return f"{actor} liked a comment"
        if kind == ActivityType.RATING.value:
            if author:
                stars = f" {meta['rating']} stars" if meta.get("rating") else ""
                return f"{actor} rated {author}'s recipe{stars}"
            return f"{actor} rated a recipe"
        if kind == ActivityType.SAVE.value:
            return f"{actor} added {author}'s recipe to favorites" if author else f"{actor} saved a recipe"
        return "Activity"

    def create_activity_log(
        self,
        user_id: str,
        type: ActivityType | str,
        target_post_id: Optional[str] = None,
        target_comment_id: Optional[str] = None,
        target_user_id: Optional[str] = None,
        meta: Optional[dict[str, Any]] = None,
    ) -> Optional[str]:
        """Never raises; returns None when skipped or failed."""
        if not user_id or not type:
            logger.warning("Activity log skipped, missing userId or type: user=%s type=%s", user_id, type)
            return None

        data: dict[str, Any] = {
            "userId": user_id,
            "type": type.value if isinstance(type, ActivityType) else str(type),
            "createdAt": SERVER_TIMESTAMP,
        }
        if target_post_id:
            data["targetPostId"] = target_post_id
        if target_comment_id:
            data["targetCommentId"] = target_comment_id
        if target_user_id:
            data["targetUserId"] = target_user_id
        if meta:
            data["meta"] = meta

        try:
            return self._store.add(ACTIVITY_LOGS_COLLECTION, data)
        except Exception:
            logger.exception("Error creating activity log: user=%s type=%s", user_id, data["type"])
            return None

    def get_user_activity_logs(
        self,
        user_id: str,
        limit: int = 100,
        current_user_id: Optional[str] = None,
        profile_owner_name: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """Newest-first logs for ``user_id``, each with a ``description``."""
        if not user_id:
            return []

        rows = self._fetch_logs(user_id, limit)
        for row in rows:
            try:
                row["description"] = self.describe(row, current_user_id, profile_owner_name)
            except Exception as e:
                logger.error("Error formatting activity description: id=%s error=%s", row.get("id"), e)
                row["description"] = "Activity"
        return rows

    def _fetch_logs(self, user_id: str, limit: int) -> list[dict[str, Any]]:
        filters = [("userId", "==", user_id)]
        try:
            return self._store.query(ACTIVITY_LOGS_COLLECTION, filters, order_by="createdAt", limit=limit)
        except Exception as e:
            # Ordered queries need a composite index; fall back to sorting here
            logger.warning("Ordered activity log query failed, sorting locally: %s", e)

        try:
            rows = self._store.query(ACTIVITY_LOGS_COLLECTION, filters, limit=limit)
        except Exception as e:
            logger.error("Error fetching activity logs: user=%s error=%s", user_id, e)
            return []
        return _newest_first(rows)

    def handle_event(self, event: InteractionEvent) -> Optional[str]:
        activity_type = _EVENT_TO_ACTIVITY.get(event.type)
        if activity_type is None:
            return None

        meta = dict(event.meta) or None
        return self.create_activity_log(
            event.actor_id,
            activity_type,
            target_post_id=event.recipe_id,
            target_comment_id=event.comment_id,
            target_user_id=event.target_user_id if event.type == EventType.USER_FOLLOWED else None,
            meta=meta,
        )
