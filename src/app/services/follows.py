"""
Follow graph.
An edge A -> B lives twice: ``users/A/following/B`` and ``users/B/followers/A``.
Both sides are written in one batch.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from src.app.domain.errors import InvalidArgumentError, RemoteServiceError
from src.app.infra.db.base import SERVER_TIMESTAMP, DocumentStore
from src.app.services.events import EventBus, EventType, InteractionEvent
from src.app.services.users import USERS_COLLECTION, UserService, display_name

logger = logging.getLogger(__name__)

FOLLOWING = "following"
FOLLOWERS = "followers"


def _edge_paths(follower_id: str, followee_id: str) -> tuple[str, str]:
    return (
        f"{USERS_COLLECTION}/{follower_id}/{FOLLOWING}/{followee_id}",
        f"{USERS_COLLECTION}/{followee_id}/{FOLLOWERS}/{follower_id}",
    )


class FollowService:
    def __init__(
        self,
        store: DocumentStore,
        events: Optional[EventBus] = None,
        users: Optional[UserService] = None,
    ):
        self._store = store
        self._events = events
        self._users = users or UserService(store)

    def follow_user(self, current_user_id: str, target_user_id: str) -> bool:
        """
        Returns:
            True if a new edge was created, False if it already existed

        Raises:
            InvalidArgumentError: on missing ids or a self-follow, before any write
        """
        if not current_user_id or not target_user_id or current_user_id == target_user_id:
            raise InvalidArgumentError("Invalid user IDs")

        following_path, followers_path = _edge_paths(current_user_id, target_user_id)
        try:
            if self._store.get(following_path) is not None:
                return False
            with self._store.batch() as batch:
                batch.set(following_path, {"userId": target_user_id, "createdAt": SERVER_TIMESTAMP})
                batch.set(followers_path, {"userId": current_user_id, "createdAt": SERVER_TIMESTAMP})
        except Exception as e:
            logger.error("Error following user: follower=%s target=%s error=%s", current_user_id, target_user_id, e)
            raise RemoteServiceError("follow user", e) from e

        logger.info("User followed: follower=%s target=%s", current_user_id, target_user_id)
        if self._events is not None:
            self._events.publish(
                InteractionEvent(
                    EventType.USER_FOLLOWED,
                    actor_id=current_user_id,
                    target_user_id=target_user_id,
                )
            )
        return True

    def unfollow_user(self, current_user_id: str, target_user_id: str) -> None:
        if not current_user_id or not target_user_id:
            raise InvalidArgumentError("User IDs are required")

        following_path, followers_path = _edge_paths(current_user_id, target_user_id)
        try:
            with self._store.batch() as batch:
                batch.delete(following_path)
                batch.delete(followers_path)
        except Exception as e:
            logger.error("Error unfollowing user: follower=%s target=%s error=%s", current_user_id, target_user_id, e)
            raise RemoteServiceError("unfollow user", e) from e
        logger.info("User unfollowed: follower=%s target=%s", current_user_id, target_user_id)

    def is_following(self, current_user_id: str, target_user_id: str) -> bool:
        if not current_user_id or not target_user_id or current_user_id == target_user_id:
            return False
        try:
            return self._store.get(_edge_paths(current_user_id, target_user_id)[0]) is not None
        except Exception as e:
            logger.error("Error checking follow status: %s", e)
            return False

    def get_followers_count(self, user_id: str) -> int:
        return self._count_edges(user_id, FOLLOWERS)

    def get_following_count(self, user_id: str) -> int:
        return self._count_edges(user_id, FOLLOWING)

    def get_followers(self, user_id: str) -> list[dict[str, Any]]:
        """Follower profiles, newest first."""
        return self._list_edges(user_id, FOLLOWERS)

    def get_following(self, user_id: str) -> list[dict[str, Any]]:
        return self._list_edges(user_id, FOLLOWING)

    def _count_edges(self, user_id: str, side: str) -> int:
        if not user_id:
            return 0
        try:
            return self._store.count(f"{USERS_COLLECTION}/{user_id}/{side}")
        except Exception as e:
            logger.error("Error counting %s: user=%s error=%s", side, user_id, e)
            return 0

    def _list_edges(self, user_id: str, side: str) -> list[dict[str, Any]]:
        if not user_id:
            return []
        try:
            edges = self._store.query(f"{USERS_COLLECTION}/{user_id}/{side}", order_by="createdAt")
        except Exception as e:
            logger.error("Error listing %s: user=%s error=%s", side, user_id, e)
            return []

        people: list[dict[str, Any]] = []
        for edge in edges:
            other_id = edge["id"]
            profile = self._users.get_user_profile(other_id)
            # Profiles can be missing for accounts that never completed signup
            people.append(
                {
                    **(profile or {}),
                    "id": other_id,
                    "displayName": display_name(profile),
                    "followedAt": edge.get("createdAt"),
                }
            )
        return people
