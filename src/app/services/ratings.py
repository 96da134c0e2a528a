from __future__ import annotations

import logging
import math
from typing import Any, Optional

from src.app.domain.errors import InvalidArgumentError, RemoteServiceError
from src.app.domain.models import RatingStats
from src.app.infra.db.base import SERVER_TIMESTAMP, DocumentStore
from src.app.services.events import EventBus, EventType, InteractionEvent

logger = logging.getLogger(__name__)

RATINGS_COLLECTION = "ratings"
MIN_RATING = 1
MAX_RATING = 5


def rating_doc_id(post_id: str, user_id: str) -> str:
    """One rating per (post, user): the pair is the document key."""
    return f"{post_id}_{user_id}"


def is_valid_rating(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and MIN_RATING <= value <= MAX_RATING


class RatingService:
    def __init__(self, store: DocumentStore, events: Optional[EventBus] = None):
        self._store = store
        self._events = events

    def get_user_rating(self, post_id: str, user_id: str) -> Optional[int]:
        if not post_id or not user_id:
            return None
        try:
            doc = self._store.get(f"{RATINGS_COLLECTION}/{rating_doc_id(post_id, user_id)}")
        except Exception as e:
            logger.error("Error fetching rating: post=%s user=%s error=%s", post_id, user_id, e)
            return None
        if doc is None:
            return None
        value = doc.get("value")
        return value if is_valid_rating(value) else None

    def save_user_rating(self, post_id: str, user_id: str, value: int) -> None:
        """
        Create or replace the user's rating for a post. The original
        ``createdAt`` survives re-rating.

        Raises:
            InvalidArgumentError: on missing ids or a value outside 1-5, before any write
            RemoteServiceError: if the store rejects the write
        """
        if not post_id or not user_id:
            raise InvalidArgumentError("Post ID and User ID are required")
        if not is_valid_rating(value):
            raise InvalidArgumentError(
                f"Rating must be an integer between {MIN_RATING} and {MAX_RATING}",
                fields=["value"],
            )

        path = f"{RATINGS_COLLECTION}/{rating_doc_id(post_id, user_id)}"
        try:
            if self._store.get(path) is not None:
                self._store.update(path, {"value": value, "updatedAt": SERVER_TIMESTAMP})
            else:
                self._store.set(
                    path,
                    {
                        "postId": post_id,
                        "userId": user_id,
                        "value": value,
                        "createdAt": SERVER_TIMESTAMP,
                        "updatedAt": SERVER_TIMESTAMP,
                    },
                )
        except Exception as e:
            logger.error("Error saving rating: post=%s user=%s error=%s", post_id, user_id, e)
            raise RemoteServiceError("save rating", e) from e

        logger.info("Rating saved: post=%s user=%s value=%d", post_id, user_id, value)
        if self._events is not None:
            self._events.publish(
                InteractionEvent(
                    EventType.RECIPE_RATED,
                    actor_id=user_id,
                    recipe_id=post_id,
                    meta={"rating": value},
                )
            )

    def get_recipe_rating_stats(self, post_id: str) -> RatingStats:
        """
        Average (one decimal) and count over every valid rating of a post.
        Never raises: (0, 0) when there are no ratings or the scan fails.
        """
        if not post_id:
            return RatingStats()
        try:
            rows = self._store.query(RATINGS_COLLECTION, [("postId", "==", post_id)])
        except Exception as e:
            logger.error("Error fetching rating stats: post=%s error=%s", post_id, e)
            return RatingStats()

        values = [row["value"] for row in rows if is_valid_rating(row.get("value"))]
        if not values:
            return RatingStats()
        # Half-up to one decimal: 4.25 -> 4.3
        average = math.floor(sum(values) / len(values) * 10 + 0.5) / 10
        return RatingStats(average=average, count=len(values))
