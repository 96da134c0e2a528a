"""
In-process event bus for interaction side effects.
Ledger operations publish one InteractionEvent after their primary write;
notification and activity-log writers subscribe. A failing subscriber is
logged and skipped, never surfaced to the publisher.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    RECIPE_LIKED = "recipe_liked"
    RECIPE_SAVED = "recipe_saved"
    COMMENT_ADDED = "comment_added"
    COMMENT_LIKED = "comment_liked"
    RECIPE_RATED = "recipe_rated"
    USER_FOLLOWED = "user_followed"


@dataclass(frozen=True)
class InteractionEvent:
    type: EventType
    actor_id: str
    recipe_id: Optional[str] = None
    comment_id: Optional[str] = None
    target_user_id: Optional[str] = None
    meta: dict[str, Any] = field(default_factory=dict)


Handler = Callable[[InteractionEvent], Any]


class EventBus:
    def __init__(self) -> None:
        self._subscribers: list[Handler] = []

    def subscribe(self, handler: Handler) -> Handler:
        self._subscribers.append(handler)
        return handler

    def publish(self, event: InteractionEvent) -> int:
        """Deliver to every subscriber; returns how many handled it without error."""
        delivered = 0
        for handler in list(self._subscribers):
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "event.subscriber_failed type=%s actor=%s handler=%s",
                    event.type.value,
                    event.actor_id,
                    getattr(handler, "__qualname__", repr(handler)),
                )
            else:
                delivered += 1
        return delivered
