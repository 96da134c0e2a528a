# src/app/domain/models.py
"""
Domain models for the recipe-sharing service.
These are pure data structures with no infrastructure dependencies.
Firestore documents themselves travel as plain dicts; the types here
describe enumerations and computed results.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Difficulty(str, Enum):
    """Allowed recipe difficulty levels."""
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class NotificationType(str, Enum):
    LIKE = "like"
    SAVE = "save"
    COMMENT = "comment"
    COMMENT_LIKE = "comment_like"
    FOLLOW = "follow"
    RATING = "rating"
    MESSAGE_REQUEST = "message_request"


class ActivityType(str, Enum):
    LIKE_POST = "like_post"
    LIKE_COMMENT = "like_comment"
    SAVE = "save"
    COMMENT = "comment"
    FOLLOW = "follow"
    RATING = "rating"


class SearchMode(str, Enum):
    ALL = "all"
    RECIPES = "recipes"
    INGREDIENTS = "ingredients"
    USERS = "users"


@dataclass
class InteractionCounts:
    """Live subcollection sizes for a recipe."""
    likes: int = 0
    comments: int = 0
    saves: int = 0


@dataclass
class CounterDrift:
    """
    Result of comparing the maintained counters on a recipe document
    with the live subcollection sizes.
    """
    recipe_id: str
    stored: InteractionCounts
    live: InteractionCounts
    repaired: bool = False

    @property
    def has_drift(self) -> bool:
        return self.stored != self.live


@dataclass
class RatingStats:
    average: float = 0.0
    count: int = 0


@dataclass
class UploadResult:
    """Normalized result of a media upload."""
    secure_url: str
    public_id: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    bytes: Optional[int] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def summary(self) -> dict[str, Any]:
        """The subset returned to HTTP clients."""
        return {
            "public_id": self.public_id,
            "secure_url": self.secure_url,
            "width": self.width,
            "height": self.height,
            "format": self.format,
            "bytes": self.bytes,
        }


@dataclass
class SearchResults:
    recipes: list[dict[str, Any]] = field(default_factory=list)
    ingredients: list[dict[str, Any]] = field(default_factory=list)
    users: list[dict[str, Any]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.recipes or self.ingredients or self.users)
