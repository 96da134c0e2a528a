# src/app/services/recipes.py
"""
Recipe repository.
Validates and persists recipe documents in the ``recipes`` collection and
exposes the listing queries used by the feed and profile pages.
"""
from __future__ import annotations

import logging
from numbers import Real
from typing import Any, Optional

from src.app.domain.errors import (
    CooktopiaError,
    InvalidArgumentError,
    RemoteServiceError,
    ValidationError,
)
from src.app.domain.models import Difficulty
from src.app.infra.db.base import DESCENDING, SERVER_TIMESTAMP, DocumentStore, Increment

logger = logging.getLogger(__name__)

RECIPES_COLLECTION = "recipes"

REQUIRED_FIELDS = ("title", "description", "difficulty", "duration", "authorId", "authorName")
_TEXT_FIELDS = ("title", "description", "authorName")

DEFAULT_PAGE_SIZE = 50
DEFAULT_AUTHOR_PAGE_SIZE = 20
# Title/ingredient search scans this many published recipes
SEARCH_SCAN_LIMIT = 100


def clean_lines(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _is_positive_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and value > 0


def validate_recipe(data: dict[str, Any]) -> None:
    """
    Raises:
        ValidationError: listing every problem found; ``fields`` holds the
            names of missing required fields
    """
    problems: list[str] = []

    missing = [name for name in REQUIRED_FIELDS if not data.get(name)]
    if missing:
        problems.append(f"Missing required fields: {', '.join(missing)}")

    for name in _TEXT_FIELDS:
        if data.get(name) and not isinstance(data[name], str):
            problems.append(f"{name} must be a string")

    if not clean_lines(data.get("ingredients")):
        problems.append("Ingredients cannot be empty")
    if not clean_lines(data.get("steps")):
        problems.append("Steps cannot be empty")

    difficulty = data.get("difficulty")
    if difficulty and difficulty not in {d.value for d in Difficulty}:
        problems.append("Difficulty must be Easy, Medium, or Hard")

    duration = data.get("duration")
    if duration is not None and not _is_positive_number(duration):
        problems.append("Duration must be a positive number")

    if problems:
        raise ValidationError(problems, fields=missing)


class RecipeService:
    def __init__(self, store: DocumentStore):
        self._store = store

    def create_recipe(self, data: dict[str, Any]) -> str:
        """
        Validate and persist a new published recipe.

        Returns:
            The new recipe id

        Raises:
            ValidationError: before any write, if the input is incomplete
            RemoteServiceError: if the store rejects the write
        """
        validate_recipe(data)

        video_link = data.get("youtubeLink")
        document = {
            "title": data["title"].strip(),
            "description": data["description"].strip(),
            "youtubeLink": (video_link.strip() or None) if isinstance(video_link, str) else None,
            "imageUrls": [url for url in data.get("imageUrls") or [] if isinstance(url, str) and url],
            "difficulty": data["difficulty"],
            "duration": data["duration"],
            "ingredients": clean_lines(data["ingredients"]),
            "steps": clean_lines(data["steps"]),
            "authorId": data["authorId"],
            "authorName": data["authorName"].strip(),
            "createdAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
            "likes": 0,
            "views": 0,
            "isPublished": True,
        }

        try:
            recipe_id = self._store.add(RECIPES_COLLECTION, document)
        except Exception as e:
            logger.error("Error creating recipe: %s", e)
            raise RemoteServiceError("create recipe", e) from e

        logger.info("Recipe created: id=%s, author=%s", recipe_id, document["authorId"])
        return recipe_id

    def get_recipe_by_id(self, recipe_id: str) -> Optional[dict[str, Any]]:
        if not recipe_id:
            raise InvalidArgumentError("Recipe ID is required")
        try:
            return self._store.get(f"{RECIPES_COLLECTION}/{recipe_id}")
        except Exception as e:
            logger.error("Error fetching recipe: id=%s error=%s", recipe_id, e)
            raise RemoteServiceError("fetch recipe", e) from e

    def get_all_recipes(
        self,
        limit: int = DEFAULT_PAGE_SIZE,
        order_by: str = "createdAt",
        direction: str = DESCENDING,
    ) -> list[dict[str, Any]]:
        """Published recipes, newest first by default."""
        try:
            return self._store.query(
                RECIPES_COLLECTION,
                [("isPublished", "==", True)],
                order_by=order_by,
                direction=direction,
                limit=limit,
            )
        except Exception as e:
            logger.error("Error fetching recipes: %s", e)
            raise RemoteServiceError("fetch recipes", e) from e

    def get_recipes_by_author(
        self,
        author_id: str,
        limit: int = DEFAULT_AUTHOR_PAGE_SIZE,
        order_by: str = "createdAt",
        direction: str = DESCENDING,
    ) -> list[dict[str, Any]]:
        if not author_id:
            raise InvalidArgumentError("Author ID is required")
        try:
            return self._store.query(
                RECIPES_COLLECTION,
                [("authorId", "==", author_id), ("isPublished", "==", True)],
                order_by=order_by,
                direction=direction,
                limit=limit,
            )
        except Exception as e:
            logger.error("Error fetching recipes by author: author=%s error=%s", author_id, e)
            raise RemoteServiceError("fetch recipes", e) from e

    def update_recipe(self, recipe_id: str, update_data: dict[str, Any]) -> None:
        """Pass-through partial update; ownership is enforced by the store's access rules."""
        if not recipe_id:
            raise InvalidArgumentError("Recipe ID is required")

        changes = {k: v for k, v in update_data.items() if k != "id"}
        changes["updatedAt"] = SERVER_TIMESTAMP
        try:
            self._store.update(f"{RECIPES_COLLECTION}/{recipe_id}", changes)
        except CooktopiaError:
            raise
        except Exception as e:
            logger.error("Error updating recipe: id=%s error=%s", recipe_id, e)
            raise RemoteServiceError("update recipe", e) from e
        logger.info("Recipe updated: id=%s, fields=%s", recipe_id, sorted(changes))

    def delete_recipe(self, recipe_id: str) -> None:
        if not recipe_id:
            raise InvalidArgumentError("Recipe ID is required")
        try:
            self._store.delete(f"{RECIPES_COLLECTION}/{recipe_id}")
        except Exception as e:
            logger.error("Error deleting recipe: id=%s error=%s", recipe_id, e)
            raise RemoteServiceError("delete recipe", e) from e
        logger.info("Recipe deleted: id=%s", recipe_id)

    def increment_recipe_views(self, recipe_id: str) -> None:
        """Fire-and-forget; a dropped view is not worth surfacing."""
        if not recipe_id:
            logger.warning("View increment skipped: missing recipe id")
            return
        try:
            self._store.update(f"{RECIPES_COLLECTION}/{recipe_id}", {"views": Increment(1)})
        except Exception as e:
            logger.warning("Error incrementing recipe views: id=%s error=%s", recipe_id, e)

    def get_user_recipe_count(self, user_id: str) -> int:
        if not user_id:
            return 0
        try:
            return self._store.count(
                RECIPES_COLLECTION,
                [("authorId", "==", user_id), ("isPublished", "==", True)],
            )
        except Exception as e:
            logger.error("Error counting recipes: user=%s error=%s", user_id, e)
            return 0

    def _scan_published(self, operation: str) -> list[dict[str, Any]]:
        try:
            return self._store.query(
                RECIPES_COLLECTION,
                [("isPublished", "==", True)],
                order_by="createdAt",
                limit=SEARCH_SCAN_LIMIT,
            )
        except Exception as e:
            logger.error("Error scanning recipes for search: %s", e)
            raise RemoteServiceError(operation, e) from e

    def search_recipes_by_title(self, term: str) -> list[dict[str, Any]]:
        if not term or not term.strip():
            return []
        needle = term.strip().lower()
        return [
            recipe
            for recipe in self._scan_published("search recipes")
            if needle in (recipe.get("title") or "").lower()
        ]

    def search_recipes_by_ingredient(self, term: str) -> list[dict[str, Any]]:
        if not term or not term.strip():
            return []
        needle = term.strip().lower()
        return [
            recipe
            for recipe in self._scan_published("search recipes by ingredient")
            if any(needle in ingredient.lower() for ingredient in recipe.get("ingredients") or [])
        ]
