# src/app/services/interactions.py
"""
Interaction ledger: likes, saves, comments and comment likes.

Each relationship is stored twice, under the recipe (``recipes/{id}/likes/{uid}``)
and under the user (``users/{uid}/likedRecipes/{id}``), next to a counter on the
recipe document. The membership write, the mirror write and the counter change
are committed as one atomic batch. Side effects (notifications, activity logs)
are published on the event bus after the batch commits and can never undo it.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable, Optional

from src.app.domain.errors import InvalidArgumentError, RemoteServiceError
from src.app.domain.models import CounterDrift, InteractionCounts
from src.app.infra.db.base import SERVER_TIMESTAMP, DocumentStore, Increment
from src.app.services.events import EventBus, EventType, InteractionEvent
from src.app.services.recipes import RECIPES_COLLECTION, clean_lines

logger = logging.getLogger(__name__)

LIKES = "likes"
SAVES = "saves"
COMMENTS = "comments"
LIKED_RECIPES = "likedRecipes"
SAVED_RECIPES = "savedRecipes"

COMMENT_SNIPPET_LENGTH = 100
DEFAULT_COMMENT_PAGE = 50
MAX_COUNT_WORKERS = 8

# updateSavedRecipe input field -> customization field on the user-side mirror
CUSTOM_FIELDS = {
    "title": "customTitle",
    "description": "customDescription",
    "ingredients": "customIngredients",
    "steps": "customSteps",
    "imageUrls": "customImageUrls",
}


def _recipe_path(recipe_id: str) -> str:
    return f"{RECIPES_COLLECTION}/{recipe_id}"


def _comment_path(recipe_id: str, comment_id: str) -> str:
    return f"{RECIPES_COLLECTION}/{recipe_id}/{COMMENTS}/{comment_id}"


def _user_path(user_id: str, collection: str, doc_id: str) -> str:
    return f"users/{user_id}/{collection}/{doc_id}"


def _require(**ids: Optional[str]) -> None:
    missing = [name for name, value in ids.items() if not value]
    if missing:
        labels = [name.removesuffix("_id").replace("_", " ").title() + " ID" for name in missing]
        verb = "is" if len(labels) == 1 else "are"
        raise InvalidArgumentError(f"{' and '.join(labels)} {verb} required", fields=missing)


class InteractionService:
    """
    Responsibilities:
    - Toggle likes/saves/comment likes, keeping membership, mirror and counter together
    - Add, list and delete comments
    - Read interaction state and live counts, and reconcile drifting counters
    """

    def __init__(
        self,
        store: DocumentStore,
        events: Optional[EventBus] = None,
        max_workers: int = MAX_COUNT_WORKERS,
    ):
        self._store = store
        self._events = events
        self._max_workers = max_workers

    def _publish(self, event: InteractionEvent) -> None:
        if self._events is not None:
            self._events.publish(event)

    # -- likes ------------------------------------------------------------

    def toggle_recipe_like(self, recipe_id: str, user_id: str) -> bool:
        """
        Like or unlike a recipe.

        Returns:
            True if the recipe is now liked, False if the like was removed

        Raises:
            InvalidArgumentError: If an id is missing, before any write
            RemoteServiceError: If the store rejects the read or the batch

        The membership read happens before the batch, outside it: the writes
        commit together, but two concurrent toggles by the same user can both
        read the same state. ``reconcile_recipe_counters`` repairs the drift.
        Unliking a deleted recipe still clears the membership and the mirror.
        """
        _require(recipe_id=recipe_id, user_id=user_id)

        like_path = f"{_recipe_path(recipe_id)}/{LIKES}/{user_id}"
        mirror_path = _user_path(user_id, LIKED_RECIPES, recipe_id)
        try:
            liked = self._store.get(like_path) is not None
            recipe_gone = liked and self._store.get(_recipe_path(recipe_id)) is None
            with self._store.batch() as batch:
                if liked:
                    batch.delete(like_path)
                    if not recipe_gone:
                        batch.update(_recipe_path(recipe_id), {"likes": Increment(-1)})
                    batch.delete(mirror_path)
                else:
                    batch.set(like_path, {"userId": user_id, "createdAt": SERVER_TIMESTAMP})
                    batch.update(_recipe_path(recipe_id), {"likes": Increment(1)})
                    batch.set(mirror_path, {"recipeId": recipe_id, "createdAt": SERVER_TIMESTAMP})
        except Exception as e:
            logger.error("Error toggling like: recipe=%s user=%s error=%s", recipe_id, user_id, e)
            raise RemoteServiceError("toggle like", e) from e

        if liked:
            if recipe_gone:
                logger.warning(
                    "Like removed from a deleted recipe, counter skipped: recipe=%s user=%s", recipe_id, user_id
                )
            logger.info("Recipe unliked: recipe=%s user=%s", recipe_id, user_id)
            return False

        logger.info("Recipe liked: recipe=%s user=%s", recipe_id, user_id)
        self._publish(InteractionEvent(EventType.RECIPE_LIKED, actor_id=user_id, recipe_id=recipe_id))
        return True

    def has_user_liked_recipe(self, recipe_id: str, user_id: str) -> bool:
        return self._exists(f"{_recipe_path(recipe_id)}/{LIKES}/{user_id}", recipe_id, user_id)

    # -- saves ------------------------------------------------------------

    def toggle_recipe_save(self, recipe_id: str, user_id: str) -> bool:
        """
        Save or unsave a recipe. Saving snapshots the original author into
        the user-side mirror, which also carries the customization payload.

        Returns:
            True if the recipe is now saved, False if the save was removed
        """
        _require(recipe_id=recipe_id, user_id=user_id)

        save_path = f"{_recipe_path(recipe_id)}/{SAVES}/{user_id}"
        mirror_path = _user_path(user_id, SAVED_RECIPES, recipe_id)
        author_id: Optional[str] = None
        recipe_gone = False
        try:
            saved = self._store.get(save_path) is not None
            if saved:
                recipe_gone = self._store.get(_recipe_path(recipe_id)) is None
                with self._store.batch() as batch:
                    batch.delete(save_path)
                    if not recipe_gone:
                        batch.update(_recipe_path(recipe_id), {"saves": Increment(-1)})
                    batch.delete(mirror_path)
            else:
                recipe = self._store.get(_recipe_path(recipe_id))
                if recipe is None:
                    raise LookupError(f"Recipe not found: {recipe_id}")
                author_id = recipe.get("authorId")
                with self._store.batch() as batch:
                    batch.set(save_path, {"userId": user_id, "createdAt": SERVER_TIMESTAMP})
                    batch.update(_recipe_path(recipe_id), {"saves": Increment(1)})
                    batch.set(
                        mirror_path,
                        {
                            "recipeId": recipe_id,
                            "originalAuthorId": author_id,
                            "originalAuthorName": recipe.get("authorName"),
                            "createdAt": SERVER_TIMESTAMP,
                            "updatedAt": SERVER_TIMESTAMP,
                            "customTitle": None,
                            "customDescription": None,
                            "customIngredients": None,
                            "customSteps": None,
                            "customImageUrls": None,
                            "isCustomized": False,
                        },
                    )
        except Exception as e:
            logger.error("Error toggling save: recipe=%s user=%s error=%s", recipe_id, user_id, e)
            raise RemoteServiceError("toggle save", e) from e

        if saved:
            if recipe_gone:
                logger.warning(
                    "Save removed from a deleted recipe, counter skipped: recipe=%s user=%s", recipe_id, user_id
                )
            logger.info("Recipe unsaved: recipe=%s user=%s", recipe_id, user_id)
            return False

        logger.info("Recipe saved: recipe=%s user=%s", recipe_id, user_id)
        self._publish(
            InteractionEvent(
                EventType.RECIPE_SAVED,
                actor_id=user_id,
                recipe_id=recipe_id,
                target_user_id=author_id,
            )
        )
        return True

    def has_user_saved_recipe(self, recipe_id: str, user_id: str) -> bool:
        return self._exists(f"{_recipe_path(recipe_id)}/{SAVES}/{user_id}", recipe_id, user_id)

    def update_saved_recipe(
        self,
        saved_recipe_id: str,
        user_id: str,
        fields: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Customize a saved copy without touching the original recipe.
        Only the fields given are written, and an explicit None clears a
        customization back to the original. The copy is always restamped
        and flagged as customized.
        """
        _require(saved_recipe_id=saved_recipe_id, user_id=user_id)

        changes: dict[str, Any] = {}
        for name, value in (fields or {}).items():
            target = CUSTOM_FIELDS.get(name)
            if target is None:
                continue
            if value is None:
                changes[target] = None
                continue
            if name in ("ingredients", "steps"):
                value = clean_lines(value)
            elif isinstance(value, str):
                value = value.strip()
            changes[target] = value
        changes["updatedAt"] = SERVER_TIMESTAMP
        changes["isCustomized"] = True

        try:
            self._store.update(_user_path(user_id, SAVED_RECIPES, saved_recipe_id), changes)
        except Exception as e:
            logger.error("Error updating saved recipe: id=%s user=%s error=%s", saved_recipe_id, user_id, e)
            raise RemoteServiceError("update saved recipe", e) from e
        logger.info("Saved recipe customized: id=%s user=%s fields=%s", saved_recipe_id, user_id, sorted(changes))

    def get_user_saved_recipes(self, user_id: str) -> list[dict[str, Any]]:
        """
        The user's saved recipes, newest save first, with any customization
        laid over the live original. Saves whose recipe is gone are skipped.
        """
        mirrors = self._list_mirrors(user_id, SAVED_RECIPES)
        results: list[dict[str, Any]] = []
        for mirror in mirrors:
            recipe = self._get_quietly(_recipe_path(mirror["id"]))
            if recipe is None:
                continue
            entry = {
                **recipe,
                "savedRecipeId": mirror["id"],
                "savedAt": mirror.get("createdAt"),
                "isCustomized": bool(mirror.get("isCustomized")),
            }
            if entry["isCustomized"]:
                for name, custom in CUSTOM_FIELDS.items():
                    if mirror.get(custom) is not None:
                        entry[name] = mirror[custom]
            results.append(entry)
        return results

    def get_user_liked_recipes(self, user_id: str) -> list[dict[str, Any]]:
        results: list[dict[str, Any]] = []
        for mirror in self._list_mirrors(user_id, LIKED_RECIPES):
            recipe = self._get_quietly(_recipe_path(mirror["id"]))
            if recipe is not None:
                results.append({**recipe, "likedAt": mirror.get("createdAt")})
        return results

    # -- comments ---------------------------------------------------------

    def add_recipe_comment(
        self,
        recipe_id: str,
        user_id: str,
        user_name: Optional[str],
        user_avatar: Optional[str],
        text: str,
    ) -> str:
        """
        Returns:
            The new comment id
        """
        if not recipe_id or not user_id or not (text or "").strip():
            raise InvalidArgumentError("Recipe ID, User ID, and comment text are required")

        body = text.strip()
        comments = f"{_recipe_path(recipe_id)}/{COMMENTS}"
        try:
            comment_id = self._store.new_id(comments)
            with self._store.batch() as batch:
                batch.set(
                    f"{comments}/{comment_id}",
                    {
                        "userId": user_id,
                        "userName": user_name,
                        "userAvatar": user_avatar,
                        "text": body,
                        "likes": 0,
                        "createdAt": SERVER_TIMESTAMP,
                        "replies": [],
                    },
                )
                batch.update(_recipe_path(recipe_id), {"comments": Increment(1)})
        except Exception as e:
            logger.error("Error adding comment: recipe=%s user=%s error=%s", recipe_id, user_id, e)
            raise RemoteServiceError("add comment", e) from e

        logger.info("Comment added: recipe=%s comment=%s user=%s", recipe_id, comment_id, user_id)
        self._publish(
            InteractionEvent(
                EventType.COMMENT_ADDED,
                actor_id=user_id,
                recipe_id=recipe_id,
                comment_id=comment_id,
                meta={"textSnippet": body[:COMMENT_SNIPPET_LENGTH]},
            )
        )
        return comment_id

    def get_recipe_comments(self, recipe_id: str, limit: int = DEFAULT_COMMENT_PAGE) -> list[dict[str, Any]]:
        if not recipe_id:
            return []
        try:
            return self._store.query(
                f"{_recipe_path(recipe_id)}/{COMMENTS}",
                order_by="createdAt",
                limit=limit,
            )
        except Exception as e:
            logger.error("Error fetching comments: recipe=%s error=%s", recipe_id, e)
            return []

    def delete_recipe_comment(self, recipe_id: str, comment_id: str) -> None:
        """
        Delete a comment. Failing to decrement the recipe's comment counter
        is logged; the comment still counts as deleted.
        """
        _require(recipe_id=recipe_id, comment_id=comment_id)
        try:
            self._store.delete(_comment_path(recipe_id, comment_id))
        except Exception as e:
            logger.error("Error deleting comment: recipe=%s comment=%s error=%s", recipe_id, comment_id, e)
            raise RemoteServiceError("delete comment", e) from e

        try:
            self._store.update(_recipe_path(recipe_id), {"comments": Increment(-1)})
        except Exception as e:
            logger.warning("Comment deleted but counter not decremented: recipe=%s error=%s", recipe_id, e)
        logger.info("Comment deleted: recipe=%s comment=%s", recipe_id, comment_id)

    def toggle_comment_like(self, recipe_id: str, comment_id: str, user_id: str) -> bool:
        """
        Like or unlike a comment. The comment author is notified unless
        they liked their own comment.
        """
        _require(recipe_id=recipe_id, comment_id=comment_id, user_id=user_id)

        comment_path = _comment_path(recipe_id, comment_id)
        like_path = f"{comment_path}/{LIKES}/{user_id}"
        comment_author: Optional[str] = None
        try:
            liked = self._store.get(like_path) is not None
            comment = self._store.get(comment_path)
            if not liked:
                if comment is None:
                    raise LookupError(f"Comment not found: {comment_id}")
                comment_author = comment.get("userId")
            with self._store.batch() as batch:
                if liked:
                    batch.delete(like_path)
                    if comment is not None:
                        batch.update(comment_path, {"likes": Increment(-1)})
                else:
                    batch.set(like_path, {"userId": user_id, "createdAt": SERVER_TIMESTAMP})
                    batch.update(comment_path, {"likes": Increment(1)})
        except Exception as e:
            logger.error("Error toggling comment like: comment=%s user=%s error=%s", comment_id, user_id, e)
            raise RemoteServiceError("toggle comment like", e) from e

        if liked:
            if comment is None:
                logger.warning(
                    "Like removed from a deleted comment, counter skipped: comment=%s user=%s", comment_id, user_id
                )
            return False

        self._publish(
            InteractionEvent(
                EventType.COMMENT_LIKED,
                actor_id=user_id,
                recipe_id=recipe_id,
                comment_id=comment_id,
                # self-likes are dropped by NotificationService.create_notification
                target_user_id=comment_author,
            )
        )
        return True

    def has_user_liked_comment(self, recipe_id: str, comment_id: str, user_id: str) -> bool:
        if not comment_id:
            return False
        return self._exists(f"{_comment_path(recipe_id, comment_id)}/{LIKES}/{user_id}", recipe_id, user_id)

    # -- counts -----------------------------------------------------------

    def get_recipe_interaction_counts(self, recipe_id: str) -> InteractionCounts:
        """
        Live subcollection sizes. Never raises: zeros on a missing id or
        a failed read.
        """
        if not recipe_id:
            return InteractionCounts()
        try:
            return self._live_counts(recipe_id)
        except Exception as e:
            logger.error("Error getting interaction counts: recipe=%s error=%s", recipe_id, e)
            return InteractionCounts()

    def get_interaction_counts_for_recipes(self, recipe_ids: Iterable[str]) -> dict[str, InteractionCounts]:
        """Fan out over a feed page; one recipe's failure only zeroes that recipe."""
        ids = list(dict.fromkeys(recipe_id for recipe_id in recipe_ids if recipe_id))
        if not ids:
            return {}
        with ThreadPoolExecutor(max_workers=min(self._max_workers, len(ids))) as pool:
            return dict(zip(ids, pool.map(self.get_recipe_interaction_counts, ids)))

    def reconcile_recipe_counters(self, recipe_id: str, repair: bool = True) -> Optional[CounterDrift]:
        """
        Compare the maintained counters with the live subcollection sizes and,
        when ``repair`` is set, overwrite drifting counters with the live values.

        Returns:
            The drift report, or None if the recipe does not exist
        """
        _require(recipe_id=recipe_id)
        try:
            recipe = self._store.get(_recipe_path(recipe_id))
            if recipe is None:
                return None
            live = self._live_counts(recipe_id)
        except Exception as e:
            raise RemoteServiceError("reconcile counters", e) from e

        stored = InteractionCounts(
            likes=int(recipe.get("likes") or 0),
            comments=int(recipe.get("comments") or 0),
            saves=int(recipe.get("saves") or 0),
        )
        drift = CounterDrift(recipe_id=recipe_id, stored=stored, live=live)
        if not drift.has_drift:
            return drift

        logger.warning("Counter drift: recipe=%s stored=%s live=%s", recipe_id, stored, live)
        if repair:
            try:
                self._store.update(
                    _recipe_path(recipe_id),
                    {"likes": live.likes, "comments": live.comments, "saves": live.saves},
                )
            except Exception as e:
                raise RemoteServiceError("reconcile counters", e) from e
            drift.repaired = True
        return drift

    # -- helpers ----------------------------------------------------------

    def _live_counts(self, recipe_id: str) -> InteractionCounts:
        base = _recipe_path(recipe_id)
        return InteractionCounts(
            likes=self._store.count(f"{base}/{LIKES}"),
            comments=self._store.count(f"{base}/{COMMENTS}"),
            saves=self._store.count(f"{base}/{SAVES}"),
        )

    def _exists(self, path: str, recipe_id: str, user_id: str) -> bool:
        if not recipe_id or not user_id:
            return False
        try:
            return self._store.get(path) is not None
        except Exception as e:
            logger.error("Error checking interaction state: path=%s error=%s", path, e)
            return False

    def _get_quietly(self, path: str) -> Optional[dict[str, Any]]:
        try:
            return self._store.get(path)
        except Exception as e:
            logger.warning("Error reading %s: %s", path, e)
            return None

    def _list_mirrors(self, user_id: str, collection: str) -> list[dict[str, Any]]:
        if not user_id:
            return []
        try:
            return self._store.query(f"users/{user_id}/{collection}", order_by="createdAt")
        except Exception as e:
            logger.error("Error listing %s: user=%s error=%s", collection, user_id, e)
            return []
