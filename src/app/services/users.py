from __future__ import annotations

import logging
from typing import Any, Optional

from src.app.domain.errors import RemoteServiceError
from src.app.infra.db.base import DocumentStore

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"


def display_name(profile: Optional[dict[str, Any]], default: str = "User") -> str:
    """Best human-readable name for a user profile."""
    if not profile:
        return default
    name = profile.get("displayName") or profile.get("name")
    if name:
        return name
    email = profile.get("email") or ""
    return email.split("@")[0] or default


class UserService:
    def __init__(self, store: DocumentStore):
        self._store = store

    def get_user_profile(self, user_id: str) -> Optional[dict[str, Any]]:
        if not user_id:
            return None
        try:
            return self._store.get(f"{USERS_COLLECTION}/{user_id}")
        except Exception as e:
            logger.error("Error fetching user profile: user=%s error=%s", user_id, e)
            return None

    def search_users(self, term: str, limit: int = 100) -> list[dict[str, Any]]:
        """
        Case-insensitive partial match on display name, name and email.
        The store has no full-text index, so a capped page is scanned.
        """
        if not term or not term.strip():
            return []

        needle = term.strip().lower()
        try:
            users = self._store.query(USERS_COLLECTION, order_by=None, limit=limit)
        except Exception as e:
            logger.error("Error searching users: %s", e)
            raise RemoteServiceError("search users", e) from e

        matches: list[dict[str, Any]] = []
        for user in users:
            name = (user.get("displayName") or user.get("name") or "").lower()
            email = (user.get("email") or "").lower()
            email_user = email.split("@")[0]
            if needle in name or needle in email_user or needle in email:
                matches.append(
                    {
                        **user,
                        "username": user.get("displayName")
                        or user.get("name")
                        or email_user
                        or f"user_{user['id'][:8]}",
                    }
                )
        return matches
