# src/app/deps.py
"""
Composition root.
Stores and services are built once at startup from Settings and hung off
``app.state``; route dependencies read them back from the request.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Request

from src.app.config import Settings
from src.app.infra.db.base import DocumentStore
from src.app.infra.db.memory_store import InMemoryDocumentStore
from src.app.infra.media.base import MediaStore
from src.app.infra.media.cloudinary_provider import CloudinaryMediaStore, MockMediaStore
from src.app.services.activity_logs import ActivityLogService
from src.app.services.events import EventBus
from src.app.services.follows import FollowService
from src.app.services.interactions import InteractionService
from src.app.services.notifications import NotificationService
from src.app.services.ratings import RatingService
from src.app.services.recipes import RecipeService
from src.app.services.search import SearchService
from src.app.services.users import UserService

logger = logging.getLogger(__name__)


def build_document_store(settings: Settings) -> DocumentStore:
    """Firestore when enabled and credentials load, otherwise the in-memory store."""
    if settings.FIREBASE_ENABLE_FIRESTORE:
        from src.app.infra.db.firebase_client import get_firestore_client
        from src.app.infra.db.firestore_store import FirestoreDocumentStore

        client = get_firestore_client(settings.FIREBASE_SERVICE_ACCOUNT_FILE)
        if client is not None:
            return FirestoreDocumentStore(client)

    logger.warning("Using in-memory document store; data will not survive a restart")
    return InMemoryDocumentStore()


def build_media_store(settings: Settings) -> MediaStore:
    if settings.cloudinary_configured:
        return CloudinaryMediaStore(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
        )
    return MockMediaStore()


@dataclass
class Services:
    store: DocumentStore
    events: EventBus
    users: UserService
    recipes: RecipeService
    interactions: InteractionService
    ratings: RatingService
    follows: FollowService
    notifications: NotificationService
    activity_logs: ActivityLogService
    search: SearchService


def build_services(store: DocumentStore, events: EventBus | None = None) -> Services:
    """Wire every service to one store and one event bus."""
    events = events or EventBus()
    users = UserService(store)
    recipes = RecipeService(store)
    notifications = NotificationService(store, users)
    activity_logs = ActivityLogService(store, recipes, users)

    events.subscribe(notifications.handle_event)
    events.subscribe(activity_logs.handle_event)

    return Services(
        store=store,
        events=events,
        users=users,
        recipes=recipes,
        interactions=InteractionService(store, events),
        ratings=RatingService(store, events),
        follows=FollowService(store, events, users),
        notifications=notifications,
        activity_logs=activity_logs,
        search=SearchService(recipes, users),
    )


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_media_store(request: Request) -> MediaStore:
    return request.app.state.media_store
