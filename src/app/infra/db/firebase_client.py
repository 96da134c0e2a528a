# src/app/infra/db/firebase_client.py
"""Firebase Admin bootstrap. Returns None instead of raising when credentials are unusable."""
from __future__ import annotations

import logging
import os
from typing import Optional

import firebase_admin
from firebase_admin import credentials, firestore

logger = logging.getLogger(__name__)


def _load_credential(cred_path: Optional[str]):
    if not cred_path or not os.path.exists(cred_path):
        logger.warning(
            "FIREBASE_SERVICE_ACCOUNT_FILE not found (%s). Firestore features disabled.",
            cred_path,
        )
        return None
    return credentials.Certificate(cred_path)


def get_app(cred_path: Optional[str]) -> Optional[firebase_admin.App]:
    """
    Initialise the default Firebase Admin app once.
    Returns None if credentials are missing or invalid.
    """
    if firebase_admin._apps:
        return firebase_admin.get_app()

    cred = _load_credential(cred_path)
    if cred is None:
        return None

    try:
        app = firebase_admin.initialize_app(cred)
    except (ValueError, OSError) as e:
        logger.error("Failed to initialize Firebase: %s", e)
        return None

    logger.info("Firebase app initialized: project=%s", app.project_id)
    return app


def get_firestore_client(cred_path: Optional[str]):
    """Firestore client bound to the default app, or None when unavailable."""
    app = get_app(cred_path)
    if app is None:
        return None
    return firestore.client(app)
