"""
Firebase initialization and push helpers
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Dict, Optional
import base64
import os

import firebase_admin
from firebase_admin import credentials, messaging

from medevents.core.config import settings

logger = logging.getLogger(__name__)


def _load_credentials() -> dict[str, Any] | None:
    if settings.FIREBASE_CREDENTIALS_JSON:
        return json.loads(settings.FIREBASE_CREDENTIALS_JSON)
    if settings.FIREBASE_CREDENTIALS_B64:
        decoded = base64.b64decode(settings.FIREBASE_CREDENTIALS_B64).decode("utf-8")
        return json.loads(decoded)
    if settings.FIREBASE_CREDENTIALS_FILE and os.path.exists(settings.FIREBASE_CREDENTIALS_FILE):
        with open(settings.FIREBASE_CREDENTIALS_FILE, "r", encoding="utf-8") as f:
            return json.load(f)
    return None


@lru_cache(maxsize=1)
def get_firebase_app():
    """Initialize and return the default Firebase app, or None when no credentials are configured.

    Credentials come from one of: FIREBASE_CREDENTIALS_JSON, FIREBASE_CREDENTIALS_B64, FIREBASE_CREDENTIALS_FILE.
    """
    if firebase_admin._apps:
        return firebase_admin.get_app()

    info = _load_credentials()
    if not info:
        return None

    cred = credentials.Certificate(info)
    return firebase_admin.initialize_app(cred)


def send_push(token: str, title: str, body: str, data: Optional[Dict[str, str]] = None) -> bool:
    """Send a push notification to one device. Returns False when push is not configured."""
    app = get_firebase_app()
    if app is None:
        logger.info(f"Push disabled. Would send: {title}")
        return False

    message = messaging.Message(
        notification=messaging.Notification(title=title, body=body),
        data={k: str(v) for k, v in (data or {}).items()},
        token=token,
    )
    message_id = messaging.send(message, app=app)
    logger.info(f"Push notification sent: {message_id}")
    return True
