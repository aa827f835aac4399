"""Firebase configuration and initialization"""

import json
import logging
from typing import Optional

import firebase_admin
from firebase_admin import credentials

from .config import Settings

logger = logging.getLogger(__name__)

firebase_app: Optional[firebase_admin.App] = None


def initialize_firebase(settings: Settings) -> Optional[firebase_admin.App]:
    """Initialize Firebase Admin SDK, or return None when not configured"""
    global firebase_app

    if firebase_app:
        return firebase_app

    # Try to load credentials from environment variable
    if settings.FIREBASE_CREDENTIALS_JSON:
        cred = credentials.Certificate(json.loads(settings.FIREBASE_CREDENTIALS_JSON))
    # Or from file path
    elif settings.FIREBASE_CREDENTIALS_PATH:
        cred = credentials.Certificate(settings.FIREBASE_CREDENTIALS_PATH)
    else:
        return None

    firebase_app = firebase_admin.initialize_app(cred)
    logger.info("Firebase Admin SDK initialized successfully")
    return firebase_app
