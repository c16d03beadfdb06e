"""
Firebase Admin app initialization from service-account settings.
"""

from __future__ import annotations

import logging

import firebase_admin
from firebase_admin import credentials

from examprep.config import Settings

logger = logging.getLogger(__name__)


def get_firebase_app(settings: Settings) -> firebase_admin.App:
    """
    Returns the default Firebase app, initializing it on first use.

    Explicit service-account settings take precedence; otherwise Application
    Default Credentials are used.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    if settings.firebase_configured:
        credential = credentials.Certificate(
            {
                "type": "service_account",
                "project_id": settings.firebase_project_id,
                "client_email": settings.firebase_client_email,
                "private_key": settings.firebase_private_key,
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        )
        app = firebase_admin.initialize_app(
            credential, {"projectId": settings.firebase_project_id}
        )
    else:
        app = firebase_admin.initialize_app()
    logger.info("Firebase Admin initialized for project %s", app.project_id)
    return app
