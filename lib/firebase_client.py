# =============================================================================
# lib/firebase_client.py - Firebase Admin Client Wrapper
# =============================================================================
# This module owns the single firebase_admin App used by the API, the
# Celery workers and the maintenance scripts. It hands out:
# - The Firestore client (all persistent application state)
# - The Cloud Storage bucket (asset packs, previews, LUT files)
#
# Usage:
#   from lib.firebase_client import FirebaseClient
#   db = FirebaseClient.get_db()
#   user = db.collection("users").document(uid).get()
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

import firebase_admin
from firebase_admin import credentials, firestore, storage

from app.config import settings

logger = logging.getLogger(__name__)


class FirebaseClientError(Exception):
    """
    Error during Firebase initialization.

    Carries a code and a suggestion so startup failures say how to fix them.
    """

    def __init__(
        self,
        message: str,
        code: str = "FIREBASE_ERROR",
        suggestion: str | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


class FirebaseClient:
    """
    Singleton access to Firestore and Cloud Storage.

    All methods are class methods; the App is created lazily on first use
    so importing this module never touches the network.
    """

    _app: firebase_admin.App | None = None
    _db: Any = None
    _bucket: Any = None

    @classmethod
    def _build_credential(cls) -> credentials.Base:
        """
        Build a service account credential from settings.

        Falls back to Application Default Credentials when no client email
        is configured (Cloud Run, local gcloud auth).
        """
        if not settings.FIREBASE_ADMIN_CLIENT_EMAIL:
            return credentials.ApplicationDefault()

        private_key = settings.firebase_private_key
        if "BEGIN PRIVATE KEY" not in private_key or "END PRIVATE KEY" not in private_key:
            raise FirebaseClientError(
                message="FIREBASE_ADMIN_PRIVATE_KEY is not a PEM private key",
                code="INVALID_PRIVATE_KEY",
                suggestion="Paste the private_key value from the service account JSON, keeping the BEGIN/END lines",
            )

        return credentials.Certificate({
            "type": "service_account",
            "project_id": settings.FIREBASE_ADMIN_PROJECT_ID,
            "client_email": settings.FIREBASE_ADMIN_CLIENT_EMAIL,
            "private_key": private_key,
            "token_uri": "https://oauth2.googleapis.com/token",
        })

    @classmethod
    def get_app(cls) -> firebase_admin.App:
        """
        Get or create the firebase_admin App.

        Raises:
            FirebaseClientError: If the App cannot be initialized
        """
        if cls._app is None:
            try:
                if firebase_admin._apps:
                    cls._app = firebase_admin.get_app()
                else:
                    cls._app = firebase_admin.initialize_app(
                        cls._build_credential(),
                        {
                            "projectId": settings.FIREBASE_ADMIN_PROJECT_ID,
                            "storageBucket": settings.storage_bucket_name,
                        },
                    )
                logger.info(f"Firebase app initialized for project {settings.FIREBASE_ADMIN_PROJECT_ID}")
            except FirebaseClientError:
                raise
            except Exception as e:
                raise FirebaseClientError(
                    message=f"Failed to initialize Firebase: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check FIREBASE_ADMIN_PROJECT_ID, FIREBASE_ADMIN_CLIENT_EMAIL and FIREBASE_ADMIN_PRIVATE_KEY in your .env file",
                )
        return cls._app

    @classmethod
    def get_db(cls):
        """Get the shared Firestore client."""
        if cls._db is None:
            cls._db = firestore.client(app=cls.get_app())
        return cls._db

    @classmethod
    def get_bucket(cls):
        """Get the default Cloud Storage bucket."""
        if cls._bucket is None:
            cls._bucket = storage.bucket(app=cls.get_app())
        return cls._bucket

    @classmethod
    def reset(cls) -> None:
        """Drop cached clients (tests swap in fakes through this)."""
        cls._app = None
        cls._db = None
        cls._bucket = None


# =============================================================================
# Document Helpers
# =============================================================================

def snapshot_to_dict(snapshot) -> dict[str, Any] | None:
    """
    Convert a DocumentSnapshot to a plain dict with its ID under "id".

    Returns None for snapshots of missing documents.
    """
    if not snapshot.exists:
        return None
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return data


def to_millis(value: Any) -> int | None:
    """
    Convert a Firestore timestamp (or epoch millis) to epoch milliseconds.

    Returns None for values that carry no time (e.g. the SERVER_TIMESTAMP
    sentinel on a document that hasn't been re-read).
    """
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if hasattr(value, "timestamp"):
        return int(round(value.timestamp() * 1000))
    return None
