# =============================================================================
# core/services/audit_service.py - Audit Trail
# =============================================================================
# Appends security-relevant events (token issued, strike issued, payout
# sent) to the auditLogs collection. Auditing is best effort: a failed
# write is logged and never fails the request that triggered it.
# =============================================================================

import logging
from typing import Any

from firebase_admin import firestore

from lib.firebase_client import FirebaseClient

logger = logging.getLogger(__name__)

AUDIT_COLLECTION = "auditLogs"


class AuditService:
    """Writes audit events."""

    @staticmethod
    def record(event: str, details: dict[str, Any] | None = None) -> None:
        """
        Record an audit event.

        Args:
            event: Short event name, e.g. "mux_token_issued"
            details: JSON-serializable context
        """
        try:
            FirebaseClient.get_db().collection(AUDIT_COLLECTION).add({
                "event": event,
                "details": details or {},
                "createdAt": firestore.SERVER_TIMESTAMP,
            })
        except Exception as e:
            logger.warning(f"Failed to record audit event {event}: {e}")
