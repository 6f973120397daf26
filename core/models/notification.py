# =============================================================================
# core/models/notification.py - In-App Notifications
# =============================================================================

from enum import Enum


class NotificationType(str, Enum):
    """Kinds of notification written to users/{uid}/notifications."""
    ORDER_PLACED = "order_placed"
    ORDER_SHIPPED = "order_shipped"
    ORDER_DELIVERED = "order_delivered"
    USER_REPORTED = "user_reported"
    STRIKE_ISSUED = "strike_issued"
    SUBSCRIPTION_UPGRADED = "subscription_upgraded"
    SUBSCRIPTION_DOWNGRADED = "subscription_downgraded"
    PAYOUT_PROCESSED = "payout_processed"
    LEGACY_SUBSCRIPTION_ACTIVE = "legacy_subscription_active"
    LEGACY_SUBSCRIPTION_CANCELED = "legacy_subscription_canceled"
    MESSAGE_RECEIVED = "message_received"
