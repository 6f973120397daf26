# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .analytics_service import AnalyticsService
from .asset_ingest_service import AssetIngestService
from .audit_service import AuditService
from .checkout_service import CheckoutService
from .connect_service import ConnectService
from .course_service import CourseService
from .entitlement_service import EntitlementService
from .legacy_service import LegacyService
from .listing_service import ListingService
from .message_board_service import MessageBoardService
from .moderation_service import ModerationService
from .notification_service import NotificationService
from .order_service import OrderService
from .playback_service import PlaybackService
from .storage_service import StorageService
from .subscription_service import SubscriptionService
from .user_service import UserService

__all__ = [
    "AnalyticsService",
    "AssetIngestService",
    "AuditService",
    "CheckoutService",
    "ConnectService",
    "CourseService",
    "EntitlementService",
    "LegacyService",
    "ListingService",
    "MessageBoardService",
    "ModerationService",
    "NotificationService",
    "OrderService",
    "PlaybackService",
    "StorageService",
    "SubscriptionService",
    "UserService",
]
