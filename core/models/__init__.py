# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains request schemas and domain constants:
# - moderation.py: Reports, strikes and profile removal
# - marketplace.py: Listings, orders and tracking
# - subscription.py: Membership plans and payout shares
# - course.py: Course/module/lesson authoring
# - asset.py: Asset pack categories and ingestion results
# - notification.py: Notification types
# - legacy.py: Legacy creator profiles and videos
# - message_board.py: Message board edits, notifications and badges
# =============================================================================

# -----------------------------------------------------------------------------
# Moderation Models
# -----------------------------------------------------------------------------
from .moderation import (
    MAX_STRIKES,
    ProfileRemovalRequest,
    ReportCreate,
    ReportReason,
    ReportStatus,
    ReportStatusUpdate,
    StrikeCreate,
    StrikeResult,
)

# -----------------------------------------------------------------------------
# Marketplace Models
# -----------------------------------------------------------------------------
from .marketplace import (
    ListingCreate,
    ListingUpdate,
    OrderStatus,
    TrackingUpdate,
)

# -----------------------------------------------------------------------------
# Subscription Models
# -----------------------------------------------------------------------------
from .subscription import (
    PLAN_CONFIG,
    ChangePlanRequest,
    MembershipCheckoutRequest,
    PlanType,
)

# -----------------------------------------------------------------------------
# Course Models
# -----------------------------------------------------------------------------
from .course import (
    CourseCreate,
    LessonCreate,
    LessonMove,
    LessonUpdate,
    ModuleCreate,
    ModuleUpdate,
    MuxLink,
)

# -----------------------------------------------------------------------------
# Asset & Notification Models
# -----------------------------------------------------------------------------
from .asset import AssetCategory, IngestResult
from .notification import NotificationType

# -----------------------------------------------------------------------------
# Legacy Creator & Message Board Models
# -----------------------------------------------------------------------------
from .legacy import FeaturedVideo, LegacyProfileUpdate, LegacyVideoAttach
from .message_board import (
    BADGE_DEFINITIONS,
    CommentNotification,
    MentionNotification,
    PostEdit,
    ReplyNotification,
)

__all__ = [
    # Moderation
    "MAX_STRIKES",
    "ProfileRemovalRequest",
    "ReportCreate",
    "ReportReason",
    "ReportStatus",
    "ReportStatusUpdate",
    "StrikeCreate",
    "StrikeResult",
    # Marketplace
    "ListingCreate",
    "ListingUpdate",
    "OrderStatus",
    "TrackingUpdate",
    # Subscription
    "PLAN_CONFIG",
    "ChangePlanRequest",
    "MembershipCheckoutRequest",
    "PlanType",
    # Course
    "CourseCreate",
    "LessonCreate",
    "LessonMove",
    "LessonUpdate",
    "ModuleCreate",
    "ModuleUpdate",
    "MuxLink",
    # Asset & Notification
    "AssetCategory",
    "IngestResult",
    "NotificationType",
    # Legacy creators
    "FeaturedVideo",
    "LegacyProfileUpdate",
    "LegacyVideoAttach",
    # Message board
    "BADGE_DEFINITIONS",
    "CommentNotification",
    "MentionNotification",
    "PostEdit",
    "ReplyNotification",
]
