# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# FastAPI routers organized by feature:
# - health.py: Liveness and readiness checks
# - users.py: Reports, own strikes, blocking
# - admin_moderation.py: Report review, strikes, profile removal (admin)
# - notifications.py: In-app notifications
# - marketplace.py: Listings
# - legacy.py: Legacy creator pages, profiles, videos and subscriptions
# - message_board.py: Post edits, bookmarks, follows, notifications, badges
# - checkout.py: Stripe Checkout for listings, memberships, creator subs
# - orders.py: Order tracking and delivery
# - connect.py: Stripe Connect onboarding
# - analytics.py: Seller sales summary
# - subscriptions.py: Membership plan management
# - webhooks.py: Stripe and Mux webhooks
# - mux.py: Signed playback tokens
# - admin_courses.py: Course authoring (admin)
# - assets.py: Asset pack upload (admin) and download
# - tasks.py: Background task status
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import (
    admin_courses,
    admin_moderation,
    analytics,
    assets,
    checkout,
    connect,
    health,
    legacy,
    marketplace,
    message_board,
    mux,
    notifications,
    orders,
    subscriptions,
    tasks,
    users,
    webhooks,
)

__all__ = [
    "admin_courses",
    "admin_moderation",
    "analytics",
    "assets",
    "checkout",
    "connect",
    "health",
    "legacy",
    "marketplace",
    "message_board",
    "mux",
    "notifications",
    "orders",
    "subscriptions",
    "tasks",
    "users",
    "webhooks",
]
