# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# Entry point for the Creator Collective API: middleware, exception handlers
# and routers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.auth import routes as auth_routes
from app.config import settings
from app.exceptions import (
    CollectiveException,
    collective_exception_handler,
    validation_exception_handler,
)
from app.middleware.rate_limit import RateLimitMiddleware
from app.routers import (
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

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log configuration on startup and shutdown."""
    logger.info(f"Starting Creator Collective API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.warning("STRIPE_WEBHOOK_SECRET not set; Stripe webhooks will be acknowledged without processing")

    yield

    logger.info("Shutting down Creator Collective API")


app = FastAPI(
    title="Creator Collective API",
    description="""
## Course Platform and Creator Marketplace API

Video courses for members, a marketplace for gear and creative assets, and
the moderation and payout tooling behind them.

### Authentication

Send a Firebase ID token as `Authorization: Bearer <token>`. Admin routes
additionally require the configured admin account or an admin role.

### Payments

Checkout endpoints return Stripe Checkout Sessions. Orders, memberships and
creator payouts are created by the Stripe webhook once payment completes.
""",
    version=health.API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Auth", "description": "Who the bearer token belongs to"},
        {"name": "Users", "description": "Reports, strikes and blocking"},
        {"name": "Notifications", "description": "In-app notifications"},
        {"name": "Marketplace", "description": "Listings"},
        {"name": "Checkout", "description": "Stripe Checkout Sessions"},
        {"name": "Orders", "description": "Shipping and delivery"},
        {"name": "Connect", "description": "Seller payout accounts"},
        {"name": "Analytics", "description": "Seller sales summary"},
        {"name": "Subscriptions", "description": "Membership plans"},
        {"name": "Mux", "description": "Signed video playback"},
        {"name": "Assets", "description": "Digital asset packs"},
        {"name": "Webhooks", "description": "Stripe and Mux callbacks"},
        {"name": "Admin", "description": "Moderation, courses and asset ingestion"},
        {"name": "Tasks", "description": "Background task progress"},
        {"name": "Health", "description": "Liveness and readiness checks"},
    ],
)


# =============================================================================
# Middleware
# =============================================================================

app.add_middleware(
    RateLimitMiddleware,
    limit=settings.RATE_LIMIT_MAX_REQUESTS,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
)

# CORS middleware - allows cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

app.add_exception_handler(CollectiveException, collective_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

ROUTES = [
    (auth_routes.router, "/auth", "Auth"),
    (health.router, "", "Health"),
    (users.router, "/users", "Users"),
    (notifications.router, "/notifications", "Notifications"),
    (marketplace.router, "/marketplace", "Marketplace"),
    (legacy.router, "/legacy", "Legacy Creators"),
    (message_board.router, "/message-board", "Message Board"),
    (checkout.router, "/checkout", "Checkout"),
    (orders.router, "/orders", "Orders"),
    (connect.router, "/connect", "Connect"),
    (analytics.router, "/analytics", "Analytics"),
    (subscriptions.router, "/subscriptions", "Subscriptions"),
    (mux.router, "/mux", "Mux"),
    (assets.router, "/assets", "Assets"),
    (webhooks.router, "/webhooks", "Webhooks"),
    (admin_moderation.router, "/admin/moderation", "Admin"),
    (admin_courses.router, "/admin/courses", "Admin"),
    (assets.admin_router, "/admin/assets", "Admin"),
    (tasks.router, "/tasks", "Tasks"),
]

for router, prefix, tag in ROUTES:
    app.include_router(router, prefix=f"{API_PREFIX}{prefix}", tags=[tag])


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """Root endpoint - returns API info."""
    return {
        "name": "Creator Collective API",
        "version": health.API_VERSION,
        "docs": "/docs",
        "health": f"{API_PREFIX}/health",
    }
