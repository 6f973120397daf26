# =============================================================================
# app/middleware/ - ASGI Middleware
# =============================================================================
# - rate_limit.py: Fixed-window limiter for upload, token and webhook paths
# =============================================================================

from app.middleware.rate_limit import RateLimitMiddleware

__all__ = ["RateLimitMiddleware"]
