# =============================================================================
# app/ - Creator Collective HTTP API
# =============================================================================
# - main.py: FastAPI app, middleware, exception handlers, router table
# - config.py: Settings read from the environment / .env
# - auth/: Firebase ID token verification and admin checks
# - middleware/: Rate limiting for uploads, playback tokens and webhooks
# - routers/: Endpoints, one module per feature area
#
# Routers stay thin; the rules live in core/services.
# =============================================================================
