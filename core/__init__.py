# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the platform's business logic:
# - models/: Pydantic request schemas and domain constants
# - services/: Firestore, Storage, Stripe and Mux operations
#
# Services raise CollectiveException subclasses and never build HTTP
# responses; routers in app/ stay thin.
# =============================================================================
