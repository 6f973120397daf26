# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the Creator Collective API:
# - fakes.py: In-memory Firestore and Cloud Storage used by every test
# - test_*_service.py / test_*.py: Unit tests per service and helper
# - test_routes.py: Endpoint tests through FastAPI's TestClient
#
# Run tests with: pytest
# =============================================================================
