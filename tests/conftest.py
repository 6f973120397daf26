# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - Swaps FirebaseClient's Firestore and bucket for in-memory fakes
# - Builds TestClients signed in as a member, an admin, or nobody
# =============================================================================

import os

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("FIREBASE_ADMIN_PROJECT_ID", "collective-test")
os.environ.setdefault("ADMIN_EMAIL", "admin@collective.test")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("MUX_TOKEN_ID", "mux-token-id")
os.environ.setdefault("MUX_TOKEN_SECRET", "mux-token-secret")
os.environ.setdefault("MUX_WEBHOOK_SECRET", "mux-webhook-secret")
os.environ.setdefault("CCA_PLATFORM_FEE_BPS", "300")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from app.auth import AuthUser, get_current_user, get_current_user_optional
from lib.firebase_client import FirebaseClient
from tests.fakes import FakeBucket, FakeFirestore

ADMIN_EMAIL = os.environ["ADMIN_EMAIL"]


# =============================================================================
# Firebase Fakes
# =============================================================================

@pytest.fixture(autouse=True)
def fake_firebase():
    """Install fresh in-memory Firestore and Storage for every test."""
    db = FakeFirestore()
    bucket = FakeBucket()
    FirebaseClient._db = db
    FirebaseClient._bucket = bucket
    yield db, bucket
    FirebaseClient.reset()


@pytest.fixture
def db(fake_firebase) -> FakeFirestore:
    return fake_firebase[0]


@pytest.fixture
def bucket(fake_firebase) -> FakeBucket:
    return fake_firebase[1]


# =============================================================================
# Users
# =============================================================================

@pytest.fixture
def member() -> AuthUser:
    """A signed-in, non-admin user."""
    return AuthUser(uid="member-1", email="member@collective.test", email_verified=True)


@pytest.fixture
def admin() -> AuthUser:
    """The configured administrator."""
    return AuthUser(uid="admin-1", email=ADMIN_EMAIL, email_verified=True)


@pytest.fixture
def seed_user(db):
    """Create a users document: seed_user("u1", email=..., membershipPlanType=...)."""
    def _seed(uid: str, **fields):
        data = {"email": f"{uid}@collective.test", "displayName": uid.title(), **fields}
        db.seed(f"users/{uid}", data)
        return data
    return _seed


# =============================================================================
# API Clients
# =============================================================================

@pytest.fixture
def make_client():
    """
    Build a TestClient authenticated as the given user (None = anonymous).

    Auth is overridden at the token-verification dependencies, so admin
    checks still run against ADMIN_EMAIL and the users collection.
    Overrides are app-wide: the most recently built client wins.
    """
    from app.main import app

    def _make(user: AuthUser | None) -> TestClient:
        app.dependency_overrides.clear()
        if user is not None:
            app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_current_user_optional] = lambda: user
        return TestClient(app, raise_server_exceptions=False)

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client, member) -> TestClient:
    return make_client(member)


@pytest.fixture
def admin_client(make_client, admin) -> TestClient:
    return make_client(admin)


@pytest.fixture
def anon_client(make_client) -> TestClient:
    return make_client(None)
