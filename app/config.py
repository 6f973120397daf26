# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.FIREBASE_ADMIN_PROJECT_ID)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings are accessed via the global `settings` instance.
    Third-party credentials default to empty strings so the API can boot
    in development without every integration configured; the client
    wrappers in lib/ raise a descriptive error when a missing credential
    is actually needed.
    """

    # -------------------------------------------------------------------------
    # Firebase Configuration
    # -------------------------------------------------------------------------
    # Project ID is required - it is also the audience of Firebase ID tokens

    FIREBASE_ADMIN_PROJECT_ID: str = Field(
        ...,
        description="Firebase/GCP project ID (e.g., course-creator-academy)"
    )

    FIREBASE_ADMIN_CLIENT_EMAIL: str = Field(
        default="",
        description="Service account client email"
    )

    FIREBASE_ADMIN_PRIVATE_KEY: str = Field(
        default="",
        description="Service account private key (PEM, '\\n' escapes allowed)"
    )

    FIREBASE_STORAGE_BUCKET: str = Field(
        default="",
        description="Cloud Storage bucket (defaults to <project>.firebasestorage.app)"
    )

    # -------------------------------------------------------------------------
    # Stripe Configuration
    # -------------------------------------------------------------------------

    STRIPE_SECRET_KEY: str = Field(
        default="",
        description="Stripe secret API key"
    )

    STRIPE_WEBHOOK_SECRET: str = Field(
        default="",
        description="Signing secret for platform webhook events"
    )

    STRIPE_CONNECT_WEBHOOK_SECRET: str = Field(
        default="",
        description="Signing secret for Connect webhook events"
    )

    # -------------------------------------------------------------------------
    # Mux Configuration
    # -------------------------------------------------------------------------

    MUX_TOKEN_ID: str = Field(default="", description="Mux API access token ID")

    MUX_TOKEN_SECRET: str = Field(default="", description="Mux API access token secret")

    MUX_SIGNING_KEY_ID: str = Field(
        default="",
        description="Mux signing key ID (JWT 'kid' header)"
    )

    MUX_SIGNING_PRIVATE_KEY: str = Field(
        default="",
        description="Mux signing private key (PEM, '\\n' escapes allowed)"
    )

    MUX_WEBHOOK_SECRET: str = Field(
        default="",
        description="Secret used to verify Mux-Signature headers"
    )

    # -------------------------------------------------------------------------
    # Business Rules
    # -------------------------------------------------------------------------

    CCA_PLATFORM_FEE_BPS: int = Field(
        default=300,
        ge=0,
        description="Marketplace platform fee in basis points (300 = 3%)"
    )

    LEGACY_ALL_ACCESS_PLANS: str = Field(
        default="cca_membership_87",
        description="Membership plans that unlock every legacy creator (comma-separated)"
    )

    ADMIN_EMAIL: str = Field(
        default="info@cochranfilms.com",
        description="Administrator account; receives moderation notifications"
    )

    BASE_URL: str = Field(
        default="http://localhost:3000",
        description="Public site URL used for Stripe redirect URLs"
    )

    # -------------------------------------------------------------------------
    # Redis Configuration (for Celery)
    # -------------------------------------------------------------------------

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for Celery broker"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging, auto-reload)"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # Rate Limiting
    # -------------------------------------------------------------------------

    RATE_LIMIT_WINDOW_SECONDS: int = Field(
        default=60,
        ge=1,
        description="Fixed window length for sensitive endpoints"
    )

    RATE_LIMIT_MAX_REQUESTS: int = Field(
        default=60,
        ge=1,
        description="Requests allowed per client and path in one window"
    )

    # -------------------------------------------------------------------------
    # Asset Upload Settings
    # -------------------------------------------------------------------------

    MAX_ASSET_UPLOAD_MB: int = Field(
        default=2048,
        ge=1,
        description="Maximum asset pack ZIP size in MB"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS string into a list."""
        from lib.utils import parse_csv_list

        return parse_csv_list(self.CORS_ORIGINS)

    @property
    def all_access_plans(self) -> list[str]:
        """
        Parse LEGACY_ALL_ACCESS_PLANS into a list.

        Falls back to the $87 membership when the variable is blank.
        """
        from lib.utils import parse_csv_list

        plans = parse_csv_list(self.LEGACY_ALL_ACCESS_PLANS)
        return plans or ["cca_membership_87"]

    @property
    def firebase_private_key(self) -> str:
        """Service account key with literal '\\n' sequences expanded."""
        return self.FIREBASE_ADMIN_PRIVATE_KEY.replace("\\n", "\n")

    @property
    def mux_signing_private_key(self) -> str:
        """Mux signing key with literal '\\n' sequences expanded."""
        return self.MUX_SIGNING_PRIVATE_KEY.replace("\\n", "\n")

    @property
    def storage_bucket_name(self) -> str:
        """Configured bucket or the project's default Firebase bucket."""
        return self.FIREBASE_STORAGE_BUCKET or f"{self.FIREBASE_ADMIN_PROJECT_ID}.firebasestorage.app"

    @property
    def max_asset_upload_bytes(self) -> int:
        """Convert MB to bytes for upload size validation."""
        return self.MAX_ASSET_UPLOAD_MB * 1024 * 1024

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Returns:
        Settings: The application settings instance
    """
    return Settings()


# Global settings instance for easy importing
settings = get_settings()
