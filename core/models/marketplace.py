# =============================================================================
# core/models/marketplace.py - Listing and Order Schemas
# =============================================================================
# Listings are peer-to-peer gear sales. Amounts are stored in dollars on the
# listing (as entered by the seller) and in cents on orders (as charged).
# =============================================================================

from enum import Enum

from pydantic import BaseModel, Field, HttpUrl

MAX_LISTING_IMAGES = 6
TRACKING_DEADLINE_HOURS = 72


class ListingCreate(BaseModel):
    """Body of POST /marketplace/listings."""

    title: str = Field(..., min_length=1, max_length=200)
    price: float = Field(..., ge=0, description="Price in dollars")
    condition: str = Field(..., min_length=1, description="e.g. 'Like New', 'Used'")
    description: str = Field(default="", max_length=5000)
    shipping: float = Field(default=0, ge=0, description="Flat shipping in dollars")
    location: str = Field(default="", max_length=200)
    images: list[HttpUrl] = Field(default_factory=list, max_length=MAX_LISTING_IMAGES)


class ListingUpdate(BaseModel):
    """Body of PUT /marketplace/listings/{id}; omitted fields are unchanged."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    price: float | None = Field(default=None, ge=0)
    condition: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, max_length=5000)
    shipping: float | None = Field(default=None, ge=0)
    location: str | None = Field(default=None, max_length=200)
    images: list[HttpUrl] | None = Field(default=None, max_length=MAX_LISTING_IMAGES)


class OrderStatus(str, Enum):
    """
    Marketplace order lifecycle.

    Flow: awaiting_tracking -> shipped -> delivered
    Subscription change records are created directly as completed.
    """
    AWAITING_TRACKING = "awaiting_tracking"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"


class TrackingUpdate(BaseModel):
    """Body of POST /orders/{id}/tracking."""

    tracking_number: str = Field(..., min_length=1, max_length=100)
    carrier: str | None = Field(default=None, max_length=50)
    tracking_url: str | None = Field(default=None, max_length=500)
