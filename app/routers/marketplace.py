# =============================================================================
# app/routers/marketplace.py - Marketplace Listings
# =============================================================================
# Browsing is public; creating and editing listings requires sign-in and
# ownership.
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Path, Query
from pydantic import BaseModel

from app.dependencies import CurrentUser
from core.models.marketplace import ListingCreate, ListingUpdate
from core.services.listing_service import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, ListingService

router = APIRouter()

# Last millisecond of year 9999, the largest datetime Python can represent
MAX_CURSOR = 253402300799999


class ListingCreateResponse(BaseModel):
    success: bool = True
    listing_id: str


@router.get("/listings")
async def list_listings(
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = DEFAULT_PAGE_SIZE,
    cursor: Annotated[int | None, Query(ge=0, le=MAX_CURSOR, description="nextCursor from the previous page (createdAt millis)")] = None,
):
    """
    Listings feed, newest first.

    Pass the returned nextCursor to fetch the following page; it is null on
    the last page.
    """
    return ListingService.list_listings(limit=limit, cursor=cursor)


@router.post("/listings", response_model=ListingCreateResponse)
async def create_listing(body: ListingCreate, user: CurrentUser):
    listing_id = ListingService.create_listing(user.uid, body)
    return ListingCreateResponse(listing_id=listing_id)


@router.get("/listings/{listing_id}")
async def get_listing(listing_id: Annotated[str, Path(description="Listing ID")]):
    return ListingService.get_listing(listing_id)


@router.put("/listings/{listing_id}")
async def update_listing(
    listing_id: Annotated[str, Path(description="Listing ID")],
    body: ListingUpdate,
    user: CurrentUser,
):
    ListingService.update_listing(user.uid, listing_id, body)
    return {"success": True}


@router.delete("/listings/{listing_id}")
async def delete_listing(
    listing_id: Annotated[str, Path(description="Listing ID")],
    user: CurrentUser,
):
    ListingService.delete_listing(user.uid, listing_id)
    return {"success": True}
