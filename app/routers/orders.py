# =============================================================================
# app/routers/orders.py - Marketplace Orders
# =============================================================================
# Flow: awaiting_tracking -> shipped (seller adds tracking) -> delivered
# (buyer confirms).
# =============================================================================

from typing import Annotated, Literal

from fastapi import APIRouter, Path, Query

from app.dependencies import CurrentUser
from core.models.marketplace import TrackingUpdate
from core.services.order_service import OrderService

router = APIRouter()


@router.get("")
async def list_orders(
    user: CurrentUser,
    role: Annotated[Literal["buyer", "seller"], Query(description="Orders bought or sold")] = "buyer",
    limit: Annotated[int, Query(ge=1, le=100)] = 100,
):
    orders = OrderService.list_orders(user.uid, role=role, limit=limit)
    return {"orders": orders, "count": len(orders)}


@router.post("/{order_id}/tracking")
async def add_tracking(
    order_id: Annotated[str, Path(description="Order ID")],
    body: TrackingUpdate,
    user: CurrentUser,
):
    """Seller adds shipment tracking; the buyer is notified."""
    OrderService.update_tracking(
        seller_id=user.uid,
        order_id=order_id,
        tracking_number=body.tracking_number,
        carrier=body.carrier,
        tracking_url=body.tracking_url,
    )
    return {"success": True, "status": "shipped"}


@router.post("/{order_id}/delivered")
async def mark_delivered(
    order_id: Annotated[str, Path(description="Order ID")],
    user: CurrentUser,
):
    """Buyer confirms delivery; the seller is notified."""
    OrderService.mark_delivered(user.uid, order_id)
    return {"success": True, "status": "delivered"}
