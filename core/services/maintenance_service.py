# =============================================================================
# core/services/maintenance_service.py - Backfills and Data Repair
# =============================================================================
# Operations behind the scripts/ CLIs and the scheduled worker tasks. Each
# takes dry_run and returns a summary dict instead of printing, so the same
# code runs from a terminal, a Celery task or a test.
# =============================================================================

import logging
import tempfile
import zipfile
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any

from firebase_admin import firestore

from app.exceptions import CollectiveException
from core.models.asset import AUDIO_EXTENSIONS, LUT_EXTENSIONS, OVERLAY_EXTENSIONS, AssetCategory, IngestResult
from core.models.marketplace import OrderStatus
from core.services.asset_ingest_service import (
    AssetIngestService,
    create_lut_previews,
    existing_lut_names,
    extract_entries,
    pack_name,
)
from core.services.fee_service import compute_application_fee
from core.services.storage_service import StorageService
from core.services.subscription_service import SUBSCRIPTION_CHANGE, classify_plan_change_invoice
from lib.firebase_client import FirebaseClient
from lib.mux_client import MuxClient
from lib.mux_thumbnails import animated_gif_url
from lib.stripe_client import get_stripe

logger = logging.getLogger(__name__)

# Rounding slack when comparing stored and expected fees (cents)
FEE_TOLERANCE = 1


# =============================================================================
# Mux
# =============================================================================

def backfill_mux_durations(dry_run: bool = False) -> dict[str, Any]:
    """
    Fill durationSec on lessons that have a Mux asset but no duration.

    Returns:
        {"scanned", "updated", "skipped", "errors"}
    """
    db = FirebaseClient.get_db()
    lessons = db.collection_group("lessons").where(filter=firestore.FieldFilter("muxAssetId", "!=", None)).stream()
    summary = {"scanned": 0, "updated": 0, "skipped": 0, "errors": []}

    for doc in lessons:
        summary["scanned"] += 1
        data = doc.to_dict() or {}
        if data.get("durationSec"):
            summary["skipped"] += 1
            continue
        asset_id = data.get("muxAssetId")
        try:
            duration = MuxClient.duration_seconds(MuxClient.get_asset(asset_id))
        except CollectiveException as e:
            summary["errors"].append(f"{doc.reference.path}: {e.message}")
            continue
        if duration <= 0:
            summary["skipped"] += 1
            continue

        if not dry_run:
            doc.reference.update({"durationSec": duration, "updatedAt": firestore.SERVER_TIMESTAMP})
        summary["updated"] += 1
        logger.info(f"{'[dry run] ' if dry_run else ''}{doc.reference.path}: durationSec={duration}")

    return summary


def backfill_mux_animated_gifs(width: int = 320, dry_run: bool = False) -> dict[str, Any]:
    """
    Set muxAnimatedGifUrl on lessons that have a playback ID but no GIF.

    Returns:
        {"scanned", "updated", "skipped", "errors"}
    """
    db = FirebaseClient.get_db()
    lessons = db.collection_group("lessons").where(filter=firestore.FieldFilter("muxPlaybackId", "!=", None)).stream()
    summary: dict[str, Any] = {"scanned": 0, "updated": 0, "skipped": 0, "errors": []}

    for doc in lessons:
        summary["scanned"] += 1
        data = doc.to_dict() or {}
        playback_id = data.get("muxPlaybackId")
        if not playback_id or data.get("muxAnimatedGifUrl"):
            summary["skipped"] += 1
            continue

        url = animated_gif_url(playback_id, width=width)
        if not dry_run:
            doc.reference.set({"muxAnimatedGifUrl": url, "updatedAt": firestore.SERVER_TIMESTAMP}, merge=True)
        summary["updated"] += 1
        logger.info(f"{'[dry run] ' if dry_run else ''}{doc.reference.path}: {url}")

    return summary


def list_mux_assets(limit: int | None = None) -> list[dict[str, Any]]:
    """Assets in the Mux environment as flat rows, in the order Mux lists them."""
    rows = []
    for asset in MuxClient.iter_assets():
        created = asset.get("created_at")
        rows.append({
            "id": asset.get("id"),
            "playbackId": MuxClient.first_playback_id(asset),
            "status": asset.get("status") or "unknown",
            "durationSec": MuxClient.duration_seconds(asset),
            "createdAt": datetime.fromtimestamp(int(created), tz=timezone.utc).isoformat() if created else None,
        })
        if limit is not None and len(rows) >= limit:
            break
    return rows


# =============================================================================
# Asset packs
# =============================================================================

def unzip_lut_assets(asset_id: str | None = None, dry_run: bool = False) -> dict[str, Any]:
    """
    Extract .cube files from stored LUT pack ZIPs into lutPreviews documents.

    Args:
        asset_id: Only this asset; every LUT asset when None
        dry_run: Report what would be created without writing

    Returns:
        {"assets", "created", "errors"}
    """
    db = FirebaseClient.get_db()
    if asset_id:
        snapshot = db.collection("assets").document(asset_id).get()
        snapshots = [snapshot] if snapshot.exists else []
    else:
        snapshots = list(
            db.collection("assets")
            .where(filter=firestore.FieldFilter("category", "==", AssetCategory.LUTS.value))
            .stream()
        )

    summary: dict[str, Any] = {"assets": 0, "created": 0, "errors": []}
    for snapshot in snapshots:
        data = snapshot.to_dict() or {}
        storage_path = data.get("storagePath")
        if not storage_path or not storage_path.lower().endswith(".zip"):
            logger.info(f"Asset {snapshot.id} has no ZIP, skipping")
            continue

        summary["assets"] += 1
        pack = pack_name(PurePosixPath(storage_path).name)
        try:
            with tempfile.TemporaryDirectory(prefix="lut-") as tmp:
                zip_path = StorageService.download_to_file(storage_path, Path(tmp) / "pack.zip")
                cubes = extract_entries(zip_path, Path(tmp) / "cube", LUT_EXTENSIONS)
                created, errors = create_lut_previews(
                    snapshot.id,
                    data.get("title") or pack,
                    pack,
                    cubes,
                    cube_prefix=f"assets/luts/{pack}",
                    skip_names=existing_lut_names(snapshot.id),
                    dry_run=dry_run,
                )
        except CollectiveException as e:
            summary["errors"].append(f"{snapshot.id}: {e.message}")
            continue
        except zipfile.BadZipFile as e:
            summary["errors"].append(f"{snapshot.id}: {e}")
            continue

        summary["created"] += created
        summary["errors"].extend(f"{snapshot.id}: {error}" for error in errors)
        logger.info(f"{'[dry run] ' if dry_run else ''}Asset {snapshot.id}: {created} LUT preview(s) from {len(cubes)} file(s)")

    return summary


# Category -> (item subcollection, extensions)
PACK_ITEMS: dict[str, tuple[str, set[str]]] = {
    AssetCategory.OVERLAYS.value: ("overlays", OVERLAY_EXTENSIONS),
    AssetCategory.SFX.value: ("soundEffects", AUDIO_EXTENSIONS),
}


def unzip_pack_assets(category: str, asset_id: str | None = None, dry_run: bool = False) -> dict[str, Any]:
    """
    Expand stored overlay or SFX pack ZIPs into item documents.

    Assets that already have items are skipped, so re-runs only pick up
    packs uploaded before extraction existed. A dry run extracts the ZIP
    and counts the files it would upload.

    Returns:
        {"assets", "processed", "skipped", "created", "errors"}
    """
    if category not in PACK_ITEMS:
        raise ValueError(f"No item extraction for category {category}")
    subcollection, extensions = PACK_ITEMS[category]

    db = FirebaseClient.get_db()
    if asset_id:
        snapshot = db.collection("assets").document(asset_id).get()
        snapshots = [snapshot] if snapshot.exists else []
    else:
        snapshots = list(
            db.collection("assets")
            .where(filter=firestore.FieldFilter("category", "==", category))
            .stream()
        )

    summary: dict[str, Any] = {"assets": len(snapshots), "processed": 0, "skipped": 0, "created": 0, "errors": []}
    for snapshot in snapshots:
        data = snapshot.to_dict() or {}
        storage_path = data.get("storagePath")
        if not storage_path or not storage_path.lower().endswith(".zip"):
            logger.info(f"Asset {snapshot.id} has no ZIP, skipping")
            summary["skipped"] += 1
            continue
        if next(iter(snapshot.reference.collection(subcollection).limit(1).stream()), None) is not None:
            logger.info(f"Asset {snapshot.id} already has {subcollection}, skipping")
            summary["skipped"] += 1
            continue

        pack = pack_name(PurePosixPath(storage_path).name)
        title = data.get("title") or pack
        result = IngestResult(asset_id=snapshot.id)
        try:
            with tempfile.TemporaryDirectory(prefix="pack-") as tmp:
                zip_path = StorageService.download_to_file(storage_path, Path(tmp) / "pack.zip")
                extract_dir = Path(tmp) / "extracted"
                if dry_run:
                    result.documents_created = len(extract_entries(zip_path, extract_dir, extensions, result.errors))
                elif subcollection == "overlays":
                    AssetIngestService.process_overlays(zip_path, extract_dir, snapshot.id, title, pack, result)
                else:
                    AssetIngestService.process_sfx(zip_path, extract_dir, snapshot.id, title, pack, result)
        except CollectiveException as e:
            summary["errors"].append(f"{snapshot.id}: {e.message}")
            continue
        except zipfile.BadZipFile as e:
            summary["errors"].append(f"{snapshot.id}: {e}")
            continue

        summary["processed"] += 1
        summary["created"] += result.documents_created
        summary["errors"].extend(f"{snapshot.id}: {error}" for error in result.errors)
        logger.info(f"{'[dry run] ' if dry_run else ''}Asset {snapshot.id}: {result.documents_created} {subcollection} item(s)")

    return summary


def unzip_overlay_assets(asset_id: str | None = None, dry_run: bool = False) -> dict[str, Any]:
    return unzip_pack_assets(AssetCategory.OVERLAYS.value, asset_id, dry_run)


def unzip_sfx_assets(asset_id: str | None = None, dry_run: bool = False) -> dict[str, Any]:
    return unzip_pack_assets(AssetCategory.SFX.value, asset_id, dry_run)


# =============================================================================
# Subscription history
# =============================================================================

def _order_for_invoice(invoice_id: str):
    docs = (
        FirebaseClient.get_db()
        .collection("orders")
        .where(filter=firestore.FieldFilter("invoiceId", "==", invoice_id))
        .limit(1)
        .stream()
    )
    return next(iter(docs), None)


def create_downgrade_orders(dry_run: bool = False) -> dict[str, Any]:
    """
    Record subscription_change orders for downgrade credits found in Stripe.

    Walks every member with a membershipSubscriptionId, classifies their
    credit invoices, and adds an order for each one not recorded yet
    (matched by invoiceId).

    Returns:
        {"users", "created", "skipped", "errors"}
    """
    stripe = get_stripe()
    db = FirebaseClient.get_db()
    members = db.collection("users").where(filter=firestore.FieldFilter("membershipSubscriptionId", "!=", None)).stream()
    summary: dict[str, Any] = {"users": 0, "created": 0, "skipped": 0, "errors": []}

    for user_doc in members:
        user = user_doc.to_dict() or {}
        subscription_id = user.get("membershipSubscriptionId")
        if not subscription_id:
            continue
        summary["users"] += 1

        try:
            invoices = stripe.Invoice.list(subscription=subscription_id, limit=100)
        except stripe.StripeError as e:
            summary["errors"].append(f"{user_doc.id}: {e}")
            continue

        for invoice in invoices.get("data") or []:
            change = classify_plan_change_invoice(invoice)
            if change is None:
                continue
            if _order_for_invoice(change["invoiceId"]) is not None:
                summary["skipped"] += 1
                continue

            created_at = datetime.fromtimestamp(invoice.get("created") or 0, tz=timezone.utc)
            order = {
                "orderType": SUBSCRIPTION_CHANGE,
                "paymentIntentId": None,
                "invoiceId": change["invoiceId"],
                "amount": change["creditAmount"],
                "currency": invoice.get("currency") or "usd",
                "buyerId": user_doc.id,
                "sellerId": None,
                "sellerAccountId": None,
                "subscriptionId": subscription_id,
                "listingTitle": change["title"],
                "status": OrderStatus.COMPLETED.value,
                "customerId": invoice.get("customer"),
                "customerEmail": user.get("email"),
                "createdAt": created_at,
                "updatedAt": created_at,
            }
            if change["currentPlanType"]:
                order["currentPlanType"] = change["currentPlanType"]
            if change["newPlanType"]:
                order["newPlanType"] = change["newPlanType"]

            if not dry_run:
                db.collection("orders").add(order)
            summary["created"] += 1
            logger.info(
                f"{'[dry run] ' if dry_run else ''}Order for {change['invoiceId']}: "
                f"{change['title']} (credit ${change['creditAmount'] / 100:.2f})"
            )

    return summary


# =============================================================================
# Marketplace fees
# =============================================================================

def check_order_fee(order: dict[str, Any], bps: int | None = None) -> dict[str, Any]:
    """
    Compare an order's stored application fee with the configured rate.

    A zero fee is accepted when the order was charged without one (the
    seller was on a no-fees plan), flagged as "noFee".
    """
    amount = int(order.get("amount") or 0)
    stored = int(order.get("application_fee_amount") or 0)
    expected = compute_application_fee(amount, bps)
    return {
        "orderId": order.get("id"),
        "amount": amount,
        "storedFee": stored,
        "expectedFee": expected,
        "sellerAmount": amount - stored,
        "noFee": stored == 0 and expected > 0,
        "ok": abs(stored - expected) <= FEE_TOLERANCE or stored == 0,
    }


def verify_payment_splits(limit: int = 50, bps: int | None = None) -> dict[str, Any]:
    """
    Check the most recent marketplace orders' platform fees.

    Returns:
        {"checked", "mismatched", "results"}
    """
    query = (
        FirebaseClient.get_db()
        .collection("orders")
        .order_by("createdAt", direction=firestore.Query.DESCENDING)
        .limit(limit)
    )
    results = []
    for doc in query.stream():
        order = {"id": doc.id, **(doc.to_dict() or {})}
        if order.get("orderType") == SUBSCRIPTION_CHANGE:
            continue
        results.append(check_order_fee(order, bps))

    mismatched = [r for r in results if not r["ok"]]
    for result in mismatched:
        logger.warning(
            f"Order {result['orderId']}: fee {result['storedFee']} != expected {result['expectedFee']}"
        )
    return {"checked": len(results), "mismatched": len(mismatched), "results": results}
