# =============================================================================
# core/services/asset_ingest_service.py - Asset Pack Ingestion
# =============================================================================
# Expands an uploaded asset ZIP into Storage objects and Firestore documents.
#
# Layout in Storage:
#   assets/{folder}/{pack}.zip                 the original upload
#   assets/{folder}/{pack}/preview.png         optional pack thumbnail
#   assets/overlays/{pack}/{file}              overlays (+ _720p.mp4 previews)
#   assets/sfx/{pack}/sounds/{file}            sound effects
#   assets/luts/{pack}/CUBE/{file}             LUT files
#   assets/luts/{pack}/{lut}/before.mp4        LUT preview videos (uploaded separately)
#
# Firestore:
#   assets/{assetId}                           pack document
#   assets/{assetId}/overlays|soundEffects|lutPreviews/{id}
# =============================================================================

import logging
import tempfile
import zipfile
from pathlib import Path, PurePosixPath
from typing import Any, Callable, NamedTuple

from firebase_admin import firestore

from app.config import settings
from app.exceptions import (
    AccessDeniedError,
    FileTooLargeError,
    InvalidFileTypeError,
    InvalidRequestError,
    ResourceNotFoundError,
)
from core.models.asset import (
    AUDIO_EXTENSIONS,
    CATEGORY_FOLDERS,
    LUT_EXTENSIONS,
    OVERLAY_EXTENSIONS,
    OVERLAY_VIDEO_EXTENSIONS,
    AssetCategory,
    IngestResult,
)
from core.services.entitlement_service import EntitlementService
from core.services.storage_service import (
    DOWNLOAD_URL_TTL,
    THUMBNAIL_URL_TTL,
    StorageService,
    content_type_for,
)
from lib import media
from lib.firebase_client import FirebaseClient
from lib.utils import filename_to_title, normalize_lut_name

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]


class ZipEntry(NamedTuple):
    """A file extracted from an asset ZIP."""
    file_name: str
    local_path: Path
    extension: str
    relative_path: str


def category_folder(category: str) -> str:
    """Storage folder for a category label."""
    folder = CATEGORY_FOLDERS.get(category)
    if folder is None:
        raise InvalidRequestError(
            f"Unknown asset category: {category}",
            suggestion=f"Use one of: {', '.join(CATEGORY_FOLDERS)}",
        )
    return folder


def pack_name(zip_name: str) -> str:
    name = PurePosixPath(zip_name).name
    return name[:-4] if name.lower().endswith(".zip") else name


def _is_junk(entry_name: str) -> bool:
    """Directories and macOS resource-fork entries."""
    if entry_name.endswith("/"):
        return True
    if entry_name.startswith("__MACOSX/") or "/._" in entry_name:
        return True
    return PurePosixPath(entry_name).name.startswith("._")


def extract_entries(
    zip_path: str | Path,
    extract_to: str | Path,
    extensions: set[str],
    errors: list[str] | None = None,
) -> list[ZipEntry]:
    """
    Extract files with the given extensions, flattened into extract_to.

    Directory entries and "._" files are skipped. Pack items are stored by
    file name, so only the first of several entries sharing a name is kept;
    the rest are reported in errors.
    """
    extract_to = Path(extract_to)
    extract_to.mkdir(parents=True, exist_ok=True)
    entries: list[ZipEntry] = []
    names: dict[str, str] = {}

    with zipfile.ZipFile(zip_path) as archive:
        for info in archive.infolist():
            if info.is_dir() or _is_junk(info.filename):
                continue
            name = PurePosixPath(info.filename).name
            extension = PurePosixPath(name).suffix.lower()
            if extension not in extensions:
                continue
            if name in names:
                message = f"Duplicate file name {name} skipped ({info.filename}, kept {names[name]})"
                logger.warning(message)
                if errors is not None:
                    errors.append(message)
                continue
            names[name] = info.filename
            target = extract_to / name
            with archive.open(info) as source:
                target.write_bytes(source.read())
            entries.append(ZipEntry(name, target, extension, info.filename))

    return entries


def find_lut_preview_videos(pack: str) -> dict[str, dict[str, str]]:
    """
    Before/after preview videos under assets/luts/{pack}/, keyed by the
    normalized name of the folder that holds them.
    """
    previews: dict[str, dict[str, str]] = {}
    for path in StorageService.list_paths(f"assets/luts/{pack}/"):
        parts = PurePosixPath(path)
        stem = parts.stem.lower()
        if parts.suffix.lower() != ".mp4" or stem not in ("before", "after"):
            continue
        key = normalize_lut_name(parts.parent.name)
        previews.setdefault(key, {})[stem] = path
    return previews


def existing_lut_names(asset_id: str) -> set[str]:
    """Normalized LUT names that already have a lutPreviews document."""
    docs = (
        FirebaseClient.get_db()
        .collection("assets").document(asset_id)
        .collection("lutPreviews").stream()
    )
    return {normalize_lut_name((doc.to_dict() or {}).get("lutName") or "") for doc in docs}


def create_lut_previews(
    asset_id: str,
    asset_title: str,
    pack: str,
    cube_files: list[ZipEntry],
    cube_prefix: str,
    skip_names: set[str] | None = None,
    dry_run: bool = False,
) -> tuple[int, list[str]]:
    """
    Upload .cube files and write one lutPreviews document per distinct LUT.

    Preview videos are matched to a LUT by normalized name, so
    "Teal_Orange.cube" finds "assets/luts/{pack}/Teal Orange/before.mp4".

    Returns:
        (documents created, errors)
    """
    seen = set(skip_names or ())
    previews = find_lut_preview_videos(pack)
    db = FirebaseClient.get_db()
    batch = db.batch()
    created = 0
    errors: list[str] = []

    for cube in cube_files:
        lut_name = PurePosixPath(cube.file_name).stem
        key = normalize_lut_name(lut_name)
        if key in seen:
            logger.debug(f"Skipping duplicate LUT {lut_name}")
            continue
        seen.add(key)

        cube_path = f"{cube_prefix}/{cube.file_name}"
        try:
            if not dry_run:
                StorageService.upload_file(cube_path, cube.local_path, "application/octet-stream")
        except Exception as e:
            errors.append(f"Error processing {cube.file_name}: {e}")
            continue

        doc: dict[str, Any] = {
            "assetId": asset_id,
            "assetTitle": asset_title,
            "lutName": lut_name,
            "lutFilePath": cube_path,
            "fileName": cube.file_name,
            "createdAt": firestore.SERVER_TIMESTAMP,
        }
        videos = previews.get(key, {})
        if videos.get("before"):
            doc["beforeVideoPath"] = videos["before"]
        if videos.get("after"):
            doc["afterVideoPath"] = videos["after"]

        if not dry_run:
            batch.set(db.collection("assets").document(asset_id).collection("lutPreviews").document(), doc)
        created += 1

    if created and not dry_run:
        batch.commit()
    return created, errors


class AssetIngestService:
    """Turns an uploaded asset ZIP into browsable pack items."""

    @staticmethod
    def process_zip(
        storage_path: str,
        category: str,
        progress: ProgressCallback | None = None,
    ) -> IngestResult:
        """
        Process a ZIP already stored at storage_path.

        Args:
            storage_path: "assets/{folder}/{pack}.zip"
            category: Category label (see AssetCategory)
            progress: Called with (percent, message) as work advances

        Returns:
            IngestResult counters; per-file failures are collected in errors
        """
        report = progress or (lambda percent, message: None)
        folder = category_folder(category)
        zip_name = PurePosixPath(storage_path).name
        pack = pack_name(zip_name)
        title = filename_to_title(zip_name)

        report(10, "Creating asset document")
        asset_id = AssetIngestService._create_asset_doc(title, category, folder, pack, storage_path)
        result = IngestResult(asset_id=asset_id)

        with tempfile.TemporaryDirectory(prefix="asset-") as tmp:
            work = Path(tmp)
            report(15, "Downloading ZIP")
            zip_path = StorageService.download_to_file(storage_path, work / "asset.zip")
            extract_dir = work / "extracted"

            if category == AssetCategory.OVERLAYS.value:
                AssetIngestService.process_overlays(zip_path, extract_dir, asset_id, title, pack, result, report)
            elif category == AssetCategory.SFX.value:
                AssetIngestService.process_sfx(zip_path, extract_dir, asset_id, title, pack, result, report)
            elif category == AssetCategory.LUTS.value:
                report(20, "Extracting LUT files")
                cubes = extract_entries(zip_path, extract_dir, LUT_EXTENSIONS, result.errors)
                result.files_processed = len(cubes)
                created, errors = create_lut_previews(
                    asset_id, title, pack, cubes, cube_prefix=f"assets/luts/{pack}/CUBE"
                )
                result.lut_previews_created = created
                result.documents_created += created
                result.errors.extend(errors)
            else:
                logger.info(f"No per-item processing for category {category}")

        report(100, "Processing complete")
        logger.info(
            f"Asset {asset_id} ingested: {result.files_processed} files, "
            f"{result.documents_created} documents, {len(result.errors)} errors"
        )
        return result

    @staticmethod
    def _create_asset_doc(title: str, category: str, folder: str, pack: str, storage_path: str) -> str:
        folder_path = f"assets/{folder}/{pack}"
        keep_path = f"{folder_path}/.keep"
        if not StorageService.exists(keep_path):
            StorageService.upload_bytes(keep_path, b"", "text/plain")

        doc: dict[str, Any] = {
            "title": title,
            "category": category,
            "storagePath": storage_path,
            "fileType": "zip",
            "createdAt": firestore.SERVER_TIMESTAMP,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        }
        thumbnail_path = f"{folder_path}/preview.png"
        if StorageService.exists(thumbnail_path):
            doc["thumbnailUrl"] = StorageService.signed_url(thumbnail_path, THUMBNAIL_URL_TTL)

        ref = FirebaseClient.get_db().collection("assets").document()
        ref.set(doc)
        return ref.id

    @staticmethod
    def process_overlays(zip_path, extract_dir, asset_id, title, pack, result: IngestResult, report: ProgressCallback | None = None) -> None:
        """Upload overlays (mp4-converted, with 720p previews) as overlays items."""
        report = report or (lambda percent, message: None)
        report(20, "Extracting overlays")
        files = extract_entries(zip_path, extract_dir, OVERLAY_EXTENSIONS, result.errors)
        db = FirebaseClient.get_db()
        batch = db.batch()
        items = db.collection("assets").document(asset_id).collection("overlays")

        for i, entry in enumerate(files, start=1):
            try:
                local_path, file_name = entry.local_path, entry.file_name
                if entry.extension == ".mov":
                    mp4_path = local_path.with_suffix(".mp4")
                    if media.convert_to_mp4(local_path, mp4_path):
                        local_path, file_name = mp4_path, PurePosixPath(file_name).stem + ".mp4"
                        result.conversions_completed += 1
                    else:
                        result.errors.append(f"Could not convert {entry.file_name} to mp4")

                storage_path = f"assets/overlays/{pack}/{file_name}"
                StorageService.upload_file(storage_path, local_path, content_type_for(file_name))

                doc: dict[str, Any] = {
                    "assetId": asset_id,
                    "assetTitle": title,
                    "fileName": file_name,
                    "storagePath": storage_path,
                    "fileType": PurePosixPath(file_name).suffix.lstrip(".").lower(),
                    "createdAt": firestore.SERVER_TIMESTAMP,
                }
                if entry.extension in OVERLAY_VIDEO_EXTENSIONS:
                    preview_local = local_path.with_name(f"{local_path.stem}_720p.mp4")
                    if media.render_720p_preview(local_path, preview_local):
                        preview_path = f"assets/overlays/{pack}/{PurePosixPath(file_name).stem}_720p.mp4"
                        StorageService.upload_file(preview_path, preview_local, "video/mp4")
                        doc["previewStoragePath"] = preview_path
                        result.previews_generated += 1

                batch.set(items.document(), doc)
                result.files_processed += 1
                result.documents_created += 1
            except Exception as e:
                logger.warning(f"Overlay {entry.file_name} failed: {e}")
                result.errors.append(f"Error processing {entry.file_name}: {e}")
            report(20 + int(i / max(len(files), 1) * 60), f"Processing overlay {i}/{len(files)}")

        if result.documents_created:
            batch.commit()

    @staticmethod
    def process_sfx(zip_path, extract_dir, asset_id, title, pack, result: IngestResult, report: ProgressCallback | None = None) -> None:
        report = report or (lambda percent, message: None)
        report(20, "Extracting sound effects")
        files = extract_entries(zip_path, extract_dir, AUDIO_EXTENSIONS, result.errors)
        db = FirebaseClient.get_db()
        batch = db.batch()
        items = db.collection("assets").document(asset_id).collection("soundEffects")

        for i, entry in enumerate(files, start=1):
            try:
                duration = media.audio_duration(entry.local_path)
                if duration > 0:
                    result.durations_extracted += 1
                storage_path = f"assets/sfx/{pack}/sounds/{entry.file_name}"
                StorageService.upload_file(storage_path, entry.local_path, content_type_for(entry.file_name))
                batch.set(items.document(), {
                    "assetId": asset_id,
                    "assetTitle": title,
                    "fileName": entry.file_name,
                    "storagePath": storage_path,
                    "fileType": entry.extension.lstrip("."),
                    "duration": duration,
                    "createdAt": firestore.SERVER_TIMESTAMP,
                })
                result.files_processed += 1
                result.documents_created += 1
            except Exception as e:
                logger.warning(f"Sound effect {entry.file_name} failed: {e}")
                result.errors.append(f"Error processing {entry.file_name}: {e}")
            report(20 + int(i / max(len(files), 1) * 60), f"Processing sound {i}/{len(files)}")

        if result.documents_created:
            batch.commit()

    @staticmethod
    def store_zip(filename: str, data: bytes, category: str) -> str:
        """
        Save an uploaded ZIP at assets/{folder}/{filename}.

        Raises:
            InvalidFileTypeError: If the file isn't a .zip
            FileTooLargeError: If it exceeds MAX_ASSET_UPLOAD_MB
        """
        if PurePosixPath(filename).suffix.lower() != ".zip":
            raise InvalidFileTypeError(filename, [".zip"])
        if len(data) > settings.max_asset_upload_bytes:
            raise FileTooLargeError(round(len(data) / (1024 * 1024), 1), settings.MAX_ASSET_UPLOAD_MB)

        storage_path = f"assets/{category_folder(category)}/{PurePosixPath(filename).name}"
        return StorageService.upload_bytes(storage_path, data, "application/zip")

    @staticmethod
    def download_url(user_id: str, asset_id: str) -> dict[str, Any]:
        """
        Short-lived download link for a pack's ZIP. Members only.

        Raises:
            AccessDeniedError: If the user has no active membership
            ResourceNotFoundError: If the asset doesn't exist or has no file
        """
        if not EntitlementService.has_global_membership(user_id):
            raise AccessDeniedError("An active membership is required to download assets")

        snapshot = FirebaseClient.get_db().collection("assets").document(asset_id).get()
        if not snapshot.exists:
            raise ResourceNotFoundError("Asset", asset_id)
        storage_path = (snapshot.to_dict() or {}).get("storagePath")
        if not storage_path:
            raise ResourceNotFoundError("Asset file", asset_id)

        url = StorageService.signed_url(storage_path, DOWNLOAD_URL_TTL)
        logger.info(f"Download URL issued for asset {asset_id} to {user_id}")
        return {
            "downloadUrl": url,
            "fileName": PurePosixPath(storage_path).name,
            "expiresIn": int(DOWNLOAD_URL_TTL.total_seconds()),
        }
