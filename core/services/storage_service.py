# =============================================================================
# core/services/storage_service.py - Cloud Storage Operations
# =============================================================================
# Handles object upload/download against the Firebase Storage bucket.
# Asset packs live under assets/{folder}/..., previews and LUT files beside
# them. Downloads are served to members through short-lived signed URLs.
# =============================================================================

import logging
from datetime import timedelta
from pathlib import Path

from app.exceptions import StorageDownloadError, StorageUploadError
from core.models.asset import CONTENT_TYPES
from lib.firebase_client import FirebaseClient

logger = logging.getLogger(__name__)

DOWNLOAD_URL_TTL = timedelta(hours=1)
# Preview thumbnails are embedded in documents, so their URLs must outlive
# the document. V4 signed URLs cap at 7 days; V2 has no such limit.
THUMBNAIL_URL_TTL = timedelta(days=365 * 10)


def content_type_for(path: str) -> str:
    """Content type from the file extension (binary when unknown)."""
    return CONTENT_TYPES.get(Path(path).suffix.lower(), "application/octet-stream")


class StorageService:
    """
    Service for Cloud Storage operations.

    Every method takes a full object path inside the default bucket.
    """

    @staticmethod
    def upload_bytes(path: str, data: bytes, content_type: str | None = None) -> str:
        """
        Upload raw bytes.

        Args:
            path: Object path, e.g. "assets/luts/pack.zip"
            data: File contents
            content_type: Explicit content type (guessed from the extension otherwise)

        Returns:
            The object path

        Raises:
            StorageUploadError: If the upload fails
        """
        try:
            blob = FirebaseClient.get_bucket().blob(path)
            blob.upload_from_string(data, content_type=content_type or content_type_for(path))
            logger.info(f"Uploaded {len(data)} bytes to storage: {path}")
            return path
        except Exception as e:
            logger.error(f"Storage upload failed for {path}: {e}")
            raise StorageUploadError(path, str(e))

    @staticmethod
    def upload_file(path: str, local_path: str | Path, content_type: str | None = None) -> str:
        """
        Upload a file from local disk (used for large media after conversion).

        Raises:
            StorageUploadError: If the upload fails
        """
        try:
            blob = FirebaseClient.get_bucket().blob(path)
            blob.upload_from_filename(str(local_path), content_type=content_type or content_type_for(path))
            logger.info(f"Uploaded {local_path} to storage: {path}")
            return path
        except Exception as e:
            logger.error(f"Storage upload failed for {path}: {e}")
            raise StorageUploadError(path, str(e))

    @staticmethod
    def download(path: str) -> bytes:
        """
        Download an object into memory.

        Raises:
            StorageDownloadError: If the object is missing or the download fails
        """
        try:
            data = FirebaseClient.get_bucket().blob(path).download_as_bytes()
            logger.info(f"Downloaded {path} ({len(data)} bytes)")
            return data
        except Exception as e:
            logger.error(f"Storage download failed for {path}: {e}")
            raise StorageDownloadError(path, str(e))

    @staticmethod
    def download_to_file(path: str, local_path: str | Path) -> Path:
        """
        Download an object to local disk.

        Raises:
            StorageDownloadError: If the object is missing or the download fails
        """
        try:
            FirebaseClient.get_bucket().blob(path).download_to_filename(str(local_path))
            logger.info(f"Downloaded {path} to {local_path}")
            return Path(local_path)
        except Exception as e:
            logger.error(f"Storage download failed for {path}: {e}")
            raise StorageDownloadError(path, str(e))

    @staticmethod
    def exists(path: str) -> bool:
        return FirebaseClient.get_bucket().blob(path).exists()

    @staticmethod
    def signed_url(path: str, expires_in: timedelta = DOWNLOAD_URL_TTL) -> str:
        """
        Signed GET URL for an object.

        V4 signing is used up to its 7 day limit, V2 beyond it.
        """
        version = "v4" if expires_in <= timedelta(days=7) else "v2"
        return FirebaseClient.get_bucket().blob(path).generate_signed_url(
            version=version,
            expiration=expires_in,
            method="GET",
        )

    @staticmethod
    def delete(path: str) -> bool:
        """
        Delete an object.

        Returns:
            False when the object didn't exist
        """
        blob = FirebaseClient.get_bucket().blob(path)
        if not blob.exists():
            return False
        blob.delete()
        logger.info(f"Deleted storage object: {path}")
        return True

    @staticmethod
    def list_paths(prefix: str) -> list[str]:
        """Object paths under a prefix."""
        return [blob.name for blob in FirebaseClient.get_bucket().list_blobs(prefix=prefix)]
