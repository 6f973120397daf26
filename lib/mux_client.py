# =============================================================================
# lib/mux_client.py - Mux Video REST Client
# =============================================================================
# Thin httpx wrapper around the Mux Video API (https://api.mux.com/video/v1).
# Only the calls the platform needs are exposed:
# - Assets: retrieve, list, delete, add playback IDs
# - Direct uploads: create, retrieve
#
# Usage:
#   from lib.mux_client import MuxClient
#   asset = MuxClient.get_asset("abc123")
#   playback_id = MuxClient.first_playback_id(asset)
# =============================================================================

from __future__ import annotations

import logging
from typing import Any, Iterator

import httpx

from app.config import settings
from app.exceptions import MuxApiError

logger = logging.getLogger(__name__)

MUX_API_BASE = "https://api.mux.com/video/v1"
REQUEST_TIMEOUT = 15


class MuxClient:
    """
    Mux Video API access.

    Holds one httpx.Client for connection reuse; all methods are class
    methods so callers never instantiate it.
    """

    _client: httpx.Client | None = None

    @classmethod
    def get_client(cls) -> httpx.Client:
        """Get or create the shared HTTP client (basic auth with the token pair)."""
        if cls._client is None:
            if not settings.MUX_TOKEN_ID or not settings.MUX_TOKEN_SECRET:
                raise MuxApiError(
                    path="/",
                    error="Mux credentials are not configured",
                    status_code=500,
                )
            cls._client = httpx.Client(
                base_url=MUX_API_BASE,
                auth=(settings.MUX_TOKEN_ID, settings.MUX_TOKEN_SECRET),
                timeout=REQUEST_TIMEOUT,
            )
        return cls._client

    @classmethod
    def _request(cls, method: str, path: str, **kwargs) -> Any:
        """
        Send a request and unwrap the `data` envelope.

        Raises:
            MuxApiError: On transport errors or non-2xx responses
                         (404 is passed through as 404)
        """
        try:
            response = cls.get_client().request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning(f"Mux {method} {path} returned {status}")
            raise MuxApiError(path, e.response.text[:200], status_code=404 if status == 404 else 502)
        except httpx.HTTPError as e:
            logger.error(f"Mux {method} {path} failed: {e}")
            raise MuxApiError(path, str(e))

        if response.status_code == 204 or not response.content:
            return {}
        return response.json().get("data") or {}

    # -------------------------------------------------------------------------
    # Assets
    # -------------------------------------------------------------------------

    @classmethod
    def get_asset(cls, asset_id: str) -> dict[str, Any]:
        """Retrieve a single asset."""
        return cls._request("GET", f"/assets/{asset_id}")

    @classmethod
    def iter_assets(cls, page_size: int = 100) -> Iterator[dict[str, Any]]:
        """Iterate over every asset in the environment, page by page."""
        page = 1
        while True:
            assets = cls._request("GET", "/assets", params={"limit": page_size, "page": page}) or []
            yield from assets
            if len(assets) < page_size:
                break
            page += 1

    @classmethod
    def delete_asset(cls, asset_id: str) -> None:
        cls._request("DELETE", f"/assets/{asset_id}")

    @classmethod
    def create_playback_id(cls, asset_id: str, policy: str = "signed") -> dict[str, Any]:
        """Add a playback ID ("signed" or "public") to an asset."""
        return cls._request("POST", f"/assets/{asset_id}/playback-ids", json={"policy": policy})

    # -------------------------------------------------------------------------
    # Direct Uploads
    # -------------------------------------------------------------------------

    @classmethod
    def create_direct_upload(
        cls,
        passthrough: str,
        cors_origin: str = "*",
        signed: bool = True,
    ) -> dict[str, Any]:
        """
        Create a direct upload URL.

        Args:
            passthrough: Value echoed back on asset webhooks (lesson locator)
            cors_origin: Browser origin allowed to PUT the file
            signed: Whether playback IDs require signed tokens

        Returns:
            Upload object with `id` and `url`
        """
        body = {
            "cors_origin": cors_origin,
            "new_asset_settings": {
                "playback_policy": ["signed" if signed else "public"],
                "passthrough": passthrough,
            },
        }
        return cls._request("POST", "/uploads", json=body)

    @classmethod
    def get_upload(cls, upload_id: str) -> dict[str, Any]:
        """Retrieve a direct upload (carries `asset_id` once processed)."""
        return cls._request("GET", f"/uploads/{upload_id}")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def first_playback_id(asset: dict[str, Any]) -> str | None:
        """First playback ID on an asset, if any."""
        playback_ids = asset.get("playback_ids") or []
        return playback_ids[0].get("id") if playback_ids else None

    @staticmethod
    def duration_seconds(asset: dict[str, Any]) -> int:
        """Asset duration rounded to whole seconds (0 when unknown)."""
        duration = asset.get("duration")
        return int(round(float(duration))) if duration else 0
