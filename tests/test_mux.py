# =============================================================================
# tests/test_mux.py - Mux Integration Tests
# =============================================================================
# Covers:
# - Playback token signing (RS256 with a generated key)
# - The REST client against httpx.MockTransport
# - Webhook signature checks and passthrough parsing
# - Asset events updating lessons
# - Playback authorization rules
#
# Run with: pytest tests/test_mux.py -v
# =============================================================================

import hashlib
import hmac
import json
from unittest.mock import patch

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwt

from app.auth import AuthUser
from app.config import settings
from app.exceptions import (
    AccessDeniedError,
    AuthenticationRequiredError,
    CollectiveException,
    InvalidRequestError,
    MuxApiError,
    ResourceNotFoundError,
    WebhookSignatureError,
)
from core.services.legacy_service import legacy_passthrough
from core.services.mux_webhook_service import handle_event, parse_passthrough, verify_signature
from core.services.playback_service import PlaybackService, ancestor_id
from lib.mux_client import MUX_API_BASE, MuxClient
from lib.mux_signing import sign_playback_token

LESSON_PATH = "courses/c1/modules/m1/lessons/l1"


@pytest.fixture
def signing_key():
    """Configure a freshly generated Mux signing key."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    with patch.object(settings, "MUX_SIGNING_KEY_ID", "key-1"), \
            patch.object(settings, "MUX_SIGNING_PRIVATE_KEY", pem.replace("\n", "\\n")):
        yield public_pem


@pytest.fixture
def mux_api():
    """Route MuxClient through a MockTransport; returns the request log."""
    requests = []
    responses = {}

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        key = (request.method, request.url.path.removeprefix("/video/v1"))
        if key not in responses:
            return httpx.Response(404, json={"error": {"messages": ["not found"]}})
        return httpx.Response(200, json={"data": responses[key]})

    MuxClient._client = httpx.Client(base_url=MUX_API_BASE, transport=httpx.MockTransport(handler))
    yield responses, requests
    MuxClient._client = None


def sign(body: bytes, secret: str = "mux-webhook-secret", timestamp: str = "1700000000") -> str:
    digest = hmac.new(secret.encode(), timestamp.encode() + b"." + body, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


# =============================================================================
# Signing
# =============================================================================

class TestSigning:
    """Tests for sign_playback_token."""

    def test_token_claims(self, signing_key):
        """Token is RS256 with the key ID header and a 15 minute expiry."""
        token = sign_playback_token("play-1", now=1_700_000_000)

        header = jwt.get_unverified_header(token)
        claims = jwt.decode(token, signing_key, algorithms=["RS256"], audience="v", options={"verify_exp": False})

        assert header["kid"] == "key-1"
        assert claims["sub"] == "play-1"
        assert claims["exp"] - claims["iat"] == 900

    def test_unknown_audience(self, signing_key):
        with pytest.raises(ValueError):
            sign_playback_token("play-1", audience="x")

    def test_missing_keys(self):
        with patch.object(settings, "MUX_SIGNING_KEY_ID", ""):
            with pytest.raises(CollectiveException) as exc_info:
                sign_playback_token("play-1")
        assert exc_info.value.code == "MUX_SIGNING_NOT_CONFIGURED"


# =============================================================================
# REST Client
# =============================================================================

class TestMuxClient:
    """Tests for MuxClient."""

    def test_get_asset_unwraps_data(self, mux_api):
        responses, _ = mux_api
        responses[("GET", "/assets/a1")] = {"id": "a1", "duration": 61.6, "playback_ids": [{"id": "p1"}]}

        asset = MuxClient.get_asset("a1")

        assert MuxClient.first_playback_id(asset) == "p1"
        assert MuxClient.duration_seconds(asset) == 62

    def test_iter_assets_pages(self):
        """Pages are fetched until one comes back short."""
        pages = {"1": [{"id": "a1"}, {"id": "a2"}], "2": [{"id": "a3"}]}

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["limit"] == "2"
            return httpx.Response(200, json={"data": pages[request.url.params["page"]]})

        MuxClient._client = httpx.Client(base_url=MUX_API_BASE, transport=httpx.MockTransport(handler))
        try:
            assets = list(MuxClient.iter_assets(page_size=2))
        finally:
            MuxClient._client = None

        assert [a["id"] for a in assets] == ["a1", "a2", "a3"]

    def test_missing_asset_is_404(self, mux_api):
        with pytest.raises(MuxApiError) as exc_info:
            MuxClient.get_asset("nope")
        assert exc_info.value.status_code == 404

    def test_direct_upload_body(self, mux_api):
        responses, requests = mux_api
        responses[("POST", "/uploads")] = {"id": "up1", "url": "https://storage.mux.test/up1"}

        upload = MuxClient.create_direct_upload("courseId:c|moduleId:m|lessonId:l")

        body = json.loads(requests[0].content)
        assert upload["id"] == "up1"
        assert body["new_asset_settings"]["playback_policy"] == ["signed"]
        assert body["new_asset_settings"]["passthrough"] == "courseId:c|moduleId:m|lessonId:l"

    def test_helpers_on_empty_asset(self):
        assert MuxClient.first_playback_id({}) is None
        assert MuxClient.duration_seconds({}) == 0

    def test_create_playback_id(self, mux_api):
        responses, requests = mux_api
        responses[("POST", "/assets/a1/playback-ids")] = {"id": "p2", "policy": "public"}

        playback = MuxClient.create_playback_id("a1", "public")

        assert playback["id"] == "p2"
        assert json.loads(requests[0].content) == {"policy": "public"}

    def test_delete_asset_no_content(self):
        """Mux answers deletes with 204 and no body."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, request.url.path))
            return httpx.Response(204)

        MuxClient._client = httpx.Client(base_url=MUX_API_BASE, transport=httpx.MockTransport(handler))
        try:
            assert MuxClient.delete_asset("a1") is None
        finally:
            MuxClient._client = None

        assert seen == [("DELETE", "/video/v1/assets/a1")]


# =============================================================================
# Webhooks
# =============================================================================

class TestWebhookSignature:
    """Tests for verify_signature."""

    def test_valid_signature(self):
        body = b'{"type": "video.asset.ready"}'
        verify_signature(body, sign(body))

    def test_wrong_signature(self):
        body = b"{}"
        with pytest.raises(WebhookSignatureError):
            verify_signature(body, sign(b"other"))

    def test_missing_header(self):
        with pytest.raises(WebhookSignatureError):
            verify_signature(b"{}", None)

    def test_no_secret_configured(self):
        """Verification is skipped without a secret."""
        verify_signature(b"{}", None, secret="")


class TestPassthrough:
    """Tests for parse_passthrough."""

    def test_json(self):
        value = json.dumps({"courseId": "c", "moduleId": "m", "lessonId": "l"})
        assert parse_passthrough(value) == {"courseId": "c", "moduleId": "m", "lessonId": "l"}

    def test_pairs(self):
        assert parse_passthrough("course:c|module:m|lesson:l") == {"courseId": "c", "moduleId": "m", "lessonId": "l"}
        assert parse_passthrough("courseId=c, moduleId=m, lessonId=l") == {"courseId": "c", "moduleId": "m", "lessonId": "l"}

    def test_path(self):
        assert parse_passthrough("c/m/l") == {"courseId": "c", "moduleId": "m", "lessonId": "l"}

    def test_unparseable(self):
        assert parse_passthrough("just-a-label") == {}
        assert parse_passthrough(None) == {}
        assert parse_passthrough(42) == {}

    def test_partial(self):
        assert parse_passthrough("course:c") == {"courseId": "c"}


class TestAssetEvents:
    """Tests for handle_event."""

    def asset(self, **extra):
        return {"id": "asset-1", "duration": 125.2, "playback_ids": [{"id": "play-1"}], **extra}

    def test_passthrough_updates_lesson(self, db):
        db.seed(LESSON_PATH, {"title": "Intro"})

        result = handle_event({
            "type": "video.asset.ready",
            "data": self.asset(passthrough="courseId:c1|moduleId:m1|lessonId:l1"),
        })

        lesson = db.data(LESSON_PATH)
        assert result == {"received": True, "updated": 1}
        assert lesson["title"] == "Intro"
        assert lesson["muxAssetId"] == "asset-1"
        assert lesson["muxPlaybackId"] == "play-1"
        assert lesson["durationSec"] == 125
        assert lesson["muxAnimatedGifUrl"].startswith("https://image.mux.com/play-1/animated.gif")

    def test_falls_back_to_upload_id(self, db):
        """Without a passthrough the lesson is found by its upload ID."""
        db.seed(LESSON_PATH, {"muxUploadId": "up-1"})
        db.seed("courses/c1/modules/m1/lessons/l2", {"muxUploadId": "up-2"})

        result = handle_event({"type": "video.asset.ready", "data": self.asset(upload_id="up-1")})

        assert result["updated"] == 1
        assert db.data(LESSON_PATH)["muxPlaybackId"] == "play-1"
        assert "muxPlaybackId" not in db.data("courses/c1/modules/m1/lessons/l2")

    def test_legacy_upload_saved_as_creator_video(self, db):
        db.seed("legacy_creators/c1", {"ownerUserId": "owner"})
        db.seed("legacy_creators/c1/uploads/u1", {"uploadId": "up-7", "status": "pending"})
        passthrough = legacy_passthrough("c1", "Behind the scenes", is_sample=True)

        result = handle_event({
            "type": "video.asset.ready",
            "data": self.asset(passthrough=passthrough, upload_id="up-7"),
        })

        videos = db.paths("legacy_creators/c1/videos")
        video = db.data(videos[0])
        upload = db.data("legacy_creators/c1/uploads/u1")
        assert result == {"received": True, "updated": 1}
        assert video["title"] == "Behind the scenes"
        assert video["isSample"] is True
        assert video["muxPlaybackId"] == "play-1"
        assert upload["status"] == "ready"
        assert upload["videoId"] == videos[0].rsplit("/", 1)[-1]
        assert db.data("legacy_creators/c1")["featured"]["playbackId"] == "play-1"

    def test_legacy_upload_for_unknown_creator(self, db):
        passthrough = legacy_passthrough("gone", "Reel")

        result = handle_event({"type": "video.asset.ready", "data": self.asset(passthrough=passthrough)})

        assert result == {"received": True, "updated": 0}
        assert db.paths("legacy_creators/gone/videos") == []

    def test_other_events_ignored(self, db):
        assert handle_event({"type": "video.upload.created", "data": {}}) == {"received": True}

    def test_missing_asset_id(self):
        with pytest.raises(InvalidRequestError):
            handle_event({"type": "video.asset.ready", "data": {}})


# =============================================================================
# Playback Authorization
# =============================================================================

@pytest.fixture
def signed():
    with patch("core.services.playback_service.sign_playback_token", return_value="signed-token") as mock_sign:
        yield mock_sign


class TestPlayback:
    """Tests for PlaybackService.issue_token."""

    viewer = AuthUser(uid="viewer")

    def test_ancestor_id(self):
        assert ancestor_id(LESSON_PATH, "courses") == "c1"
        assert ancestor_id(LESSON_PATH, "legacy_creators") is None

    def test_free_preview_is_public(self, db, signed):
        db.seed(LESSON_PATH, {"muxPlaybackId": "play-1", "freePreview": True})

        result = PlaybackService.issue_token(None, "play-1")

        assert result == {"token": "signed-token", "expiresIn": 900}
        signed.assert_called_once_with("play-1", audience="v", expires_in=900)

    def test_locked_lesson_needs_login(self, db, signed):
        db.seed(LESSON_PATH, {"muxPlaybackId": "play-1"})

        with pytest.raises(AuthenticationRequiredError):
            PlaybackService.issue_token(None, "play-1")

    def test_locked_lesson_needs_enrollment(self, db, seed_user, signed):
        seed_user("viewer")
        db.seed(LESSON_PATH, {"muxPlaybackId": "play-1"})

        with pytest.raises(AccessDeniedError):
            PlaybackService.issue_token(self.viewer, "play-1")

        db.seed("enrollments/e1", {"userId": "viewer", "courseId": "c1", "active": True})
        assert PlaybackService.issue_token(self.viewer, "play-1")["token"] == "signed-token"

    def test_members_watch_any_lesson(self, db, seed_user, signed):
        seed_user("viewer", membershipActive=True, membershipPlan="cca_monthly_37")
        db.seed(LESSON_PATH, {"muxPlaybackId": "play-1"})

        assert PlaybackService.issue_token(self.viewer, "play-1")["token"] == "signed-token"

    def test_legacy_sample_is_public(self, db, signed):
        db.seed("legacy_creators/cr1/videos/v1", {"muxPlaybackId": "play-2", "isSample": True})

        assert PlaybackService.issue_token(None, "play-2")["token"] == "signed-token"

    def test_legacy_video_needs_creator_access(self, db, seed_user, signed):
        seed_user("viewer")
        db.seed("legacy_creators/cr1/videos/v1", {"muxPlaybackId": "play-2"})

        with pytest.raises(AccessDeniedError):
            PlaybackService.issue_token(self.viewer, "play-2")

        db.seed("legacySubscriptions/s1", {"userId": "viewer", "creatorId": "cr1", "status": "active"})
        assert PlaybackService.issue_token(self.viewer, "play-2")["token"] == "signed-token"

    def test_unknown_playback_id(self, signed):
        with pytest.raises(ResourceNotFoundError):
            PlaybackService.issue_token(self.viewer, "nope")

    def test_token_issue_is_audited(self, db, signed):
        db.seed(LESSON_PATH, {"muxPlaybackId": "play-1", "freePreview": True})

        PlaybackService.issue_token(None, "play-1")

        audits = [db.data(path) for path in db.paths("auditLogs")]
        assert audits[0]["event"] == "mux_token_issued"
        assert audits[0]["details"]["courseId"] == "c1"

    def test_pending_upload_is_linked(self, db, mux_api, signed):
        """A lesson still holding only its upload ID is found through Mux."""
        responses, _ = mux_api
        responses[("GET", "/uploads/up-1")] = {"id": "up-1", "asset_id": "a1"}
        responses[("GET", "/assets/a1")] = {"id": "a1", "playback_ids": [{"id": "play-3"}]}
        db.seed("courses/c1/modules/m1/lessons/l0", {"muxUploadId": None})
        db.seed(LESSON_PATH, {"muxUploadId": "up-1", "freePreview": True})

        assert PlaybackService.issue_token(None, "play-3")["token"] == "signed-token"

        lesson = db.data(LESSON_PATH)
        assert lesson["muxAssetId"] == "a1"
        assert lesson["muxPlaybackId"] == "play-3"
