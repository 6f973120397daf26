# =============================================================================
# tests/test_utils.py - Helper Function Tests
# =============================================================================
# Unit tests for lib/utils.py, the platform fee math and the Mux image URL
# builders.
#
# Run with: pytest tests/test_utils.py -v
# =============================================================================

from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest

from app.config import settings
from core.services.fee_service import compute_application_fee
from lib.mux_thumbnails import animated_gif_url, best_thumbnail, thumbnail_url
from lib.utils import (
    clamp,
    days_until,
    filename_to_title,
    normalize_lut_name,
    parse_csv_list,
    round_half_up,
    truncate,
)


class TestTextHelpers:
    """Tests for the string helpers."""

    def test_filename_to_title(self):
        """Pack filenames become capitalized titles without the extension."""
        assert filename_to_title("film-burn_overlays.zip") == "Film Burn Overlays"
        assert filename_to_title("Cinematic LUTs.ZIP") == "Cinematic LUTs"

    def test_filename_to_title_collapses_separators(self):
        assert filename_to_title("whoosh--hits__v2.zip") == "Whoosh Hits V2"

    def test_normalize_lut_name(self):
        """Punctuation, spacing and case are ignored."""
        assert normalize_lut_name("Teal & Orange_v2") == normalize_lut_name("teal-orange v2")
        assert normalize_lut_name("Kodak 2383") == "kodak2383"

    def test_truncate(self):
        assert truncate("short", 10) == "short"
        assert truncate("a" * 120) == "a" * 100 + "..."

    def test_parse_csv_list(self):
        assert parse_csv_list(" a, b ,,c ") == ["a", "b", "c"]
        assert parse_csv_list("") == []
        assert parse_csv_list(None) == []

    def test_settings_lists(self):
        """Comma-separated settings are split with parse_csv_list."""
        with patch.object(settings, "CORS_ORIGINS", "https://a.test, ,https://b.test"), \
                patch.object(settings, "LEGACY_ALL_ACCESS_PLANS", " , "):
            assert settings.cors_origins_list == ["https://a.test", "https://b.test"]
            assert settings.all_access_plans == ["cca_membership_87"]


class TestNumberHelpers:
    """Tests for rounding and range helpers."""

    @pytest.mark.parametrize("value,expected", [(0.5, 1), (1.5, 2), (2.5, 3), (31.49, 31)])
    def test_round_half_up(self, value, expected):
        """Halves always round up, unlike round()."""
        assert round_half_up(value) == expected

    def test_clamp(self):
        assert clamp(5, 1, 3) == 3
        assert clamp(-1, 1, 3) == 1
        assert clamp(2, 1, 3) == 2

    def test_days_until(self):
        """Partial days round up; past dates are zero."""
        now = 1_700_000_000
        assert days_until(now + 86400, now) == 1
        assert days_until(now + 86401, now) == 2
        assert days_until(now - 10, now) == 0


class TestApplicationFee:
    """Tests for compute_application_fee."""

    def test_default_rate(self):
        """3% of $100 is $3."""
        assert compute_application_fee(10000) == 300

    def test_half_cent_rounds_up(self):
        assert compute_application_fee(1050, 300) == 32

    def test_custom_rate(self):
        assert compute_application_fee(10000, 500) == 500
        assert compute_application_fee(10000, 0) == 0

    def test_non_positive_amount(self):
        """Free or negative amounts carry no fee."""
        assert compute_application_fee(0) == 0
        assert compute_application_fee(-500) == 0


class TestMuxImages:
    """Tests for image.mux.com URL builders."""

    def test_thumbnail_uses_midpoint(self):
        url = thumbnail_url("play123", duration_sec=90)
        parsed = urlparse(url)
        assert parsed.netloc == "image.mux.com"
        assert parsed.path == "/play123/thumbnail.jpg"
        assert parse_qs(parsed.query)["time"] == ["45"]

    def test_thumbnail_without_duration(self):
        """Unknown duration falls back to the one second mark."""
        assert parse_qs(urlparse(thumbnail_url("p")).query)["time"] == ["1"]
        assert parse_qs(urlparse(thumbnail_url("p", duration_sec=1)).query)["time"] == ["1"]

    def test_gif_caps_width_and_fps(self):
        query = parse_qs(urlparse(animated_gif_url("p", width=2000, fps=60, start=2, end=6)).query)
        assert query["width"] == ["640"]
        assert query["fps"] == ["30"]
        assert query["start"] == ["2"]
        assert query["end"] == ["6"]

    def test_best_thumbnail(self):
        assert best_thumbnail(None) is None
        assert best_thumbnail("p").startswith("https://image.mux.com/p/animated.gif")
