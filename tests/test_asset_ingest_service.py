# =============================================================================
# tests/test_asset_ingest_service.py - Asset Pack Ingestion Tests
# =============================================================================
# ZIPs are built in tmp_path and placed in the fake bucket; ffmpeg/ffprobe
# are patched so no media tools are needed.
#
# Run with: pytest tests/test_asset_ingest_service.py -v
# =============================================================================

import zipfile
from pathlib import Path
from unittest.mock import patch

import pytest

from app.exceptions import (
    AccessDeniedError,
    FileTooLargeError,
    InvalidFileTypeError,
    InvalidRequestError,
    ResourceNotFoundError,
)
from core.models import AssetCategory
from core.models.asset import LUT_EXTENSIONS
from core.services.asset_ingest_service import (
    AssetIngestService,
    category_folder,
    create_lut_previews,
    extract_entries,
    pack_name,
)


def build_zip(path: Path, files: dict[str, bytes]) -> Path:
    with zipfile.ZipFile(path, "w") as archive:
        for name, data in files.items():
            archive.writestr(name, data)
    return path


def fake_render(source, target):
    """Stand-in for ffmpeg: copy the source to the target."""
    Path(target).write_bytes(Path(source).read_bytes())
    return True


@pytest.fixture
def upload_pack(bucket, tmp_path):
    """Put a ZIP in the bucket at assets/{folder}/{name}; returns its path."""
    def _upload(folder: str, name: str, files: dict[str, bytes]) -> str:
        storage_path = f"assets/{folder}/{name}"
        bucket.put_file(storage_path, build_zip(tmp_path / name, files))
        return storage_path
    return _upload


class TestZipHelpers:
    """Tests for category, naming and extraction helpers."""

    def test_category_folder(self):
        assert category_folder("LUTs & Presets") == "luts"
        with pytest.raises(InvalidRequestError):
            category_folder("Fonts")

    def test_pack_name(self):
        assert pack_name("assets/luts/Film-Pack.ZIP") == "Film-Pack"

    def test_extract_filters_junk(self, tmp_path):
        """Directories, __MACOSX and ._ files are skipped; paths are flattened."""
        zip_path = build_zip(tmp_path / "pack.zip", {
            "Pack/Warm.cube": b"LUT_3D_SIZE 2",
            "Pack/nested/Cool.CUBE": b"LUT_3D_SIZE 2",
            "Pack/._Warm.cube": b"junk",
            "__MACOSX/Pack/Warm.cube": b"junk",
            "Pack/readme.txt": b"hi",
        })

        entries = extract_entries(zip_path, tmp_path / "out", LUT_EXTENSIONS)

        assert sorted(e.file_name for e in entries) == ["Cool.CUBE", "Warm.cube"]
        assert all(e.extension == ".cube" for e in entries)
        assert (tmp_path / "out" / "Cool.CUBE").read_bytes() == b"LUT_3D_SIZE 2"

    def test_extract_keeps_first_of_duplicate_names(self, tmp_path):
        """Same-named files in different folders don't overwrite each other."""
        zip_path = build_zip(tmp_path / "pack.zip", {
            "Warm/look.cube": b"first",
            "Cool/look.cube": b"second",
        })
        errors = []

        entries = extract_entries(zip_path, tmp_path / "out", LUT_EXTENSIONS, errors)

        assert [e.relative_path for e in entries] == ["Warm/look.cube"]
        assert (tmp_path / "out" / "look.cube").read_bytes() == b"first"
        assert errors == ["Duplicate file name look.cube skipped (Cool/look.cube, kept Warm/look.cube)"]


class TestLutPreviews:
    """Tests for create_lut_previews."""

    def test_dedupes_and_matches_videos(self, db, bucket, tmp_path):
        bucket.objects["assets/luts/Film/Teal Orange/before.mp4"] = b"v"
        bucket.objects["assets/luts/Film/Teal Orange/after.mp4"] = b"v"
        zip_path = build_zip(tmp_path / "film.zip", {
            "Teal_Orange.cube": b"1",
            "teal-orange.cube": b"2",
            "Mono.cube": b"3",
        })
        cubes = extract_entries(zip_path, tmp_path / "out", LUT_EXTENSIONS)

        created, errors = create_lut_previews("a1", "Film", "Film", cubes, cube_prefix="assets/luts/Film/CUBE")

        docs = [db.data(p) for p in db.paths("assets/a1/lutPreviews")]
        by_name = {d["lutName"]: d for d in docs}
        assert created == 2
        assert errors == []
        assert len(docs) == 2
        assert by_name["Teal_Orange"]["beforeVideoPath"] == "assets/luts/Film/Teal Orange/before.mp4"
        assert "beforeVideoPath" not in by_name["Mono"]
        assert "assets/luts/Film/CUBE/Mono.cube" in bucket.objects

    def test_skip_names_and_dry_run(self, db, bucket, tmp_path):
        zip_path = build_zip(tmp_path / "film.zip", {"Mono.cube": b"1", "Warm.cube": b"2"})
        cubes = extract_entries(zip_path, tmp_path / "out", LUT_EXTENSIONS)

        created, _ = create_lut_previews("a1", "Film", "Film", cubes, "assets/luts/Film", skip_names={"mono"}, dry_run=True)

        assert created == 1
        assert db.paths("assets/a1/lutPreviews") == []
        assert not any(name.endswith(".cube") for name in bucket.objects)


class TestProcessZip:
    """Tests for AssetIngestService.process_zip."""

    def test_lut_pack(self, db, bucket, upload_pack):
        bucket.objects["assets/luts/cinematic-luts/preview.png"] = b"png"
        path = upload_pack("luts", "cinematic-luts.zip", {"A.cube": b"1", "B.cube": b"2"})
        progress = []

        result = AssetIngestService.process_zip(path, AssetCategory.LUTS.value, lambda p, m: progress.append(p))

        asset = db.data(f"assets/{result.asset_id}")
        assert asset["title"] == "Cinematic Luts"
        assert asset["category"] == "LUTs & Presets"
        assert asset["thumbnailUrl"].startswith("https://storage.test/assets/luts/cinematic-luts/preview.png")
        assert result.files_processed == 2
        assert result.lut_previews_created == 2
        assert result.documents_created == 2
        assert "assets/luts/cinematic-luts/.keep" in bucket.objects
        assert "assets/luts/cinematic-luts/CUBE/A.cube" in bucket.objects
        assert progress[-1] == 100

    def test_overlay_pack(self, db, bucket, upload_pack):
        """.mov files are converted and every video gets a 720p preview."""
        path = upload_pack("overlays", "burns.zip", {"Burn 1.mov": b"mov", "Dust.png": b"png"})

        with patch("core.services.asset_ingest_service.media.convert_to_mp4", side_effect=fake_render), \
                patch("core.services.asset_ingest_service.media.render_720p_preview", side_effect=fake_render) as preview:
            result = AssetIngestService.process_zip(path, AssetCategory.OVERLAYS.value)

        docs = {d["fileName"]: d for d in (db.data(p) for p in db.paths(f"assets/{result.asset_id}/overlays"))}
        assert result.conversions_completed == 1
        assert result.previews_generated == 1
        preview.assert_called_once()
        assert docs["Burn 1.mp4"]["previewStoragePath"] == "assets/overlays/burns/Burn 1_720p.mp4"
        assert docs["Dust.png"]["fileType"] == "png"
        assert "assets/overlays/burns/Burn 1_720p.mp4" in bucket.objects

    def test_failed_conversion_keeps_original(self, db, upload_pack):
        path = upload_pack("overlays", "burns.zip", {"Burn.mov": b"mov"})

        with patch("core.services.asset_ingest_service.media.convert_to_mp4", return_value=False), \
                patch("core.services.asset_ingest_service.media.render_720p_preview", return_value=False):
            result = AssetIngestService.process_zip(path, AssetCategory.OVERLAYS.value)

        assert result.errors == ["Could not convert Burn.mov to mp4"]
        assert result.documents_created == 1

    def test_sfx_pack(self, db, bucket, upload_pack):
        path = upload_pack("sfx", "whooshes.zip", {"whoosh.wav": b"wav", "hit.mp3": b"mp3", "notes.pdf": b"x"})

        with patch("core.services.asset_ingest_service.media.audio_duration", return_value=2):
            result = AssetIngestService.process_zip(path, AssetCategory.SFX.value)

        docs = [db.data(p) for p in db.paths(f"assets/{result.asset_id}/soundEffects")]
        assert result.files_processed == 2
        assert result.durations_extracted == 2
        assert {d["duration"] for d in docs} == {2}
        assert "assets/sfx/whooshes/sounds/whoosh.wav" in bucket.objects

    def test_sfx_duplicate_names_reported(self, db, bucket, upload_pack):
        path = upload_pack("sfx", "hits.zip", {"Kit A/hit.wav": b"a", "Kit B/hit.wav": b"b"})

        with patch("core.services.asset_ingest_service.media.audio_duration", return_value=1):
            result = AssetIngestService.process_zip(path, AssetCategory.SFX.value)

        assert result.documents_created == 1
        assert len(result.errors) == 1
        assert bucket.objects["assets/sfx/hits/sounds/hit.wav"] == b"a"

    def test_templates_only_create_pack(self, db, upload_pack):
        path = upload_pack("templates", "titles.zip", {"Title.mogrt": b"x"})

        result = AssetIngestService.process_zip(path, AssetCategory.TEMPLATES.value)

        assert result.documents_created == 0
        assert db.data(f"assets/{result.asset_id}")["storagePath"] == path


class TestUploadAndDownload:
    """Tests for store_zip and download_url."""

    def test_store_zip(self, bucket):
        path = AssetIngestService.store_zip("Film Pack.zip", b"PK", AssetCategory.LUTS.value)

        assert path == "assets/luts/Film Pack.zip"
        assert bucket.content_types[path] == "application/zip"

    def test_store_zip_rejects_other_files(self):
        with pytest.raises(InvalidFileTypeError):
            AssetIngestService.store_zip("pack.rar", b"x", AssetCategory.LUTS.value)

    def test_store_zip_size_limit(self):
        from app.config import settings

        with patch.object(settings, "MAX_ASSET_UPLOAD_MB", 1):
            with pytest.raises(FileTooLargeError):
                AssetIngestService.store_zip("pack.zip", b"x" * (1024 * 1024 + 1), AssetCategory.LUTS.value)

    def test_download_for_members(self, db, seed_user):
        seed_user("member", membershipActive=True, membershipPlan="cca_monthly_37")
        db.seed("assets/a1", {"storagePath": "assets/luts/film.zip"})

        result = AssetIngestService.download_url("member", "a1")

        assert result["fileName"] == "film.zip"
        assert result["expiresIn"] == 3600
        assert "assets/luts/film.zip" in result["downloadUrl"]

    def test_download_requires_membership(self, db, seed_user):
        seed_user("visitor")
        db.seed("assets/a1", {"storagePath": "assets/luts/film.zip"})

        with pytest.raises(AccessDeniedError):
            AssetIngestService.download_url("visitor", "a1")

    def test_download_missing_asset(self, seed_user):
        seed_user("member", membershipActive=True, membershipPlan="cca_monthly_37")
        with pytest.raises(ResourceNotFoundError):
            AssetIngestService.download_url("member", "nope")
