# =============================================================================
# lib/media.py - ffmpeg / ffprobe Helpers
# =============================================================================
# Thin wrappers around the ffmpeg command-line tools. Each returns a falsy
# value instead of raising when the tool is missing or the input is bad, so a
# single broken file doesn't abort a whole asset pack.
# =============================================================================

import logging
import shutil
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

FFMPEG_TIMEOUT_SECONDS = 600
FFPROBE_TIMEOUT_SECONDS = 30


def _run(args: list[str], timeout: int) -> subprocess.CompletedProcess | None:
    if shutil.which(args[0]) is None:
        logger.warning(f"{args[0]} not found on PATH")
        return None
    try:
        return subprocess.run(args, capture_output=True, text=True, timeout=timeout, check=True)
    except subprocess.CalledProcessError as e:
        logger.warning(f"{args[0]} failed ({e.returncode}): {(e.stderr or '').strip()[-300:]}")
    except subprocess.TimeoutExpired:
        logger.warning(f"{args[0]} timed out after {timeout}s")
    return None


def audio_duration(path: str | Path) -> int:
    """Media duration in whole seconds, 0 if it can't be read."""
    result = _run(
        [
            "ffprobe", "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(path),
        ],
        FFPROBE_TIMEOUT_SECONDS,
    )
    if result is None:
        return 0
    try:
        return round(float(result.stdout.strip()))
    except ValueError:
        return 0


def convert_to_mp4(source: str | Path, target: str | Path) -> bool:
    """Re-encode a video (typically .mov) as H.264/AAC MP4."""
    result = _run(
        [
            "ffmpeg", "-y", "-i", str(source),
            "-c:v", "libx264", "-c:a", "aac",
            "-movflags", "+faststart",
            str(target),
        ],
        FFMPEG_TIMEOUT_SECONDS,
    )
    return result is not None


def render_720p_preview(source: str | Path, target: str | Path) -> bool:
    """Scale a video to 720 lines high for in-browser previews."""
    result = _run(
        [
            "ffmpeg", "-y", "-i", str(source),
            "-vf", "scale=-2:720",
            "-c:v", "libx264", "-c:a", "aac",
            "-movflags", "+faststart",
            str(target),
        ],
        FFMPEG_TIMEOUT_SECONDS,
    )
    return result is not None
