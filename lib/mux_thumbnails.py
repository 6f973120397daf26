# =============================================================================
# lib/mux_thumbnails.py - Mux Image URLs
# =============================================================================
# Builders for image.mux.com still thumbnails and animated GIF previews.
# =============================================================================

from urllib.parse import urlencode

MUX_IMAGE_BASE = "https://image.mux.com"
MAX_GIF_WIDTH = 640
MAX_GIF_FPS = 30


def thumbnail_url(
    playback_id: str,
    duration_sec: float | None = None,
    width: int = 640,
) -> str:
    """
    Still thumbnail taken from the middle of the video.

    Without a known duration the frame at one second is used.
    """
    time_sec = int(duration_sec // 2) if duration_sec else 1
    params = {"time": time_sec or 1, "width": width, "fit_mode": "preserve"}
    return f"{MUX_IMAGE_BASE}/{playback_id}/thumbnail.jpg?{urlencode(params)}"


def animated_gif_url(
    playback_id: str,
    width: int = 320,
    start: float | None = None,
    end: float | None = None,
    fps: int | None = None,
) -> str:
    """Animated GIF preview; width and fps are capped at Mux's limits."""
    params: dict[str, str | int | float] = {"width": min(width, MAX_GIF_WIDTH)}
    if start is not None:
        params["start"] = start
    if end is not None:
        params["end"] = end
    if fps is not None:
        params["fps"] = min(fps, MAX_GIF_FPS)
    return f"{MUX_IMAGE_BASE}/{playback_id}/animated.gif?{urlencode(params)}"


def best_thumbnail(playback_id: str | None, duration_sec: float | None = None) -> str | None:
    """Preferred preview image for a video card: the animated GIF."""
    if not playback_id:
        return None
    return animated_gif_url(playback_id)
