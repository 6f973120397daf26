# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Small string and number helpers shared by services, workers and scripts.
# =============================================================================

import math
import re
from decimal import Decimal, ROUND_HALF_UP


# =============================================================================
# Text Utilities
# =============================================================================

def filename_to_title(filename: str) -> str:
    """
    Turn an uploaded pack filename into a display title.

    Example:
        filename_to_title("film-burn_overlays.zip")  # "Film Burn Overlays"
    """
    name = re.sub(r"\.zip$", "", filename, flags=re.IGNORECASE)
    name = re.sub(r"[-_]", " ", name)
    return " ".join(word[:1].upper() + word[1:] for word in name.split(" ") if word)


def normalize_lut_name(name: str) -> str:
    """
    Normalize a LUT name for fuzzy matching.

    Lowercases and drops everything that isn't a letter or digit, so
    "Teal & Orange_v2" and "teal-orange v2" compare equal.
    """
    return re.sub(r"[^a-z0-9]", "", name.lower())


def truncate(text: str, limit: int = 100) -> str:
    """Cut text to `limit` characters, marking the cut with '...'."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def parse_csv_list(value: str | None) -> list[str]:
    """Split a comma-separated string, dropping blanks."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


# =============================================================================
# Number Utilities
# =============================================================================

def round_half_up(value: float) -> int:
    """
    Round to the nearest integer with halves going up.

    Python's round() uses banker's rounding; money math here must not.
    """
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def clamp(value: int, low: int, high: int) -> int:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def days_until(epoch_seconds: int, now: float) -> int:
    """Whole days (rounded up) from now until epoch_seconds, never negative."""
    return max(0, math.ceil((epoch_seconds - now) / 86400))
