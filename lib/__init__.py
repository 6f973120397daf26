# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# Clients and helpers with no business rules of their own:
# - firebase_client.py: Firebase Admin app, Firestore and Storage handles
# - stripe_client.py: Configured stripe module
# - mux_client.py: Mux Video REST client
# - mux_signing.py: Signed playback tokens
# - mux_thumbnails.py: Image/GIF URLs for playback IDs
# - media.py: ffmpeg/ffprobe wrappers
# - utils.py: Small shared helpers (titles, LUT names, rounding)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.firebase_client import FirebaseClient, snapshot_to_dict, to_millis
from lib.utils import filename_to_title, normalize_lut_name, round_half_up, truncate

__all__ = [
    "FirebaseClient",
    "snapshot_to_dict",
    "to_millis",
    "filename_to_title",
    "normalize_lut_name",
    "round_half_up",
    "truncate",
]
