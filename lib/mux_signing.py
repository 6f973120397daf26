# =============================================================================
# lib/mux_signing.py - Signed Playback Tokens
# =============================================================================
# Mux signed playback IDs require a short-lived RS256 JWT:
#   header:  {"alg": "RS256", "kid": <signing key id>}
#   claims:  {"sub": <playback id>, "aud": "v" | "t" | "g" | "s",
#             "exp": <epoch seconds>, "iat": <epoch seconds>}
# "v" = video, "t" = thumbnail, "g" = animated gif, "s" = storyboard.
# =============================================================================

import time

from jose import jwt

from app.config import settings
from app.exceptions import CollectiveException

DEFAULT_TOKEN_TTL = 900  # 15 minutes
VALID_AUDIENCES = ("v", "t", "g", "s")


def sign_playback_token(
    playback_id: str,
    audience: str = "v",
    expires_in: int = DEFAULT_TOKEN_TTL,
    now: int | None = None,
) -> str:
    """
    Sign a playback token for a Mux playback ID.

    Args:
        playback_id: The signed playback ID
        audience: Token audience (see module header)
        expires_in: Lifetime in seconds
        now: Override for the issue time (epoch seconds)

    Returns:
        Compact JWT string

    Raises:
        CollectiveException: If signing keys are not configured
        ValueError: If the audience is unknown
    """
    if audience not in VALID_AUDIENCES:
        raise ValueError(f"Unknown Mux token audience: {audience}")

    if not settings.MUX_SIGNING_KEY_ID or not settings.MUX_SIGNING_PRIVATE_KEY:
        raise CollectiveException(
            message="Mux signing keys are not configured",
            code="MUX_SIGNING_NOT_CONFIGURED",
            status_code=500,
            suggestion="Set MUX_SIGNING_KEY_ID and MUX_SIGNING_PRIVATE_KEY",
        )

    issued_at = int(now if now is not None else time.time())
    claims = {
        "sub": playback_id,
        "aud": audience,
        "exp": issued_at + expires_in,
        "iat": issued_at,
    }
    return jwt.encode(
        claims,
        settings.mux_signing_private_key,
        algorithm="RS256",
        headers={"kid": settings.MUX_SIGNING_KEY_ID},
    )
