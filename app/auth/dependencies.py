# =============================================================================
# app/auth/dependencies.py - FastAPI Auth Dependencies
# =============================================================================
# Provides dependency injection for authentication.
#
# Clients sign in with Firebase Authentication and send the resulting ID
# token as a Bearer token. ID tokens are RS256 JWTs signed by Google's
# securetoken service account; the public keys are published as a JWKS.
#
# Usage:
#   from app.auth import get_current_user, AuthUser
#
#   @router.get("/protected")
#   async def protected(user: AuthUser = Depends(get_current_user)):
#       return {"uid": user.uid}
# =============================================================================

import logging
import time
from typing import Optional

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError, ExpiredSignatureError

from app.config import settings
from app.auth.models import AuthUser
from app.exceptions import AdminRequiredError

logger = logging.getLogger(__name__)

# HTTP Bearer token extractor
security = HTTPBearer()
security_optional = HTTPBearer(auto_error=False)

FIREBASE_JWKS_URL = (
    "https://www.googleapis.com/service_accounts/v1/jwk/"
    "securetoken@system.gserviceaccount.com"
)

# Cache for JWKS keys
_jwks_cache: dict = {}
_jwks_cache_time: float = 0
JWKS_CACHE_TTL = 3600  # 1 hour

# Shared HTTP client for the JWKS endpoint (tests swap in a MockTransport)
_http_client: Optional[httpx.Client] = None


def _get_http_client() -> httpx.Client:
    global _http_client
    if _http_client is None:
        _http_client = httpx.Client(timeout=10)
    return _http_client


def _fetch_jwks() -> dict:
    """Fetch Google's securetoken JWKS with caching."""
    global _jwks_cache, _jwks_cache_time

    current_time = time.time()

    if _jwks_cache and (current_time - _jwks_cache_time) < JWKS_CACHE_TTL:
        return _jwks_cache

    try:
        response = _get_http_client().get(FIREBASE_JWKS_URL)
        response.raise_for_status()
        _jwks_cache = response.json()
        _jwks_cache_time = current_time
        logger.debug("Fetched Firebase JWKS")
        return _jwks_cache
    except httpx.HTTPError as e:
        logger.warning(f"Failed to fetch JWKS: {e}")
        # Stale keys are better than rejecting every request
        if _jwks_cache:
            return _jwks_cache
        return {"keys": []}


def _get_signing_key(token: str) -> dict:
    """
    Find the JWK that signed a token.

    Raises:
        JWTError: If the header is unreadable or the key ID is unknown
    """
    unverified_header = jwt.get_unverified_header(token)
    if unverified_header.get("alg") != "RS256":
        raise JWTError(f"Unexpected algorithm: {unverified_header.get('alg')}")

    kid = unverified_header.get("kid")
    for key in _fetch_jwks().get("keys", []):
        if key.get("kid") == kid:
            return key

    raise JWTError(f"Unknown signing key: {kid}")


def verify_id_token(token: str) -> AuthUser:
    """
    Verify a Firebase ID token and return the user it identifies.

    Checks signature, expiry, audience (project ID) and issuer.

    Raises:
        ExpiredSignatureError: If the token has expired
        JWTError: If the token is invalid for any other reason
    """
    project_id = settings.FIREBASE_ADMIN_PROJECT_ID
    payload = jwt.decode(
        token,
        _get_signing_key(token),
        algorithms=["RS256"],
        audience=project_id,
        issuer=f"https://securetoken.google.com/{project_id}",
    )

    uid = payload.get("sub") or payload.get("user_id")
    if not uid:
        raise JWTError("Token missing 'sub' claim")

    return AuthUser(
        uid=uid,
        email=payload.get("email"),
        email_verified=bool(payload.get("email_verified", False)),
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> AuthUser:
    """
    Extract and validate the user from a Firebase ID token.

    Args:
        credentials: Bearer token from Authorization header

    Returns:
        AuthUser: The authenticated user

    Raises:
        HTTPException: 401 if token is invalid or expired
    """
    token = credentials.credentials

    try:
        user = verify_id_token(token)
        logger.debug(f"Authenticated user: {user.uid}")
        return user

    except ExpiredSignatureError:
        logger.warning("ID token has expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )

    except JWTError as e:
        logger.warning(f"ID token validation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_optional)
) -> Optional[AuthUser]:
    """
    Optionally get the current user from an ID token.

    Returns None if no token is provided or the token is invalid.
    Used by endpoints that serve both public and member content.
    """
    if credentials is None:
        return None

    try:
        return await get_current_user(credentials)
    except HTTPException:
        return None


def is_admin_user(user: AuthUser) -> bool:
    """
    Check whether a user is an administrator.

    The configured ADMIN_EMAIL is always admin; otherwise the users
    document must carry roles.admin or isAdmin.
    """
    if user.email and user.email.lower() == settings.ADMIN_EMAIL.lower():
        return True

    from lib.firebase_client import FirebaseClient

    snapshot = FirebaseClient.get_db().collection("users").document(user.uid).get()
    if not snapshot.exists:
        return False
    data = snapshot.to_dict() or {}
    roles = data.get("roles") or {}
    return bool(roles.get("admin") or data.get("isAdmin"))


async def require_admin(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    """
    Require an administrator.

    Raises:
        AdminRequiredError: 403 for signed-in non-admins
    """
    if not is_admin_user(user):
        logger.warning(f"Admin access denied for {user.uid}")
        raise AdminRequiredError()
    return user
