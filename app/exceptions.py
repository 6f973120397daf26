# =============================================================================
# app/exceptions.py - Custom Exception Handlers
# =============================================================================
# Centralized exception handling for the API.
# Every error carries a machine-readable code and, where possible, a
# suggestion telling the caller how to fix the request.
# =============================================================================

from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


class CollectiveException(Exception):
    """
    Base exception for the Creator Collective API.

    All custom exceptions inherit from this class.
    Services raise these; the handler below turns them into JSON responses.
    """

    def __init__(
        self,
        message: str,
        code: str = "COLLECTIVE_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "detail": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Generic Exceptions
# =============================================================================

class ResourceNotFoundError(CollectiveException):
    """Raised when a Firestore document doesn't exist."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"{resource} not found: {resource_id}",
            code=f"{resource.upper().replace(' ', '_')}_NOT_FOUND",
            status_code=404,
            suggestion=f"Check that the {resource.lower()} ID is correct",
            details={"id": resource_id},
        )


class InvalidRequestError(CollectiveException):
    """Raised when a request is well-formed but semantically invalid."""

    def __init__(self, message: str, suggestion: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="INVALID_REQUEST",
            status_code=400,
            suggestion=suggestion,
            details=details,
        )


class AccessDeniedError(CollectiveException):
    """Raised when the authenticated user may not act on a resource."""

    def __init__(self, message: str = "Forbidden", suggestion: str | None = None):
        super().__init__(
            message=message,
            code="ACCESS_DENIED",
            status_code=403,
            suggestion=suggestion,
        )


class AdminRequiredError(CollectiveException):
    """Raised when a non-admin calls an admin endpoint."""

    def __init__(self):
        super().__init__(
            message="Administrator access required",
            code="ADMIN_REQUIRED",
            status_code=403,
            suggestion="Sign in with an administrator account",
        )


class AuthenticationRequiredError(CollectiveException):
    """Raised when an operation needs a signed-in user but none was given."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message=message,
            code="AUTH_REQUIRED",
            status_code=401,
            suggestion="Send a Firebase ID token in the Authorization header",
        )


# =============================================================================
# Moderation Exceptions
# =============================================================================

class StrikeLimitReachedError(CollectiveException):
    """Raised when issuing a strike to a user who already has the maximum."""

    def __init__(self, user_id: str, strikes: int):
        super().__init__(
            message="Failed to issue strike. User may already have 3 strikes.",
            code="STRIKE_LIMIT_REACHED",
            status_code=409,
            suggestion="Remove an existing strike before issuing a new one",
            details={"user_id": user_id, "strikes": strikes},
        )


# =============================================================================
# Commerce Exceptions
# =============================================================================

class SellerNotOnboardedError(CollectiveException):
    """Raised when a buyer tries to purchase from a seller without payouts."""

    def __init__(self, seller_id: str):
        super().__init__(
            message="Seller is not set up to receive payments yet",
            code="SELLER_NOT_ONBOARDED",
            status_code=400,
            suggestion="The seller must finish Stripe Connect onboarding",
            details={"seller_id": seller_id},
        )


class SubscriptionStateError(CollectiveException):
    """Raised when a subscription can't be changed in its current state."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="SUBSCRIPTION_STATE",
            status_code=400,
            details=details,
        )


class PaymentProviderError(CollectiveException):
    """Raised when a Stripe API call fails."""

    def __init__(self, operation: str, error: str):
        super().__init__(
            message=f"Stripe request failed ({operation}): {error}",
            code="STRIPE_ERROR",
            status_code=502,
            suggestion="Try again later or check the Stripe dashboard",
            details={"operation": operation},
        )


# =============================================================================
# Webhook Exceptions
# =============================================================================

class WebhookSignatureError(CollectiveException):
    """Raised when a webhook payload fails signature verification."""

    def __init__(self, provider: str):
        super().__init__(
            message=f"Invalid {provider} signature",
            code="INVALID_SIGNATURE",
            status_code=400,
            suggestion=f"Check the {provider} webhook signing secret",
        )


# =============================================================================
# Video Exceptions
# =============================================================================

class MuxApiError(CollectiveException):
    """Raised when the Mux REST API returns an error."""

    def __init__(self, path: str, error: str, status_code: int = 502):
        super().__init__(
            message=f"Mux request failed: {error}",
            code="MUX_ERROR",
            status_code=status_code,
            suggestion="Check MUX_TOKEN_ID/MUX_TOKEN_SECRET and the asset ID",
            details={"path": path},
        )


# =============================================================================
# Upload / Storage Exceptions
# =============================================================================

class InvalidFileTypeError(CollectiveException):
    """Raised when uploaded file type is not allowed."""

    def __init__(self, filename: str, allowed: list[str]):
        super().__init__(
            message=f"Invalid file type: {filename}",
            code="INVALID_FILE_TYPE",
            status_code=400,
            suggestion=f"Only these file types are supported: {', '.join(allowed)}",
            details={"filename": filename, "allowed_types": allowed},
        )


class FileTooLargeError(CollectiveException):
    """Raised when uploaded file exceeds size limit."""

    def __init__(self, size_mb: float, max_mb: int):
        super().__init__(
            message=f"File too large: {size_mb:.1f}MB (max: {max_mb}MB)",
            code="FILE_TOO_LARGE",
            status_code=413,
            suggestion=f"Upload a file smaller than {max_mb}MB",
            details={"size_mb": size_mb, "max_mb": max_mb},
        )


class StorageUploadError(CollectiveException):
    """Raised when file upload to storage fails."""

    def __init__(self, path: str, error: str):
        super().__init__(
            message=f"Failed to upload file to storage: {error}",
            code="STORAGE_UPLOAD_ERROR",
            status_code=500,
            suggestion="Try again later or contact support if the issue persists",
            details={"path": path},
        )


class StorageDownloadError(CollectiveException):
    """Raised when file download from storage fails."""

    def __init__(self, path: str, error: str):
        super().__init__(
            message=f"Failed to download file from storage: {error}",
            code="STORAGE_DOWNLOAD_ERROR",
            status_code=500,
            suggestion="Try again later or contact support if the issue persists",
            details={"path": path},
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def collective_exception_handler(
    request: Request,
    exc: CollectiveException
) -> JSONResponse:
    """
    Convert CollectiveException to JSON response.

    Returns structured error with:
    - detail: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def validation_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """Handle request body/query validation errors."""
    errors = jsonable_encoder(exc.errors()) if hasattr(exc, "errors") else str(exc)
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "code": "VALIDATION_ERROR",
            "errors": errors,
        }
    )
