"""
Storefront exception hierarchy.

Every error raised across a service boundary derives from StorefrontError and
carries the HTTP status it is rendered with.
"""
from typing import Any, Dict


class StorefrontError(Exception):
    status_code = 500
    public_message = None

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API error response format."""
        return {"detail": self.public_message or self.message}


class NotFoundError(StorefrontError):
    """Referenced vinyl or order does not exist (or is not visible to the caller)."""

    status_code = 404


class ValidationError(StorefrontError):
    status_code = 400


class GatewayError(StorefrontError):
    """
    Stripe rejected or failed a request.

    The message comes from Stripe and is shown to the caller verbatim.
    """

    status_code = 400


class SignatureError(StorefrontError):
    """Webhook payload failed signature verification."""

    status_code = 400


class ConfigurationError(StorefrontError):
    status_code = 500
    public_message = "Server misconfiguration"


class StorageError(StorefrontError):
    status_code = 500
    public_message = "Internal storage error"
