"""
Shared error handling for the guest gateway.

Every failure at the HTTP boundary is one of the exceptions below; the
service shell turns them into an ``ErrorResponse`` with the matching status.
"""

from enum import Enum
from typing import Dict, Any, Optional

from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class ConfigErrorKind(str, Enum):
    MISSING_SECRET = "missing_secret"
    MISSING_API_KEY = "missing_api_key"


class AuthErrorKind(str, Enum):
    MISSING_TOKEN = "missing_token"
    INVALID_TOKEN = "invalid_token"
    SUBJECT_MISMATCH = "subject_mismatch"


class ValidationErrorKind(str, Enum):
    MALFORMED_JSON = "malformed_json"
    MISSING_FIELD = "missing_field"
    FORBIDDEN_FIELD = "forbidden_field"
    INVALID_TYPE = "invalid_type"


class UpstreamErrorKind(str, Enum):
    NETWORK_FAILURE = "network_failure"


class AccessLayerException(Exception):
    """Base exception for gateway errors."""

    status_code: int = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigError(AccessLayerException):
    """Server-side misconfiguration.

    The client only ever sees a generic message; ``kind`` is kept for logs.
    """

    status_code = 500

    def __init__(self, kind: ConfigErrorKind, message: str = "Server not configured."):
        self.kind = kind
        super().__init__("CONFIG_ERROR", message)


class AuthenticationError(AccessLayerException):
    """Authentication-related errors."""

    status_code = 401

    def __init__(
        self,
        message: str = "Authentication failed",
        kind: AuthErrorKind = AuthErrorKind.INVALID_TOKEN,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.kind = kind
        merged = {"kind": kind.value}
        merged.update(details or {})
        super().__init__("AUTHENTICATION_ERROR", message, merged)


class ValidationError(AccessLayerException):
    """Validation-related errors."""

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        kind: ValidationErrorKind = ValidationErrorKind.INVALID_TYPE,
        field: Optional[str] = None,
    ):
        self.kind = kind
        self.field = field
        details: Dict[str, Any] = {"kind": kind.value}
        if field is not None:
            details["field"] = field
        super().__init__("VALIDATION_ERROR", message, details)


class RateLimitError(AccessLayerException):
    """Rate limiting errors."""

    status_code = 429

    def __init__(
        self,
        message: str = "Rate limit exceeded. Try again soon.",
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.headers = headers
        super().__init__("RATE_LIMIT_ERROR", message, details)


class UpstreamError(AccessLayerException):
    """The upstream API could not be reached.

    Non-2xx answers from the upstream are relayed as-is and never raise this.
    """

    status_code = 502

    def __init__(self, message: str, kind: UpstreamErrorKind = UpstreamErrorKind.NETWORK_FAILURE):
        self.kind = kind
        super().__init__("UPSTREAM_ERROR", message, {"kind": kind.value})
