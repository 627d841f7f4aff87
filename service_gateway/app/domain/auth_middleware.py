"""
Authentication middleware for Gateway.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Request

from shared.errors import AuthenticationError, AuthErrorKind
from shared.logging import get_logger, set_user_context
from shared.metrics import MetricsCollector
from ..auth.validator import TokenValidator

BEARER_PREFIX = "bearer "


@dataclass(frozen=True)
class AuthContext:
    """Authenticated request context derived from a verified guest token."""

    subject: str
    device: str
    claims: Dict[str, Any]


class AuthMiddleware:
    """Resolves the caller's identity from the Authorization bearer token."""

    def __init__(self, validator: TokenValidator, metrics: Optional[MetricsCollector] = None):
        self.validator = validator
        self.metrics = metrics
        self.logger = get_logger("gateway.auth_middleware")

    async def authenticate_request(self, request: Request) -> AuthContext:
        """Authenticate the incoming request or raise ``AuthenticationError``."""
        token = self._extract_bearer(request.headers.get("Authorization"))

        check = self.validator.validate(token)
        if self.metrics:
            self.metrics.record_token_validation("valid" if check.valid else check.failure.name.lower())

        if not check.valid:
            raise AuthenticationError(
                f"Invalid or expired token: {check.reason}",
                kind=AuthErrorKind.INVALID_TOKEN,
                details={"reason": check.reason},
            )

        context = AuthContext(
            subject=check.subject,
            device=str(check.claims.get("device") or ""),
            claims=check.claims,
        )
        set_user_context(context.subject)
        request.state.auth_context = context
        self.logger.info("Request authenticated", subject=context.subject)
        return context

    @staticmethod
    def _extract_bearer(header: Optional[str]) -> str:
        if not header or not header.lower().startswith(BEARER_PREFIX):
            raise AuthenticationError("Missing Bearer token.", kind=AuthErrorKind.MISSING_TOKEN)

        token = header[len(BEARER_PREFIX):].strip()
        if not token:
            raise AuthenticationError("Missing Bearer token.", kind=AuthErrorKind.MISSING_TOKEN)
        return token

    @staticmethod
    def require_subject(context: AuthContext, claimed_id: str) -> None:
        """Reject callers acting on behalf of a guest id other than their own."""
        if claimed_id != context.subject:
            raise AuthenticationError("guestId mismatch.", kind=AuthErrorKind.SUBJECT_MISMATCH)
