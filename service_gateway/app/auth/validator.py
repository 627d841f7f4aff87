"""
Local validation of guest tokens.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import jwt

from shared.config import GatewayConfig
from shared.logging import get_logger
from .issuer import SIGNING_ALGORITHM


class TokenFailure(str, Enum):
    """Why a token was rejected. Values are safe to show to the caller."""

    MALFORMED = "malformed token"
    BAD_SIGNATURE = "bad signature"
    EXPIRED = "expired"
    NOT_YET_VALID = "not yet valid"
    WRONG_ISSUER = "invalid issuer"
    WRONG_AUDIENCE = "invalid audience"
    MISSING_CLAIM = "missing claim"
    MISSING_SUBJECT = "missing subject"
    INVALID = "invalid token"


@dataclass(frozen=True)
class TokenCheck:
    """Outcome of a token validation: a subject, or a failure tag."""

    subject: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict)
    failure: Optional[TokenFailure] = None

    @property
    def valid(self) -> bool:
        return self.failure is None

    @property
    def reason(self) -> str:
        return self.failure.value if self.failure else ""


# Ordered most specific first; several of these subclass each other.
_FAILURES = (
    (jwt.ExpiredSignatureError, TokenFailure.EXPIRED),
    (jwt.ImmatureSignatureError, TokenFailure.NOT_YET_VALID),
    (jwt.InvalidIssuerError, TokenFailure.WRONG_ISSUER),
    (jwt.InvalidAudienceError, TokenFailure.WRONG_AUDIENCE),
    (jwt.MissingRequiredClaimError, TokenFailure.MISSING_CLAIM),
    (jwt.InvalidSignatureError, TokenFailure.BAD_SIGNATURE),
    (jwt.DecodeError, TokenFailure.MALFORMED),
)


class TokenValidator:
    """Verifies signature, issuer, audience and lifetime of guest tokens.

    Holds no mutable state, so one instance is shared by all requests.
    """

    def __init__(self, config: GatewayConfig) -> None:
        self.secret = config.signing_secret
        self.issuer = config.jwt_issuer
        self.audience = config.jwt_audience
        self.leeway = config.jwt_clock_skew_seconds
        self.logger = get_logger("gateway.auth.validator")

    def validate(self, token: str) -> TokenCheck:
        if not token:
            return TokenCheck(failure=TokenFailure.MALFORMED)

        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[SIGNING_ALGORITHM],
                audience=self.audience,
                issuer=self.issuer,
                leeway=self.leeway,
                options={"require": ["exp", "iss", "aud", "sub"]},
            )
        except jwt.InvalidTokenError as exc:
            failure = self._classify(exc)
            self.logger.info("Token rejected", reason=failure.value)
            return TokenCheck(failure=failure)

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject.strip():
            return TokenCheck(claims=claims, failure=TokenFailure.MISSING_SUBJECT)

        return TokenCheck(subject=subject, claims=claims)

    @staticmethod
    def _classify(exc: jwt.InvalidTokenError) -> TokenFailure:
        for error_type, failure in _FAILURES:
            if isinstance(exc, error_type):
                return failure
        return TokenFailure.INVALID
