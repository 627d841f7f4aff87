"""
Guest token issuance.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from shared.config import GatewayConfig
from shared.errors import ConfigError, ConfigErrorKind, ValidationError, ValidationErrorKind
from shared.logging import get_logger

SIGNING_ALGORITHM = "HS256"


@dataclass(frozen=True)
class IssuedToken:
    """A signed guest token and its expiry as a unix timestamp."""

    token: str
    expires_unix: int


class TokenIssuer:
    """Mints short-lived HS256 tokens for guest identifiers."""

    def __init__(self, config: GatewayConfig) -> None:
        self.config = config
        self.logger = get_logger("gateway.auth.issuer")

    def issue(self, guest_id: Optional[str], device: Optional[str] = None, *, now: Optional[datetime] = None) -> IssuedToken:
        """Sign a token whose subject is ``guest_id``.

        Raises ``ValidationError`` for a blank guest id and ``ConfigError`` when
        no signing secret is configured.
        """
        if guest_id is None or not guest_id.strip():
            raise ValidationError(
                "guestId required.",
                kind=ValidationErrorKind.MISSING_FIELD,
                field="guestId",
            )

        secret = self.config.signing_secret
        if not secret:
            self.logger.error("JWT signing secret missing or empty")
            raise ConfigError(ConfigErrorKind.MISSING_SECRET)

        issued_at = now or datetime.now(timezone.utc)
        expires_at = issued_at + timedelta(minutes=self.config.jwt_minutes)

        claims = {
            "sub": guest_id,
            "device": device or "",
            "iss": self.config.jwt_issuer,
            "aud": self.config.jwt_audience,
            "iat": issued_at,
            "nbf": issued_at,
            "exp": expires_at,
        }
        token = jwt.encode(claims, secret, algorithm=SIGNING_ALGORITHM)

        self.logger.info(
            "Guest token issued",
            subject=guest_id,
            lifetime_minutes=self.config.jwt_minutes,
        )
        return IssuedToken(token=token, expires_unix=int(expires_at.timestamp()))
