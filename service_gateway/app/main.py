"""
Guest gateway service: token issuance and the authenticated Responses API relay.
"""

import asyncio
import os
from typing import Any, Dict, Optional

import httpx
from fastapi import Request, Response
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from shared.base_service import BaseService
from shared.config import GatewayConfig, get_config
from shared.errors import (
    ConfigError,
    ConfigErrorKind,
    RateLimitError,
    ValidationError,
    ValidationErrorKind,
)
from .auth import TokenIssuer, TokenValidator
from .domain import AuthMiddleware, EchoStore
from .ratelimit import RateLimitDecision, build_rate_limiter
from .relay import ProxyRelay
from .validation import RequestValidator, parse_json_object


class GuestTokenRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    guestId: Optional[str] = None
    device: Optional[str] = None


class TokenResponse(BaseModel):
    token: str
    expiresUnix: int


class EchoRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    guestId: Optional[str] = None
    text: Optional[str] = None


class EchoResponse(BaseModel):
    guestId: str
    reply: str


def _parse_model(model_cls, raw_body: bytes):
    data = parse_json_object(raw_body)
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid JSON.", kind=ValidationErrorKind.MALFORMED_JSON) from exc


class GatewayService(BaseService):
    """Gateway service implementation."""

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        *,
        upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
        rate_limiter: Any = None,
    ):
        super().__init__("gateway", config or get_config())

        # Refuse to serve at all without a signing secret.
        if not self.config.signing_secret:
            self.logger.error("JWT_SIGNING_SECRET missing or empty; refusing to start")
            raise ConfigError(ConfigErrorKind.MISSING_SECRET)

        self.token_issuer = TokenIssuer(self.config)
        self.token_validator = TokenValidator(self.config)
        self.auth_middleware = AuthMiddleware(self.token_validator, self.metrics)
        self.rate_limiter = rate_limiter or build_rate_limiter(self.config)
        self.request_validator = RequestValidator()
        self.relay = ProxyRelay(self.config, self.metrics, transport=upstream_transport)
        self.echo_store = EchoStore()

        self._eviction_task: Optional[asyncio.Task] = None

        @self.app.on_event("startup")
        async def _startup():
            if hasattr(self.rate_limiter, "evict_idle"):
                self._eviction_task = asyncio.create_task(
                    self._evict_idle_entries(self.config.rate_limit_window_seconds)
                )

        @self.app.on_event("shutdown")
        async def _shutdown():
            if self._eviction_task is not None:
                self._eviction_task.cancel()
                self._eviction_task = None
            await self.relay.close()
            await self.rate_limiter.close()

        self._setup_gateway_routes()
        if self.config.enable_diagnostics:
            self._setup_diagnostic_routes()

        self.app.state.gateway_service = self

    async def _evict_idle_entries(self, interval: float) -> None:
        """Drop in-memory rate limit entries idle for a full window, every ``interval`` seconds."""
        while True:
            await asyncio.sleep(interval)
            removed = self.rate_limiter.evict_idle()
            if removed:
                self.logger.info("Rate limit entries evicted", removed=removed, remaining=len(self.rate_limiter))

    async def _enforce_rate_limit(self, subject: str, endpoint: str) -> RateLimitDecision:
        """Charge one request to ``subject`` or raise ``RateLimitError``."""
        decision = await self.rate_limiter.check(subject)
        if not decision.allowed:
            self.metrics.record_rate_limit_rejection(endpoint)
            self.logger.warning("Rate limit exceeded", subject=subject, limit=decision.limit)
            raise RateLimitError(
                details={"limit": decision.limit},
                headers=self._rate_limit_headers(decision),
            )
        return decision

    def _rate_limit_headers(self, decision: RateLimitDecision) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(decision.limit),
            "X-RateLimit-Remaining": str(decision.remaining),
            "X-RateLimit-Reset": str(max(0, int(round(decision.reset_in_seconds)))),
        }

    def _setup_gateway_routes(self):
        """Set up token, relay and echo routes."""

        @self.app.get("/")
        async def root():
            return {
                "service": "gateway",
                "message": "Guest gateway for the Responses API",
                "version": "1.0.0"
            }

        @self.app.get("/ping", response_class=PlainTextResponse)
        async def ping():
            return "pong"

        @self.app.post("/token", response_model=TokenResponse)
        async def issue_token(request: Request):
            """Issue a guest token."""
            body = _parse_model(GuestTokenRequest, await request.body())
            issued = self.token_issuer.issue(body.guestId, body.device)
            self.metrics.record_token_issued()
            return TokenResponse(token=issued.token, expiresUnix=issued.expires_unix)

        @self.app.post("/proxy")
        async def proxy(request: Request) -> Response:
            """Authenticated, rate-limited relay to the Responses API."""
            context = await self.auth_middleware.authenticate_request(request)
            decision = await self._enforce_rate_limit(context.subject, request.url.path)

            validated = self.request_validator.validate(await request.body())
            response = await self.relay.forward(
                validated.document,
                validated.stream,
                is_disconnected=request.is_disconnected,
            )
            response.headers.update(self._rate_limit_headers(decision))
            return response

        @self.app.post("/echo", response_model=EchoResponse)
        async def echo(request: Request):
            """Store a message for the calling guest and echo it back."""
            context = await self.auth_middleware.authenticate_request(request)

            body = _parse_model(EchoRequest, await request.body())
            if body.guestId is None or not body.guestId.strip():
                raise ValidationError(
                    "guestId required.",
                    kind=ValidationErrorKind.MISSING_FIELD,
                    field="guestId",
                )
            self.auth_middleware.require_subject(context, body.guestId)

            text = body.text or ""
            count = self.echo_store.append(body.guestId, text)
            self.logger.info("Echo stored", subject=context.subject, message_count=count)
            return EchoResponse(guestId=body.guestId, reply=f"You said: {text}")

    def _setup_diagnostic_routes(self):
        """Plain-text configuration echo. Secret values are never printed."""

        def _config_lines():
            return [
                "ok=true",
                f"secretLen={len(self.config.signing_secret)}",
                f"issuer='{self.config.jwt_issuer}'",
                f"audience='{self.config.jwt_audience}'",
                f"minutes='{self.config.jwt_minutes}'",
            ]

        @self.app.get("/diagnostics/config", response_class=PlainTextResponse)
        async def config_check():
            return "\n".join(_config_lines()) + "\n"

        @self.app.get("/diagnostics/env", response_class=PlainTextResponse)
        async def env_check():
            lines = _config_lines() + [
                f"env='{self.config.env}'",
                f"rateLimitPerMinute={self.config.rate_limit_per_minute}",
                f"rateLimitBackend='{self.config.rate_limit_backend}'",
                f"upstreamBase='{self.config.openai_api_base}'",
                f"upstreamKeySet={'true' if self.config.upstream_api_key else 'false'}",
                f"commit='{os.getenv('GIT_COMMIT', 'unknown')}'",
            ]
            return "\n".join(lines) + "\n"

    async def _check_dependencies(self) -> Dict[str, str]:
        dependencies = {"upstream_key": "ok" if self.config.upstream_api_key else "missing"}
        check_health = getattr(self.rate_limiter, "check_health", None)
        if check_health is not None:
            dependencies["redis"] = await check_health()
        return dependencies


def create_app(config: Optional[GatewayConfig] = None, **kwargs):
    """Create FastAPI application."""
    service = GatewayService(config, **kwargs)
    return service.app


if __name__ == "__main__":
    service = GatewayService()
    service.run()
