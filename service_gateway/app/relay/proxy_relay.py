"""
Reverse-proxy relay to the upstream Responses API.
"""

from __future__ import annotations

import json
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

import httpx
from fastapi import Response
from fastapi.responses import StreamingResponse

from shared.config import GatewayConfig
from shared.errors import ConfigError, ConfigErrorKind, UpstreamError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

UPSTREAM_NAME = "openai-v1-responses"
EMPTY_BODY_PLACEHOLDER = "(empty upstream body)"
STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

DisconnectCheck = Callable[[], Awaitable[bool]]


class ProxyRelay:
    """Forwards validated documents upstream and relays the answer.

    The connection pool is shared; every call owns its own upstream response
    and closes it once the body has been relayed or abandoned.
    """

    def __init__(
        self,
        config: GatewayConfig,
        metrics: Optional[MetricsCollector] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = config.upstream_api_key
        self.path = config.upstream_path
        self.metrics = metrics
        self.logger = get_logger("gateway.relay")
        self._client = httpx.AsyncClient(
            base_url=config.openai_api_base,
            timeout=config.upstream_timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def forward(
        self,
        document: Dict[str, Any],
        wants_stream: bool,
        is_disconnected: Optional[DisconnectCheck] = None,
    ) -> Response:
        """POST ``document`` upstream and build the response for the caller.

        Only response headers are awaited here. A successful streamed answer is
        copied chunk by chunk while the caller reads it; anything else is
        buffered. Upstream status codes are relayed unchanged.
        """
        if not self.api_key:
            raise ConfigError(ConfigErrorKind.MISSING_API_KEY)

        payload = json.dumps(document, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        request = self._client.build_request(
            "POST",
            self.path,
            content=payload,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )

        mode = "stream" if wants_stream else "buffered"
        start_time = time.time()
        try:
            upstream = await self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            self.logger.error("Upstream call failed", error=str(exc), error_type=type(exc).__name__)
            if self.metrics:
                self.metrics.record_upstream_failure(type(exc).__name__)
            raise UpstreamError(f"Upstream error: {str(exc) or type(exc).__name__}") from exc

        duration = time.time() - start_time
        if self.metrics:
            self.metrics.record_upstream_request(upstream.status_code, mode, duration)
        self.logger.info(
            "Upstream responded",
            status_code=upstream.status_code,
            mode=mode,
            duration_ms=round(duration * 1000, 2),
        )

        headers = {
            "x-upstream": UPSTREAM_NAME,
            "x-upstream-status": str(upstream.status_code),
        }

        if wants_stream and upstream.is_success:
            headers.update(STREAM_HEADERS)
            return StreamingResponse(
                self.relay_stream(upstream, is_disconnected),
                status_code=upstream.status_code,
                headers=headers,
                media_type="text/event-stream",
            )

        try:
            body = await upstream.aread()
        except httpx.HTTPError as exc:
            self.logger.error("Upstream body read failed", error=str(exc))
            raise UpstreamError(f"Upstream error: {str(exc) or type(exc).__name__}") from exc
        finally:
            await upstream.aclose()

        if not body.strip():
            return Response(
                content=EMPTY_BODY_PLACEHOLDER,
                status_code=upstream.status_code,
                headers=headers,
                media_type="text/plain",
            )

        return Response(
            content=body,
            status_code=upstream.status_code,
            headers=headers,
            media_type=upstream.headers.get("content-type", "application/json"),
        )

    async def relay_stream(
        self,
        upstream: httpx.Response,
        is_disconnected: Optional[DisconnectCheck] = None,
    ) -> AsyncIterator[bytes]:
        """Yield upstream body chunks in arrival order until either side stops."""
        relayed = 0
        try:
            async for chunk in upstream.aiter_bytes():
                if is_disconnected is not None and await is_disconnected():
                    self.logger.info("Caller disconnected, stopping stream relay", relayed_bytes=relayed)
                    break
                relayed += len(chunk)
                yield chunk
        except httpx.HTTPError as exc:
            self.logger.warning("Upstream stream interrupted", error=str(exc), relayed_bytes=relayed)
        finally:
            await upstream.aclose()
