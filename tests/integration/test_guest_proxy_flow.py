"""
Integration tests for the guest token -> relay flow.

The gateway app runs in-process behind httpx's ASGI transport; the upstream
Responses API is an httpx.MockTransport.
"""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from service_gateway.app.auth import TokenIssuer
from service_gateway.app.main import create_app
from shared.config import GatewayConfig

SECRET = "integration-signing-secret-with-enough-entropy"


def _config(**overrides) -> GatewayConfig:
    values = {
        "jwt_signing_secret": SECRET,
        "openai_api_key": "sk-integration",
        "openai_api_base": "https://upstream.test",
        "rate_limit_per_minute": 3,
        "env": "test",
    }
    values.update(overrides)
    return GatewayConfig(_env_file=None, **values)


class TestGuestProxyFlow:
    """Integration tests for the complete guest flow."""

    @pytest.fixture
    def upstream_calls(self):
        return []

    @pytest.fixture
    def config(self):
        return _config()

    @pytest.fixture
    def app(self, config, upstream_calls):
        def respond(request: httpx.Request) -> httpx.Response:
            upstream_calls.append(request)
            document = json.loads(request.content)
            return httpx.Response(
                200,
                json={"id": "resp_flow", "model": document["model"], "output_text": "hello guest"},
            )

        return create_app(config, upstream_transport=httpx.MockTransport(respond))

    @pytest.fixture
    def gateway_url(self):
        return "http://gateway.test"

    @pytest.mark.asyncio
    async def test_complete_guest_flow(self, app, gateway_url, upstream_calls):
        """Issue a token, relay a request, then use the echo endpoint."""
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url=gateway_url) as client:
            # 1. Issue token
            token_response = await client.post("/token", json={"guestId": "guest-42", "device": "android"})
            assert token_response.status_code == 200
            token = token_response.json()["token"]
            headers = {"Authorization": f"Bearer {token}"}

            # 2. Relay a Responses API call
            proxy_response = await client.post(
                "/proxy",
                json={"model": "gpt-4.1-mini", "input": [{"role": "user", "content": "hello"}]},
                headers=headers,
            )
            assert proxy_response.status_code == 200
            assert proxy_response.json()["output_text"] == "hello guest"
            assert proxy_response.headers["X-RateLimit-Remaining"] == "2"
            assert upstream_calls[0].headers["Authorization"] == "Bearer sk-integration"

            # 3. Echo as the same guest
            echo_response = await client.post(
                "/echo",
                json={"guestId": "guest-42", "text": "ping"},
                headers=headers,
            )
            assert echo_response.status_code == 200
            assert echo_response.json()["reply"] == "You said: ping"

    @pytest.mark.asyncio
    async def test_budget_exhaustion(self, app, gateway_url, upstream_calls):
        """A guest is cut off after its per-window budget."""
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url=gateway_url) as client:
            token = (await client.post("/token", json={"guestId": "guest-7"})).json()["token"]
            headers = {"Authorization": f"Bearer {token}"}
            body = {"model": "gpt-4.1", "input": []}

            statuses = [
                (await client.post("/proxy", json=body, headers=headers)).status_code
                for _ in range(4)
            ]

        assert statuses == [200, 200, 200, 429]
        assert len(upstream_calls) == 3

    @pytest.mark.asyncio
    async def test_expired_token_rejected(self, app, config, gateway_url, upstream_calls):
        expired = TokenIssuer(config).issue(
            "guest-42", now=datetime.now(timezone.utc) - timedelta(hours=1)
        )

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url=gateway_url) as client:
            response = await client.post(
                "/proxy",
                json={"model": "gpt-4.1", "input": []},
                headers={"Authorization": f"Bearer {expired.token}"},
            )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid or expired token: expired"
        assert upstream_calls == []
