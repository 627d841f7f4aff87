"""
Shared fixtures for Gateway tests.
"""

import json
from typing import Any, Callable, Dict, List

import httpx
import pytest

from shared.config import GatewayConfig

TEST_SECRET = "unit-test-signing-secret-0123456789abcdef"
TEST_API_KEY = "sk-test-upstream-key"
UPSTREAM_BASE = "https://upstream.test"


def make_config(**overrides: Any) -> GatewayConfig:
    """Build a config snapshot that ignores the process environment's .env."""
    values: Dict[str, Any] = {
        "jwt_signing_secret": TEST_SECRET,
        "openai_api_key": TEST_API_KEY,
        "openai_api_base": UPSTREAM_BASE,
        "rate_limit_per_minute": 5,
        "rate_limit_backend": "memory",
        "env": "test",
    }
    values.update(overrides)
    return GatewayConfig(_env_file=None, **values)


class RecordingUpstream:
    """httpx.MockTransport wrapper that records what the gateway sent."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []
        self._responder = responder
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)

    @property
    def last_json(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def gateway_config() -> GatewayConfig:
    return make_config()


@pytest.fixture
def valid_document() -> Dict[str, Any]:
    return {
        "model": "gpt-4.1",
        "input": [{"role": "user", "content": "hi"}],
        "stream": False,
    }


@pytest.fixture
def config_factory() -> Callable[..., GatewayConfig]:
    """Return a builder for config snapshots with per-test overrides."""
    return make_config


@pytest.fixture
def upstream_factory() -> Callable[..., RecordingUpstream]:
    """Return a builder for recording mock upstreams."""
    return RecordingUpstream


@pytest.fixture
def signing_secret() -> str:
    return TEST_SECRET
