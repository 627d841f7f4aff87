"""
Upstream relay for the Responses API.
"""

from .proxy_relay import EMPTY_BODY_PLACEHOLDER, UPSTREAM_NAME, ProxyRelay

__all__ = ["EMPTY_BODY_PLACEHOLDER", "UPSTREAM_NAME", "ProxyRelay"]
