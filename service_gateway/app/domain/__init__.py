"""
Domain helpers for the Gateway: request authentication and the echo store.
"""

from .auth_middleware import AuthContext, AuthMiddleware
from .echo_store import EchoStore

__all__ = ["AuthContext", "AuthMiddleware", "EchoStore"]
