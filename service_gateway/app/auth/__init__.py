"""
Guest token issuance and validation for the gateway.
"""

from .issuer import IssuedToken, TokenIssuer
from .validator import TokenCheck, TokenFailure, TokenValidator

__all__ = [
    "IssuedToken",
    "TokenCheck",
    "TokenFailure",
    "TokenIssuer",
    "TokenValidator",
]
