"""
Request validation for bodies relayed to the upstream API.
"""

from .request_validator import RequestValidator, ValidatedRequest, parse_json_object

__all__ = ["RequestValidator", "ValidatedRequest", "parse_json_object"]
