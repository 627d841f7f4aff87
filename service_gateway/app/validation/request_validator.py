"""
Strict request-shape checks for the Responses API.

Bodies are checked before any upstream call is made. Legacy Chat Completions
parameters are rejected outright rather than translated.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict

from shared.errors import ValidationError, ValidationErrorKind

DOCS_URL = "https://platform.openai.com/docs/api-reference/responses/create"

# Legacy parameter -> message naming its Responses API replacement
LEGACY_FIELDS = (
    ("messages", f"Unsupported parameter: 'messages'. Use 'input' (Responses API). See {DOCS_URL}"),
    ("response_format", f"Unsupported parameter: 'response_format'. Use 'text.format' (Responses API). See {DOCS_URL}"),
    ("max_tokens", "Unsupported parameter: 'max_tokens'. Use 'max_output_tokens' (Responses API)."),
)


@dataclass(frozen=True)
class ValidatedRequest:
    """A request document that passed validation, plus its stream flag."""

    document: Dict[str, Any]
    stream: bool = False


def _reject_constant(name: str) -> Any:
    # NaN, Infinity and -Infinity are not JSON
    raise ValueError(f"Invalid JSON constant: {name}")


def parse_json_object(raw_body: bytes) -> Dict[str, Any]:
    """Parse a request body; a non-object JSON value yields an empty dict."""
    if not raw_body or not raw_body.strip():
        raise ValidationError("Empty body.", kind=ValidationErrorKind.MALFORMED_JSON)

    try:
        parsed = json.loads(raw_body, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as exc:
        raise ValidationError("Invalid JSON.", kind=ValidationErrorKind.MALFORMED_JSON) from exc

    return parsed if isinstance(parsed, dict) else {}


class RequestValidator:
    """Validates Responses API request bodies.

    Checks run in a fixed order and the first failure is reported. The
    document itself is never rewritten.
    """

    def validate(self, raw_body: bytes) -> ValidatedRequest:
        document = parse_json_object(raw_body)

        model = document.get("model")
        if not isinstance(model, str) or not model.strip():
            raise ValidationError(
                f"Missing 'model' (e.g., \"gpt-4.1\"). See {DOCS_URL}",
                kind=ValidationErrorKind.MISSING_FIELD,
                field="model",
            )

        for name, message in LEGACY_FIELDS:
            if name in document:
                raise ValidationError(message, kind=ValidationErrorKind.FORBIDDEN_FIELD, field=name)

        if not isinstance(document.get("input"), list):
            raise ValidationError(
                "Missing or invalid 'input'. Provide an array of {role, content} items per the Responses API.",
                kind=ValidationErrorKind.INVALID_TYPE,
                field="input",
            )

        text = document.get("text")
        if text is not None:
            if not isinstance(text, dict):
                raise ValidationError(
                    "'text' must be an object.",
                    kind=ValidationErrorKind.INVALID_TYPE,
                    field="text",
                )
            text_format = text.get("format")
            if text_format is not None and not isinstance(text_format, dict):
                raise ValidationError(
                    "'text.format' must be an object.",
                    kind=ValidationErrorKind.INVALID_TYPE,
                    field="text.format",
                )

        return ValidatedRequest(document=document, stream=document.get("stream") is True)
