"""
Unit tests for RequestValidator.
"""

import json

import pytest

from service_gateway.app.validation import RequestValidator
from shared.errors import ValidationError, ValidationErrorKind


def _body(document) -> bytes:
    return json.dumps(document).encode("utf-8")


class TestRequestValidator:
    """Test cases for RequestValidator."""

    @pytest.fixture
    def validator(self):
        return RequestValidator()

    def _reject(self, validator, raw: bytes) -> ValidationError:
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(raw)
        assert exc_info.value.status_code == 400
        return exc_info.value

    def test_valid_document_passes_unchanged(self, validator, valid_document):
        """A valid request is returned as-is with its stream flag."""
        document = dict(valid_document, text={"format": {"type": "json_object"}}, temperature=0.2)

        result = validator.validate(_body(document))

        assert result.document == document
        assert result.stream is False

    @pytest.mark.parametrize("raw", [b"", b"   ", b"\n\t"])
    def test_empty_body(self, validator, raw):
        error = self._reject(validator, raw)

        assert error.kind == ValidationErrorKind.MALFORMED_JSON
        assert error.message == "Empty body."

    @pytest.mark.parametrize("raw", [b"{", b"not json", b"{'model': 'x'}", b"\xff\xfe"])
    def test_invalid_json(self, validator, raw):
        error = self._reject(validator, raw)

        assert error.kind == ValidationErrorKind.MALFORMED_JSON
        assert error.message == "Invalid JSON."

    @pytest.mark.parametrize("constant", [b"NaN", b"Infinity", b"-Infinity"])
    def test_non_standard_number_literals_rejected(self, validator, constant):
        """NaN and Infinity are not JSON and never reach the upstream."""
        raw = b'{"model":"gpt-4.1","input":[],"temperature":' + constant + b"}"

        error = self._reject(validator, raw)

        assert error.kind == ValidationErrorKind.MALFORMED_JSON
        assert error.message == "Invalid JSON."

    def test_deeply_nested_body_rejected(self, validator):
        """Nesting beyond the parser's depth is a client error, not a crash."""
        raw = b"[" * 100000 + b"]" * 100000

        error = self._reject(validator, raw)

        assert error.kind == ValidationErrorKind.MALFORMED_JSON
        assert error.message == "Invalid JSON."

    @pytest.mark.parametrize("raw", [b"[]", b"42", b'"gpt-4.1"', b"null"])
    def test_non_object_treated_as_empty(self, validator, raw):
        """JSON values that are not objects have no model."""
        error = self._reject(validator, raw)

        assert error.field == "model"

    @pytest.mark.parametrize("model", [None, "", "   ", 4, ["gpt-4.1"]])
    def test_model_required(self, validator, valid_document, model):
        document = dict(valid_document)
        if model is None:
            del document["model"]
        else:
            document["model"] = model

        error = self._reject(validator, _body(document))

        assert error.kind == ValidationErrorKind.MISSING_FIELD
        assert error.field == "model"
        assert "Missing 'model'" in error.message

    @pytest.mark.parametrize(
        "field, replacement",
        [("messages", "'input'"), ("response_format", "'text.format'"), ("max_tokens", "'max_output_tokens'")],
    )
    def test_legacy_fields_rejected(self, validator, valid_document, field, replacement):
        """Legacy parameters are rejected naming their modern equivalent."""
        document = dict(valid_document, **{field: None})

        error = self._reject(validator, _body(document))

        assert error.kind == ValidationErrorKind.FORBIDDEN_FIELD
        assert error.field == field
        assert f"Unsupported parameter: '{field}'" in error.message
        assert f"Use {replacement}" in error.message

    def test_messages_rejected_even_without_input(self, validator):
        """'messages' wins over the missing 'input' check."""
        document = {"model": "gpt-4.1", "messages": [{"role": "user", "content": "hi"}]}

        error = self._reject(validator, _body(document))

        assert error.field == "messages"
        assert "Use 'input'" in error.message

    def test_model_checked_before_legacy_fields(self, validator):
        error = self._reject(validator, _body({"messages": []}))

        assert error.field == "model"

    def test_legacy_fields_checked_in_order(self, validator):
        document = {"model": "gpt-4.1", "max_tokens": 5, "response_format": {}, "input": []}

        error = self._reject(validator, _body(document))

        assert error.field == "response_format"

    @pytest.mark.parametrize("value", [None, "hi", {"role": "user"}, 3])
    def test_input_must_be_array(self, validator, value):
        document = {"model": "gpt-4.1"}
        if value is not None:
            document["input"] = value

        error = self._reject(validator, _body(document))

        assert error.field == "input"
        assert error.message.startswith("Missing or invalid 'input'.")

    def test_empty_input_array_is_allowed(self, validator):
        result = validator.validate(_body({"model": "gpt-4.1", "input": []}))

        assert result.document["input"] == []

    @pytest.mark.parametrize("text", ["plain", 1, ["format"]])
    def test_text_must_be_object(self, validator, valid_document, text):
        error = self._reject(validator, _body(dict(valid_document, text=text)))

        assert error.field == "text"
        assert error.message == "'text' must be an object."

    @pytest.mark.parametrize("fmt", ["json", 1, []])
    def test_text_format_must_be_object(self, validator, valid_document, fmt):
        error = self._reject(validator, _body(dict(valid_document, text={"format": fmt})))

        assert error.field == "text.format"
        assert error.message == "'text.format' must be an object."

    def test_null_text_and_format_allowed(self, validator, valid_document):
        assert validator.validate(_body(dict(valid_document, text=None))).document["text"] is None
        assert validator.validate(_body(dict(valid_document, text={"format": None}))).stream is False

    @pytest.mark.parametrize("value, expected", [(True, True), (False, False), ("true", False), (1, False), (None, False)])
    def test_stream_flag(self, validator, valid_document, value, expected):
        """Only a boolean true turns streaming on."""
        result = validator.validate(_body(dict(valid_document, stream=value)))

        assert result.stream is expected

    def test_stream_absent(self, validator):
        result = validator.validate(_body({"model": "gpt-4.1", "input": []}))

        assert result.stream is False
        assert "stream" not in result.document
