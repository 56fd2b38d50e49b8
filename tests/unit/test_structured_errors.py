"""
Tests unitarios para manejo estructurado de errores del API y del stream.
"""

import json

import httpx
import pytest

from langchain_gotama._client import AnthropicHttpClient, _parse_error_response, transport_error_from_exception
from langchain_gotama._errors import DecodeError, GotamaAPIError, GotamaError, ProtocolError, TransportError


class TestGotamaAPIError:
    """Tests para la clase GotamaAPIError."""

    def test_error_creation_minimal(self):
        error = GotamaAPIError(status_code=500, message="Internal error")

        assert error.status_code == 500
        assert error.message == "Internal error"
        assert error.body is None
        assert error.error_type is None
        assert error.request_id is None

    def test_is_gotama_error(self):
        error = GotamaAPIError(status_code=500, message="x")

        assert isinstance(error, GotamaError)
        assert isinstance(error, RuntimeError)
        assert TransportError is GotamaAPIError

    def test_str_with_type_and_request_id(self):
        error = GotamaAPIError(
            status_code=429,
            message="Rate limited",
            error_type="rate_limit_error",
            request_id="req_xyz",
        )
        s = str(error)

        assert "429" in s
        assert "rate_limit_error" in s
        assert "req_xyz" in s

    def test_str_with_body(self):
        error = GotamaAPIError(status_code=500, message="Error", body="x" * 1000)

        assert "1000 chars" in str(error)

    def test_to_dict(self):
        error = GotamaAPIError(
            status_code=400,
            message="max_tokens: Field required",
            body='{"type":"error"}',
            error_type="invalid_request_error",
            request_id="req_abc",
        )

        assert error.to_dict() == {
            "status_code": 400,
            "message": "max_tokens: Field required",
            "error_type": "invalid_request_error",
            "request_id": "req_abc",
            "body": '{"type":"error"}',
        }

    def test_status_helpers(self):
        assert GotamaAPIError(status_code=400, message="").is_client_error is True
        assert GotamaAPIError(status_code=500, message="").is_client_error is False
        assert GotamaAPIError(status_code=503, message="").is_server_error is True
        assert GotamaAPIError(status_code=401, message="").is_auth_error is True
        assert GotamaAPIError(status_code=403, message="").is_auth_error is True
        assert GotamaAPIError(status_code=404, message="").is_auth_error is False
        assert GotamaAPIError(status_code=429, message="").is_rate_limited is True

    def test_is_overloaded(self):
        assert GotamaAPIError(status_code=529, message="").is_overloaded is True
        assert GotamaAPIError(status_code=500, message="", error_type="overloaded_error").is_overloaded is True
        assert GotamaAPIError(status_code=500, message="").is_overloaded is False

    def test_connection_error_has_no_status(self):
        error = GotamaAPIError(status_code=None, message="timeout")

        assert error.is_connection_error is True
        assert error.is_client_error is False
        assert error.is_server_error is False


class TestStreamErrors:
    def test_decode_error_keeps_payload(self):
        error = DecodeError('{"a":', "Expecting value")

        assert str(error) == "decode error: Expecting value"
        assert error.payload == '{"a":'
        assert isinstance(error, GotamaError)

    def test_protocol_error_message_is_verbatim(self):
        error = ProtocolError("Overloaded", error_type="overloaded_error")

        assert str(error) == "Overloaded"
        assert error.error_type == "overloaded_error"


class TestParseErrorResponse:
    """Tests para la función _parse_error_response."""

    def test_parse_anthropic_envelope(self):
        body = json.dumps({
            "type": "error",
            "error": {"type": "invalid_request_error", "message": "messages: at least one message is required"},
        })

        error = _parse_error_response(400, body, "application/json", request_id="req_011")

        assert error.status_code == 400
        assert error.error_type == "invalid_request_error"
        assert error.message == "messages: at least one message is required"
        assert error.request_id == "req_011"
        assert error.body == body

    def test_parse_non_json_content_type(self):
        error = _parse_error_response(502, "Bad Gateway", "text/html")

        assert error.message == "Bad Gateway"
        assert error.error_type is None
        assert error.body == "Bad Gateway"

    def test_parse_invalid_json(self):
        error = _parse_error_response(400, "{ invalid json", "application/json")

        assert "invalid json" in error.message
        assert error.error_type is None

    def test_parse_json_without_error_object(self):
        error = _parse_error_response(500, json.dumps({"message": "Something went wrong"}), "application/json")

        assert error.message == "Something went wrong"

    def test_parse_empty_body(self):
        error = _parse_error_response(500, "", "application/json")

        assert error.message == "HTTP 500"

    def test_parse_json_array(self):
        error = _parse_error_response(400, json.dumps(["e1"]), "application/json")

        assert error.error_type is None
        assert "e1" in error.message

    def test_parse_handles_non_string_values(self):
        body = json.dumps({"type": "error", "error": {"type": 12345, "message": ["no"]}})

        error = _parse_error_response(400, body, "application/json")

        assert error.error_type is None
        assert error.message == body


class TestTransportErrors:
    def test_timeout_is_labelled(self):
        error = transport_error_from_exception(httpx.ReadTimeout("read timed out"))

        assert error.status_code is None
        assert error.message.startswith("timeout:")
        assert error.error_type == "ReadTimeout"

    def test_connect_error_is_labelled(self):
        error = transport_error_from_exception(httpx.ConnectError("refused"))

        assert error.message.startswith("connection error:")

    def test_raise_for_status_uses_envelope_and_request_id(self):
        resp = httpx.Response(
            529,
            headers={"content-type": "application/json", "request-id": "req_42"},
            text=json.dumps({"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}),
        )

        with pytest.raises(GotamaAPIError) as exc:
            AnthropicHttpClient.raise_for_status(resp)

        assert exc.value.is_overloaded
        assert exc.value.message == "Overloaded"
        assert exc.value.request_id == "req_42"
