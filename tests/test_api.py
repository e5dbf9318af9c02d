import io
import json
from http import HTTPStatus
from wsgiref.util import setup_testing_defaults

import pytest

from memstore.api import Handler, Response
from memstore.store import MemoryStore


@pytest.fixture
def handler():
    with MemoryStore() as store:
        yield Handler(store)


def call(handler, method, path, payload=None, raw=None):
    if raw is not None:
        body = raw
    elif payload is not None:
        body = json.dumps(payload).encode()
    else:
        body = b""
    reply = handler.dispatch(method, path, body)
    return reply.status, json.loads(reply.body)


def test_set_and_get(handler):
    status, response = call(
        handler,
        "POST",
        "/api/v1/keys",
        {"key": "test_key", "value": "test_value", "ttl_seconds": 60},
    )
    assert status == HTTPStatus.OK
    assert response["success"] is True

    status, response = call(handler, "GET", "/api/v1/keys/test_key")
    assert status == HTTPStatus.OK
    assert response["success"] is True
    assert response["data"]["value"] == "test_value"
    assert response["data"]["key"] == "test_key"


def test_list_operations(handler):
    status, _ = call(handler, "POST", "/api/v1/lists/push", {"key": "test_list", "item": "item1"})
    assert status == HTTPStatus.OK

    status, response = call(handler, "POST", "/api/v1/lists/pop", {"key": "test_list"})
    assert status == HTTPStatus.OK
    assert response["success"] is True
    assert response["data"]["value"] == "item1"


def test_update_and_remove(handler):
    call(
        handler,
        "POST",
        "/api/v1/keys",
        {"key": "update_key", "value": "initial_value", "ttl_seconds": 60},
    )

    status, response = call(handler, "PUT", "/api/v1/keys/update_key", {"value": "updated_value"})
    assert status == HTTPStatus.OK
    assert response["data"] == {"message": "Key updated successfully"}

    _, response = call(handler, "GET", "/api/v1/keys/update_key")
    assert response["data"]["value"] == "updated_value"

    status, response = call(handler, "DELETE", "/api/v1/keys/update_key")
    assert status == HTTPStatus.OK
    assert response["data"] == {"message": "Key removed successfully"}

    status, _ = call(handler, "GET", "/api/v1/keys/update_key")
    assert status == HTTPStatus.NOT_FOUND


def test_error_cases(handler):
    status, response = call(handler, "GET", "/api/v1/keys/nonexistent")
    assert status == HTTPStatus.NOT_FOUND
    assert response == {"success": False, "error": "Key not found"}

    status, response = call(handler, "POST", "/api/v1/keys", raw=b"invalid json")
    assert status == HTTPStatus.BAD_REQUEST
    assert response["error"] == "Invalid JSON payload"

    status, response = call(handler, "PATCH", "/api/v1/keys/test")
    assert status == HTTPStatus.METHOD_NOT_ALLOWED
    assert response["error"] == "Method not allowed"


def test_set_with_zero_ttl_succeeds(handler):
    status, response = call(
        handler,
        "POST",
        "/api/v1/keys",
        {"key": "zero_ttl_key", "value": "test_value", "ttl_seconds": 0},
    )
    assert status == HTTPStatus.OK
    assert response["success"] is True


def test_set_with_negative_ttl_is_rejected(handler):
    status, response = call(
        handler,
        "POST",
        "/api/v1/keys",
        {"key": "negative_ttl_key", "value": "test_value", "ttl_seconds": -5},
    )
    assert status == HTTPStatus.BAD_REQUEST
    assert response["success"] is False
    assert response["error"] == "TTL must be >= 0 (0 = no expiration)"


def test_response_to_json_omits_empty_fields():
    assert Response(True, {"message": "ok"}).to_json() == '{"success":true,"data":{"message":"ok"}}'
    assert Response(False, error="Key not found").to_json() == '{"success":false,"error":"Key not found"}'


def test_response_to_json_escapes_html():
    encoded = Response(True, {"value": "<a&b>"}).to_json()
    assert "\\u003ca\\u0026b\\u003e" in encoded
    assert json.loads(encoded)["data"]["value"] == "<a&b>"


def test_reply_is_json_with_trailing_newline(handler):
    reply = handler.dispatch("GET", "/api/v1/keys/missing", b"")
    assert reply.content_type == "application/json"
    assert reply.body == b'{"success":false,"error":"Key not found"}\n'


def test_set_without_key_is_rejected(handler):
    status, response = call(handler, "POST", "/api/v1/keys", {"value": "v"})
    assert status == HTTPStatus.BAD_REQUEST
    assert response["error"] == "Key is required"


def test_null_body_means_empty_request(handler):
    status, response = call(handler, "POST", "/api/v1/keys", raw=b"null")
    assert status == HTTPStatus.BAD_REQUEST
    assert response["error"] == "Key is required"


def test_get_with_empty_key_is_rejected(handler):
    status, response = call(handler, "GET", "/api/v1/keys/")
    assert status == HTTPStatus.BAD_REQUEST
    assert response["error"] == "Key is required"


@pytest.mark.parametrize(
    "raw",
    [
        b"",
        b'"just a string"',
        b"[1, 2]",
        b'{"key": 5, "value": "v"}',
        b'{"key": "k", "value": "v", "ttl_seconds": 1.5}',
        b'{"key": "k", "value": "v", "ttl_seconds": "60"}',
        b'{"key": "k", "value": NaN}',
    ],
)
def test_malformed_set_payloads(handler, raw):
    status, response = call(handler, "POST", "/api/v1/keys", raw=raw)
    assert status == HTTPStatus.BAD_REQUEST
    assert response["error"] == "Invalid JSON payload"


def test_trailing_data_after_payload_is_ignored(handler):
    status, _ = call(handler, "POST", "/api/v1/keys", raw=b'{"key": "k", "value": "v"} trailing')
    assert status == HTTPStatus.OK
    _, response = call(handler, "GET", "/api/v1/keys/k")
    assert response["data"]["value"] == "v"


def test_field_names_match_case_insensitively(handler):
    status, _ = call(handler, "POST", "/api/v1/keys", {"KEY": "k", "Value": "v"})
    assert status == HTTPStatus.OK
    _, response = call(handler, "GET", "/api/v1/keys/k")
    assert response["data"]["value"] == "v"


@pytest.mark.parametrize(
    "value, stored",
    [
        ({"count": 42}, '{"count":42}'),
        (42, "42"),
        (1.0, "1"),
        (True, "true"),
        (["a", "b"], '["a","b"]'),
        ({"b": {"z": 1, "y": 2}, "a": 0}, '{"a":0,"b":{"y":2,"z":1}}'),
    ],
)
def test_non_string_values_are_stored_as_json(handler, value, stored):
    call(handler, "POST", "/api/v1/keys", {"key": "k", "value": value})
    _, response = call(handler, "GET", "/api/v1/keys/k")
    assert response["data"]["value"] == stored


def test_push_then_pop_is_last_in_first_out(handler):
    for item in ("first", "second", "third"):
        call(handler, "POST", "/api/v1/lists/push", {"key": "order", "item": item})
    _, response = call(handler, "POST", "/api/v1/lists/pop", {"key": "order"})
    assert response["data"] == {"key": "order", "value": "third"}


def test_pop_missing_list_is_not_found(handler):
    status, response = call(handler, "POST", "/api/v1/lists/pop", {"key": "nonexistent"})
    assert status == HTTPStatus.NOT_FOUND
    assert response["error"] == "Key not found"


def test_pop_empty_list_reports_store_error(handler):
    call(handler, "POST", "/api/v1/lists/push", {"key": "list", "item": "only"})
    call(handler, "POST", "/api/v1/lists/pop", {"key": "list"})
    status, response = call(handler, "POST", "/api/v1/lists/pop", {"key": "list"})
    assert status == HTTPStatus.INTERNAL_SERVER_ERROR
    assert response["error"] == "Failed to pop item: list is empty"


def test_get_list_key_is_type_mismatch(handler):
    call(handler, "POST", "/api/v1/lists/push", {"key": "list", "item": "x"})
    status, response = call(handler, "GET", "/api/v1/keys/list")
    assert status == HTTPStatus.INTERNAL_SERVER_ERROR
    assert response["error"] == "Failed to get key: operation not supported for this data type"


def test_push_to_string_key_is_type_mismatch(handler):
    call(handler, "POST", "/api/v1/keys", {"key": "text", "value": "v"})
    status, response = call(handler, "POST", "/api/v1/lists/push", {"key": "text", "item": "x"})
    assert status == HTTPStatus.INTERNAL_SERVER_ERROR
    assert response["error"] == "Failed to push item: operation not supported for this data type"


def test_update_and_remove_missing_keys(handler):
    status, _ = call(handler, "PUT", "/api/v1/keys/missing", {"value": "v"})
    assert status == HTTPStatus.NOT_FOUND
    status, _ = call(handler, "DELETE", "/api/v1/keys/missing")
    assert status == HTTPStatus.NOT_FOUND


def test_update_with_bad_body(handler):
    call(handler, "POST", "/api/v1/keys", {"key": "k", "value": "v"})
    status, response = call(handler, "PUT", "/api/v1/keys/k", raw=b"{")
    assert status == HTTPStatus.BAD_REQUEST
    assert response["error"] == "Invalid JSON payload"


@pytest.mark.parametrize(
    "method, path",
    [
        ("GET", "/api/v1/keys"),
        ("GET", "/api/v1/lists/push"),
        ("PUT", "/api/v1/lists/pop"),
        ("POST", "/api/v1/keys/k"),
    ],
)
def test_wrong_methods(handler, method, path):
    status, response = call(handler, method, path)
    assert status == HTTPStatus.METHOD_NOT_ALLOWED
    assert response == {"success": False, "error": "Method not allowed"}


def test_unknown_route(handler):
    reply = handler.dispatch("GET", "/api/v1/other", b"")
    assert reply.status == HTTPStatus.NOT_FOUND
    assert reply.body == b"404 page not found\n"
    assert reply.content_type.startswith("text/plain")


def _wsgi(handler, method, path, body=b""):
    environ = {}
    setup_testing_defaults(environ)
    environ["REQUEST_METHOD"] = method
    environ["PATH_INFO"] = path
    environ["wsgi.input"] = io.BytesIO(body)
    environ["CONTENT_LENGTH"] = str(len(body))
    captured = {}

    def start_response(status, headers):
        captured["status"] = status
        captured["headers"] = dict(headers)

    chunks = handler(environ, start_response)
    return captured["status"], captured["headers"], b"".join(chunks)


def test_wsgi_round_trip(handler):
    body = json.dumps({"key": "w", "value": "wsgi value"}).encode()
    status, headers, payload = _wsgi(handler, "POST", "/api/v1/keys", body)
    assert status == "200 OK"
    assert headers["Content-Type"] == "application/json"
    assert headers["Content-Length"] == str(len(payload))
    assert json.loads(payload)["data"] == {"message": "Key set successfully"}

    status, _, payload = _wsgi(handler, "GET", "/api/v1/keys/w")
    assert status == "200 OK"
    assert json.loads(payload)["data"]["value"] == "wsgi value"


def test_wsgi_not_found_status_line(handler):
    status, _, payload = _wsgi(handler, "GET", "/api/v1/keys/nope")
    assert status == "404 Not Found"
    assert json.loads(payload)["error"] == "Key not found"