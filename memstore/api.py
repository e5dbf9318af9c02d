"""HTTP API over a store: request models, routing and a WSGI entry point."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from decimal import Decimal
from http import HTTPStatus
from typing import Any, Callable, Iterable

from .store import KeyNotFoundError, Store, StoreError

KEYS_PATH = "/api/v1/keys"
KEY_PREFIX = "/api/v1/keys/"
PUSH_PATH = "/api/v1/lists/push"
POP_PATH = "/api/v1/lists/pop"

JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_JSON_WHITESPACE = " \t\r\n"

_HTML_ESCAPES = str.maketrans(
    {
        "<": "\\u003c",
        ">": "\\u003e",
        "&": "\\u0026",
        "\u2028": "\\u2028",
        "\u2029": "\\u2029",
    }
)


class _InvalidPayload(ValueError):
    """The request body is not a usable JSON payload."""


def _reject_constant(name: str) -> Any:
    raise _InvalidPayload(f"invalid JSON literal {name}")


def _parse_float(text: str) -> float:
    number = float(text)
    if not math.isfinite(number):
        raise _InvalidPayload(f"number {text} out of range")
    return number


_DECODER = json.JSONDecoder(parse_float=_parse_float, parse_constant=_reject_constant)


def _decode_object(body: bytes | str | None) -> dict[str, Any]:
    """Decode the first JSON value of a body; ``null`` gives an empty object."""
    if isinstance(body, (bytes, bytearray)):
        text = bytes(body).decode("utf-8", errors="replace")
    else:
        text = body or ""
    text = text.lstrip(_JSON_WHITESPACE)
    try:
        payload, _ = _DECODER.raw_decode(text)
    except ValueError as exc:
        raise _InvalidPayload(str(exc)) from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise _InvalidPayload("expected a JSON object")
    return payload


def _field(payload: dict[str, Any], name: str) -> Any:
    """Value of a field, matching names case-insensitively; the last match wins."""
    value = None
    for key, candidate in payload.items():
        if key.lower() == name:
            value = candidate
    return value


def _string_field(payload: dict[str, Any], name: str) -> str:
    value = _field(payload, name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise _InvalidPayload(f"field {name!r} must be a string")
    return value


def _int_field(payload: dict[str, Any], name: str) -> int:
    value = _field(payload, name)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise _InvalidPayload(f"field {name!r} must be an integer")
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise _InvalidPayload(f"field {name!r} out of range")
    return value


def _number(number: float) -> int | float:
    """Represent a JSON number the way a double-precision decoder holds it."""
    if number.is_integer() and abs(number) < 1e21:
        return int(Decimal(repr(number)))
    return number


def _any_field(payload: dict[str, Any], name: str) -> Any:
    return _normalise(_field(payload, name))


def _normalise(value: Any) -> Any:
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, (int, float)):
        try:
            return _number(float(value))
        except OverflowError as exc:
            raise _InvalidPayload("number out of range") from exc
    if isinstance(value, list):
        return [_normalise(item) for item in value]
    if isinstance(value, dict):
        return {key: _normalise(value[key]) for key in sorted(value)}
    return value


@dataclass
class Response:
    """Envelope returned by every endpoint."""

    success: bool
    data: Any = None
    error: str = ""

    def to_json(self) -> str:
        """Compact JSON with empty ``data`` and ``error`` left out."""
        payload: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            payload["data"] = self.data
        if self.error:
            payload["error"] = self.error
        encoded = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        return encoded.translate(_HTML_ESCAPES)


@dataclass
class SetRequest:
    """Body of a request that stores a key."""

    key: str = ""
    value: Any = None
    ttl_seconds: int = 0


@dataclass
class UpdateRequest:
    """Body of a request that replaces a key's value."""

    key: str = ""
    value: Any = None


@dataclass
class PushRequest:
    """Body of a request that pushes onto a list."""

    key: str = ""
    item: Any = None


@dataclass
class PopRequest:
    """Body of a request that pops from a list."""

    key: str = ""


def _parse_set(body: bytes | str | None) -> SetRequest:
    payload = _decode_object(body)
    return SetRequest(
        key=_string_field(payload, "key"),
        value=_any_field(payload, "value"),
        ttl_seconds=_int_field(payload, "ttl_seconds"),
    )


def _parse_update(body: bytes | str | None) -> UpdateRequest:
    payload = _decode_object(body)
    return UpdateRequest(key=_string_field(payload, "key"), value=_any_field(payload, "value"))


def _parse_push(body: bytes | str | None) -> PushRequest:
    payload = _decode_object(body)
    return PushRequest(key=_string_field(payload, "key"), item=_any_field(payload, "item"))


def _parse_pop(body: bytes | str | None) -> PopRequest:
    payload = _decode_object(body)
    return PopRequest(key=_string_field(payload, "key"))


@dataclass(frozen=True)
class Reply:
    """An HTTP status with its encoded body."""

    status: HTTPStatus
    body: bytes
    content_type: str = JSON_CONTENT_TYPE


def _json_reply(status: HTTPStatus, response: Response) -> Reply:
    return Reply(status, (response.to_json() + "\n").encode("utf-8"))


def _error(status: HTTPStatus, message: str) -> Reply:
    return _json_reply(status, Response(success=False, error=message))


def _success(data: Any) -> Reply:
    return _json_reply(HTTPStatus.OK, Response(success=True, data=data))


def _method_not_allowed() -> Reply:
    return _error(HTTPStatus.METHOD_NOT_ALLOWED, "Method not allowed")


def _invalid_payload() -> Reply:
    return _error(HTTPStatus.BAD_REQUEST, "Invalid JSON payload")


def _key_required() -> Reply:
    return _error(HTTPStatus.BAD_REQUEST, "Key is required")


def _key_not_found() -> Reply:
    return _error(HTTPStatus.NOT_FOUND, "Key not found")


_PAGE_NOT_FOUND = Reply(HTTPStatus.NOT_FOUND, b"404 page not found\n", TEXT_CONTENT_TYPE)


class Handler:
    """Routes HTTP requests to a store and renders the JSON replies."""

    def __init__(self, store: Store) -> None:
        self.store = store

    def dispatch(self, method: str, path: str, body: bytes | str | None = b"") -> Reply:
        """Route one request by method and path."""
        if path == KEYS_PATH:
            return self.set(body) if method == "POST" else _method_not_allowed()
        if path == PUSH_PATH:
            return self.push(body) if method == "POST" else _method_not_allowed()
        if path == POP_PATH:
            return self.pop(body) if method == "POST" else _method_not_allowed()
        if path.startswith(KEY_PREFIX):
            key = path[len(KEY_PREFIX):]
            if method == "GET":
                return self.get(key)
            if method == "PUT":
                return self.update(key, body)
            if method == "DELETE":
                return self.remove(key)
            return _method_not_allowed()
        return _PAGE_NOT_FOUND

    def set(self, body: bytes | str | None) -> Reply:
        """Store a key from a ``SetRequest`` body."""
        try:
            request = _parse_set(body)
        except _InvalidPayload:
            return _invalid_payload()
        if not request.key:
            return _key_required()
        if request.ttl_seconds < 0:
            return _error(HTTPStatus.BAD_REQUEST, "TTL must be >= 0 (0 = no expiration)")
        try:
            self.store.set(request.key, request.value, request.ttl_seconds)
        except StoreError as exc:
            return _error(HTTPStatus.INTERNAL_SERVER_ERROR, f"Failed to set key: {exc}")
        return _success({"message": "Key set successfully"})

    def get(self, key: str) -> Reply:
        """Return the value stored under a key."""
        if not key:
            return _key_required()
        try:
            value = self.store.get(key)
        except KeyNotFoundError:
            return _key_not_found()
        except StoreError as exc:
            return _error(HTTPStatus.INTERNAL_SERVER_ERROR, f"Failed to get key: {exc}")
        return _success({"key": key, "value": value})

    def update(self, key: str, body: bytes | str | None) -> Reply:
        """Replace the value of an existing key from an ``UpdateRequest`` body."""
        if not key:
            return _key_required()
        try:
            request = _parse_update(body)
        except _InvalidPayload:
            return _invalid_payload()
        try:
            self.store.update(key, request.value)
        except KeyNotFoundError:
            return _key_not_found()
        except StoreError as exc:
            return _error(HTTPStatus.INTERNAL_SERVER_ERROR, f"Failed to update key: {exc}")
        return _success({"message": "Key updated successfully"})

    def remove(self, key: str) -> Reply:
        """Delete a key."""
        if not key:
            return _key_required()
        try:
            self.store.remove(key)
        except KeyNotFoundError:
            return _key_not_found()
        except StoreError as exc:
            return _error(HTTPStatus.INTERNAL_SERVER_ERROR, f"Failed to remove key: {exc}")
        return _success({"message": "Key removed successfully"})

    def push(self, body: bytes | str | None) -> Reply:
        """Push an item onto a list from a ``PushRequest`` body."""
        try:
            request = _parse_push(body)
        except _InvalidPayload:
            return _invalid_payload()
        try:
            self.store.push(request.key, request.item)
        except StoreError as exc:
            return _error(HTTPStatus.INTERNAL_SERVER_ERROR, f"Failed to push item: {exc}")
        return _success({"message": "Item pushed successfully"})

    def pop(self, body: bytes | str | None) -> Reply:
        """Pop the front item of a list named by a ``PopRequest`` body."""
        try:
            request = _parse_pop(body)
        except _InvalidPayload:
            return _invalid_payload()
        try:
            value = self.store.pop(request.key)
        except KeyNotFoundError:
            return _key_not_found()
        except StoreError as exc:
            return _error(HTTPStatus.INTERNAL_SERVER_ERROR, f"Failed to pop item: {exc}")
        return _success({"key": request.key, "value": value})

    def __call__(
        self,
        environ: dict[str, Any],
        start_response: Callable[..., Any],
    ) -> Iterable[bytes]:
        method = environ.get("REQUEST_METHOD", "GET")
        path = environ.get("PATH_INFO", "") or "/"
        try:
            path = path.encode("latin-1").decode("utf-8", errors="replace")
        except UnicodeEncodeError:
            pass
        try:
            length = int(environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0
        body = environ["wsgi.input"].read(length) if length > 0 else b""

        reply = self.dispatch(method, path, body)
        status = HTTPStatus(reply.status)
        start_response(
            f"{status.value} {status.phrase}",
            [
                ("Content-Type", reply.content_type),
                ("Content-Length", str(len(reply.body))),
            ],
        )
        return [reply.body]