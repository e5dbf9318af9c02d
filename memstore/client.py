"""HTTP client for the store's API."""

from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, fields
from typing import Any

KEYS_PATH = "/api/v1/keys"
KEY_PREFIX = "/api/v1/keys/"
PUSH_PATH = "/api/v1/lists/push"
POP_PATH = "/api/v1/lists/pop"

DEFAULT_TIMEOUT = 30.0

_PATH_SAFE = "/:@!$&'()*+,;=~"


class ClientError(Exception):
    """A request could not be made or its reply could not be understood."""


class ApiError(ClientError):
    """The server answered with ``success: false``."""

    def __init__(self, error: str, status: int) -> None:
        super().__init__(f"API error: {error}")
        self.error = error
        self.status = status


@dataclass
class Response:
    """Envelope returned by every endpoint."""

    success: bool = False
    data: Any = None
    error: str = ""


@dataclass
class SetRequest:
    """Body of a request that stores a key."""

    key: str
    value: Any
    ttl_seconds: int


@dataclass
class UpdateRequest:
    """Body of a request that replaces a key's value; the key is in the path."""

    value: Any


@dataclass
class PushRequest:
    """Body of a request that pushes an item onto the front of a list."""

    key: str
    item: Any


@dataclass
class PopRequest:
    """Body of a request that pops the front item of a list."""

    key: str


def _encode(body: object) -> bytes:
    payload = {f.name: getattr(body, f.name) for f in fields(body)}
    try:
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise ClientError(f"failed to marshal request body: {exc}") from exc


def _decode(raw: bytes) -> Response:
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise ClientError(f"failed to unmarshal response: {exc}") from exc
    if payload is None:
        return Response()
    if not isinstance(payload, dict):
        raise ClientError("failed to unmarshal response: expected a JSON object")
    success = payload.get("success")
    error = payload.get("error")
    if success is not None and not isinstance(success, bool):
        raise ClientError("failed to unmarshal response: 'success' must be a boolean")
    if error is not None and not isinstance(error, str):
        raise ClientError("failed to unmarshal response: 'error' must be a string")
    return Response(success=bool(success), data=payload.get("data"), error=error or "")


def _value_of(response: Response) -> str:
    if not isinstance(response.data, dict):
        raise ClientError("unexpected response format")
    value = response.data.get("value")
    if not isinstance(value, str):
        raise ClientError("unexpected value format")
    return value


class Client:
    """Client for a store server such as ``http://localhost:8080``."""

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.base_url = base_url
        self.timeout = timeout

    def set(self, key: str, value: Any, ttl_seconds: int = 0) -> None:
        """Store a value under a key; a TTL of 0 means it never expires."""
        if ttl_seconds < 0:
            raise ClientError("TTL must be >= 0 (0 = no expiration)")
        self._request("POST", KEYS_PATH, SetRequest(key, value, ttl_seconds))

    def get(self, key: str) -> str:
        """Return the value stored under a key."""
        return _value_of(self._request("GET", self._key_path(key)))

    def update(self, key: str, value: Any) -> None:
        """Replace the value of an existing key, keeping its TTL."""
        self._request("PUT", self._key_path(key), UpdateRequest(value))

    def remove(self, key: str) -> None:
        """Delete a key."""
        self._request("DELETE", self._key_path(key))

    def push(self, key: str, item: Any) -> None:
        """Add an item to the front of a list, creating the list if needed."""
        self._request("POST", PUSH_PATH, PushRequest(key, item))

    def pop(self, key: str) -> str:
        """Remove and return the front item of a list."""
        return _value_of(self._request("POST", POP_PATH, PopRequest(key)))

    @staticmethod
    def _key_path(key: str) -> str:
        return KEY_PREFIX + urllib.parse.quote(key, safe=_PATH_SAFE)

    def _request(self, method: str, endpoint: str, body: object | None = None) -> Response:
        data = _encode(body) if body is not None else None
        headers = {"Content-Type": "application/json"} if body is not None else {}
        try:
            request = urllib.request.Request(
                self.base_url + endpoint, data=data, headers=headers, method=method
            )
        except ValueError as exc:
            raise ClientError(f"failed to create request: {exc}") from exc

        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as reply:
                status = reply.status
                raw = reply.read()
        except urllib.error.HTTPError as exc:
            status = exc.code
            try:
                raw = exc.read()
            except OSError as read_exc:
                raise ClientError(f"failed to read response body: {read_exc}") from read_exc
            finally:
                exc.close()
        except (urllib.error.URLError, OSError, ValueError) as exc:
            raise ClientError(f"failed to perform request: {exc}") from exc

        response = _decode(raw)
        if not response.success:
            raise ApiError(response.error, status)
        return response