"""Thread-safe in-memory key/value and list store with per-key expiry."""

from __future__ import annotations

import json
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from typing import Any


class StoreError(Exception):
    """Base class for all store errors."""

    message = "store error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class KeyNotFoundError(StoreError, KeyError):
    """The key does not exist or has expired."""

    message = "key not found"

    def __str__(self) -> str:
        return self.args[0]


class TypeMismatchError(StoreError, TypeError):
    """The operation does not apply to the type stored under the key."""

    message = "operation not supported for this data type"


class InvalidTTLError(StoreError, ValueError):
    """The TTL is negative."""

    message = "invalid TTL value"


class EmptyListError(StoreError):
    """A pop was attempted on an empty list."""

    message = "list is empty"


class MarshalError(StoreError, ValueError):
    """A value could not be serialised to JSON."""

    message = "failed to marshal value to JSON"


class Store(ABC):
    """Interface of a key/value store holding strings and lists."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: int = 0) -> None:
        """Store a value under a key, expiring after ``ttl_seconds`` (0 = never)."""

    @abstractmethod
    def get(self, key: str) -> str:
        """Return the string stored under a key."""

    @abstractmethod
    def update(self, key: str, value: Any) -> None:
        """Replace the value of an existing string key, keeping its expiry."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a key."""

    @abstractmethod
    def push(self, key: str, item: Any) -> None:
        """Add an item to the front of the list stored under a key."""

    @abstractmethod
    def pop(self, key: str) -> str:
        """Remove and return the front item of the list stored under a key."""

    @abstractmethod
    def start_ttl_worker(self) -> None:
        """Start (or restart) background removal of expired keys."""

    @abstractmethod
    def stop_ttl_worker(self) -> None:
        """Stop background removal of expired keys."""


@dataclass
class Entry:
    """A stored value: either a string or a list of strings."""

    value: str = ""
    expires_at: float | None = None
    is_list: bool = False
    items: deque[str] = field(default_factory=deque)

    def is_expired(self, now: float) -> bool:
        """Whether the entry has an expiry that lies before ``now``."""
        return self.expires_at is not None and now > self.expires_at


_GO_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}
_ESCAPE_TABLE = str.maketrans(_GO_ESCAPES)


class MemoryStore(Store):
    """In-memory store whose expired keys are removed lazily and by a sweeper thread."""

    def __init__(self, sweep_interval: float = 1.0) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, Entry] = {}
        self._sweep_interval = sweep_interval
        self._stop_event: threading.Event | None = None
        self._worker: threading.Thread | None = None
        self.start_ttl_worker()

    # ----- background expiry -------------------------------------------------

    def start_ttl_worker(self) -> None:
        self.stop_ttl_worker()
        stop_event = threading.Event()
        worker = threading.Thread(
            target=self._sweep_loop,
            args=(stop_event,),
            name="memstore-ttl-worker",
            daemon=True,
        )
        with self._lock:
            self._stop_event = stop_event
            self._worker = worker
        worker.start()

    def stop_ttl_worker(self) -> None:
        with self._lock:
            stop_event, worker = self._stop_event, self._worker
            self._stop_event = None
            self._worker = None
        if stop_event is not None:
            stop_event.set()
        if worker is not None and worker is not threading.current_thread():
            worker.join()

    def _sweep_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self._sweep_interval):
            with self._lock:
                if stop_event.is_set():
                    return
                now = time.monotonic()
                expired = [k for k, e in self._data.items() if e.is_expired(now)]
                for key in expired:
                    del self._data[key]

    def __enter__(self) -> MemoryStore:
        return self

    def __exit__(self, *args: object) -> None:
        self.stop_ttl_worker()

    # ----- operations --------------------------------------------------------

    def _live_entry(self, key: str) -> Entry:
        """Return the entry for ``key``; drop and reject it if expired. Lock must be held."""
        entry = self._data.get(key)
        if entry is None:
            raise KeyNotFoundError()
        if entry.is_expired(time.monotonic()):
            del self._data[key]
            raise KeyNotFoundError()
        return entry

    def set(self, key: str, value: Any, ttl_seconds: int = 0) -> None:
        if ttl_seconds < 0:
            raise InvalidTTLError()
        text = self.stringify(value)
        with self._lock:
            expires_at = time.monotonic() + ttl_seconds if ttl_seconds > 0 else None
            self._data[key] = Entry(value=text, expires_at=expires_at)

    def get(self, key: str) -> str:
        with self._lock:
            entry = self._live_entry(key)
            if entry.is_list:
                raise TypeMismatchError()
            return entry.value

    def update(self, key: str, value: Any) -> None:
        text = self.stringify(value)
        with self._lock:
            entry = self._live_entry(key)
            if entry.is_list:
                raise TypeMismatchError()
            entry.value = text

    def remove(self, key: str) -> None:
        with self._lock:
            try:
                del self._data[key]
            except KeyError:
                raise KeyNotFoundError() from None

    def push(self, key: str, item: Any) -> None:
        text = self.stringify(item)
        with self._lock:
            try:
                entry = self._live_entry(key)
            except KeyNotFoundError:
                entry = Entry(is_list=True)
                self._data[key] = entry
            if not entry.is_list:
                raise TypeMismatchError()
            entry.items.appendleft(text)

    def pop(self, key: str) -> str:
        with self._lock:
            entry = self._live_entry(key)
            if not entry.is_list:
                raise TypeMismatchError()
            if not entry.items:
                raise EmptyListError()
            return entry.items.popleft()

    def stringify(self, value: Any) -> str:
        """Return strings unchanged and anything else as compact JSON."""
        if isinstance(value, str):
            return value
        try:
            encoded = json.dumps(
                value,
                separators=(",", ":"),
                sort_keys=isinstance(value, dict),
                ensure_ascii=False,
                allow_nan=False,
            )
        except (TypeError, ValueError) as exc:
            raise MarshalError() from exc
        return encoded.translate(_ESCAPE_TABLE)