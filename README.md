# memstore

memstore is an in-memory data store for strings and lists, and any key can have a time to live. The package also has a small JSON HTTP API over the store and a client for that API. It uses only the standard library.

## Features

- **String values.** A value that is not a string is stored as compact JSON text. For example, `{"age": 30}` is stored as `{"age":30}`. Dictionary keys are sorted.
- **Lists.** Push and pop both work at the front of a list, so the last item pushed is the first one popped.
- **Per-key TTL.** The TTL is given in seconds. A TTL of `0` means the key never expires, and a negative TTL is rejected.
- **Expiry.** An expired key is removed when it is next accessed. A background thread also sweeps out expired keys, once a second by default.
- **Thread safety.** All operations take a lock, so the store can be used from several threads at once.

## Installation

```
pip install .
```

## Modules

| Module            | Contents                                                                  |
|-------------------|---------------------------------------------------------------------------|
| `memstore.store`  | `Store` (the abstract interface), `MemoryStore`, `Entry` and the error classes |
| `memstore.api`    | `Handler`, which routes requests to a store and is also a WSGI application; request and response models |
| `memstore.server` | the `memstore-server` command, `build_server` and `get_env_or_default`    |
| `memstore.client` | `Client`, `ClientError` and `ApiError`                                    |

## Using the store directly

```python
from memstore.store import MemoryStore, KeyNotFoundError

with MemoryStore() as store:
    store.set("user:123", "John Doe", 3600)
    print(store.get("user:123"))          # John Doe

    store.set("profile", {"age": 30})     # ttl_seconds defaults to 0
    print(store.get("profile"))           # {"age":30}

    store.update("user:123", "Jane Doe")  # keeps the key's TTL

    store.push("queue", "a")
    store.push("queue", "b")
    print(store.pop("queue"))             # b

    store.remove("profile")

    try:
        store.get("missing")
    except KeyNotFoundError as exc:
        print(exc)                        # key not found
```

Creating a `MemoryStore` starts its sweeper thread. `MemoryStore(sweep_interval=...)` sets how many seconds pass between sweeps. The thread is stopped in any of these ways:

- by calling `stop_ttl_worker()`
- by leaving a `with` block
- by calling `start_ttl_worker()`, which stops the current thread and starts a new one

### Errors

Every error the store raises is a subclass of `StoreError`:

| Error               | Raised when                                                              |
|---------------------|--------------------------------------------------------------------------|
| `KeyNotFoundError`  | the key is missing or has expired (`get`, `update`, `remove`, `pop`)     |
| `TypeMismatchError` | a string operation is used on a list, or a list operation on a string    |
| `InvalidTTLError`   | `set` is given a negative TTL                                            |
| `EmptyListError`    | `pop` is called on an empty list                                         |
| `MarshalError`      | a value cannot be encoded as JSON, including NaN and infinity            |

Note two behaviours:

- `push` to a key that is missing or expired creates a new list.
- `remove` does not check whether the key has expired.

## Running the server

```
memstore-server
```

The same server can be started with `python -m memstore.server`.

- **Port.** The server listens on all interfaces, on the port given in the `PORT` environment variable. If `PORT` is unset or empty, it uses 8080.
- **Shutdown.** It runs until it receives SIGINT or SIGTERM, then shuts down and allows up to 10 seconds for that.
- **Exit status.** It exits with status 1 if it cannot bind the port or if shutdown times out.

### Endpoints

| Method | Path                  | Body                                             | Success `data`              |
|--------|-----------------------|--------------------------------------------------|-----------------------------|
| POST   | `/api/v1/keys`        | `{"key": ..., "value": ..., "ttl_seconds": n}`   | `{"message": ...}`          |
| GET    | `/api/v1/keys/{key}`  |                                                  | `{"key": ..., "value": ...}`|
| PUT    | `/api/v1/keys/{key}`  | `{"value": ...}`                                 | `{"message": ...}`          |
| DELETE | `/api/v1/keys/{key}`  |                                                  | `{"message": ...}`          |
| POST   | `/api/v1/lists/push`  | `{"key": ..., "item": ...}`                      | `{"message": ...}`          |
| POST   | `/api/v1/lists/pop`   | `{"key": ...}`                                   | `{"key": ..., "value": ...}`|

Every JSON response has one of two forms:

- `{"success": true, "data": {...}}`
- `{"success": false, "error": "..."}`

Status codes and error messages:

| Status | Cause and `error` message                                                              |
|--------|----------------------------------------------------------------------------------------|
| 400    | a malformed body: `Invalid JSON payload`                                               |
| 400    | a missing key when setting: `Key is required`                                          |
| 400    | a negative TTL                                                                         |
| 404    | a missing or expired key: `Key not found`                                              |
| 405    | a method the path does not accept                                                      |
| 500    | any other store error, such as a type mismatch or an empty list, reported as `Failed to ...: <reason>` |

A path the API does not know gets a plain-text `404 page not found`.

To serve the API from your own code, call `build_server(port, store)`. It returns a threaded `wsgiref` server, and you call `serve_forever()` on it. `Handler(store)` can be mounted in any WSGI server. `Handler.dispatch(method, path, body)` returns a `Reply` holding the status, content type and body, without going over HTTP at all.

## Using the client

```python
from memstore.client import Client, ApiError, ClientError

client = Client("http://localhost:8080")    # timeout defaults to 30 seconds
client.set("user:123", "John Doe", 3600)
print(client.get("user:123"))

client.update("user:123", "Jane Doe")
client.push("queue:tasks", "process-order")
print(client.pop("queue:tasks"))
client.remove("user:123")

try:
    client.get("nonexistent")
except ApiError as exc:
    print(exc)             # API error: Key not found
    print(exc.status)      # 404
```

The client raises two kinds of error:

- **`ApiError`** is raised when the server answers with `"success": false`. It carries the server's message as `.error` and the HTTP status as `.status`.
- **`ClientError`** covers everything else. That includes a negative TTL passed to `set`, a request that cannot be made or sent, and a reply that is not the expected JSON. `ClientError` is also the base class of `ApiError`.

## What it does not do

- All data lives in process memory. Nothing is written to disk, and everything is lost when the process exits.
- There is no authentication, and there is no TLS.
- The server is only the standard library's `wsgiref` server, run in threads.

## Running the tests

```
pip install .[test]
pytest
```