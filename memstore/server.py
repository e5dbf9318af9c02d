"""Command that serves the store's HTTP API until interrupted."""

from __future__ import annotations

import argparse
import logging
import os
import signal
import socketserver
import threading
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from .api import Handler
from .store import MemoryStore, Store

DEFAULT_PORT = "8080"
SHUTDOWN_TIMEOUT = 10.0

log = logging.getLogger(__name__)


class _ThreadingWSGIServer(socketserver.ThreadingMixIn, WSGIServer):
    daemon_threads = True


class _QuietRequestHandler(WSGIRequestHandler):
    def log_message(self, format: str, *args: object) -> None:
        pass


def get_env_or_default(key: str, default: str) -> str:
    """Value of an environment variable, or ``default`` when unset or empty."""
    return os.environ.get(key) or default


def build_server(port: int | str, store: Store | None = None) -> WSGIServer:
    """Bind a threaded WSGI server on all interfaces serving the store's API."""
    handler = Handler(store if store is not None else MemoryStore())
    return make_server(
        "",
        int(port),
        handler,
        server_class=_ThreadingWSGIServer,
        handler_class=_QuietRequestHandler,
    )


def main(argv: list[str] | None = None) -> int:
    """Serve on ``$PORT`` (default 8080) until SIGINT or SIGTERM."""
    argparse.ArgumentParser(
        prog="memstore-server",
        description="Serve the in-memory store over HTTP; the port comes from $PORT.",
    ).parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")

    port = get_env_or_default("PORT", DEFAULT_PORT)
    store = MemoryStore()
    try:
        server = build_server(port, store)
    except (ValueError, OverflowError, OSError) as exc:
        log.error("Server failed to start: %s", exc)
        store.stop_ttl_worker()
        return 1

    quit_event = threading.Event()

    def _on_signal(signum: int, frame: object) -> None:
        quit_event.set()

    previous = {sig: signal.signal(sig, _on_signal) for sig in (signal.SIGINT, signal.SIGTERM)}

    serving = threading.Thread(target=server.serve_forever, name="memstore-http", daemon=True)
    log.info("starting server on port %s", port)
    serving.start()
    try:
        while not quit_event.wait(0.5):
            pass
    finally:
        for sig, old_handler in previous.items():
            signal.signal(sig, old_handler)

    log.info("Server is shutting down...")
    stopper = threading.Thread(target=server.shutdown, name="memstore-shutdown", daemon=True)
    stopper.start()
    stopper.join(SHUTDOWN_TIMEOUT)
    store.stop_ttl_worker()
    if stopper.is_alive():
        log.error("Server forced to shutdown with error: shutdown timed out")
        return 1
    server.server_close()

    log.info("Server exited gracefully")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())