"""In-memory key-value and list store with TTL expiry, a JSON HTTP API, a server command and a client."""

__version__ = "0.1.0"
__all__ = ["api", "client", "server", "store"]