"""Order lookup service: SQLite storage, an LRU-cached repository and an HTTP API."""

__version__ = "1.0.0"

__all__ = ["__version__"]