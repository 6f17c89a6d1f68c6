"""In-memory key-value database engine with lists, sets, sorted sets and expiring keys."""

__version__ = "0.1.0"
__all__ = ["replies", "router", "db", "keys", "lists", "sets", "sortedset", "zsets", "server"]