"""Database schema introspection, caching, connection settings and SQL statement classification."""

__version__ = "0.1.0"