"""Access-scoped hybrid document search service."""

__version__ = "1.0.0"
