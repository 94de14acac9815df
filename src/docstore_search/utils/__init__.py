"""Utilities module for the document store search service."""

from docstore_search.utils.errors import (
    DocStoreError,
    InvalidRequestError,
    ConfigurationError,
    AccessDeniedError,
    NotFoundError,
    EmbeddingUnavailableError,
    StorageError,
    StorageUnavailableError,
    SearchFailedError,
)
from docstore_search.utils.logging import setup_logging, StructuredLogger

__all__ = [
    "DocStoreError",
    "InvalidRequestError",
    "ConfigurationError",
    "AccessDeniedError",
    "NotFoundError",
    "EmbeddingUnavailableError",
    "StorageError",
    "StorageUnavailableError",
    "SearchFailedError",
    "setup_logging",
    "StructuredLogger",
]
