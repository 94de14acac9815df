"""Custom exception classes for the document store search service."""


class DocStoreError(Exception):
    """Base exception for all document store errors."""
    pass


class InvalidRequestError(DocStoreError):
    """Raised when filters or pagination are malformed."""
    pass


class ConfigurationError(DocStoreError):
    """Raised when configuration is invalid."""
    pass


class AccessDeniedError(DocStoreError):
    """Raised when an identity fails the scope check on a direct lookup."""
    pass


class NotFoundError(DocStoreError):
    """Raised when a requested document does not exist."""
    pass


class EmbeddingUnavailableError(DocStoreError):
    """Raised internally when no query embedding can be produced."""
    pass


class StorageError(DocStoreError):
    """Raised when a storage operation fails."""

    retryable = False


class StorageUnavailableError(StorageError):
    """Raised when the storage layer cannot be reached after retries."""

    retryable = True


class SearchFailedError(DocStoreError):
    """Raised when a search cannot read its candidate set."""

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable
