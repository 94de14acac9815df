"""Services module for the document store search service."""

from docstore_search.services.access_service import AccessService
from docstore_search.services.embedding_service import EmbeddingService
from docstore_search.services.search_service import SearchService, ScoringWeights
from docstore_search.services.document_service import DocumentService

__all__ = [
    "AccessService",
    "EmbeddingService",
    "SearchService",
    "ScoringWeights",
    "DocumentService",
]
