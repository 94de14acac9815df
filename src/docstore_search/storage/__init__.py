"""Storage module for the document store search service."""

from docstore_search.storage.models import (
    AccessContext,
    Action,
    Document,
    DocumentFilters,
    Embedding,
    OrganizationRole,
    Permission,
    Resource,
    ScoredDocument,
    SearchMethod,
    SearchRequest,
    SearchResponse,
    SearchResult,
    Visibility,
)
from docstore_search.storage.query import ScopeKind, ScopePredicate, build_where_clause
from docstore_search.storage.retry import RetryPolicy
from docstore_search.storage.postgres_client import PostgresClient
from docstore_search.storage.document_repository import DocumentRepository

__all__ = [
    "AccessContext",
    "Action",
    "Document",
    "DocumentFilters",
    "Embedding",
    "OrganizationRole",
    "Permission",
    "Resource",
    "ScoredDocument",
    "SearchMethod",
    "SearchRequest",
    "SearchResponse",
    "SearchResult",
    "Visibility",
    "ScopeKind",
    "ScopePredicate",
    "build_where_clause",
    "RetryPolicy",
    "PostgresClient",
    "DocumentRepository",
]
