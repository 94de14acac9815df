"""Document listing, direct lookup and embedding storage."""

import logging
from typing import List, Optional, Tuple

from docstore_search.services.access_service import AccessService
from docstore_search.services.embedding_service import EmbeddingService
from docstore_search.services.result_assembler import assemble_result, assemble_results
from docstore_search.storage.document_repository import DocumentRepository
from docstore_search.storage.models import (
    AccessContext,
    DocumentFilters,
    ScoredDocument,
    SearchResult,
)
from docstore_search.utils.errors import InvalidRequestError, NotFoundError


logger = logging.getLogger("docstore-search.documents")


EMBEDDING_SNIPPET_CHARS = 1000


class DocumentService:
    """Read paths outside search, plus ingestion-side embedding upserts."""

    def __init__(
        self,
        repository: DocumentRepository,
        access_service: AccessService,
        embedding_service: Optional[EmbeddingService] = None,
        max_limit: int = 200
    ):
        self.repository = repository
        self.access_service = access_service
        self.embedding_service = embedding_service
        self.max_limit = max_limit

    async def list_documents(
        self,
        context: AccessContext,
        filters: Optional[DocumentFilters] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[SearchResult], int]:
        """
        List documents readable by the identity (owned, shared, organization).

        Returns:
            Tuple of (page of results, total count)

        Raises:
            InvalidRequestError: Bad pagination
        """
        if limit < 1 or limit > self.max_limit:
            raise InvalidRequestError(f"limit must be between 1 and {self.max_limit}")
        if offset < 0:
            raise InvalidRequestError("offset must not be negative")

        predicate = self.access_service.listing_scope(context)
        documents, total = await self.repository.list_documents(predicate, filters, limit, offset)

        page = [
            ScoredDocument(document=document, score=1.0, keyword_score=1.0)
            for document in documents
            if predicate.matches(document)
        ]

        logger.info(f"Listed {len(page)} of {total} documents for user {context.user_id}")

        return assemble_results(page, context), total

    async def get_document(self, document_id: str, context: AccessContext) -> SearchResult:
        """
        Direct lookup of one document.

        Raises:
            NotFoundError: Document does not exist
            AccessDeniedError: Identity may not read it
        """
        document = await self.repository.get_document(document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")

        self.access_service.ensure_can_access(document, context)

        return assemble_result(
            ScoredDocument(document=document, score=1.0, keyword_score=1.0),
            context
        )

    async def store_document_embedding(self, document_id: str, content: str) -> bool:
        """
        Generate and upsert the embedding for a document's text.

        Concurrent regenerations for the same document are last-writer-wins.

        Returns:
            True if an embedding was stored, False if none could be generated
        """
        if self.embedding_service is None:
            logger.warning(f"No embedding service configured, skipping document {document_id}")
            return False

        embedding = await self.embedding_service.generate_embedding(content)
        if embedding is None:
            logger.warning(f"Failed to generate embedding for document {document_id}")
            return False

        await self.repository.upsert_embedding(
            document_id,
            embedding,
            content[:EMBEDDING_SNIPPET_CHARS]
        )
        return True
