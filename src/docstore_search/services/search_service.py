"""Access-scoped hybrid search: semantic + keyword ranking with keyword fallback."""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from docstore_search.services.access_service import AccessService
from docstore_search.services.embedding_service import EmbeddingService
from docstore_search.services.keyword_scorer import (
    FieldWeights,
    keyword_score,
    matches_whole_query,
    tokenize_query,
)
from docstore_search.services.result_assembler import assemble_results
from docstore_search.services.similarity import max_similarity
from docstore_search.storage.document_repository import DocumentRepository
from docstore_search.storage.models import (
    AccessContext,
    Document,
    DocumentFilters,
    ScoredDocument,
    SearchMethod,
    SearchRequest,
    SearchResponse,
)
from docstore_search.storage.query import ScopePredicate
from docstore_search.utils.errors import (
    InvalidRequestError,
    SearchFailedError,
    StorageError,
)
from docstore_search.utils.logging import StructuredLogger


logger = logging.getLogger("docstore-search.search")


# Not derived from measurement; treat as tuning parameters.
SEMANTIC_WEIGHT = 0.7
KEYWORD_WEIGHT = 0.3

DEFAULT_MAX_LIMIT = 200


@dataclass(frozen=True)
class ScoringWeights:
    semantic: float = SEMANTIC_WEIGHT
    keyword: float = KEYWORD_WEIGHT
    fields: FieldWeights = field(default_factory=FieldWeights)


def paginate(ranked: Sequence[ScoredDocument], offset: int, limit: int) -> List[ScoredDocument]:
    return list(ranked[offset:offset + limit])


def _recency_key(document: Document):
    created = document.created_at
    return (created is not None, created.timestamp() if created else 0.0)


class SearchService:
    """
    Per-request search pipeline.

    1. owner-only scope + structured filters -> full candidate set
    2. semantic scoring when requested and a query embedding is available,
       otherwise keyword scoring
    3. sort, then paginate (never before ranking)
    4. assemble results with capability flags
    """

    def __init__(
        self,
        repository: DocumentRepository,
        embedding_service: EmbeddingService,
        weights: Optional[ScoringWeights] = None,
        max_limit: int = DEFAULT_MAX_LIMIT
    ):
        """
        Initialize search service.

        Args:
            repository: Storage boundary for candidate documents
            embedding_service: Query embedding provider
            weights: Scoring weights (defaults to 0.7 semantic / 0.3 keyword)
            max_limit: Largest page size accepted
        """
        self.repository = repository
        self.embedding_service = embedding_service
        self.weights = weights or ScoringWeights()
        self.max_limit = max_limit
        self.events = StructuredLogger(logger)

    def validate_request(self, request: SearchRequest) -> None:
        """
        Raises:
            InvalidRequestError: For malformed pagination or filters
        """
        if isinstance(request.limit, bool) or not isinstance(request.limit, int):
            raise InvalidRequestError("limit must be an integer")
        if isinstance(request.offset, bool) or not isinstance(request.offset, int):
            raise InvalidRequestError("offset must be an integer")
        if request.limit < 1 or request.limit > self.max_limit:
            raise InvalidRequestError(f"limit must be between 1 and {self.max_limit}")
        if request.offset < 0:
            raise InvalidRequestError("offset must not be negative")

        filters = request.filters
        if filters.date_from and filters.date_to and filters.date_from > filters.date_to:
            raise InvalidRequestError("dateFrom must not be after dateTo")

    async def search(self, request: SearchRequest, context: AccessContext) -> SearchResponse:
        """
        Run a search for the requesting identity.

        Args:
            request: Query, filters, pagination and strategy flag
            context: Resolved access context of the requester

        Returns:
            SearchResponse with the page of results, the pre-pagination total,
            the strategy actually used and the processing time

        Raises:
            InvalidRequestError: Malformed request
            SearchFailedError: Candidate set could not be read
        """
        start_time = time.time()
        self.validate_request(request)

        query = request.normalized_query
        predicate = AccessService.search_scope(context)

        query_embedding = None
        if request.use_semantic_search and query:
            query_embedding = await self._embed_query(query)

        candidates = await self._load_candidates(predicate, request.filters)

        if query_embedding is not None:
            ranked = self.rank_semantic(candidates, query, query_embedding)
            method = SearchMethod.SEMANTIC
        else:
            ranked = self.rank_keyword(candidates, query)
            method = SearchMethod.KEYWORD

        total = len(ranked)
        page = paginate(ranked, request.offset, request.limit)
        results = assemble_results(page, context)

        processing_time_ms = int((time.time() - start_time) * 1000)

        self.events.info(
            "search_completed",
            {
                "user_id": context.user_id,
                "query_length": len(query),
                "semantic_requested": request.use_semantic_search,
                "search_method": method.value,
                "candidates": len(candidates),
                "total": total,
                "returned": len(results),
                "offset": request.offset,
                "limit": request.limit,
                "processing_time_ms": processing_time_ms,
            }
        )

        return SearchResponse(
            results=results,
            total=total,
            search_method=method,
            processing_time_ms=processing_time_ms,
        )

    async def _embed_query(self, query: str) -> Optional[List[float]]:
        """Query embedding, or None to fall back to keyword search."""
        embedding = await self.embedding_service.generate_embedding(query)
        if embedding is None:
            logger.warning("Semantic search requested but no embedding available, using keyword search")

        return embedding

    async def _load_candidates(
        self,
        predicate: ScopePredicate,
        filters: DocumentFilters
    ) -> List[Document]:
        """Fetch and re-check the candidate set against the scope predicate."""
        try:
            documents = await self.repository.fetch_candidates(predicate, filters)
        except StorageError as e:
            logger.error(f"Search failed reading candidates: {e}")
            raise SearchFailedError(f"Search failed: {e}", retryable=e.retryable) from e

        visible = [document for document in documents if predicate.matches(document)]
        if len(visible) != len(documents):
            logger.warning(
                f"Storage returned {len(documents) - len(visible)} documents outside "
                "the search scope; they were dropped"
            )

        return visible

    def rank_semantic(
        self,
        candidates: Sequence[Document],
        query: str,
        query_embedding: Sequence[float]
    ) -> List[ScoredDocument]:
        """
        Combined ranking over candidates that have at least one embedding.

        score = semantic_weight * max cosine similarity + keyword_weight * keyword score
        """
        scored = []
        for document in candidates:
            if not document.has_embeddings:
                continue

            semantic = max_similarity(
                query_embedding,
                [embedding.vector for embedding in document.embeddings]
            )
            lexical = keyword_score(document, query, self.weights.fields)
            combined = self.weights.semantic * semantic + self.weights.keyword * lexical

            scored.append(ScoredDocument(
                document=document,
                score=combined,
                keyword_score=lexical,
                semantic_score=semantic,
            ))

        # sort is stable: ties keep storage order
        scored.sort(key=lambda item: item.score, reverse=True)
        return scored

    def rank_keyword(
        self,
        candidates: Sequence[Document],
        query: str
    ) -> List[ScoredDocument]:
        """
        Keyword-only ranking.

        An empty query gives every candidate 1.0, ordered by recency. A query
        whose tokens are all too short keeps candidates containing the whole
        query. Otherwise candidates matching no query token are dropped.
        """
        if not query:
            ordered = sorted(candidates, key=_recency_key, reverse=True)
            return [
                ScoredDocument(document=document, score=1.0, keyword_score=1.0)
                for document in ordered
            ]

        if not tokenize_query(query):
            return [
                ScoredDocument(document=document, score=0.0, keyword_score=0.0)
                for document in candidates
                if matches_whole_query(document, query)
            ]

        scored = []
        for document in candidates:
            lexical = keyword_score(document, query, self.weights.fields)
            if lexical <= 0:
                continue
            scored.append(ScoredDocument(document=document, score=lexical, keyword_score=lexical))

        scored.sort(key=lambda item: item.score, reverse=True)
        return scored
