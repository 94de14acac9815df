"""
Postgres-backed document repository.

Tables used (see migrations/001_document_search.sql):
- documents
- document_embeddings (one row per document, upserted)
- document_shares
- organization_members
- users, organizations (display names only)

Candidate queries load embeddings, shares, owner and organization metadata
eagerly: one query for documents and one batched query for embeddings. The
ranking phase never issues per-document queries.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Awaitable, Dict, List, Optional, Tuple

import asyncpg

from docstore_search.storage.models import Document, DocumentFilters, Embedding
from docstore_search.storage.postgres_client import PostgresClient
from docstore_search.storage.query import ScopePredicate, build_where_clause
from docstore_search.storage.retry import RetryPolicy
from docstore_search.utils.errors import StorageError, StorageUnavailableError


logger = logging.getLogger("docstore-search.repository")


DOCUMENT_COLUMNS = """
    d.id, d.filename, d.user_id, d.file_type, d.channel, d.visibility,
    d.organization_id, d.department, d.extracted_text, d.tags, d.is_favorite,
    d.folder_id, d.created_at, d.processed_at, d.file_size, d.thumbnail_path,
    u.name AS owner_name,
    o.name AS organization_name,
    ARRAY(
        SELECT s.shared_with FROM document_shares s WHERE s.document_id = d.id
    ) AS shared_with
"""

DOCUMENT_JOINS = """
    FROM documents d
    LEFT JOIN users u ON u.id = d.user_id
    LEFT JOIN organizations o ON o.id = d.organization_id
"""

def row_to_document(row: Dict[str, Any], embeddings: Optional[List[Embedding]] = None) -> Document:
    """Convert a documents row (with joined columns) to a Document."""
    return Document(
        id=row["id"],
        filename=row["filename"],
        owner_id=row["user_id"],
        file_type=row.get("file_type") or "",
        channel=row.get("channel") or "WEB_UPLOAD",
        visibility=row.get("visibility") or "PRIVATE",
        organization_id=row.get("organization_id"),
        department=row.get("department"),
        extracted_text=row.get("extracted_text"),
        tags=row.get("tags") or [],
        is_favorite=bool(row.get("is_favorite")),
        folder_id=row.get("folder_id"),
        created_at=row.get("created_at"),
        processed_at=row.get("processed_at"),
        file_size=row.get("file_size"),
        thumbnail_path=row.get("thumbnail_path"),
        owner_name=row.get("owner_name"),
        organization_name=row.get("organization_name"),
        shared_with=frozenset(row.get("shared_with") or ()),
        embeddings=embeddings or [],
    )


def row_to_embedding(row: Dict[str, Any]) -> Embedding:
    """Convert a document_embeddings row to an Embedding."""
    return Embedding(
        document_id=row["document_id"],
        vector=[float(x) for x in (row.get("embedding") or [])],
        content=row.get("content") or "",
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class DocumentRepository:
    """Document queries over an injected PostgresClient."""

    def __init__(
        self,
        pg_client: PostgresClient,
        retry_policy: Optional[RetryPolicy] = None
    ):
        """
        Initialize repository.

        Args:
            pg_client: Postgres client instance
            retry_policy: Retry policy for every storage call
        """
        self.pg = pg_client
        self.retry_policy = retry_policy or RetryPolicy()

    async def _run(
        self,
        operation: str,
        func: Callable[..., Awaitable[Any]],
        *args
    ) -> Any:
        """Run a storage call under the retry policy, normalizing errors."""
        try:
            return await self.retry_policy.call(func, *args, before_retry=self.pg.reconnect)
        except StorageUnavailableError:
            raise
        except RuntimeError as e:
            # raised by PostgresClient.acquire() when the pool is gone
            logger.error(f"{operation} failed: {e}")
            raise StorageUnavailableError(f"{operation} failed: {e}") from e
        except asyncpg.PostgresError as e:
            logger.error(f"{operation} failed: {e}")
            raise StorageError(f"{operation} failed: {e}") from e

    # ------------------------------------------------------------------
    # Candidate queries
    # ------------------------------------------------------------------

    async def fetch_candidates(
        self,
        predicate: ScopePredicate,
        filters: Optional[DocumentFilters] = None
    ) -> List[Document]:
        """
        Fetch every document passing the predicate and filters.

        No pagination is applied here: ranking needs the full candidate set.

        Args:
            predicate: Access scope predicate
            filters: Structured filters

        Returns:
            Documents ordered by created_at descending, embeddings attached
        """
        return await self._run(
            "fetch_candidates",
            self._fetch_candidates,
            predicate,
            filters
        )

    async def _fetch_candidates(
        self,
        predicate: ScopePredicate,
        filters: Optional[DocumentFilters]
    ) -> List[Document]:
        where, params = build_where_clause(predicate, filters)

        query = f"""
        SELECT {DOCUMENT_COLUMNS}
        {DOCUMENT_JOINS}
        WHERE {where}
        ORDER BY d.created_at DESC, d.id ASC
        """

        rows = await self.pg.fetch_all(query, *params)
        if not rows:
            return []

        embeddings = await self._fetch_embeddings([row["id"] for row in rows])

        documents = [row_to_document(row, embeddings.get(row["id"])) for row in rows]

        logger.debug(f"Fetched {len(documents)} candidates")

        return documents

    async def _fetch_embeddings(self, document_ids: List[str]) -> Dict[str, List[Embedding]]:
        """Batch-load embeddings for a set of documents."""
        query = """
        SELECT document_id, embedding, content, created_at, updated_at
        FROM document_embeddings
        WHERE document_id = ANY($1::text[])
        """

        rows = await self.pg.fetch_all(query, document_ids)

        by_document: Dict[str, List[Embedding]] = defaultdict(list)
        for row in rows:
            by_document[row["document_id"]].append(row_to_embedding(row))

        return by_document

    # ------------------------------------------------------------------
    # Listing and direct lookup
    # ------------------------------------------------------------------

    async def list_documents(
        self,
        predicate: ScopePredicate,
        filters: Optional[DocumentFilters] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[Document], int]:
        """
        List documents by recency with pagination pushed to the database.

        Returns:
            Tuple of (page of documents, total matching count)
        """
        return await self._run(
            "list_documents",
            self._list_documents,
            predicate,
            filters,
            limit,
            offset
        )

    async def _list_documents(
        self,
        predicate: ScopePredicate,
        filters: Optional[DocumentFilters],
        limit: int,
        offset: int
    ) -> Tuple[List[Document], int]:
        where, params = build_where_clause(predicate, filters)

        count_query = f"SELECT COUNT(*) FROM documents d WHERE {where}"
        total = await self.pg.fetch_val(count_query, *params)

        page_params = list(params) + [limit, offset]
        query = f"""
        SELECT {DOCUMENT_COLUMNS}
        {DOCUMENT_JOINS}
        WHERE {where}
        ORDER BY d.created_at DESC, d.id ASC
        LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}
        """

        rows = await self.pg.fetch_all(query, *page_params)

        return [row_to_document(row) for row in rows], int(total or 0)

    async def get_document(self, document_id: str) -> Optional[Document]:
        """
        Fetch one document by id, without any access check.

        Returns:
            Document or None if it does not exist
        """
        return await self._run("get_document", self._get_document, document_id)

    async def _get_document(self, document_id: str) -> Optional[Document]:
        query = f"""
        SELECT {DOCUMENT_COLUMNS}
        {DOCUMENT_JOINS}
        WHERE d.id = $1
        """

        row = await self.pg.fetch_one(query, document_id)
        if row is None:
            return None

        embeddings = await self._fetch_embeddings([document_id])
        return row_to_document(row, embeddings.get(document_id))

    # ------------------------------------------------------------------
    # Identity lookups
    # ------------------------------------------------------------------

    async def get_memberships(self, user_id: str) -> Optional[Dict[str, str]]:
        """
        Load an identity's active organization memberships.

        Returns:
            Mapping of organization_id -> role, or None if the user does not exist
        """
        return await self._run("get_memberships", self._get_memberships, user_id)

    async def _get_memberships(self, user_id: str) -> Optional[Dict[str, str]]:
        exists = await self.pg.fetch_val("SELECT 1 FROM users WHERE id = $1", user_id)
        if not exists:
            return None

        rows = await self.pg.fetch_all(
            """
            SELECT organization_id, role
            FROM organization_members
            WHERE user_id = $1 AND is_active = TRUE
            """,
            user_id
        )

        return {row["organization_id"]: row["role"] for row in rows}

    # ------------------------------------------------------------------
    # Embeddings (ingestion side)
    # ------------------------------------------------------------------

    async def upsert_embedding(
        self,
        document_id: str,
        vector: List[float],
        content: str
    ) -> None:
        """
        Store or replace a document's embedding (last writer wins).

        Args:
            document_id: Document the embedding belongs to
            vector: Embedding vector
            content: Text snippet kept for reference
        """
        await self._run(
            "upsert_embedding",
            self._upsert_embedding,
            document_id,
            vector,
            content
        )

    async def _upsert_embedding(
        self,
        document_id: str,
        vector: List[float],
        content: str
    ) -> None:
        query = """
        INSERT INTO document_embeddings (document_id, content, embedding)
        VALUES ($1, $2, $3)
        ON CONFLICT (document_id) DO UPDATE
        SET content = EXCLUDED.content,
            embedding = EXCLUDED.embedding,
            updated_at = now()
        """

        await self.pg.execute(query, document_id, content, list(vector))

        logger.info(f"Stored embedding for document {document_id} ({len(vector)} dims)")
