"""
Document Store Search Service - HTTP API

Access-scoped hybrid search over a multi-tenant document store: OpenAI
embeddings for semantic similarity, weighted keyword relevance, and keyword
fallback whenever embeddings are unavailable.

Endpoints:
- GET  /health
- POST /api/search
- GET  /api/documents
- GET  /api/documents/{document_id}

Identity is read from the X-User-Id / X-Organization-Id headers set by the
upstream authentication layer.

Usage:
    python -m docstore_search.server

Configuration via .env file (see .env.example)
"""

import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from json import JSONDecodeError
from typing import Optional, Tuple

import uvicorn
from dotenv import load_dotenv
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from docstore_search import __version__
from docstore_search.config import Config, load_config, validate_config
from docstore_search.services.access_service import AccessService
from docstore_search.services.document_service import DocumentService
from docstore_search.services.embedding_service import EmbeddingService
from docstore_search.services.request_parser import parse_listing_params, parse_search_request
from docstore_search.services.search_service import SearchService
from docstore_search.storage.document_repository import DocumentRepository
from docstore_search.storage.postgres_client import PostgresClient
from docstore_search.storage.retry import RetryPolicy
from docstore_search.utils.errors import (
    AccessDeniedError,
    DocStoreError,
    InvalidRequestError,
    NotFoundError,
    SearchFailedError,
    StorageError,
)
from docstore_search.utils.logging import setup_logging


load_dotenv()

logger = logging.getLogger("docstore-search")

USER_HEADER = "x-user-id"
ORGANIZATION_HEADER = "x-organization-id"


@dataclass
class Services:
    """Explicitly constructed service graph shared by request handlers."""
    config: Config
    access_service: AccessService
    search_service: SearchService
    document_service: DocumentService
    embedding_service: EmbeddingService
    pg_client: Optional[PostgresClient] = None


async def build_services(config: Config) -> Services:
    """Connect storage and wire every service from configuration."""
    logger.info("Initializing PostgreSQL...")
    pg_client = PostgresClient(
        dsn=config.database_url,
        min_pool_size=config.postgres_pool_min,
        max_pool_size=config.postgres_pool_max,
        command_timeout=config.postgres_command_timeout
    )
    await pg_client.connect()

    pg_health = await pg_client.health_check()
    if pg_health["status"] != "healthy":
        await pg_client.close()
        raise RuntimeError(f"Postgres unhealthy: {pg_health.get('error')}")

    logger.info(f"  PostgreSQL: OK (pool {config.postgres_pool_min}-{config.postgres_pool_max})")

    repository = DocumentRepository(
        pg_client,
        RetryPolicy(
            max_attempts=config.storage_max_attempts,
            backoff=config.storage_retry_backoff
        )
    )

    logger.info("Initializing EmbeddingService...")
    embedding_service = EmbeddingService(
        api_key=config.openai_api_key,
        model=config.openai_embed_model,
        timeout=config.embedding_timeout,
        max_input_chars=config.embedding_max_input_chars,
        base_url=config.openai_base_url
    )
    embed_health = await embedding_service.health_check()
    if embed_health["status"] == "healthy":
        logger.info(f"  OpenAI API: OK (latency={embed_health.get('api_latency_ms')}ms)")
    else:
        # keyword search keeps working without embeddings
        logger.warning(
            f"  OpenAI API: {embed_health['status'].upper()} ({embed_health.get('error')}), "
            "semantic search will fall back to keyword"
        )

    access_service = AccessService(repository)

    return Services(
        config=config,
        access_service=access_service,
        search_service=SearchService(
            repository=repository,
            embedding_service=embedding_service,
            max_limit=config.search_max_limit
        ),
        document_service=DocumentService(
            repository=repository,
            access_service=access_service,
            embedding_service=embedding_service,
            max_limit=config.search_max_limit
        ),
        embedding_service=embedding_service,
        pg_client=pg_client,
    )


# ============================================================================
# Helpers
# ============================================================================

def _services(request: Request) -> Services:
    services = request.app.state.services
    if services is None:
        raise RuntimeError("Services not initialized")
    return services


def _identity(request: Request) -> Tuple[Optional[str], Optional[str]]:
    user_id = (request.headers.get(USER_HEADER) or "").strip() or None
    organization_id = (request.headers.get(ORGANIZATION_HEADER) or "").strip() or None
    return user_id, organization_id


def _unauthenticated() -> JSONResponse:
    return JSONResponse({"error": "Authentication required"}, status_code=401)


async def handle_docstore_error(request: Request, exc: DocStoreError) -> JSONResponse:
    """Map service errors to HTTP responses."""
    if isinstance(exc, InvalidRequestError):
        return JSONResponse({"error": str(exc)}, status_code=400)
    if isinstance(exc, AccessDeniedError):
        return JSONResponse({"error": "Access denied"}, status_code=403)
    if isinstance(exc, NotFoundError):
        return JSONResponse({"error": str(exc)}, status_code=404)
    if isinstance(exc, (SearchFailedError, StorageError)):
        logger.error(f"{request.url.path} failed: {exc}")
        return JSONResponse(
            {"error": "Search failed", "retryable": bool(getattr(exc, "retryable", False))},
            status_code=503
        )

    logger.error(f"{request.url.path} failed: {exc}", exc_info=True)
    return JSONResponse({"error": "Internal error"}, status_code=500)


# ============================================================================
# Routes
# ============================================================================

async def health(request: Request) -> JSONResponse:
    """Health check endpoint."""
    health_data = {
        "status": "ok",
        "service": "docstore-search",
        "version": __version__,
        "environment": os.getenv("ENVIRONMENT", "prod")
    }

    services = request.app.state.services
    if services is not None:
        health_data["openai"] = await services.embedding_service.health_check()
        if services.pg_client is not None:
            health_data["postgres"] = await services.pg_client.health_check()
            if health_data["postgres"]["status"] != "healthy":
                health_data["status"] = "degraded"

    return JSONResponse(health_data)


async def search(request: Request) -> JSONResponse:
    """POST /api/search"""
    user_id, organization_id = _identity(request)
    if not user_id:
        return _unauthenticated()

    services = _services(request)

    try:
        payload = await request.json()
    except (JSONDecodeError, UnicodeDecodeError):
        raise InvalidRequestError("Request body must be valid JSON")

    search_request = parse_search_request(payload, services.config.search_default_limit)
    context = await services.access_service.resolve_context(user_id, organization_id)

    try:
        response = await services.search_service.search(search_request, context)
    except StorageError as e:
        raise SearchFailedError(f"Search failed: {e}", retryable=e.retryable) from e

    return JSONResponse(response.to_dict())


async def list_documents(request: Request) -> JSONResponse:
    """GET /api/documents"""
    user_id, organization_id = _identity(request)
    if not user_id:
        return _unauthenticated()

    services = _services(request)
    filters, limit, offset = parse_listing_params(
        request.query_params,
        services.config.search_default_limit
    )

    context = await services.access_service.resolve_context(user_id, organization_id)
    results, total = await services.document_service.list_documents(context, filters, limit, offset)

    return JSONResponse({
        "documents": [result.to_dict() for result in results],
        "total": total,
        "limit": limit,
        "offset": offset,
    })


async def get_document(request: Request) -> JSONResponse:
    """GET /api/documents/{document_id}"""
    user_id, organization_id = _identity(request)
    if not user_id:
        return _unauthenticated()

    services = _services(request)
    context = await services.access_service.resolve_context(user_id, organization_id)
    result = await services.document_service.get_document(
        request.path_params["document_id"],
        context
    )

    return JSONResponse(result.to_dict())


# ============================================================================
# Application
# ============================================================================

def create_app(services: Optional[Services] = None) -> Starlette:
    """
    Build the Starlette application.

    Args:
        services: Pre-built services (tests); when omitted the lifespan loads
            configuration and connects storage on startup

    Returns:
        Starlette app
    """

    @asynccontextmanager
    async def lifespan(app: Starlette):
        if app.state.services is not None:
            yield
            return

        config = load_config()
        validate_config(config)
        setup_logging(config.log_level)

        logger.info("=" * 60)
        logger.info(f"Starting Document Store Search v{__version__}")
        logger.info("=" * 60)

        built = await build_services(config)
        app.state.services = built

        logger.info(f"Document Store Search v{__version__} ready on port {config.server_port}")

        try:
            yield
        finally:
            if built.pg_client is not None:
                await built.pg_client.close()
            app.state.services = None
            logger.info(f"Document Store Search v{__version__} stopped")

    app = Starlette(
        debug=os.getenv("LOG_LEVEL") == "DEBUG",
        routes=[
            Route("/", health),
            Route("/health", health),
            Route("/api/search", search, methods=["POST"]),
            Route("/api/documents", list_documents, methods=["GET"]),
            Route("/api/documents/{document_id}", get_document, methods=["GET"]),
        ],
        exception_handlers={DocStoreError: handle_docstore_error},
        lifespan=lifespan,
    )
    app.state.services = services

    return app


app = create_app()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    try:
        cfg = load_config()
        port = cfg.server_port
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        port = 3000

    logger.info(f"Starting Document Store Search v{__version__} on port {port}")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=port,
        log_level=os.getenv("LOG_LEVEL", "INFO").lower(),
    )
