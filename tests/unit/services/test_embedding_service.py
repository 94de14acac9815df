"""Unit tests for EmbeddingService."""

import asyncio
import pytest
from unittest.mock import AsyncMock, Mock, patch

import httpx
import openai

from docstore_search.services.embedding_service import EmbeddingService, MAX_INPUT_CHARS
from docstore_search.utils.errors import EmbeddingUnavailableError


# ============================================================================
# Initialization Tests
# ============================================================================

def test_init_with_valid_config():
    """Test initialization with valid configuration."""
    service = EmbeddingService(
        api_key="test-key",
        model="text-embedding-3-small",
        timeout=5.0,
        max_input_chars=4000
    )

    assert service.model == "text-embedding-3-small"
    assert service.timeout == 5.0
    assert service.max_input_chars == 4000
    assert service.available


def test_init_without_api_key():
    """Test a missing API key disables the service instead of failing."""
    service = EmbeddingService(api_key=None)

    assert service.client is None
    assert not service.available


def test_init_configures_client():
    """Test the OpenAI client gets the timeout and no SDK-level retries."""
    with patch("docstore_search.services.embedding_service.AsyncOpenAI") as mock_openai:
        EmbeddingService(api_key="test-key", timeout=3.0, base_url="http://localhost:8080/v1")

    mock_openai.assert_called_once_with(
        api_key="test-key",
        base_url="http://localhost:8080/v1",
        timeout=3.0,
        max_retries=0
    )


# ============================================================================
# Single Embedding Tests
# ============================================================================

@pytest.mark.asyncio
async def test_generate_embedding_success(embedding_service):
    """Test successful embedding generation."""
    result = await embedding_service.generate_embedding("quarterly planning")

    assert isinstance(result, list)
    assert len(result) == 1536
    assert all(isinstance(x, float) for x in result)
    embedding_service.client.embeddings.create.assert_awaited_once_with(
        model="text-embedding-3-small",
        input="quarterly planning",
        encoding_format="float"
    )


@pytest.mark.asyncio
async def test_generate_embedding_truncates_input(embedding_service):
    """Test input is truncated to the first 8000 characters."""
    await embedding_service.generate_embedding("x" * 10000)

    sent = embedding_service.client.embeddings.create.await_args.kwargs["input"]
    assert len(sent) == MAX_INPUT_CHARS == 8000


@pytest.mark.asyncio
async def test_generate_embedding_empty_text(embedding_service):
    """Test empty text yields None without calling the API."""
    assert await embedding_service.generate_embedding("   \n\t  ") is None
    embedding_service.client.embeddings.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_generate_embedding_without_client():
    service = EmbeddingService(api_key=None)

    assert await service.generate_embedding("quarterly planning") is None


# ============================================================================
# Failure Tests
# ============================================================================

@pytest.mark.asyncio
async def test_generate_embedding_api_status_error(embedding_service):
    """Test upstream API errors yield None."""
    request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
    response = httpx.Response(429, request=request)
    embedding_service.client.embeddings.create.side_effect = openai.RateLimitError(
        "Rate limit exceeded", response=response, body=None
    )

    assert await embedding_service.generate_embedding("quarterly planning") is None


@pytest.mark.asyncio
async def test_generate_embedding_connection_error(embedding_service):
    request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
    embedding_service.client.embeddings.create.side_effect = openai.APIConnectionError(
        request=request
    )

    assert await embedding_service.generate_embedding("quarterly planning") is None


@pytest.mark.asyncio
async def test_generate_embedding_timeout(embedding_service):
    """Test a slow provider is cut off at the configured timeout."""
    async def slow_create(**kwargs):
        await asyncio.sleep(1)

    embedding_service.timeout = 0.01
    embedding_service.client.embeddings.create = AsyncMock(side_effect=slow_create)

    assert await embedding_service.generate_embedding("quarterly planning") is None


@pytest.mark.asyncio
async def test_generate_embedding_empty_response(embedding_service):
    embedding_service.client.embeddings.create.return_value = Mock(data=[])

    assert await embedding_service.generate_embedding("quarterly planning") is None


@pytest.mark.asyncio
async def test_request_embedding_raises(embedding_service):
    """Test the internal call reports failures as EmbeddingUnavailableError."""
    embedding_service.client.embeddings.create.side_effect = ValueError("malformed")

    with pytest.raises(EmbeddingUnavailableError, match="malformed"):
        await embedding_service._request_embedding("quarterly planning")


# ============================================================================
# Info / Health Tests
# ============================================================================

def test_get_model_info(embedding_service):
    info = embedding_service.get_model_info()

    assert info["provider"] == "openai"
    assert info["model"] == "text-embedding-3-small"
    assert info["max_input_chars"] == 8000
    assert info["enabled"] is True


@pytest.mark.asyncio
async def test_health_check_healthy(embedding_service):
    health = await embedding_service.health_check()

    assert health["status"] == "healthy"
    assert "api_latency_ms" in health


@pytest.mark.asyncio
async def test_health_check_disabled():
    health = await EmbeddingService(api_key=None).health_check()

    assert health["status"] == "disabled"


@pytest.mark.asyncio
async def test_health_check_unhealthy(embedding_service):
    embedding_service.client.embeddings.create.side_effect = ValueError("boom")

    health = await embedding_service.health_check()

    assert health["status"] == "unhealthy"
    assert "boom" in health["error"]
