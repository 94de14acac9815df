"""OpenAI embedding generation service for query and document text."""

import asyncio
import logging
import time
from typing import List, Optional

import openai
from openai import AsyncOpenAI

from docstore_search.utils.errors import EmbeddingUnavailableError


logger = logging.getLogger("docstore-search.embedding")


MAX_INPUT_CHARS = 8000


class EmbeddingService:
    """
    Embedding provider boundary.

    generate_embedding() never raises: any failure (missing credentials,
    upstream error, timeout) yields None and callers degrade to keyword
    search. No retries are attempted here.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "text-embedding-3-small",
        timeout: float = 10.0,
        max_input_chars: int = MAX_INPUT_CHARS,
        base_url: Optional[str] = None
    ):
        """
        Initialize embedding service.

        Args:
            api_key: OpenAI API key (None disables embeddings)
            model: Embedding model name
            timeout: Upper bound for one embedding request (seconds)
            max_input_chars: Input is truncated to this many characters
            base_url: Optional API base URL override
        """
        self.model = model
        self.timeout = timeout
        self.max_input_chars = max_input_chars
        self.client: Optional[AsyncOpenAI] = None

        if api_key:
            self.client = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url,
                timeout=timeout,
                max_retries=0
            )
        else:
            logger.warning("OpenAI API key not configured, semantic search disabled")

    @property
    def available(self) -> bool:
        return self.client is not None

    async def generate_embedding(self, text: str) -> Optional[List[float]]:
        """
        Generate a single embedding.

        Args:
            text: Text to embed (truncated to max_input_chars)

        Returns:
            Embedding vector, or None if no embedding could be produced
        """
        try:
            return await self._request_embedding(text)
        except EmbeddingUnavailableError as e:
            logger.warning(f"Embedding unavailable: {e}")
            return None

    async def _request_embedding(self, text: str) -> List[float]:
        """
        Call the embeddings endpoint.

        Raises:
            EmbeddingUnavailableError: For every failure mode
        """
        if self.client is None:
            raise EmbeddingUnavailableError("OpenAI API key not configured")

        if not text or not text.strip():
            raise EmbeddingUnavailableError("Text cannot be empty")

        payload = text[:self.max_input_chars]
        start_time = time.time()

        try:
            response = await asyncio.wait_for(
                self.client.embeddings.create(
                    model=self.model,
                    input=payload,
                    encoding_format="float"
                ),
                timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise EmbeddingUnavailableError(
                f"Embedding request timed out after {self.timeout}s"
            ) from e
        except openai.APIStatusError as e:
            raise EmbeddingUnavailableError(f"OpenAI API error: {e.status_code}") from e
        except openai.OpenAIError as e:
            raise EmbeddingUnavailableError(f"OpenAI request failed: {e}") from e
        except Exception as e:
            raise EmbeddingUnavailableError(f"Unexpected embedding failure: {e}") from e

        if not response.data or not response.data[0].embedding:
            raise EmbeddingUnavailableError("OpenAI response contained no embedding")

        embedding = [float(x) for x in response.data[0].embedding]
        latency_ms = int((time.time() - start_time) * 1000)

        logger.info(
            f"Generated embedding: model={self.model}, "
            f"dims={len(embedding)}, chars={len(payload)}, latency={latency_ms}ms"
        )

        return embedding

    def get_model_info(self) -> dict:
        """
        Return model configuration.

        Returns:
            Dictionary with provider, model, timeout and input cap
        """
        return {
            "provider": "openai",
            "model": self.model,
            "timeout": self.timeout,
            "max_input_chars": self.max_input_chars,
            "enabled": self.available
        }

    async def health_check(self) -> dict:
        """
        Test API connectivity with small embedding.

        Returns:
            Dictionary with status, latency_ms, and optional error
        """
        if not self.available:
            return {
                "status": "disabled",
                "model": self.model,
                "error": "OpenAI API key not configured"
            }

        try:
            start_time = time.time()
            await self._request_embedding("health check")
            latency_ms = int((time.time() - start_time) * 1000)

            return {
                "status": "healthy",
                "model": self.model,
                "api_latency_ms": latency_ms
            }
        except EmbeddingUnavailableError as e:
            return {
                "status": "unhealthy",
                "model": self.model,
                "error": str(e)
            }
