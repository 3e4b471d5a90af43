import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Optional

from openai import OpenAI

from adapters.base import BaseEmbedder
from adapters.utils import (
    DEFAULT_TIMEOUT,
    create_session_with_pooling,
    post_json,
    require_key,
    translate_openai_errors,
)
from errors import ProviderError, ProviderUnavailableError

logger = logging.getLogger(__name__)

EMBEDDING_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "embed-english-v3.0": 1024,
    "embed-multilingual-v3.0": 1024,
    "embed-english-light-v3.0": 384,
    "nomic-embed-text": 768,
    "mxbai-embed-large": 1024,
    "all-minilm": 384,
}

DEFAULT_BATCH_SIZE = 500
DEFAULT_OLLAMA_DIMENSION = 768
COHERE_MAX_BATCH = 96


class OpenAIEmbedder(BaseEmbedder):
    """OpenAI embedding provider (remote API)."""

    provider = "openai"

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = 0,
        **kwargs: Any,
    ):
        super().__init__(model, **kwargs)
        api_key = kwargs.pop("api_key", None) or os.environ.get("OPENAI_API_KEY")
        base_url = kwargs.pop("base_url", None)
        if not api_key:
            raise ProviderUnavailableError(
                "OPENAI_API_KEY is not configured", provider=self.provider
            )

        self.client = OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=min(max_retries, 1),
        )
        self._dimension: Optional[int] = kwargs.get("dimensions")

    @property
    def dimension(self) -> int:
        return self._dimension or EMBEDDING_DIMENSIONS.get(self.model, 1536)

    def _create_embedding_params(self, input_data: str | list[str]) -> dict[str, Any]:
        params = {"model": self.model, "input": input_data}
        if self._dimension is not None:
            params["dimensions"] = self._dimension
        return params

    def embed(self, text: str) -> list[float]:
        with translate_openai_errors(self.provider):
            response = self.client.embeddings.create(
                **self._create_embedding_params(text)
            )
        vector = response.data[0].embedding if response.data else None
        return self._check_vector(vector)

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        with translate_openai_errors(self.provider):
            response = self.client.embeddings.create(
                **self._create_embedding_params(texts)
            )
        return self._check_batch([item.embedding for item in response.data], len(texts))


class CohereEmbedder(BaseEmbedder):
    """Cohere embedding provider (remote API).

    Documents and queries are embedded with different input types, which
    Cohere uses to place them asymmetrically in the vector space.
    """

    provider = "cohere"

    def __init__(
        self,
        model: str = "embed-english-v3.0",
        base_url: str = "https://api.cohere.ai/v1",
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = 0,
        **kwargs: Any,
    ):
        super().__init__(model, **kwargs)
        self._api_key = kwargs.pop("api_key", None) or os.environ.get("COHERE_API_KEY")
        if not self._api_key:
            logger.warning("COHERE_API_KEY not found; Cohere embeddings will fail")
        self.base_url = base_url.rstrip("/")
        self.timeout = float(timeout)
        self._dimension = kwargs.get("dimension") or EMBEDDING_DIMENSIONS.get(model, 1024)
        self.session = create_session_with_pooling(max_retries=max_retries)

    @property
    def dimension(self) -> int:
        return self._dimension

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise ProviderUnavailableError(
                "COHERE_API_KEY is not configured", provider=self.provider
            )
        return {"Authorization": f"Bearer {self._api_key}"}

    def _embed(self, texts: list[str], input_type: str) -> list[list[float]]:
        data = post_json(
            self.session,
            f"{self.base_url}/embed",
            {"texts": texts, "model": self.model, "input_type": input_type},
            provider=self.provider,
            timeout=self.timeout,
            headers=self._headers(),
        )
        return self._check_batch(require_key(data, "embeddings", self.provider), len(texts))

    def embed(self, text: str) -> list[float]:
        return self._embed([text], "search_document")[0]

    def embed_query(self, text: str) -> list[float]:
        return self._embed([text], "search_query")[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        results: list[list[float]] = []
        for i in range(0, len(texts), COHERE_MAX_BATCH):
            results.extend(self._embed(texts[i : i + COHERE_MAX_BATCH], "search_document"))
        return results


class OllamaEmbedder(BaseEmbedder):
    """Ollama local embedding provider with batch processing and connection pooling."""

    provider = "ollama"

    def __init__(
        self,
        model: str = "nomic-embed-text",
        base_url: str = "http://localhost:11434",
        max_workers: int = 8,
        batch_size: int = DEFAULT_BATCH_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
        batch_timeout: float = 120.0,
        max_retries: int = 0,
        **kwargs: Any,
    ):
        super().__init__(model, **kwargs)
        self.base_url = base_url.rstrip("/")
        self._dimension = kwargs.get("dimension") or EMBEDDING_DIMENSIONS.get(
            model, DEFAULT_OLLAMA_DIMENSION
        )
        self._max_workers = max_workers
        self._batch_size = batch_size
        self.timeout = float(timeout)
        self.batch_timeout = float(batch_timeout)
        self.session = create_session_with_pooling(max_retries=max_retries)

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed(self, text: str) -> list[float]:
        data = post_json(
            self.session,
            f"{self.base_url}/api/embeddings",
            {"model": self.model, "prompt": text},
            provider=self.provider,
            timeout=self.timeout,
        )
        return self._check_vector(require_key(data, "embedding", self.provider))

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Batch embedding using /api/embed, split into sub-batches of batch_size."""
        if not texts:
            return []

        results = []
        for i in range(0, len(texts), self._batch_size):
            results.extend(self._embed_batch_single(texts[i : i + self._batch_size]))
        return results

    def _embed_batch_single(self, texts: list[str]) -> list[list[float]]:
        try:
            data = post_json(
                self.session,
                f"{self.base_url}/api/embed",
                {"model": self.model, "input": texts},
                provider=self.provider,
                timeout=self.batch_timeout,
            )
        except ProviderError as e:
            # Older Ollama builds lack /api/embed; fall back to single requests.
            logger.warning(f"Ollama batch endpoint failed ({e}); embedding one by one")
            return self._embed_batch_parallel(texts)
        return self._check_batch(require_key(data, "embeddings", self.provider), len(texts))

    def _embed_batch_parallel(self, texts: list[str]) -> list[list[float]]:
        """Fallback: parallel embedding using ThreadPoolExecutor, order preserved."""
        results: list[Optional[list[float]]] = [None] * len(texts)
        errors: list[tuple[int, Exception]] = []

        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            futures = {executor.submit(self.embed, text): i for i, text in enumerate(texts)}

            for future in as_completed(futures):
                idx = futures[future]
                try:
                    results[idx] = future.result()
                except ProviderError as e:
                    errors.append((idx, e))

        if errors:
            errors.sort(key=lambda item: item[0])
            failed_indices = [idx for idx, _ in errors]
            first_error = errors[0][1]
            raise ProviderUnavailableError(
                f"Embedding failed for {len(errors)}/{len(texts)} texts "
                f"at indices {failed_indices}. First error: {first_error}",
                provider=self.provider,
            ) from first_error

        return results  # type: ignore
