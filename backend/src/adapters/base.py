from abc import ABC, abstractmethod
from typing import Any

import numpy as np

from errors import DimensionMismatchError, ProviderResponseError


class BaseEmbedder(ABC):
    """Abstract base class for embedding providers.

    Vectors from different providers are not interchangeable: the active
    embedder is chosen once at startup and every chunk in a store must come
    from it.
    """

    provider: str = "base"

    def __init__(self, model: str, **kwargs: Any):
        self.model = model
        self.kwargs = kwargs

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        pass

    @abstractmethod
    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        pass

    def embed_query(self, text: str) -> list[float]:
        """Embed a search query. Providers with query-specific modes override this."""
        return self.embed(text)

    @property
    @abstractmethod
    def dimension(self) -> int:
        pass

    def _check_vector(self, vector: Any) -> list[float]:
        """Validate a single vector returned by the provider."""
        if not isinstance(vector, list) or not vector:
            raise ProviderResponseError(
                f"{self.provider} returned an empty or non-list embedding",
                provider=self.provider,
            )
        if len(vector) != self.dimension:
            raise ProviderResponseError(
                str(DimensionMismatchError(self.dimension, len(vector))),
                provider=self.provider,
            )
        numeric = all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in vector)
        if not numeric or not np.isfinite(np.asarray(vector, dtype=np.float64)).all():
            raise ProviderResponseError(
                f"{self.provider} returned an embedding with non-numeric or non-finite values",
                provider=self.provider,
            )
        return vector

    def _check_batch(self, vectors: Any, expected: int) -> list[list[float]]:
        if not isinstance(vectors, list) or len(vectors) != expected:
            got = len(vectors) if isinstance(vectors, list) else type(vectors).__name__
            raise ProviderResponseError(
                f"{self.provider} returned {got} embeddings for {expected} texts",
                provider=self.provider,
            )
        return [self._check_vector(v) for v in vectors]


class BaseLLM(ABC):
    """Abstract base class for LLM providers."""

    provider: str = "base"

    def __init__(self, model: str, **kwargs: Any):
        self.model = model
        self.kwargs = kwargs

    @abstractmethod
    def generate(self, prompt: str, **kwargs: Any) -> str:
        pass

    @abstractmethod
    def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        pass
