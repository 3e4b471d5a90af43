"""Second-stage rerankers and their configuration-driven factory."""

from typing import Any, Optional

from adapters.base import BaseEmbedder, BaseLLM
from errors import ConfigurationError
from .base import DEFAULT_MAX_CHARS, BaseReranker, rank_by_score
from .cohere import CohereReranker
from .fallback import FallbackReranker
from .llm import LLMReranker
from .similarity import SimilarityReranker

RERANK_PROVIDERS = ("cohere", "llm", "similarity")


def create_reranker(
    provider: str,
    embedder: BaseEmbedder,
    llm: Optional[BaseLLM] = None,
    **kwargs: Any,
) -> BaseReranker:
    """Create the reranker chain for a provider.

    Every provider other than "similarity" is wrapped in a FallbackReranker
    whose secondary is the similarity reranker over ``embedder``.

    Raises:
        ConfigurationError: Unknown provider, or "llm" without an LLM.
    """
    secondary = SimilarityReranker(embedder)

    if provider == "similarity":
        return secondary
    if provider == "cohere":
        primary: BaseReranker = CohereReranker(**kwargs)
    elif provider == "llm":
        if llm is None:
            raise ConfigurationError("rerank provider 'llm' requires an [llm] section")
        primary = LLMReranker(llm, max_chars=kwargs.get("max_chars", DEFAULT_MAX_CHARS))
    else:
        raise ConfigurationError(
            f"Unknown rerank provider: {provider}. Available: {list(RERANK_PROVIDERS)}"
        )
    return FallbackReranker(primary, secondary)


__all__ = [
    "BaseReranker",
    "CohereReranker",
    "FallbackReranker",
    "LLMReranker",
    "RERANK_PROVIDERS",
    "SimilarityReranker",
    "create_reranker",
    "rank_by_score",
]
