import logging
import os
from typing import Any, Optional

from adapters.utils import (
    DEFAULT_TIMEOUT,
    create_session_with_pooling,
    post_json,
    require_key,
    truncate,
)
from errors import ProviderResponseError, ProviderUnavailableError
from models.chunk import Candidate, RankedResult
from .base import DEFAULT_MAX_CHARS, BaseReranker, rank_by_score

logger = logging.getLogger(__name__)


class CohereReranker(BaseReranker):
    """Reranker backed by Cohere's /rerank endpoint.

    Candidate texts are truncated to ``max_chars`` before submission. A
    missing API key is reported at call time as ``ProviderUnavailableError``
    so that a fallback chain can take over.
    """

    name = "cohere"

    def __init__(
        self,
        model: str = "rerank-english-v3.0",
        api_key: Optional[str] = None,
        base_url: str = "https://api.cohere.ai/v1",
        max_chars: int = DEFAULT_MAX_CHARS,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = 0,
        **kwargs: Any,
    ):
        self.model = model
        self._api_key = api_key or os.environ.get("COHERE_API_KEY")
        if not self._api_key:
            logger.warning("COHERE_API_KEY not found; Cohere reranking will fail over")
        self.base_url = base_url.rstrip("/")
        self.max_chars = int(max_chars)
        self.timeout = float(timeout)
        self.session = create_session_with_pooling(max_retries=max_retries)

    def _rerank(
        self,
        query: str,
        candidates: list[Candidate],
        top_n: int,
    ) -> list[RankedResult]:
        if not self._api_key:
            raise ProviderUnavailableError(
                "COHERE_API_KEY is not configured", provider=self.name
            )

        data = post_json(
            self.session,
            f"{self.base_url}/rerank",
            {
                "query": query,
                "documents": [truncate(c.chunk.content, self.max_chars) for c in candidates],
                "model": self.model,
                "top_n": min(top_n, len(candidates)),
            },
            provider=self.name,
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        scores = self._parse_results(require_key(data, "results", self.name), len(candidates))
        return rank_by_score(candidates, scores, top_n)

    def _parse_results(self, results: Any, count: int) -> dict[int, float]:
        if not isinstance(results, list):
            raise ProviderResponseError("cohere 'results' is not a list", provider=self.name)

        scores: dict[int, float] = {}
        for item in results:
            if not isinstance(item, dict):
                raise ProviderResponseError("cohere result is not an object", provider=self.name)
            index = item.get("index")
            score = item.get("relevance_score")
            if not isinstance(index, int) or not 0 <= index < count:
                raise ProviderResponseError(
                    f"cohere returned invalid index {index!r}", provider=self.name
                )
            if not isinstance(score, (int, float)) or not 0.0 <= score <= 1.0:
                raise ProviderResponseError(
                    f"cohere returned invalid relevance score {score!r}", provider=self.name
                )
            if index in scores:
                raise ProviderResponseError(
                    f"cohere returned index {index} twice", provider=self.name
                )
            scores[index] = float(score)
        return scores
