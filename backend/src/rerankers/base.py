from abc import ABC, abstractmethod
from typing import Mapping, Sequence

from errors import InvalidInputError
from models.chunk import Candidate, RankedResult
from retrievers.similarity import to_relevance

DEFAULT_MAX_CHARS = 500


def rank_by_score(
    candidates: Sequence[Candidate],
    scores: Mapping[int, float],
    top_n: int,
) -> list[RankedResult]:
    """Order scored candidates by descending relevance, ties by input position.

    Args:
        candidates: The candidates that were scored.
        scores: Candidate position -> relevance score. Positions missing from
            the mapping are dropped. Scores are clamped into [0, 1] and
            NaN counts as 0.
        top_n: Maximum number of results.
    """
    relevance = {position: to_relevance(float(score)) for position, score in scores.items()}
    ordered = sorted(relevance.items(), key=lambda item: (-item[1], item[0]))
    return [
        RankedResult(chunk=candidates[position].chunk, relevance_score=score)
        for position, score in ordered[:top_n]
    ]


class BaseReranker(ABC):
    """Abstract interface for second-stage relevance scoring.

    ``rerank`` handles the shared contract (argument checks, the empty
    short-circuit); subclasses implement ``_rerank`` for a non-empty list.
    """

    name: str = "base"

    def rerank(
        self,
        query: str,
        candidates: Sequence[Candidate],
        top_n: int,
    ) -> list[RankedResult]:
        """Return at most top_n results in strictly descending relevance order."""
        if isinstance(top_n, bool) or not isinstance(top_n, int) or top_n <= 0:
            raise InvalidInputError(f"top_n must be a positive integer, got {top_n!r}")
        if not candidates:
            return []
        return self._rerank(query, list(candidates), top_n)

    @abstractmethod
    def _rerank(
        self,
        query: str,
        candidates: list[Candidate],
        top_n: int,
    ) -> list[RankedResult]:
        raise NotImplementedError
