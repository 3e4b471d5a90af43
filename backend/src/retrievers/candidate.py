import logging
from typing import Sequence

import numpy as np

from errors import DimensionMismatchError, InvalidInputError
from models.chunk import Candidate, Chunk
from .similarity import cosine_similarities

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 30


class CandidateRetriever:
    """First-stage retrieval: brute-force cosine scoring over every embedded chunk.

    Chunks without an embedding (mid-ingestion) are skipped. Equal scores keep
    the order in which chunks were supplied.
    """

    def __init__(self, top_k: int = DEFAULT_TOP_K):
        self.top_k = self._validate_top_k(top_k)

    @staticmethod
    def _validate_top_k(top_k: int) -> int:
        if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k <= 0:
            raise InvalidInputError(f"top_k must be a positive integer, got {top_k!r}")
        return top_k

    def retrieve(
        self,
        query_vector: Sequence[float],
        chunks: Sequence[Chunk],
        top_k: int | None = None,
    ) -> list[Candidate]:
        """Return at most top_k candidates ordered by descending similarity.

        Raises:
            DimensionMismatchError: If any embedded chunk has a vector length
                different from the query's.
        """
        k = self._validate_top_k(top_k) if top_k is not None else self.top_k
        expected = len(query_vector)

        scored: list[Chunk] = []
        for chunk in chunks:
            if chunk.embedding is None:
                continue
            if len(chunk.embedding) != expected:
                raise DimensionMismatchError(expected, len(chunk.embedding), chunk.id)
            scored.append(chunk)

        skipped = len(chunks) - len(scored)
        if skipped:
            logger.debug(f"Skipped {skipped} chunks without embeddings")
        if not scored:
            return []

        matrix = np.asarray([c.embedding for c in scored], dtype=np.float64)
        scores = cosine_similarities(query_vector, matrix)
        order = np.argsort(-scores, kind="stable")[:k]

        candidates = [Candidate(chunk=scored[i], score=float(scores[i])) for i in order]
        logger.info(
            f"Retrieved {len(candidates)} candidates from {len(scored)} chunks "
            f"(top score: {candidates[0].score:.3f})"
        )
        return candidates
