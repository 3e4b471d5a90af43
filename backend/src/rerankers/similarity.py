import logging

from adapters.base import BaseEmbedder
from errors import MissingEmbeddingError
from models.chunk import Candidate, RankedResult
from retrievers.similarity import cosine_similarity, to_relevance
from .base import BaseReranker, rank_by_score

logger = logging.getLogger(__name__)


class SimilarityReranker(BaseReranker):
    """Embedding-similarity reranker, the always-available fallback.

    The query is embedded afresh and compared with each candidate's stored
    embedding; negative similarities count as zero relevance.
    """

    name = "similarity"

    def __init__(self, embedder: BaseEmbedder):
        self.embedder = embedder

    def _rerank(
        self,
        query: str,
        candidates: list[Candidate],
        top_n: int,
    ) -> list[RankedResult]:
        query_vector = self.embedder.embed_query(query)

        scores: dict[int, float] = {}
        for position, candidate in enumerate(candidates):
            embedding = candidate.chunk.embedding
            if embedding is None:
                raise MissingEmbeddingError(
                    f"Candidate chunk {candidate.chunk.id} has no embedding"
                )
            scores[position] = to_relevance(cosine_similarity(query_vector, embedding))

        results = rank_by_score(candidates, scores, top_n)
        logger.info(f"Similarity rerank kept {len(results)} of {len(candidates)} candidates")
        return results
