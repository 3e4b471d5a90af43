from .candidate import DEFAULT_TOP_K, CandidateRetriever
from .similarity import cosine_similarities, cosine_similarity, to_relevance

__all__ = [
    "CandidateRetriever",
    "DEFAULT_TOP_K",
    "cosine_similarities",
    "cosine_similarity",
    "to_relevance",
]
