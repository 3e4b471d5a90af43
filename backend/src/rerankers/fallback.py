import logging

from models.chunk import Candidate, RankedResult
from .base import BaseReranker

logger = logging.getLogger(__name__)


class FallbackReranker(BaseReranker):
    """Primary reranker with an explicit secondary.

    Any failure of the primary (timeout, rate limit, malformed response,
    missing credentials) is logged and answered by the secondary instead, so
    reranking never fails a search on the primary's account.
    """

    def __init__(self, primary: BaseReranker, secondary: BaseReranker):
        self.primary = primary
        self.secondary = secondary
        self.name = f"{primary.name}->{secondary.name}"

    def _rerank(
        self,
        query: str,
        candidates: list[Candidate],
        top_n: int,
    ) -> list[RankedResult]:
        try:
            return self.primary.rerank(query, candidates, top_n)
        except Exception as e:
            logger.warning(
                f"Reranker '{self.primary.name}' failed ({type(e).__name__}: {e}); "
                f"falling back to '{self.secondary.name}'"
            )
        return self.secondary.rerank(query, candidates, top_n)
