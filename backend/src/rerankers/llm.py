import json
import logging
import re
from typing import Any

from adapters.base import BaseLLM
from adapters.utils import truncate
from errors import ProviderResponseError
from models.chunk import Candidate, RankedResult
from .base import DEFAULT_MAX_CHARS, BaseReranker, rank_by_score

logger = logging.getLogger(__name__)

RERANK_PROMPT_TEMPLATE = """You score CVs for a recruiter search. Judge each document by its PRIMARY job role.

Search query: "{query}"

Documents:
{documents}

Scoring:
- 0.8 to 1.0: the primary role matches the query, exactly or as a member of the category asked for.
- 0.0 to 0.2: the primary role is different, even when skills or tools overlap.

A broad query ("mobile developer", "backend developer") matches every specific role in that
category (iOS, Android, Flutter / Node.js, Java, Python). A specific query ("iOS developer",
"Java developer") matches only that role, not its neighbours.

Reply with a JSON array only, one object per document, for example:
[{{"index": 2, "score": 0.95}}, {{"index": 0, "score": 0.15}}]

JSON:"""

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


class LLMReranker(BaseReranker):
    """Reranker that asks a chat model for per-candidate relevance scores.

    Candidates the model leaves out of its answer are dropped. Unparsable
    output raises ``ProviderResponseError``.
    """

    name = "llm"

    def __init__(
        self,
        llm: BaseLLM,
        max_chars: int = DEFAULT_MAX_CHARS,
        prompt_template: str = RERANK_PROMPT_TEMPLATE,
    ):
        self.llm = llm
        self.max_chars = int(max_chars)
        self.prompt_template = prompt_template

    def build_prompt(self, query: str, candidates: list[Candidate]) -> str:
        documents = "\n\n".join(
            f"[{i}] {truncate(c.chunk.content, self.max_chars)}"
            for i, c in enumerate(candidates)
        )
        return self.prompt_template.format(query=query, documents=documents)

    def _rerank(
        self,
        query: str,
        candidates: list[Candidate],
        top_n: int,
    ) -> list[RankedResult]:
        reply = self.llm.generate(self.build_prompt(query, candidates))
        scores = self.parse_scores(reply, len(candidates))
        logger.info(f"LLM scored {len(scores)} of {len(candidates)} candidates")
        return rank_by_score(candidates, scores, top_n)

    def parse_scores(self, reply: str, count: int) -> dict[int, float]:
        """Extract {index: score} from the model's JSON array reply."""
        match = _JSON_ARRAY.search(reply or "")
        if not match:
            raise ProviderResponseError(
                "LLM reply contains no JSON array", provider=self.llm.provider
            )
        try:
            items: Any = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ProviderResponseError(
                f"LLM reply is not valid JSON: {e}", provider=self.llm.provider
            ) from e

        scores: dict[int, float] = {}
        for item in items:
            if not isinstance(item, dict):
                raise ProviderResponseError(
                    "LLM score entry is not an object", provider=self.llm.provider
                )
            index, score = item.get("index"), item.get("score")
            if not isinstance(index, int) or not 0 <= index < count:
                raise ProviderResponseError(
                    f"LLM returned invalid index {index!r}", provider=self.llm.provider
                )
            if not isinstance(score, (int, float)):
                raise ProviderResponseError(
                    f"LLM returned invalid score {score!r}", provider=self.llm.provider
                )
            # First score wins if the model repeats an index.
            scores.setdefault(index, min(max(float(score), 0.0), 1.0))
        return scores
