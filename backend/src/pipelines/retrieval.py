import logging
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Any, Callable, Optional

import tiktoken
from adapters import BaseEmbedder, BaseLLM
from config import get_config_value, get_positive_int, get_unit_float, load_config
from errors import InvalidInputError
from models import AnswerResponse, SearchHit, SearchResponse
from rerankers import BaseReranker
from retrievers import CandidateRetriever
from stores import BaseDocumentStore
from .base import (
    DEFAULT_CONTEXT_TEMPLATE,
    DEFAULT_LIMIT,
    DEFAULT_RELEVANCE_THRESHOLD,
    DEFAULT_TOP_K,
    NO_RESULTS_MESSAGE,
    create_document_store_from_config,
    create_embedder_from_config,
    create_llm_from_config,
    create_reranker_from_config,
    reranker_uses_llm,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTEXT_TOKENS = 4096
PREVIEW_CHARS = 200
ENCODING_CACHE: dict[str, tiktoken.Encoding] = {}


def get_tokenizer(model: str) -> tiktoken.Encoding:
    if model not in ENCODING_CACHE:
        try:
            ENCODING_CACHE[model] = tiktoken.encoding_for_model(model)
        except KeyError:
            ENCODING_CACHE[model] = tiktoken.get_encoding("cl100k_base")
    return ENCODING_CACHE[model]


def count_tokens(text: str, model: str = "gpt-4") -> int:
    encoder = get_tokenizer(model)
    return len(encoder.encode(text))


class SearchState(str, Enum):
    """Lifecycle of a single search call."""

    IDLE = "idle"
    EMBEDDING = "embedding"
    RETRIEVING = "retrieving"
    RERANKING = "reranking"
    FILTERING = "filtering"
    DONE = "done"
    ERRORED = "errored"


class _SearchRun:
    """Tracks the state of one search for logging."""

    def __init__(self, query: str):
        self.query = query
        self.state = SearchState.IDLE

    def advance(self, state: SearchState) -> None:
        logger.debug(
            f"Search ({len(self.query)} chars): {self.state.value} -> {state.value}"
        )
        self.state = state


def _validate_limit(limit: int) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise InvalidInputError(f"limit must be a positive integer, got {limit!r}")
    return limit


class RetrievalPipeline:
    """Two-stage semantic search over stored CV chunks.

    Stage one scores every stored chunk against the query embedding and keeps
    the ``top_k`` best candidates. Stage two reranks those candidates, keeps
    the ``limit`` best and drops anything below ``relevance_threshold``.
    """

    def __init__(
        self,
        embedder: BaseEmbedder,
        store: BaseDocumentStore,
        reranker: BaseReranker,
        retriever: Optional[CandidateRetriever] = None,
        top_k: int = DEFAULT_TOP_K,
        relevance_threshold: float = DEFAULT_RELEVANCE_THRESHOLD,
        llm: Optional[BaseLLM] = None,
        max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS,
        context_template: str = DEFAULT_CONTEXT_TEMPLATE,
        llm_factory: Optional[Callable[[], Optional[BaseLLM]]] = None,
    ):
        self.embedder = embedder
        self.store = store
        self.reranker = reranker
        self.retriever = retriever or CandidateRetriever(top_k)
        self.relevance_threshold = relevance_threshold
        self.llm = llm
        self.max_context_tokens = max_context_tokens
        self.context_template = context_template
        self._llm_factory = llm_factory

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any],
        config_path: Optional[Path] = None,
        embedder: Optional[BaseEmbedder] = None,
        store: Optional[BaseDocumentStore] = None,
        llm: Optional[BaseLLM] = None,
        reranker: Optional[BaseReranker] = None,
        llm_factory: Optional[Callable[[], Optional[BaseLLM]]] = None,
    ) -> "RetrievalPipeline":
        """Create pipeline from configuration, reusing shared components if given.

        The answering LLM is built on first use by ``answer`` unless the
        reranker needs it. ``search`` never builds it.
        """
        embedder = embedder or create_embedder_from_config(config)
        store = store or create_document_store_from_config(config, config_path, embedder)
        if reranker is None:
            if llm is None and reranker_uses_llm(config):
                llm = create_llm_from_config(config)
            reranker = create_reranker_from_config(config, embedder, llm)
        if llm is None and llm_factory is None:
            llm_factory = partial(create_llm_from_config, config)

        return cls(
            embedder=embedder,
            store=store,
            reranker=reranker,
            top_k=get_positive_int(config, "retrieval.top_k", DEFAULT_TOP_K),
            relevance_threshold=get_unit_float(
                config, "retrieval.relevance_threshold", DEFAULT_RELEVANCE_THRESHOLD
            ),
            llm=llm,
            max_context_tokens=get_positive_int(
                config, "retrieval.max_context_tokens", DEFAULT_MAX_CONTEXT_TOKENS
            ),
            context_template=get_config_value(
                config, "retrieval.context_template", DEFAULT_CONTEXT_TEMPLATE
            ),
            llm_factory=llm_factory,
        )

    def search(self, query: str, limit: int = DEFAULT_LIMIT) -> SearchResponse:
        """Return up to ``limit`` hits ordered by descending relevance.

        Raises:
            InvalidInputError: Blank query or non-positive limit.
            ProviderError: The query could not be embedded.
            IntegrityError: Stored data is inconsistent with the embedder.
        """
        if not isinstance(query, str) or not query.strip():
            raise InvalidInputError("Query is required")
        limit = _validate_limit(limit)
        query = query.strip()

        run = _SearchRun(query)
        try:
            chunks = self.store.get_all()
            if not chunks:
                logger.info("Search on empty store; returning no results")
                run.advance(SearchState.DONE)
                return SearchResponse(results=[])

            run.advance(SearchState.EMBEDDING)
            query_vector = self.embedder.embed_query(query)

            run.advance(SearchState.RETRIEVING)
            candidates = self.retriever.retrieve(query_vector, chunks)

            run.advance(SearchState.RERANKING)
            ranked = self.reranker.rerank(query, candidates, top_n=limit)

            run.advance(SearchState.FILTERING)
            hits = [
                r.to_hit() for r in ranked if r.relevance_score >= self.relevance_threshold
            ]
            dropped = len(ranked) - len(hits)
            if dropped:
                logger.debug(
                    f"Dropped {dropped} results below threshold {self.relevance_threshold}"
                )

            run.advance(SearchState.DONE)
        except Exception as e:
            logger.error(f"Search failed in state {run.state.value}: {type(e).__name__}: {e}")
            run.advance(SearchState.ERRORED)
            raise

        logger.info(f"Search returned {len(hits)} results for a {len(query)}-char query")
        return SearchResponse(results=hits)

    def _get_llm(self) -> Optional[BaseLLM]:
        if self.llm is None and self._llm_factory is not None:
            self.llm = self._llm_factory()
            self._llm_factory = None
        return self.llm

    def _build_context(self, question: str, hits: list[SearchHit]) -> str:
        """Join hit texts until the token budget is spent."""
        model = getattr(self.llm, "model", "gpt-4")
        template_overhead = count_tokens(
            self.context_template.format(
                no_results=NO_RESULTS_MESSAGE, context="", question=question
            ),
            model,
        )
        available_tokens = self.max_context_tokens - template_overhead

        context_text = ""
        current_tokens = 0
        truncated = False

        for hit in hits:
            doc_text = f"[{hit.source_name}]\n{hit.content}"
            doc_tokens = count_tokens(doc_text, model)

            if current_tokens + doc_tokens <= available_tokens:
                if context_text:
                    context_text += "\n\n"
                context_text += doc_text
                current_tokens += doc_tokens
            else:
                truncated = True
                break

        if truncated:
            logger.warning(
                f"Context truncated to {current_tokens} tokens (limit: {self.max_context_tokens})"
            )
        return context_text

    @staticmethod
    def summarize(hits: list[SearchHit]) -> str:
        """Plain listing of hits, used when no LLM is configured."""
        lines = [f"Found {len(hits)} relevant passages:"]
        for i, hit in enumerate(hits, 1):
            preview = hit.content[:PREVIEW_CHARS]
            if len(hit.content) > PREVIEW_CHARS:
                preview += "..."
            lines.append(
                f"{i}. {hit.source_name} ({hit.relevance_score * 100:.1f}% relevant): {preview}"
            )
        return "\n\n".join(lines)

    def answer(self, query: str, limit: int = 3) -> AnswerResponse:
        """Search, then answer the question from the retrieved passages only."""
        hits = self.search(query, limit).results
        if not hits:
            return AnswerResponse(answer=NO_RESULTS_MESSAGE, sources=[])

        llm = self._get_llm()
        if llm is None:
            return AnswerResponse(answer=self.summarize(hits), sources=hits)

        prompt = self.context_template.format(
            no_results=NO_RESULTS_MESSAGE,
            context=self._build_context(query.strip(), hits),
            question=query.strip(),
        )
        logger.info("Generating response...")
        return AnswerResponse(answer=llm.generate(prompt), sources=hits)


def get_retrieval_pipeline(
    config_path: Path = Path("config.toml"),
) -> RetrievalPipeline:
    """Create a retrieval pipeline from config.

    Args:
        config_path: Path to configuration file.

    Returns:
        RetrievalPipeline instance.
    """
    config = load_config(config_path)
    return RetrievalPipeline.from_config(config, config_path)
