import logging
from unittest.mock import MagicMock

import pytest

import pipelines.retrieval as retrieval
from errors import DimensionMismatchError, InvalidInputError, ProviderUnavailableError
from models import SearchHit
from pipelines import NO_RESULTS_MESSAGE, RetrievalPipeline
from rerankers import FallbackReranker, SimilarityReranker
from stores import InMemoryDocumentStore
from conftest import FailingReranker, KeywordEmbedder, MockLLM, ReversingReranker, make_chunk


@pytest.fixture
def pipeline(
    keyword_embedder: KeywordEmbedder, cv_store: InMemoryDocumentStore
) -> RetrievalPipeline:
    return RetrievalPipeline(
        embedder=keyword_embedder,
        store=cv_store,
        reranker=SimilarityReranker(keyword_embedder),
    )


@pytest.fixture
def word_tokens(monkeypatch) -> None:
    monkeypatch.setattr(retrieval, "count_tokens", lambda text, model="gpt-4": len(text.split()))


class TestSearch:
    def test_mobile_developers_ranks_mobile_cvs_first(self, pipeline: RetrievalPipeline) -> None:
        results = pipeline.search("mobile developers", limit=5).results

        assert {r.source_name for r in results[:2]} == {"alice.pdf", "bob.pdf"}
        assert all(r.source_name != "carol.pdf" for r in results[:2])

    def test_results_are_ordered_and_bounded(self, pipeline: RetrievalPipeline) -> None:
        results = pipeline.search("backend mobile", limit=5).results

        scores = [r.relevance_score for r in results]
        assert scores == sorted(scores, reverse=True)
        assert all(0.0 <= s <= 1.0 for s in scores)

    def test_limit_caps_results(self, pipeline: RetrievalPipeline) -> None:
        assert len(pipeline.search("mobile developers", limit=1).results) == 1

    def test_hits_expose_public_fields(self, pipeline: RetrievalPipeline) -> None:
        hit = pipeline.search("backend", limit=1).results[0]

        assert hit.source_name == "carol.pdf"
        assert hit.chunk_index == 0
        assert "PostgreSQL" in hit.content
        assert set(hit.model_dump()) == {"id", "source_name", "content", "chunk_index", "relevance_score"}

    def test_threshold_filters_low_relevance(
        self, keyword_embedder: KeywordEmbedder, cv_store: InMemoryDocumentStore
    ) -> None:
        def search(threshold: float) -> list[str]:
            pipeline = RetrievalPipeline(
                embedder=keyword_embedder,
                store=cv_store,
                reranker=SimilarityReranker(keyword_embedder),
                relevance_threshold=threshold,
            )
            return [r.source_name for r in pipeline.search("mobile developers", limit=5).results]

        assert "carol.pdf" in search(0.0)
        assert "carol.pdf" not in search(0.02)
        assert search(1.0) == []

    def test_deterministic(self, pipeline: RetrievalPipeline) -> None:
        assert pipeline.search("iOS Swift", limit=3) == pipeline.search("iOS Swift", limit=3)

    def test_empty_store_returns_no_results(self, keyword_embedder: KeywordEmbedder) -> None:
        pipeline = RetrievalPipeline(
            embedder=keyword_embedder,
            store=InMemoryDocumentStore(),
            reranker=SimilarityReranker(keyword_embedder),
        )

        assert pipeline.search("mobile developers", limit=5).results == []
        assert keyword_embedder.query_calls == []

    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_empty_query_rejected(self, pipeline: RetrievalPipeline, query) -> None:
        with pytest.raises(InvalidInputError):
            pipeline.search(query, 5)

    @pytest.mark.parametrize("limit", [0, -3, True, 2.5, "5"])
    def test_invalid_limit_rejected(self, pipeline: RetrievalPipeline, limit) -> None:
        with pytest.raises(InvalidInputError):
            pipeline.search("mobile", limit)

    def test_reranks_with_limit_as_top_n(
        self, keyword_embedder: KeywordEmbedder, cv_store: InMemoryDocumentStore
    ) -> None:
        reranker = MagicMock(wraps=SimilarityReranker(keyword_embedder))
        pipeline = RetrievalPipeline(embedder=keyword_embedder, store=cv_store, reranker=reranker)
        pipeline.search("mobile", limit=2)

        assert reranker.rerank.call_args[1]["top_n"] == 2

    def test_candidate_pool_bounded_by_top_k(
        self, keyword_embedder: KeywordEmbedder, cv_store: InMemoryDocumentStore
    ) -> None:
        reranker = MagicMock(wraps=SimilarityReranker(keyword_embedder))
        pipeline = RetrievalPipeline(
            embedder=keyword_embedder, store=cv_store, reranker=reranker, top_k=2
        )
        pipeline.search("mobile", limit=5)

        assert len(reranker.rerank.call_args[0][1]) == 2

    def test_primary_reranker_order_is_used(
        self, keyword_embedder: KeywordEmbedder, cv_store: InMemoryDocumentStore
    ) -> None:
        reranker = FallbackReranker(ReversingReranker(), SimilarityReranker(keyword_embedder))
        pipeline = RetrievalPipeline(
            embedder=keyword_embedder, store=cv_store, reranker=reranker, relevance_threshold=0.0
        )
        results = pipeline.search("backend", limit=3).results

        # carol is the best candidate, so reversing puts her last
        assert results[-1].source_name == "carol.pdf"

    def test_fallback_matches_similarity_results(
        self, keyword_embedder: KeywordEmbedder, cv_store: InMemoryDocumentStore, caplog
    ) -> None:
        baseline = RetrievalPipeline(
            embedder=keyword_embedder,
            store=cv_store,
            reranker=SimilarityReranker(keyword_embedder),
        ).search("mobile developers", limit=5)

        failing = FailingReranker()
        with_fallback = RetrievalPipeline(
            embedder=keyword_embedder,
            store=cv_store,
            reranker=FallbackReranker(failing, SimilarityReranker(keyword_embedder)),
        )
        with caplog.at_level(logging.WARNING):
            results = with_fallback.search("mobile developers", limit=5)

        assert failing.calls == 1
        assert results == baseline
        assert "falling back to 'similarity'" in caplog.text

    def test_embedding_failure_propagates(
        self, keyword_embedder: KeywordEmbedder, cv_store: InMemoryDocumentStore, caplog
    ) -> None:
        keyword_embedder.embed_query = MagicMock(
            side_effect=ProviderUnavailableError("embedder down", provider="keyword")
        )
        pipeline = RetrievalPipeline(
            embedder=keyword_embedder, store=cv_store, reranker=SimilarityReranker(keyword_embedder)
        )

        with caplog.at_level(logging.ERROR):
            with pytest.raises(ProviderUnavailableError):
                pipeline.search("mobile", 5)
        assert "Search failed in state embedding" in caplog.text

    def test_dimension_mismatch_propagates(self, keyword_embedder: KeywordEmbedder) -> None:
        store = InMemoryDocumentStore()
        store.insert(make_chunk("legacy vectors", embedding=[1.0, 0.0]))
        pipeline = RetrievalPipeline(
            embedder=keyword_embedder, store=store, reranker=SimilarityReranker(keyword_embedder)
        )

        with pytest.raises(DimensionMismatchError):
            pipeline.search("mobile", 5)

    def test_state_transitions_logged(self, pipeline: RetrievalPipeline, caplog) -> None:
        with caplog.at_level(logging.DEBUG, logger="pipelines.retrieval"):
            pipeline.search("mobile", 5)

        for transition in ("idle -> embedding", "retrieving -> reranking", "filtering -> done"):
            assert transition in caplog.text

    def test_query_text_not_logged(self, pipeline: RetrievalPipeline, caplog) -> None:
        with caplog.at_level(logging.DEBUG):
            pipeline.search("Jane Doe iOS Swift", 5)

        assert "Jane Doe" not in caplog.text
        assert "18 chars" in caplog.text

    def test_nan_vector_in_store_scores_zero(
        self, keyword_embedder: KeywordEmbedder, cv_store: InMemoryDocumentStore
    ) -> None:
        cv_store.insert(
            make_chunk("corrupt", parent="cv-x", source_name="x.pdf", embedding=[float("nan"), 1.0, 0.0, 0.1])
        )
        pipeline = RetrievalPipeline(
            embedder=keyword_embedder, store=cv_store, reranker=SimilarityReranker(keyword_embedder)
        )

        results = pipeline.search("mobile ios", 5).results

        assert {r.source_name for r in results} == {"alice.pdf", "bob.pdf"}


class TestAnswer:
    def test_no_results_message(self, keyword_embedder: KeywordEmbedder, mock_llm: MockLLM) -> None:
        pipeline = RetrievalPipeline(
            embedder=keyword_embedder,
            store=InMemoryDocumentStore(),
            reranker=SimilarityReranker(keyword_embedder),
            llm=mock_llm,
        )
        response = pipeline.answer("Who knows Swift?")

        assert response.answer == NO_RESULTS_MESSAGE
        assert response.sources == []
        assert mock_llm.prompts == []

    def test_summary_without_llm(self, pipeline: RetrievalPipeline) -> None:
        response = pipeline.answer("mobile developers", limit=2)

        assert response.answer.startswith("Found 2 relevant passages:")
        assert "% relevant" in response.answer
        assert len(response.sources) == 2

    def test_summary_truncates_previews(self) -> None:
        hits = [
            SearchHit(
                id="1", source_name="long.pdf", content="x" * 300, chunk_index=0, relevance_score=0.5
            )
        ]
        summary = RetrievalPipeline.summarize(hits)

        assert "1. long.pdf (50.0% relevant): " + "x" * 200 + "..." in summary

    def test_llm_answer_grounded_in_hits(
        self,
        keyword_embedder: KeywordEmbedder,
        cv_store: InMemoryDocumentStore,
        word_tokens: None,
    ) -> None:
        llm = MockLLM(reply="Alice and Bob are mobile developers.")
        pipeline = RetrievalPipeline(
            embedder=keyword_embedder,
            store=cv_store,
            reranker=SimilarityReranker(keyword_embedder),
            llm=llm,
        )
        response = pipeline.answer("Which candidates are mobile developers?", limit=2)

        assert response.answer == "Alice and Bob are mobile developers."
        prompt = llm.prompts[0]
        assert "[alice.pdf]" in prompt and "[bob.pdf]" in prompt
        assert "Question: Which candidates are mobile developers?" in prompt
        assert NO_RESULTS_MESSAGE in prompt

    def test_context_truncated_to_token_budget(
        self,
        keyword_embedder: KeywordEmbedder,
        cv_store: InMemoryDocumentStore,
        monkeypatch,
    ) -> None:
        monkeypatch.setattr(
            retrieval,
            "count_tokens",
            lambda text, model="gpt-4": 0 if "Question:" in text else 10,
        )
        llm = MockLLM()
        pipeline = RetrievalPipeline(
            embedder=keyword_embedder,
            store=cv_store,
            reranker=SimilarityReranker(keyword_embedder),
            llm=llm,
            max_context_tokens=15,
        )
        response = pipeline.answer("mobile developers", limit=2)

        prompt = llm.prompts[0]
        first, second = response.sources
        assert f"[{first.source_name}]" in prompt
        assert f"[{second.source_name}]" not in prompt
