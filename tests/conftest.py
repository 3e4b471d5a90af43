import re
from pathlib import Path
from typing import Any, Optional

import pytest

from adapters.base import BaseEmbedder, BaseLLM
from errors import ProviderUnavailableError
from models import Candidate, Chunk, RankedResult
from rerankers import BaseReranker, SimilarityReranker
from stores import InMemoryDocumentStore

# Each keyword family is one axis of the embedding space; the last axis is a
# constant bias so that texts without keywords are not zero vectors.
KEYWORD_AXES = {
    "mobile": {"mobile", "ios", "android", "swift", "kotlin", "uikit", "swiftui", "flutter", "jetpack"},
    "backend": {"backend", "node", "postgresql", "django", "java", "spring", "api", "microservices"},
    "data": {"data", "pandas", "spark", "sql", "etl", "analytics", "warehouse"},
}
BIAS = 0.1


class KeywordEmbedder(BaseEmbedder):
    """Deterministic embedder that counts keyword families."""

    provider = "keyword"

    def __init__(self, model: str = "keyword-embedder", fail_batches: bool = False, **kwargs: Any):
        super().__init__(model, **kwargs)
        self.fail_batches = fail_batches
        self.query_calls: list[str] = []
        self.batch_calls: list[list[str]] = []

    @property
    def dimension(self) -> int:
        return len(KEYWORD_AXES) + 1

    def embed(self, text: str) -> list[float]:
        words = re.findall(r"[a-z]+", text.lower())
        vector = [float(sum(w in family for w in words)) for family in KEYWORD_AXES.values()]
        return vector + [BIAS]

    def embed_query(self, text: str) -> list[float]:
        self.query_calls.append(text)
        return self.embed(text)

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        if self.fail_batches:
            raise ProviderUnavailableError("keyword embedder is down", provider=self.provider)
        return [self.embed(t) for t in texts]


class MockLLM(BaseLLM):
    """LLM returning a fixed reply and recording prompts."""

    provider = "mock"

    def __init__(self, reply: str = "Mock response", model: str = "mock-llm", **kwargs: Any):
        super().__init__(model, **kwargs)
        self.reply = reply
        self.prompts: list[str] = []

    def generate(self, prompt: str, **kwargs: Any) -> str:
        self.prompts.append(prompt)
        return self.reply

    def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        return self.generate(messages[-1]["content"])


class FailingReranker(BaseReranker):
    """Primary reranker that is always unavailable."""

    name = "failing"

    def __init__(self):
        self.calls = 0

    def _rerank(self, query: str, candidates: list[Candidate], top_n: int) -> list[RankedResult]:
        self.calls += 1
        raise ProviderUnavailableError("rerank service timed out", provider=self.name)


class ReversingReranker(BaseReranker):
    """Primary reranker that ranks candidates in reverse retrieval order."""

    name = "reversing"

    def _rerank(self, query: str, candidates: list[Candidate], top_n: int) -> list[RankedResult]:
        count = len(candidates)
        return [
            RankedResult(chunk=c.chunk, relevance_score=(i + 1) / count)
            for i, c in reversed(list(enumerate(candidates)))
        ][:top_n]


CVS = {
    "cv-a": ("alice.pdf", "Senior iOS developer with Swift and UIKit experience shipping mobile apps"),
    "cv-b": ("bob.pdf", "Android developer writing Kotlin with Jetpack Compose for mobile"),
    "cv-c": ("carol.pdf", "Backend developer building Node APIs on PostgreSQL"),
}


def make_chunk(
    content: str = "some text",
    parent: str = "doc-1",
    index: int = 0,
    embedding: Optional[list[float]] = None,
    source_name: str = "doc.pdf",
    **kwargs: Any,
) -> Chunk:
    return Chunk(
        parent_document_id=parent,
        content=content,
        chunk_index=index,
        source_name=source_name,
        embedding=embedding,
        **kwargs,
    )


@pytest.fixture
def keyword_embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def mock_llm() -> MockLLM:
    return MockLLM()


@pytest.fixture
def similarity_reranker(keyword_embedder: KeywordEmbedder) -> SimilarityReranker:
    return SimilarityReranker(keyword_embedder)


@pytest.fixture
def cv_store(keyword_embedder: KeywordEmbedder) -> InMemoryDocumentStore:
    """Store holding the three sample CVs, one chunk each."""
    store = InMemoryDocumentStore()
    for doc_id, (filename, text) in CVS.items():
        store.insert(
            make_chunk(text, parent=doc_id, source_name=filename, embedding=keyword_embedder.embed(text))
        )
    return store


@pytest.fixture
def temp_storage_dir(tmp_path: Path) -> Path:
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return storage_dir


@pytest.fixture
def temp_config(tmp_path: Path) -> Path:
    config_content = """
[embedding]
provider = "ollama"
model = "nomic-embed-text"

[rerank]
provider = "similarity"

[storage]
provider = "memory"
directory = "storage"

[ingestion]
chunk_size = 4
batch_size = 2

[retrieval]
top_k = 10
relevance_threshold = 0.05
default_limit = 3

[logging]
level = "DEBUG"
"""
    config_path = tmp_path / "config.toml"
    config_path.write_text(config_content)
    return config_path
