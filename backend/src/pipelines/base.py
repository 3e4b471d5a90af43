import logging
from pathlib import Path
from typing import Any, Callable, Optional

from adapters import BaseEmbedder, BaseLLM, create_embedder, create_llm
from config import get_config_value, get_storage_dir
from rerankers import BaseReranker, create_reranker
from stores import BaseDocumentStore, create_document_store

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_TEMPLATE = """You are a search assistant that answers strictly from the CV excerpts below.

Rules:
1. Use ONLY information from the context.
2. If the context does not contain the answer, reply exactly: "{no_results}"
3. Do not use outside knowledge.
4. Cite the source filename for every fact you use.

Context:
{context}

Question: {question}

Answer:"""

NO_RESULTS_MESSAGE = (
    "I couldn't find any relevant information in the uploaded documents. "
    "Please make sure you have uploaded documents related to your question."
)

DEFAULT_BATCH_SIZE = 100
DEFAULT_CHUNK_SIZE = 500
DEFAULT_TOP_K = 30
DEFAULT_LIMIT = 5
DEFAULT_RELEVANCE_THRESHOLD = 0.02


def _create_adapter_from_config(
    config: dict[str, Any],
    section: str,
    create_fn: Callable[..., Any],
    defaults: dict[str, str],
) -> Any:
    """Create an adapter (embedder or LLM) from a config section."""
    section_config = config.get(section, {})
    provider = section_config.get("provider", defaults["provider"])
    model = section_config.get("model", defaults["model"])

    extra_kwargs = {
        k: v for k, v in section_config.items() if k not in ("provider", "model")
    }

    return create_fn(provider, model=model, **extra_kwargs)


def create_embedder_from_config(config: dict[str, Any]) -> BaseEmbedder:
    """Create the process-wide embedder from the [embedding] section."""
    defaults = {"provider": "ollama", "model": "nomic-embed-text"}
    embedder = _create_adapter_from_config(config, "embedding", create_embedder, defaults)
    logger.info(
        f"Embedding provider: {embedder.provider} ({embedder.model}, {embedder.dimension} dims)"
    )
    return embedder


def create_llm_from_config(config: dict[str, Any]) -> Optional[BaseLLM]:
    """Create an LLM from the [llm] section, or None when the section is absent."""
    if not config.get("llm"):
        return None
    defaults = {"provider": "ollama", "model": "llama3.2:3b"}
    return _create_adapter_from_config(config, "llm", create_llm, defaults)


def reranker_uses_llm(config: dict[str, Any]) -> bool:
    return get_config_value(config, "rerank.provider", "similarity") == "llm"


def create_reranker_from_config(
    config: dict[str, Any],
    embedder: BaseEmbedder,
    llm: Optional[BaseLLM] = None,
) -> BaseReranker:
    """Create the reranker chain from the [rerank] section.

    The LLM is built from config only when the "llm" reranker needs one and
    none was given.
    """
    section = dict(config.get("rerank", {}))
    provider = section.pop("provider", "similarity")
    if provider == "llm" and llm is None:
        llm = create_llm_from_config(config)
    reranker = create_reranker(provider, embedder, llm=llm, **section)
    logger.info(f"Reranker: {reranker.name}")
    return reranker


def get_store_paths(
    config: dict[str, Any], config_path: Path, embedder_model: str
) -> tuple[Path, Path]:
    """Index and metadata paths for the FAISS store.

    File names include the embedding model so that switching models never
    mixes vector spaces in one index.
    """
    storage_dir = get_storage_dir(config, config_path)
    embedding_id = embedder_model.replace("/", "_").replace("-", "_").replace(":", "_")
    return (
        storage_dir / f"chunks_{embedding_id}.index",
        storage_dir / f"chunks_{embedding_id}.json",
    )


def create_document_store_from_config(
    config: dict[str, Any],
    config_path: Optional[Path],
    embedder: BaseEmbedder,
) -> BaseDocumentStore:
    """Create the document store from the [storage] section."""
    provider = get_config_value(config, "storage.provider", "memory")
    kwargs: dict[str, Any] = {}
    if provider == "faiss" and config_path is not None:
        index_path, metadata_path = get_store_paths(config, config_path, embedder.model)
        kwargs = {"index_path": index_path, "metadata_path": metadata_path}
    return create_document_store(provider, dimension=embedder.dimension, **kwargs)
