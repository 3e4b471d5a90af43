from .base import (
    DEFAULT_CONTEXT_TEMPLATE,
    DEFAULT_BATCH_SIZE,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_LIMIT,
    DEFAULT_RELEVANCE_THRESHOLD,
    DEFAULT_TOP_K,
    NO_RESULTS_MESSAGE,
    create_document_store_from_config,
    create_embedder_from_config,
    create_llm_from_config,
    create_reranker_from_config,
    get_store_paths,
    reranker_uses_llm,
)
from .ingestion import IngestionPipeline, run_ingestion
from .retrieval import RetrievalPipeline, SearchState, get_retrieval_pipeline

__all__ = [
    "IngestionPipeline",
    "run_ingestion",
    "RetrievalPipeline",
    "SearchState",
    "get_retrieval_pipeline",
    "create_document_store_from_config",
    "create_embedder_from_config",
    "create_llm_from_config",
    "create_reranker_from_config",
    "get_store_paths",
    "reranker_uses_llm",
    "DEFAULT_CONTEXT_TEMPLATE",
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_LIMIT",
    "DEFAULT_RELEVANCE_THRESHOLD",
    "DEFAULT_TOP_K",
    "NO_RESULTS_MESSAGE",
]
