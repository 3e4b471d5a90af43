from typing import Any, Optional

from errors import ConfigurationError
from .base import BaseDocumentStore
from .faiss import FAISSDocumentStore
from .memory import InMemoryDocumentStore

DocumentStore = InMemoryDocumentStore


def create_document_store(
    provider: str,
    dimension: Optional[int] = None,
    **kwargs: Any,
) -> BaseDocumentStore:
    """Create a document store instance based on provider.

    Args:
        provider: "memory" or "faiss"
        dimension: Embedding dimension of the active embedder
        **kwargs: Additional provider-specific parameters (index_path,
            metadata_path for "faiss")

    Raises:
        ConfigurationError: If the provider is unknown
    """
    if provider == "memory":
        return InMemoryDocumentStore(dimension=dimension)
    elif provider == "faiss":
        return FAISSDocumentStore(dimension=dimension, **kwargs)
    raise ConfigurationError(f"Unknown document store provider: {provider}")


__all__ = [
    "BaseDocumentStore",
    "DocumentStore",
    "FAISSDocumentStore",
    "InMemoryDocumentStore",
    "create_document_store",
]
