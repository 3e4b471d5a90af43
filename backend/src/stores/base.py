from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional, Sequence

from errors import DimensionMismatchError, MissingEmbeddingError
from models.chunk import Candidate, Chunk
from retrievers.candidate import CandidateRetriever


class BaseDocumentStore(ABC):
    """Abstract base class for chunk stores.

    The store exclusively owns chunk lifetime. Writers must never expose a
    half-written chunk to concurrent readers, and ``get_all`` returns a
    snapshot that later writes do not mutate.

    Args:
        dimension: Expected embedding length. ``None`` adopts the length of
            the first inserted chunk.
    """

    def __init__(self, dimension: Optional[int] = None, **kwargs: Any):
        self.dimension = dimension

    def _validate(self, chunks: Iterable[Chunk]) -> Optional[int]:
        """Check a batch before it is written.

        Returns the dimension the store holds once the batch is committed.
        Callers assign it only after the write succeeds.
        """
        dimension = self.dimension
        for chunk in chunks:
            if chunk.embedding is None:
                raise MissingEmbeddingError(
                    f"Chunk {chunk.id} must have an embedding to be stored"
                )
            if dimension is None:
                dimension = len(chunk.embedding)
            elif len(chunk.embedding) != dimension:
                raise DimensionMismatchError(dimension, len(chunk.embedding), chunk.id)
        return dimension

    @abstractmethod
    def insert(self, chunk: Chunk) -> None:
        """Store a chunk. An existing chunk with the same id is overwritten."""
        pass

    def insert_many(self, chunks: Iterable[Chunk]) -> None:
        """Store several chunks. Implementations may persist them in one write."""
        for chunk in chunks:
            self.insert(chunk)

    @abstractmethod
    def delete_by_parent(self, parent_id: str) -> int:
        """Remove every chunk of a document, all or nothing.

        Returns:
            Number of chunks removed.
        """
        pass

    @abstractmethod
    def get_all(self) -> list[Chunk]:
        """Snapshot of every stored chunk, in insertion order."""
        pass

    @abstractmethod
    def get(self, chunk_id: str) -> Optional[Chunk]:
        pass

    @abstractmethod
    def clear(self) -> None:
        """Delete all chunks from the store."""
        pass

    @property
    @abstractmethod
    def count(self) -> int:
        pass

    def replace_by_parent(self, parent_id: str, chunks: Iterable[Chunk]) -> int:
        """Swap every chunk of a document for a new set.

        Implementations publish the change in one step, so readers never see
        both versions or neither. This fallback is not atomic.

        Returns:
            Number of chunks of the previous version that were removed.
        """
        removed = self.delete_by_parent(parent_id)
        self.insert_many(chunks)
        return removed

    def get_by_parent(self, parent_id: str) -> list[Chunk]:
        """Chunks of one document, ordered by chunk_index."""
        chunks = [c for c in self.get_all() if c.parent_document_id == parent_id]
        return sorted(chunks, key=lambda c: c.chunk_index)

    def nearest(self, query_vector: Sequence[float], top_k: int) -> list[Candidate]:
        """Nearest-neighbour scoring over the current snapshot."""
        return CandidateRetriever(top_k).retrieve(query_vector, self.get_all())
