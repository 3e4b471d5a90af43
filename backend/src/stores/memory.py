import logging
import threading
from typing import Any, Iterable, Optional

from models.chunk import Chunk
from .base import BaseDocumentStore

logger = logging.getLogger(__name__)


class InMemoryDocumentStore(BaseDocumentStore):
    """Process-local store using copy-on-write snapshots.

    Writers serialise on a lock, build a new mapping and publish it with a
    single reference swap. Readers never lock: they see either the old or the
    new mapping, never a partial one.
    """

    def __init__(self, dimension: Optional[int] = None, **kwargs: Any):
        super().__init__(dimension)
        self._lock = threading.Lock()
        self._chunks: dict[str, Chunk] = {}

    def insert(self, chunk: Chunk) -> None:
        self.insert_many([chunk])

    def insert_many(self, chunks: Iterable[Chunk]) -> None:
        incoming = list(chunks)
        with self._lock:
            dimension = self._validate(incoming)
            updated = dict(self._chunks)
            updated.update((c.id, c) for c in incoming)
            self._chunks = updated
            self.dimension = dimension

    def delete_by_parent(self, parent_id: str) -> int:
        with self._lock:
            kept = {
                cid: c for cid, c in self._chunks.items() if c.parent_document_id != parent_id
            }
            removed = len(self._chunks) - len(kept)
            if removed:
                self._chunks = kept
        if removed:
            logger.info(f"Deleted {removed} chunks with parent ID {parent_id}")
        return removed

    def replace_by_parent(self, parent_id: str, chunks: Iterable[Chunk]) -> int:
        incoming = list(chunks)
        with self._lock:
            dimension = self._validate(incoming)
            updated = {
                cid: c for cid, c in self._chunks.items() if c.parent_document_id != parent_id
            }
            removed = len(self._chunks) - len(updated)
            updated.update((c.id, c) for c in incoming)
            self._chunks = updated
            self.dimension = dimension
        return removed

    def get_all(self) -> list[Chunk]:
        return list(self._chunks.values())

    def get(self, chunk_id: str) -> Optional[Chunk]:
        return self._chunks.get(chunk_id)

    def clear(self) -> None:
        with self._lock:
            self._chunks = {}

    @property
    def count(self) -> int:
        return len(self._chunks)
