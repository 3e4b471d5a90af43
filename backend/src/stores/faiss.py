import fcntl
import json
import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

import faiss
import numpy as np

from errors import DimensionMismatchError, StoreError
from models.chunk import Chunk
from .base import BaseDocumentStore

logger = logging.getLogger(__name__)


class FAISSDocumentStore(BaseDocumentStore):
    """FAISS-backed chunk store with JSON metadata and on-disk persistence.

    Vectors live only in the FAISS index, chunk fields only in the metadata
    file; row ``i`` of one matches entry ``i`` of the other. Every write
    re-reads the files under an exclusive file lock, builds the new state,
    persists it through temp files and ``os.replace``, and only then swaps
    the in-memory snapshot. A failed write leaves both disk and memory at the
    previous state.

    The index is the persistence format for vectors. ``nearest`` scores the
    in-memory snapshot, so the index is written and read back but never
    searched.
    """

    def __init__(
        self,
        dimension: Optional[int] = None,
        index_path: Optional[Path] = None,
        metadata_path: Optional[Path] = None,
        **kwargs: Any,
    ):
        super().__init__(dimension)
        self._index_path = Path(index_path) if index_path else None
        self._metadata_path = Path(metadata_path) if metadata_path else None
        self._lock = threading.RLock()
        self._chunks: list[Chunk] = self._load()

    @property
    def persistent(self) -> bool:
        return self._index_path is not None and self._metadata_path is not None

    def _load(self) -> list[Chunk]:
        if not self.persistent or not self._index_path.exists():
            return []
        try:
            index = faiss.read_index(str(self._index_path))
            metadata: list[dict[str, Any]] = []
            if self._metadata_path.exists():
                with open(self._metadata_path, "r") as f:
                    metadata = json.load(f)
        except (OSError, RuntimeError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load document store from {self._index_path}: {e}")
            raise StoreError(f"Failed to load document store: {e}") from e

        if len(metadata) != index.ntotal:
            raise StoreError(
                f"Store files out of sync: {index.ntotal} vectors, "
                f"{len(metadata)} metadata entries"
            )
        if self.dimension is None:
            self.dimension = index.d
        elif index.d != self.dimension:
            raise DimensionMismatchError(self.dimension, index.d)

        vectors = index.reconstruct_n(0, index.ntotal) if index.ntotal else []
        return [
            Chunk(**meta, embedding=np.asarray(vector, dtype=np.float64).tolist())
            for meta, vector in zip(metadata, vectors)
        ]

    @contextmanager
    def _write_lock(self) -> Iterator[None]:
        """Serialise writers across threads and, when persistent, processes."""
        with self._lock:
            if not self.persistent:
                yield
                return
            self._metadata_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._metadata_path.with_suffix(".lock"), "w") as lock_file:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                try:
                    # Another process may have written since we last looked.
                    self._chunks = self._load()
                    yield
                finally:
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _build_index(self, chunks: list[Chunk], dimension: int) -> faiss.Index:
        index = faiss.IndexFlatL2(dimension)
        if chunks:
            index.add(np.asarray([c.embedding for c in chunks], dtype=np.float32))
        return index

    def _persist(self, chunks: list[Chunk], dimension: int) -> None:
        if not self.persistent:
            return
        index = self._build_index(chunks, dimension)
        metadata = [c.model_dump(mode="json", exclude={"embedding"}) for c in chunks]

        index_tmp = self._index_path.with_suffix(self._index_path.suffix + ".tmp")
        metadata_tmp = self._metadata_path.with_suffix(self._metadata_path.suffix + ".tmp")
        try:
            self._index_path.parent.mkdir(parents=True, exist_ok=True)
            faiss.write_index(index, str(index_tmp))
            with open(metadata_tmp, "w") as f:
                json.dump(metadata, f, indent=2)
            os.replace(index_tmp, self._index_path)
            os.replace(metadata_tmp, self._metadata_path)
        except (OSError, RuntimeError) as e:
            logger.error(f"Failed to persist document store: {e}")
            for tmp in (index_tmp, metadata_tmp):
                tmp.unlink(missing_ok=True)
            raise StoreError(f"Failed to persist document store: {e}") from e

    def _commit(self, chunks: list[Chunk], dimension: Optional[int] = None) -> None:
        dimension = dimension if dimension is not None else self.dimension
        self._persist(chunks, dimension)
        self._chunks = chunks
        self.dimension = dimension

    def insert(self, chunk: Chunk) -> None:
        self.insert_many([chunk])

    def insert_many(self, chunks: Iterable[Chunk]) -> None:
        incoming = list(chunks)
        if not incoming:
            return
        with self._write_lock():
            dimension = self._validate(incoming)
            replaced = {c.id for c in incoming}
            updated = [c for c in self._chunks if c.id not in replaced]
            # Keep only the last occurrence of ids repeated within the batch.
            latest = {c.id: c for c in incoming}
            updated.extend(latest.values())
            self._commit(updated, dimension)

    def delete_by_parent(self, parent_id: str) -> int:
        with self._write_lock():
            kept = [c for c in self._chunks if c.parent_document_id != parent_id]
            removed = len(self._chunks) - len(kept)
            if removed:
                self._commit(kept)
        if removed:
            logger.info(f"Deleted {removed} chunks with parent ID {parent_id}")
        return removed

    def replace_by_parent(self, parent_id: str, chunks: Iterable[Chunk]) -> int:
        incoming = list(chunks)
        if not incoming:
            return self.delete_by_parent(parent_id)
        with self._write_lock():
            dimension = self._validate(incoming)
            kept = [c for c in self._chunks if c.parent_document_id != parent_id]
            removed = len(self._chunks) - len(kept)
            latest = {c.id: c for c in incoming}
            kept = [c for c in kept if c.id not in latest]
            self._commit(kept + list(latest.values()), dimension)
        return removed

    def get_all(self) -> list[Chunk]:
        return list(self._chunks)

    def get(self, chunk_id: str) -> Optional[Chunk]:
        for chunk in self._chunks:
            if chunk.id == chunk_id:
                return chunk
        return None

    def clear(self) -> None:
        with self._write_lock():
            if self.dimension is None:
                self._chunks = []
                return
            self._commit([])

    @property
    def count(self) -> int:
        return len(self._chunks)
