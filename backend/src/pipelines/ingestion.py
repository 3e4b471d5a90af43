import logging
from pathlib import Path
from typing import Any, Optional

from adapters import BaseEmbedder
from config import get_positive_int, load_config
from errors import InvalidInputError, ProviderError
from models import (
    Chunk,
    ChunkDraft,
    ChunkOutcome,
    DocumentSummary,
    IngestionResult,
    StoredDocument,
)
from splitters import BaseTextSplitter, TextSplitter
from stores import BaseDocumentStore
from .base import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_CHUNK_SIZE,
    create_document_store_from_config,
    create_embedder_from_config,
)

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Pipeline for chunking, embedding and storing documents.

    A document is indexed all or nothing: every chunk is embedded before the
    store is touched, and the previous version of the document (same id) is
    replaced only once all new chunks are ready.
    """

    def __init__(
        self,
        embedder: BaseEmbedder,
        splitter: BaseTextSplitter,
        store: BaseDocumentStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.embedder = embedder
        self.splitter = splitter
        self.store = store
        self.batch_size = batch_size

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any],
        config_path: Optional[Path] = None,
        embedder: Optional[BaseEmbedder] = None,
        store: Optional[BaseDocumentStore] = None,
    ) -> "IngestionPipeline":
        """Create pipeline from configuration, reusing shared components if given."""
        embedder = embedder or create_embedder_from_config(config)
        store = store or create_document_store_from_config(config, config_path, embedder)
        chunk_size = get_positive_int(config, "ingestion.chunk_size", DEFAULT_CHUNK_SIZE)
        batch_size = get_positive_int(config, "ingestion.batch_size", DEFAULT_BATCH_SIZE)

        return cls(
            embedder=embedder,
            splitter=TextSplitter(window_size=chunk_size),
            store=store,
            batch_size=batch_size,
        )

    def _embed_drafts(
        self, drafts: list[ChunkDraft]
    ) -> tuple[list[Chunk], list[ChunkOutcome]]:
        """Embed drafts batch by batch, stopping at the first provider failure.

        Returns the embedded chunks and one outcome per draft. After a failure
        the chunk list is empty and every outcome carries a reason.
        """
        chunks: list[Chunk] = []

        for start in range(0, len(drafts), self.batch_size):
            batch = drafts[start : start + self.batch_size]
            try:
                vectors = self.embedder.embed_batch([d.content for d in batch])
            except ProviderError as e:
                logger.warning(
                    f"Embedding failed for chunks {batch[0].chunk_index}-"
                    f"{batch[-1].chunk_index} of {batch[0].source_name}: {e}"
                )
                end = start + len(batch)
                reasons = (
                    ["Not stored: a later chunk of this document failed"] * start
                    + [f"Embedding provider error: {e}"] * len(batch)
                    + ["Not embedded: ingestion stopped after an earlier failure"]
                    * (len(drafts) - end)
                )
                return [], [
                    ChunkOutcome(chunk_index=d.chunk_index, stored=False, error=reason)
                    for d, reason in zip(drafts, reasons)
                ]

            chunks.extend(Chunk.from_draft(d, v) for d, v in zip(batch, vectors))

        return chunks, [ChunkOutcome(chunk_index=d.chunk_index, stored=True) for d in drafts]

    def ingest_document(
        self,
        document_id: str,
        filename: str,
        content: str,
        chunk_size: Optional[int] = None,
    ) -> IngestionResult:
        """Chunk, embed and store one document.

        Provider failures are reported per chunk in the result and leave the
        store unchanged. Caller mistakes raise ``InvalidInputError``;
        integrity and store errors propagate.
        """
        if not document_id or not document_id.strip():
            raise InvalidInputError("document_id is required")
        if not filename or not filename.strip():
            raise InvalidInputError("filename is required")
        if not content or not content.strip():
            raise InvalidInputError(f"{filename}: no text content could be extracted")

        drafts = self.splitter.split_document(document_id, filename, content.strip(), chunk_size)
        logger.info(f"Split {filename} into {len(drafts)} chunks")

        result = IngestionResult(
            document_id=document_id,
            source_name=filename,
            chunks_total=len(drafts),
        )
        chunks, outcomes = self._embed_drafts(drafts)
        result.outcomes = outcomes
        if len(chunks) != len(drafts):
            logger.warning(f"Ingestion of {filename} failed; store left unchanged")
            return result

        result.replaced_chunks = self.store.replace_by_parent(document_id, chunks)
        if result.replaced_chunks:
            logger.info(f"Replaced {result.replaced_chunks} chunks of {document_id}")
        result.chunks_stored = len(chunks)

        logger.info(f"Stored {len(chunks)} chunks for {filename} ({document_id})")
        return result

    def delete_document(self, document_id: str) -> bool:
        """Delete every chunk of a document. True if anything was removed."""
        if not document_id or not document_id.strip():
            raise InvalidInputError("document_id is required")
        return self.store.delete_by_parent(document_id) > 0

    def list_documents(self) -> list[DocumentSummary]:
        """Stored documents, grouped from their chunks in first-seen order."""
        grouped: dict[str, list[Chunk]] = {}
        for chunk in self.store.get_all():
            grouped.setdefault(chunk.parent_document_id, []).append(chunk)

        return [
            DocumentSummary(
                id=parent_id,
                source_name=chunks[0].source_name,
                chunk_count=len(chunks),
                created_at=min(c.created_at for c in chunks),
                content_length=sum(len(c.content) for c in chunks) + len(chunks) - 1,
            )
            for parent_id, chunks in grouped.items()
        ]

    def get_document(self, document_id: str) -> Optional[StoredDocument]:
        """Reassemble a document from its chunks, or None if unknown."""
        chunks = self.store.get_by_parent(document_id)
        if not chunks:
            return None
        return StoredDocument(
            id=document_id,
            source_name=chunks[0].source_name,
            content=" ".join(c.content for c in chunks),
            created_at=min(c.created_at for c in chunks),
            chunk_count=len(chunks),
        )


def run_ingestion(
    document_id: str,
    filename: str,
    content: str,
    config_path: Path = Path("config.toml"),
) -> IngestionResult:
    """Ingest one document using a pipeline built from config."""
    config = load_config(config_path)
    pipeline = IngestionPipeline.from_config(config, config_path)
    return pipeline.ingest_document(document_id, filename, content)
