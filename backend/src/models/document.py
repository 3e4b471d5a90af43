"""Response and bookkeeping models for ingestion, listing and search."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from models.chunk import SearchHit


class SearchResponse(BaseModel):
    """Result of a search call: hits ordered by descending relevance."""

    results: list[SearchHit] = Field(default_factory=list)


class AnswerResponse(BaseModel):
    """A generated answer together with the hits it was grounded on."""

    answer: str
    sources: list[SearchHit] = Field(default_factory=list)


class ChunkOutcome(BaseModel):
    """Per-chunk ingestion status."""

    chunk_index: int
    stored: bool
    error: Optional[str] = None


class IngestionResult(BaseModel):
    """Aggregated ingestion status for one document.

    Attributes:
        document_id: Identifier of the ingested document.
        source_name: Filename the document was uploaded as.
        chunks_total: Number of chunks the splitter produced.
        chunks_stored: Number of chunks present in the store afterwards.
        outcomes: Per-chunk status, in chunk order.
        replaced_chunks: Chunks of a previous version that were removed.
    """

    document_id: str
    source_name: str
    chunks_total: int = 0
    chunks_stored: int = 0
    outcomes: list[ChunkOutcome] = Field(default_factory=list)
    replaced_chunks: int = 0

    @property
    def success(self) -> bool:
        return self.chunks_total > 0 and self.chunks_stored == self.chunks_total

    @property
    def errors(self) -> list[str]:
        return [o.error for o in self.outcomes if o.error]


class DocumentSummary(BaseModel):
    """A stored document as seen by listing endpoints."""

    id: str
    source_name: str
    chunk_count: int
    created_at: datetime
    content_length: int


class StoredDocument(BaseModel):
    """A document reassembled from its chunks in index order."""

    id: str
    source_name: str
    content: str
    created_at: datetime
    chunk_count: int
