"""Data models for CVRank."""

import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChunkDraft(BaseModel):
    """A chunk produced by a splitter, before it has an id or an embedding.

    Attributes:
        parent_document_id: Identifier of the document the text came from.
        content: The chunk text.
        chunk_index: Zero-based position within the parent's chunk sequence.
        source_name: Human-readable origin label (usually the filename).
    """

    model_config = ConfigDict(frozen=True)

    parent_document_id: str
    content: str
    chunk_index: int = Field(ge=0)
    source_name: str


class Chunk(BaseModel):
    """A unit of retrievable text, immutable once created.

    Attributes:
        id: Unique identifier assigned at creation.
        parent_document_id: Identifier of the source document.
        content: Non-empty chunk text.
        chunk_index: Zero-based position within the parent's chunk sequence.
        source_name: Human-readable origin label, used for citation.
        created_at: Creation timestamp (UTC).
        embedding: Vector from the active embedding provider, once embedded.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    parent_document_id: str
    content: str
    chunk_index: int = Field(ge=0)
    source_name: str
    created_at: datetime = Field(default_factory=_utcnow)
    embedding: Optional[list[float]] = None

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("chunk content must not be empty")
        return value

    @classmethod
    def from_draft(cls, draft: ChunkDraft, embedding: list[float]) -> "Chunk":
        """Create an embedded chunk from a splitter draft."""
        return cls(
            parent_document_id=draft.parent_document_id,
            content=draft.content,
            chunk_index=draft.chunk_index,
            source_name=draft.source_name,
            embedding=list(embedding),
        )

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None


class Candidate(BaseModel):
    """A chunk surfaced by first-stage retrieval, with its similarity score."""

    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    score: float


class SearchHit(BaseModel):
    """Public projection of a ranked chunk, as returned to callers."""

    id: str
    source_name: str
    content: str
    chunk_index: int
    relevance_score: float


class RankedResult(BaseModel):
    """A chunk with its final relevance score in [0, 1]."""

    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    relevance_score: float = Field(ge=0.0, le=1.0)

    def to_hit(self) -> SearchHit:
        return SearchHit(
            id=self.chunk.id,
            source_name=self.chunk.source_name,
            content=self.chunk.content,
            chunk_index=self.chunk.chunk_index,
            relevance_score=self.relevance_score,
        )
