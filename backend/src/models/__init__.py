from .chunk import Candidate, Chunk, ChunkDraft, RankedResult, SearchHit
from .document import (
    AnswerResponse,
    ChunkOutcome,
    DocumentSummary,
    IngestionResult,
    SearchResponse,
    StoredDocument,
)

__all__ = [
    "AnswerResponse",
    "Candidate",
    "Chunk",
    "ChunkDraft",
    "ChunkOutcome",
    "DocumentSummary",
    "IngestionResult",
    "RankedResult",
    "SearchHit",
    "SearchResponse",
    "StoredDocument",
]
