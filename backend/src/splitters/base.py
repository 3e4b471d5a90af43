from abc import ABC, abstractmethod
from typing import Optional

from models.chunk import ChunkDraft


class BaseTextSplitter(ABC):
    """Abstract base class for text splitters."""

    @abstractmethod
    def split_document(
        self,
        document_id: str,
        source_name: str,
        content: str,
        window_size: Optional[int] = None,
    ) -> list[ChunkDraft]:
        """Split a document into ordered chunk drafts."""
        pass

    @abstractmethod
    def split_text(self, text: str, window_size: Optional[int] = None) -> list[str]:
        """Split raw text into chunk strings without metadata."""
        pass
