from typing import Optional

from errors import InvalidInputError
from models.chunk import ChunkDraft
from .base import BaseTextSplitter

DEFAULT_WINDOW_SIZE = 500


def _validate_window(window_size: int) -> int:
    if isinstance(window_size, bool) or not isinstance(window_size, int):
        raise InvalidInputError(f"window_size must be an integer, got {window_size!r}")
    if window_size <= 0:
        raise InvalidInputError(f"window_size must be positive, got {window_size}")
    return window_size


class WordWindowSplitter(BaseTextSplitter):
    """Splits text into consecutive, non-overlapping windows of whitespace tokens.

    A document of L tokens yields ceil(L / window_size) chunks; only the last
    one may be shorter. Tokens are re-joined with single spaces, so runs of
    whitespace and line breaks inside a window collapse.
    """

    def __init__(self, window_size: int = DEFAULT_WINDOW_SIZE):
        self.window_size = _validate_window(window_size)

    def split_text(self, text: str, window_size: Optional[int] = None) -> list[str]:
        size = _validate_window(window_size) if window_size is not None else self.window_size
        if not text or not text.strip():
            raise InvalidInputError("cannot split empty content")

        tokens = text.split()
        windows = (
            " ".join(tokens[start : start + size]) for start in range(0, len(tokens), size)
        )
        return [window for window in windows if window.strip()]

    def split_document(
        self,
        document_id: str,
        source_name: str,
        content: str,
        window_size: Optional[int] = None,
    ) -> list[ChunkDraft]:
        """Split a document into drafts whose chunk_index runs 0..n-1."""
        return [
            ChunkDraft(
                parent_document_id=document_id,
                content=text,
                chunk_index=index,
                source_name=source_name,
            )
            for index, text in enumerate(self.split_text(content, window_size))
        ]
