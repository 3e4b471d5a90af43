from .base import BaseTextSplitter
from .word import DEFAULT_WINDOW_SIZE, WordWindowSplitter

TextSplitter = WordWindowSplitter

__all__ = ["BaseTextSplitter", "DEFAULT_WINDOW_SIZE", "TextSplitter", "WordWindowSplitter"]
