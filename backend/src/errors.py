"""Exception taxonomy for CVRank.

Caller mistakes (``InvalidInputError``) are surfaced as 4xx-equivalents.
Provider failures are recovered from only where an explicit fallback exists
(the reranker chain); everywhere else they propagate to the service boundary,
which never forwards their text to clients.
"""


class CVRankError(Exception):
    """Base class for all CVRank errors."""


class InvalidInputError(CVRankError, ValueError):
    """The caller supplied an invalid argument (empty query, bad limit, ...)."""


class ConfigurationError(CVRankError, ValueError):
    """The configuration file or a provider selection is invalid."""


class ProviderError(CVRankError):
    """An upstream capability provider (embedding, rerank, LLM) failed.

    Attributes:
        provider: Short provider name, e.g. "openai" or "cohere".
    """

    def __init__(self, message: str, provider: str = "unknown"):
        super().__init__(message)
        self.provider = provider


class ProviderUnavailableError(ProviderError):
    """The provider is unreachable, timed out, unauthenticated or rate limited."""


class ProviderResponseError(ProviderError):
    """The provider answered, but the payload is malformed or inconsistent."""


class IntegrityError(CVRankError):
    """A configuration-integrity bug. Never silently recovered."""


class DimensionMismatchError(IntegrityError):
    """Two vectors that must be comparable have different lengths."""

    def __init__(self, expected: int, actual: int, chunk_id: str | None = None):
        where = f" (chunk {chunk_id})" if chunk_id else ""
        super().__init__(
            f"Embedding dimension mismatch{where}: expected {expected}, got {actual}"
        )
        self.expected = expected
        self.actual = actual
        self.chunk_id = chunk_id


class MissingEmbeddingError(IntegrityError):
    """A chunk was handed to the store without an embedding."""


class StoreError(CVRankError):
    """The document store failed to read or persist data."""
