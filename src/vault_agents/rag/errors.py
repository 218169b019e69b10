"""Exceptions raised by the RAG engine."""


class RagError(Exception):
    """Base class for RAG engine errors."""


class ModelMismatchError(RagError):
    """The index was built with a different embedding model than configured.

    Not retried automatically: querying would mix embedding spaces. The
    caller has to rebuild the index.
    """

    def __init__(self, index_model: str, configured_model: str):
        self.index_model = index_model
        self.configured_model = configured_model
        super().__init__(
            f'RAG model mismatch: index uses "{index_model}" but agent configured '
            f'for "{configured_model}". Rebuild the index.'
        )


class DimensionMismatchError(RagError):
    """A vector's length does not match the index dimension."""

    def __init__(self, expected: int, actual: int, entry_id: str):
        self.expected = expected
        self.actual = actual
        self.entry_id = entry_id
        super().__init__(
            f"Vector for entry {entry_id} has dimension {actual}, index expects {expected}"
        )


class EmbeddingError(RagError):
    """The embedding provider failed or returned unusable vectors."""
