"""RAG (Retrieval-Augmented Generation) engine for agent knowledge.

Splits knowledge documents into heading-scoped chunks, embeds them, keeps a
per-agent JSON vector index up to date incrementally, and answers similarity
queries with context text sized to the agent's token budget.
"""

from .chunker import Chunk, chunk_file, chunk_files, chunk_id
from .embeddings import EmbeddingGateway, embed, embed_single
from .errors import DimensionMismatchError, EmbeddingError, ModelMismatchError, RagError
from .indexer import BuildResult, IndexProgress
from .pipeline import RagPipeline
from .vectorstore import (
    IndexStats,
    SearchResult,
    StoreRegistry,
    VectorEntry,
    VectorEntryMetadata,
    VectorIndex,
    VectorStore,
    dot_product,
)

__all__ = [
    "Chunk",
    "chunk_file",
    "chunk_files",
    "chunk_id",
    "EmbeddingGateway",
    "embed",
    "embed_single",
    "RagError",
    "ModelMismatchError",
    "DimensionMismatchError",
    "EmbeddingError",
    "BuildResult",
    "IndexProgress",
    "RagPipeline",
    "IndexStats",
    "SearchResult",
    "StoreRegistry",
    "VectorEntry",
    "VectorEntryMetadata",
    "VectorIndex",
    "VectorStore",
    "dot_product",
]
