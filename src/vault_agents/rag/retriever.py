"""Query side of the RAG pipeline: embed, search and format context."""

from ..config import (
    Agent,
    Settings,
    resolve_embedding_model,
    resolve_max_context_tokens,
    resolve_provider,
    resolve_threshold,
    resolve_top_k,
)
from ..knowledge import CHARS_PER_TOKEN, accumulate_within_budget
from .embeddings import EmbeddingGateway
from .errors import ModelMismatchError
from .vectorstore import SearchResult, VectorStore


def format_chunk_result(content: str, file_path: str, heading_path: str, similarity: float) -> str:
    """Format one search hit as a delimited block for the LLM context."""
    return (
        f"--- RELEVANT CHUNK (similarity: {similarity:.2f}) ---\n"
        f"Source: {file_path} > {heading_path}\n"
        f"---\n"
        f"{content}\n"
        f"--- END CHUNK ---"
    )


def format_results_for_agent(results: list[SearchResult], max_tokens: int) -> str:
    """Join result blocks in order, stopping at the character budget.

    The first block is always included so a non-empty result never formats
    to an empty string.

    Args:
        results: Search results, highest similarity first
        max_tokens: Approximate token budget (~4 chars per token)

    Returns:
        Blocks separated by blank lines
    """
    blocks = [
        format_chunk_result(
            r.entry.metadata.content,
            r.entry.metadata.file_path,
            r.entry.metadata.heading_path,
            r.similarity,
        )
        for r in results
    ]
    return "\n\n".join(accumulate_within_budget(blocks, max_tokens * CHARS_PER_TOKEN))


def retrieve(
    store: VectorStore,
    user_message: str,
    agent: Agent,
    settings: Settings,
    gateway: EmbeddingGateway,
) -> list[SearchResult]:
    """Search an agent's index for chunks relevant to a message.

    Raises:
        ModelMismatchError: If the index was built with another embedding model
    """
    index = store.load()
    embedding_model = resolve_embedding_model(agent, settings)

    if index.embedding_model and index.embedding_model != embedding_model:
        raise ModelMismatchError(index.embedding_model, embedding_model)

    if not index.entries:
        return []

    query_vector = gateway.embed_single(user_message, embedding_model, resolve_provider(agent, settings))
    return store.search(query_vector, resolve_top_k(agent), resolve_threshold(agent))


def query(
    store: VectorStore,
    user_message: str,
    agent: Agent,
    settings: Settings,
    gateway: EmbeddingGateway,
) -> str:
    """Return formatted context for a message, or "" when nothing is relevant."""
    results = retrieve(store, user_message, agent, settings, gateway)
    if not results:
        return ""
    return format_results_for_agent(results, resolve_max_context_tokens(agent))
