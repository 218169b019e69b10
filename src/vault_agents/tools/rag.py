"""RAG search tool for agents.

This module provides both:
1. A library function `perform_rag_search()` that can be called directly for prefetching
2. A factory for a LangChain tool `rag_search` bound to one agent
"""

from langchain_core.tools import tool

from ..config import Agent, Settings
from ..documents import FileSystemDocuments
from ..logging_config import get_logger
from ..rag.errors import ModelMismatchError, RagError
from ..rag.pipeline import RagPipeline

logger = get_logger(__name__)


def perform_rag_search(
    pipeline: RagPipeline,
    query: str,
    agent: Agent,
    settings: Settings,
    documents: FileSystemDocuments,
) -> str:
    """Search an agent's knowledge index and return formatted chunks.

    Errors come back as readable messages so an agent can relay them
    instead of crashing its turn.

    Args:
        pipeline: RAG pipeline holding the agent's index
        query: Natural language description of what to find
        agent: Agent whose index to search
        settings: Global settings
        documents: Document repository

    Returns:
        Formatted context, or a message explaining why there is none
    """
    try:
        context = pipeline.query(query, agent, settings, documents)
    except ModelMismatchError as e:
        logger.warning("RAG search for %s needs a rebuild: %s", agent.id, e)
        return f"Knowledge index must be rebuilt before searching: {e}"
    except RagError as e:
        logger.warning("RAG search failed: %s", e)
        return f"RAG search error: {e}"

    if not context:
        return f"No relevant knowledge found for query: {query}"
    return context


def make_rag_search_tool(
    pipeline: RagPipeline,
    agent: Agent,
    settings: Settings,
    documents: FileSystemDocuments,
):
    """Create a `rag_search` tool bound to one agent's index."""

    @tool
    def rag_search(query: str) -> str:
        """Search the agent's knowledge documents for passages relevant to a query.

        Args:
            query: Natural language description of what to find (e.g., "installation steps", "pricing policy")

        Returns:
            Relevant passages with their source file and heading
        """
        return perform_rag_search(pipeline, query, agent, settings, documents)

    return rag_search
