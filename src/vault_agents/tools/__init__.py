"""Tools exposed to agents."""

from .rag import make_rag_search_tool, perform_rag_search

__all__ = [
    "make_rag_search_tool",
    "perform_rag_search",
]
