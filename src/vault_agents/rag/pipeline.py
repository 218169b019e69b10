"""Caller-facing RAG pipeline bound to a store registry."""

from typing import Optional

from ..config import Agent, Settings
from ..documents import FileSystemDocuments
from ..logging_config import get_logger
from . import indexer, retriever
from .embeddings import EmbeddingGateway
from .indexer import BuildResult, ProgressCallback
from .vectorstore import SearchResult, StoreRegistry, VectorStore

logger = get_logger(__name__)


class RagPipeline:
    """Builds and queries per-agent indexes.

    Stores come from the injected registry, so repeated calls for the same
    agent share one loaded index. Builds for one agent must not overlap;
    callers serialize them.

    Example:
        >>> pipeline = RagPipeline(StoreRegistry())
        >>> pipeline.build_index(agent, settings, documents)
        >>> context = pipeline.query("how do I install?", agent, settings, documents)
    """

    def __init__(
        self,
        registry: Optional[StoreRegistry] = None,
        gateway: Optional[EmbeddingGateway] = None,
    ):
        self.registry = registry if registry is not None else StoreRegistry()
        self.gateway = gateway

    def _gateway_for(self, settings: Settings) -> EmbeddingGateway:
        if self.gateway is not None:
            return self.gateway
        return EmbeddingGateway(settings)

    def get_store_for_agent(self, agent: Agent, documents: FileSystemDocuments) -> VectorStore:
        return self.registry.get(agent.key, documents)

    def clear_store_cache(self, agent_key: str) -> None:
        """Evict an agent's cached index (e.g. after clearing it)."""
        self.registry.evict(agent_key)

    def clear_index(self, agent: Agent, documents: FileSystemDocuments) -> None:
        """Delete an agent's persisted index and evict it from the cache."""
        self.get_store_for_agent(agent, documents).clear()
        self.clear_store_cache(agent.key)
        logger.info("Cleared index for %s", agent.id)

    def build_index(
        self,
        agent: Agent,
        settings: Settings,
        documents: FileSystemDocuments,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BuildResult:
        store = self.get_store_for_agent(agent, documents)
        return indexer.build_index(
            store, agent, settings, documents, self._gateway_for(settings), on_progress,
        )

    def retrieve(
        self,
        user_message: str,
        agent: Agent,
        settings: Settings,
        documents: FileSystemDocuments,
    ) -> list[SearchResult]:
        store = self.get_store_for_agent(agent, documents)
        return retriever.retrieve(store, user_message, agent, settings, self._gateway_for(settings))

    def query(
        self,
        user_message: str,
        agent: Agent,
        settings: Settings,
        documents: FileSystemDocuments,
    ) -> str:
        """Return context text for a message within the agent's token budget.

        Raises:
            ModelMismatchError: If the index needs a rebuild for the configured model
        """
        store = self.get_store_for_agent(agent, documents)
        return retriever.query(store, user_message, agent, settings, self._gateway_for(settings))
