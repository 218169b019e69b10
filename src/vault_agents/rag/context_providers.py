"""Pick the knowledge context for an agent based on its strategy."""

from ..config import Agent, AgentStrategy, Settings, resolve_max_context_tokens
from ..documents import FileSystemDocuments
from ..knowledge import load_knowledge_content
from .pipeline import RagPipeline


def get_agent_context(
    user_message: str,
    agent: Agent,
    settings: Settings,
    documents: FileSystemDocuments,
    pipeline: RagPipeline,
) -> str:
    """Return the knowledge text to inject into an agent's prompt.

    RAG agents get the chunks most similar to the message; all other agents
    get their source files verbatim within the token budget.

    Args:
        user_message: The user's latest message
        agent: Agent being prompted
        settings: Global settings
        documents: Document repository
        pipeline: RAG pipeline used for RAG agents

    Returns:
        Context string, "" when there is nothing to inject

    Raises:
        ModelMismatchError: For RAG agents whose index needs a rebuild
    """
    if agent.config.strategy == AgentStrategy.RAG:
        return pipeline.query(user_message, agent, settings, documents)

    return load_knowledge_content(
        agent.config.sources,
        documents,
        max_tokens=resolve_max_context_tokens(agent),
    )
