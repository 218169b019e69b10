"""Fixture builders for vaults and agents."""

import os
from pathlib import Path
from typing import Any

from ..config import Agent, AgentConfig, AgentStrategy


def create_test_agent(
    agent_id: str = "writer",
    sources: list[str] | None = None,
    embedding_model: str = "model-a",
    provider: str = "fake",
    strategy: AgentStrategy = AgentStrategy.RAG,
    **config: Any,
) -> Agent:
    """Create an Agent for testing.

    Args:
        agent_id: Agent id; the folder is agents/<agent_id>
        sources: Glob patterns (defaults to all Markdown under notes/)
        embedding_model: rag_embedding_model
        provider: rag_embedding_provider
        strategy: Knowledge strategy
        **config: Extra AgentConfig fields

    Returns:
        Agent configured for testing
    """
    return Agent(
        id=agent_id,
        folder_path=f"agents/{agent_id}",
        config=AgentConfig(
            name=agent_id,
            sources=sources if sources is not None else ["notes/**/*.md"],
            strategy=strategy,
            rag_embedding_model=embedding_model,
            rag_embedding_provider=provider,
            **config,
        ),
    )


def write_vault_file(root: Path, rel_path: str, content: str, mtime: float | None = None) -> Path:
    """Write a file under a vault root, optionally pinning its mtime."""
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def create_test_vault(root: Path, files: dict[str, str], mtime: float = 1_700_000_000.0) -> Path:
    """Populate a vault with files sharing one fixed mtime."""
    for rel_path, content in files.items():
        write_vault_file(root, rel_path, content, mtime=mtime)
    return root
