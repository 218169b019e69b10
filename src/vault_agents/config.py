"""Settings and per-agent configuration.

Settings load from defaults, then an optional JSON file, then env vars.
Agent-level RAG options fall back to settings defaults and finally to
built-in defaults.
"""

import json
import os
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_EMBEDDING_MODEL = "nomic-embed-text"
DEFAULT_EMBEDDING_PROVIDER = "ollama"
DEFAULT_TOP_K = 5
DEFAULT_SIMILARITY_THRESHOLD = 0.7
DEFAULT_MAX_CONTEXT_TOKENS = 4000


class AgentStrategy(str, Enum):
    """How an agent pulls knowledge into its prompt."""
    INJECT_ALL = "inject_all"
    RAG = "rag"


class OllamaSettings(BaseModel):
    base_url: str = "http://localhost:11434"


class OpenRouterSettings(BaseModel):
    api_key: str = ""


class Settings(BaseModel):
    """Global settings shared by all agents."""

    ollama: OllamaSettings = Field(default_factory=OllamaSettings)
    open_router: OpenRouterSettings = Field(default_factory=OpenRouterSettings)
    default_embedding_provider: str = DEFAULT_EMBEDDING_PROVIDER
    default_embedding_model: str = DEFAULT_EMBEDDING_MODEL
    agents_folder: str = "agents"
    log_level: str = "INFO"
    log_file: Optional[str] = None


class AgentConfig(BaseModel):
    """Knowledge and RAG options for a single agent.

    Unset RAG fields (None / empty) defer to `Settings` and then to the
    module defaults; see the resolve_* helpers below.
    """

    name: str = ""
    sources: list[str] = Field(default_factory=list, description="Glob patterns of knowledge files")
    strategy: AgentStrategy = AgentStrategy.INJECT_ALL
    max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS
    rag_embedding_model: str = ""
    rag_embedding_provider: str = ""
    rag_top_k: Optional[int] = None
    rag_similarity_threshold: Optional[float] = None


class Agent(BaseModel):
    """An agent as seen by the RAG engine: identity, folder and config."""

    id: str
    folder_path: str = Field(description="Vault-relative agent folder, e.g. agents/writer")
    config: AgentConfig = Field(default_factory=AgentConfig)

    @property
    def key(self) -> str:
        """Cache key for this agent's index."""
        return self.folder_path


def load_settings(path: str | Path = "config.json") -> Settings:
    """Load settings from a JSON file with env var overrides.

    A missing or invalid file is not an error; defaults are used instead.

    Args:
        path: Path to the JSON settings file

    Returns:
        Populated Settings instance
    """
    data: dict = {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.debug("Could not load %s: %s (using defaults)", path, e)

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        logger.warning("Invalid settings in %s, using defaults: %s", path, e)
        settings = Settings()

    if os.getenv("VAULT_AGENTS_OLLAMA_BASE_URL"):
        settings.ollama.base_url = os.getenv("VAULT_AGENTS_OLLAMA_BASE_URL")
    if os.getenv("OPENROUTER_API_KEY"):
        settings.open_router.api_key = os.getenv("OPENROUTER_API_KEY")
    if os.getenv("VAULT_AGENTS_LOG_LEVEL"):
        settings.log_level = os.getenv("VAULT_AGENTS_LOG_LEVEL").upper()
    if os.getenv("VAULT_AGENTS_LOG_FILE") is not None:
        settings.log_file = os.getenv("VAULT_AGENTS_LOG_FILE")

    return settings


def resolve_embedding_model(agent: Agent, settings: Settings) -> str:
    return (
        agent.config.rag_embedding_model
        or settings.default_embedding_model
        or DEFAULT_EMBEDDING_MODEL
    )


def resolve_provider(agent: Agent, settings: Settings) -> str:
    return (
        agent.config.rag_embedding_provider
        or settings.default_embedding_provider
        or DEFAULT_EMBEDDING_PROVIDER
    )


def resolve_top_k(agent: Agent) -> int:
    if agent.config.rag_top_k is None:
        return DEFAULT_TOP_K
    return agent.config.rag_top_k


def resolve_threshold(agent: Agent) -> float:
    if agent.config.rag_similarity_threshold is None:
        return DEFAULT_SIMILARITY_THRESHOLD
    return agent.config.rag_similarity_threshold


def resolve_max_context_tokens(agent: Agent) -> int:
    # 0 means "unset", same as a missing value
    return agent.config.max_context_tokens or DEFAULT_MAX_CONTEXT_TOKENS
