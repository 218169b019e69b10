"""Pytest configuration and fixtures for RAG engine testing."""

import pytest

from vault_agents.config import Settings
from vault_agents.documents import FileSystemDocuments
from vault_agents.rag.pipeline import RagPipeline
from vault_agents.rag.vectorstore import StoreRegistry
from vault_agents.testing.fake_embeddings import KeywordEmbeddings, create_fake_gateway
from vault_agents.testing.fixtures import create_test_agent

VOCABULARY = ["install", "deploy", "billing", "invoice", "python", "docker"]


@pytest.fixture
def vault(tmp_path):
    """Empty vault root directory.

    Returns:
        Path to the vault root
    """
    root = tmp_path / "vault"
    root.mkdir()
    return root


@pytest.fixture
def documents(vault):
    return FileSystemDocuments(vault)


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def registry():
    return StoreRegistry()


@pytest.fixture
def keyword_embeddings():
    """Bag-of-words embeddings over a small fixed vocabulary."""
    return KeywordEmbeddings(VOCABULARY)


@pytest.fixture
def pipeline_factory(settings, registry):
    """Factory for pipelines backed by a given fake embeddings model.

    Example:
        >>> def test_build(pipeline_factory, keyword_embeddings):
        ...     pipeline = pipeline_factory(keyword_embeddings)
    """
    def _factory(embeddings):
        return RagPipeline(registry, create_fake_gateway(settings, embeddings))
    return _factory


@pytest.fixture
def pipeline(pipeline_factory, keyword_embeddings):
    return pipeline_factory(keyword_embeddings)


@pytest.fixture
def agent():
    """RAG agent indexing notes/**/*.md with a permissive threshold."""
    return create_test_agent(rag_similarity_threshold=0.1)
