"""Embedding gateway with pluggable providers.

Every provider is a LangChain `Embeddings`. The gateway batches requests,
checks the shape of what comes back and L2-normalizes each vector so the
vector store can score with a plain dot product.
"""

import json
import math
import time
import urllib.error
import urllib.request
from typing import Callable, Optional

from langchain_core.embeddings import Embeddings
from langchain_openai import OpenAIEmbeddings

from ..config import Settings
from ..logging_config import get_logger
from .errors import EmbeddingError

logger = get_logger(__name__)

BATCH_SIZE = 20
BATCH_DELAY_SECONDS = 0.1
REQUEST_TIMEOUT = 60
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


def normalize_l2(vector: list[float]) -> list[float]:
    """Scale a vector to unit length. Zero vectors are returned unchanged."""
    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0:
        return list(vector)
    return [v / norm for v in vector]


class OllamaEmbedder(Embeddings):
    """Embeddings from a local Ollama server.

    Uses the batch endpoint (/api/embed) and falls back to one request per
    text on the legacy endpoint (/api/embeddings) for older servers.
    """

    def __init__(self, model: str, base_url: str, timeout: int = REQUEST_TIMEOUT):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _post(self, endpoint: str, payload: dict) -> dict:
        req = urllib.request.Request(
            f"{self.base_url}{endpoint}",
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        with urllib.request.urlopen(req, timeout=self.timeout) as response:
            return json.loads(response.read().decode("utf-8"))

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        try:
            data = self._post("/api/embed", {"model": self.model, "input": texts})
            if data.get("embeddings"):
                return data["embeddings"]
        except (urllib.error.URLError, ValueError) as e:
            logger.debug("Ollama batch endpoint unavailable (%s), falling back", e)

        vectors = []
        for text in texts:
            try:
                data = self._post("/api/embeddings", {"model": self.model, "prompt": text})
            except urllib.error.HTTPError as e:
                raise EmbeddingError(f"Ollama embedding error {e.code}: {e.reason}") from e
            except (urllib.error.URLError, ValueError) as e:
                raise EmbeddingError(f"Ollama embedding request failed: {e}") from e
            if "embedding" not in data:
                raise EmbeddingError(f"Ollama returned no embedding for model {self.model}")
            vectors.append(data["embedding"])
        return vectors

    def embed_query(self, text: str) -> list[float]:
        return self.embed_documents([text])[0]


# Loaded once per model name
_local_models: dict = {}


class SentenceTransformerEmbedder(Embeddings):
    """In-process embeddings with sentence-transformers (CPU friendly)."""

    def __init__(self, model: str):
        self.model = model

    def _get_model(self):
        if self.model not in _local_models:
            from sentence_transformers import SentenceTransformer

            logger.info("Loading embedding model %s (first time only)...", self.model)
            _local_models[self.model] = SentenceTransformer(self.model)
        return _local_models[self.model]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        embeddings = self._get_model().encode(texts, show_progress_bar=len(texts) > 50)
        return embeddings.tolist()

    def embed_query(self, text: str) -> list[float]:
        return self.embed_documents([text])[0]


def _ollama_provider(model: str, settings: Settings) -> Embeddings:
    return OllamaEmbedder(model, settings.ollama.base_url)


def _openrouter_provider(model: str, settings: Settings) -> Embeddings:
    if not settings.open_router.api_key:
        raise EmbeddingError("OpenRouter API key is not configured")

    # Token-length checks assume OpenAI tokenizers; OpenRouter serves other models
    return OpenAIEmbeddings(
        model=model,
        api_key=settings.open_router.api_key,
        base_url=OPENROUTER_BASE_URL,
        check_embedding_ctx_length=False,
    )


def _local_provider(model: str, settings: Settings) -> Embeddings:
    return SentenceTransformerEmbedder(model)


ProviderFactory = Callable[[str, Settings], Embeddings]

DEFAULT_PROVIDERS: dict[str, ProviderFactory] = {
    "ollama": _ollama_provider,
    "openrouter": _openrouter_provider,
    "local": _local_provider,
}


class EmbeddingGateway:
    """Turns text into unit-length vectors through a configured provider."""

    def __init__(
        self,
        settings: Settings,
        providers: Optional[dict[str, ProviderFactory]] = None,
        batch_size: int = BATCH_SIZE,
        batch_delay: float = BATCH_DELAY_SECONDS,
    ):
        self.settings = settings
        self.providers = dict(DEFAULT_PROVIDERS)
        if providers:
            self.providers.update(providers)
        self.batch_size = batch_size
        self.batch_delay = batch_delay

    def get_embeddings(self, model: str, provider: str) -> Embeddings:
        factory = self.providers.get(provider.lower())
        if factory is None:
            raise EmbeddingError(f"Unsupported embedding provider: {provider}")
        return factory(model, self.settings)

    def embed(self, texts: list[str], model: str, provider: str) -> list[list[float]]:
        """Embed texts in batches and L2-normalize the results.

        Args:
            texts: Texts to embed
            model: Embedding model name
            provider: Provider name (ollama, openrouter, local, ...)

        Returns:
            One unit vector per input text, in input order

        Raises:
            EmbeddingError: If the provider fails or returns malformed output
        """
        if not texts:
            return []

        embeddings = self.get_embeddings(model, provider)
        vectors: list[list[float]] = []

        for start in range(0, len(texts), self.batch_size):
            batch = texts[start:start + self.batch_size]
            if start > 0 and self.batch_delay:
                time.sleep(self.batch_delay)
            try:
                batch_vectors = embeddings.embed_documents(batch)
            except EmbeddingError:
                raise
            except Exception as e:
                raise EmbeddingError(f"Embedding with {provider}/{model} failed: {e}") from e

            if len(batch_vectors) != len(batch):
                raise EmbeddingError(
                    f"Provider {provider} returned {len(batch_vectors)} vectors for {len(batch)} texts"
                )
            vectors.extend(batch_vectors)
            logger.debug("Embedded %s/%s texts", len(vectors), len(texts))

        dimensions = {len(v) for v in vectors}
        if len(dimensions) > 1:
            raise EmbeddingError(f"Provider {provider} returned vectors of mixed dimensions {sorted(dimensions)}")

        return [normalize_l2([float(x) for x in v]) for v in vectors]

    def embed_single(self, text: str, model: str, provider: str) -> list[float]:
        return self.embed([text], model, provider)[0]


def embed(texts: list[str], model: str, provider: str, settings: Settings) -> list[list[float]]:
    """Embed texts with the default providers."""
    return EmbeddingGateway(settings).embed(texts, model, provider)


def embed_single(text: str, model: str, provider: str, settings: Settings) -> list[float]:
    """Embed a single text with the default providers."""
    return EmbeddingGateway(settings).embed_single(text, model, provider)
