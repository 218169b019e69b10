"""JSON-backed vector store, one index per agent.

The index lives at `<agent folder>/rag/index.json` and is loaded lazily into
memory on first access. Search is a brute-force scan with a dot product,
which equals cosine similarity for the L2-normalized vectors produced by
the embedding gateway.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from ..documents import FileSystemDocuments
from ..logging_config import get_logger
from .errors import DimensionMismatchError

logger = get_logger(__name__)

INDEX_VERSION = 1
RAG_SUBFOLDER = "rag"
INDEX_FILENAME = "index.json"


def dot_product(a: list[float], b: list[float]) -> float:
    """Dot product over the shorter of the two vectors."""
    return sum(x * y for x, y in zip(a, b))


def index_path_for(agent_folder_path: str) -> str:
    """Vault-relative path of an agent's persisted index."""
    folder = agent_folder_path.replace("\\", "/").strip("/")
    return f"{folder}/{RAG_SUBFOLDER}/{INDEX_FILENAME}" if folder else f"{RAG_SUBFOLDER}/{INDEX_FILENAME}"


@dataclass
class VectorEntryMetadata:
    file_path: str
    heading_path: str
    content: str
    char_count: int
    last_modified: float

    def to_dict(self) -> dict:
        return {
            "filePath": self.file_path,
            "headingPath": self.heading_path,
            "content": self.content,
            "charCount": self.char_count,
            "lastModified": self.last_modified,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VectorEntryMetadata":
        return cls(
            file_path=data["filePath"],
            heading_path=data["headingPath"],
            content=data["content"],
            char_count=int(data["charCount"]),
            last_modified=float(data["lastModified"]),
        )


@dataclass
class VectorEntry:
    """A chunk's embedding plus the metadata needed to display it."""

    id: str
    vector: list[float]
    metadata: VectorEntryMetadata

    def to_dict(self) -> dict:
        return {"id": self.id, "vector": list(self.vector), "metadata": self.metadata.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> "VectorEntry":
        return cls(
            id=str(data["id"]),
            vector=[float(v) for v in data["vector"]],
            metadata=VectorEntryMetadata.from_dict(data["metadata"]),
        )


@dataclass
class VectorIndex:
    """Persisted per-agent index."""

    version: int = INDEX_VERSION
    embedding_model: str = ""
    dimension: int = 0
    last_indexed: str = ""
    entries: list[VectorEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "embeddingModel": self.embedding_model,
            "dimension": self.dimension,
            "lastIndexed": self.last_indexed,
            "entries": [e.to_dict() for e in self.entries],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VectorIndex":
        return cls(
            version=int(data["version"]),
            embedding_model=str(data.get("embeddingModel", "")),
            dimension=int(data.get("dimension", 0)),
            last_indexed=str(data.get("lastIndexed", "")),
            entries=[VectorEntry.from_dict(e) for e in data["entries"]],
        )


@dataclass
class SearchResult:
    entry: VectorEntry
    similarity: float


@dataclass
class IndexStats:
    total_chunks: int = 0
    total_files: int = 0
    last_indexed: str = ""
    embedding_model: str = ""
    index_size_bytes: int = 0


class VectorStore:
    """Vector index for a single agent.

    Mutations (upsert/remove/set_embedding_model) only touch the in-memory
    copy; call save() to persist. Mutating before load() is a no-op.
    """

    def __init__(self, documents: FileSystemDocuments, agent_folder_path: str):
        self.documents = documents
        self.index_path = index_path_for(agent_folder_path)
        self._index: Optional[VectorIndex] = None

    @property
    def is_loaded(self) -> bool:
        return self._index is not None

    def load(self) -> VectorIndex:
        """Return the cached index, reading it from disk on first access.

        A missing, unreadable, malformed or wrong-version file yields an
        empty index so the next build starts from scratch.
        """
        if self._index is not None:
            return self._index

        if self.documents.exists(self.index_path):
            try:
                raw = json.loads(self.documents.read_text(self.index_path))
                index = VectorIndex.from_dict(raw)
                if index.version != INDEX_VERSION:
                    logger.warning(
                        "Index %s has version %s (expected %s), starting fresh",
                        self.index_path, index.version, INDEX_VERSION,
                    )
                else:
                    self._index = index
                    return self._index
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.warning("Could not read index %s, starting fresh: %s", self.index_path, e)

        self._index = VectorIndex()
        return self._index

    def save(self) -> None:
        """Stamp lastIndexed and write the index to disk."""
        if self._index is None:
            return

        self._index.last_indexed = datetime.now(timezone.utc).isoformat()
        data = json.dumps(self._index.to_dict())

        folder = self.index_path.rsplit("/", 1)[0]
        self.documents.ensure_folder(folder)
        if self.documents.exists(self.index_path):
            self.documents.overwrite_file(self.index_path, data)
        else:
            self.documents.write_file(self.index_path, data)
        logger.debug("Saved %s entries to %s", len(self._index.entries), self.index_path)

    def upsert(self, entries: list[VectorEntry]) -> None:
        """Insert entries, replacing any existing entry with the same id.

        The first non-empty vector fixes the index dimension. A batch with
        a vector of any other length is rejected as a whole.

        Raises:
            DimensionMismatchError: If a vector length differs from the index dimension
        """
        if self._index is None:
            return

        dimension = self._index.dimension
        for entry in entries:
            if not entry.vector:
                continue
            if not dimension:
                dimension = len(entry.vector)
            elif len(entry.vector) != dimension:
                raise DimensionMismatchError(dimension, len(entry.vector), entry.id)

        by_id = {e.id: e for e in self._index.entries}
        for entry in entries:
            by_id[entry.id] = entry
        self._index.entries = list(by_id.values())
        self._index.dimension = dimension

    def remove(self, ids) -> None:
        """Remove entries by id. Unknown ids are ignored."""
        if self._index is None:
            return
        remove_set = set(ids)
        if not remove_set:
            return
        self._index.entries = [e for e in self._index.entries if e.id not in remove_set]
        if not self._index.entries:
            self._index.dimension = 0

    def ids_for_paths(self, paths) -> list[str]:
        """Ids of all entries whose source file is in `paths`."""
        if self._index is None:
            return []
        path_set = set(paths)
        return [e.id for e in self._index.entries if e.metadata.file_path in path_set]

    def remove_paths(self, paths) -> int:
        """Remove every entry belonging to the given files.

        Returns:
            Number of entries removed
        """
        ids = self.ids_for_paths(paths)
        self.remove(ids)
        return len(ids)

    def search(self, query_vector: list[float], top_k: int, threshold: float) -> list[SearchResult]:
        """Find the top-k entries with similarity >= threshold.

        Args:
            query_vector: Unit-normalized query embedding
            top_k: Maximum number of results
            threshold: Minimum similarity to include

        Returns:
            Results sorted by similarity, highest first
        """
        if self._index is None or not self._index.entries or top_k <= 0:
            return []

        scored = []
        for entry in self._index.entries:
            similarity = dot_product(query_vector, entry.vector)
            if similarity >= threshold:
                scored.append(SearchResult(entry=entry, similarity=similarity))

        scored.sort(key=lambda r: r.similarity, reverse=True)
        return scored[:top_k]

    def indexed_mtimes(self) -> dict[str, float]:
        """Latest lastModified recorded per indexed file."""
        mtimes: dict[str, float] = {}
        if self._index is None:
            return mtimes
        for entry in self._index.entries:
            path = entry.metadata.file_path
            mtime = entry.metadata.last_modified
            if path not in mtimes or mtime > mtimes[path]:
                mtimes[path] = mtime
        return mtimes

    def get_stale_files(self, current_files: dict[str, float]) -> tuple[list[str], list[str]]:
        """Compare current file mtimes against the index.

        Args:
            current_files: Map of file path -> current mtime

        Returns:
            (stale, removed): files that are new or modified since indexed,
            and indexed files that no longer exist
        """
        if self._index is None:
            return [], []

        indexed = self.indexed_mtimes()
        stale = [
            path for path, mtime in current_files.items()
            if path not in indexed or mtime > indexed[path]
        ]
        removed = [path for path in indexed if path not in current_files]
        return stale, removed

    def clear(self) -> None:
        """Delete the persisted index and drop the cached copy."""
        if self.documents.exists(self.index_path):
            self.documents.delete_file(self.index_path)
        self._index = None

    def get_stats(self) -> IndexStats:
        if self._index is None:
            return IndexStats()

        files = {e.metadata.file_path for e in self._index.entries}
        size = len(json.dumps(self._index.to_dict()).encode("utf-8"))
        return IndexStats(
            total_chunks=len(self._index.entries),
            total_files=len(files),
            last_indexed=self._index.last_indexed,
            embedding_model=self._index.embedding_model,
            index_size_bytes=size,
        )

    def unload(self) -> None:
        """Release the cached index without touching the persisted file."""
        self._index = None

    def set_embedding_model(self, model: str) -> None:
        if self._index is not None:
            self._index.embedding_model = model

    def get_embedding_model(self) -> str:
        if self._index is None:
            return ""
        return self._index.embedding_model


class StoreRegistry:
    """Maps agent keys to their in-memory VectorStore.

    Owned by the caller and handed to the pipeline, so repeated operations
    on one agent reuse the loaded index. The agent key is the agent's
    folder path; stores are kept per (vault root, agent key), so the same
    folder in two vaults never shares an index.
    """

    def __init__(self):
        self._stores: dict[tuple[str, str], VectorStore] = {}

    def get(self, agent_key: str, documents: FileSystemDocuments) -> VectorStore:
        key = (str(documents.root), agent_key)
        store = self._stores.get(key)
        if store is None:
            store = VectorStore(documents, agent_key)
            self._stores[key] = store
        return store

    def evict(self, agent_key: str) -> None:
        """Unload and forget the agent's store in every vault."""
        for key in [k for k in self._stores if k[1] == agent_key]:
            self._stores.pop(key).unload()
            logger.debug("Evicted cached index for %s in %s", agent_key, key[0])

    def clear(self) -> None:
        for store in self._stores.values():
            store.unload()
        self._stores.clear()

    def __contains__(self, agent_key: str) -> bool:
        return any(k[1] == agent_key for k in self._stores)

    def __len__(self) -> int:
        return len(self._stores)
