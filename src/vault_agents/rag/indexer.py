"""Index builder: resolve sources, detect stale files, chunk, embed, upsert."""

import time
from dataclasses import dataclass, asdict
from typing import Callable, Optional

from ..config import Agent, Settings, resolve_embedding_model, resolve_provider
from ..documents import FileSystemDocuments
from ..knowledge import resolve_globs
from ..logging_config import get_logger
from .chunker import Chunk, chunk_file
from .embeddings import EmbeddingGateway
from .vectorstore import VectorEntry, VectorEntryMetadata, VectorStore

logger = get_logger(__name__)


@dataclass
class IndexProgress:
    """Progress report for long-running builds."""

    phase: str  # "resolving" | "chunking" | "embedding" | "saving"
    current: int
    total: int
    message: str


@dataclass
class BuildResult:
    chunks_indexed: int = 0
    files_processed: int = 0
    files_removed: int = 0
    time_taken: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


ProgressCallback = Callable[[IndexProgress], None]


def _report(
    on_progress: Optional[ProgressCallback],
    phase: str,
    current: int,
    total: int,
    message: str,
) -> None:
    if on_progress is not None:
        on_progress(IndexProgress(phase=phase, current=current, total=total, message=message))


def build_index(
    store: VectorStore,
    agent: Agent,
    settings: Settings,
    documents: FileSystemDocuments,
    gateway: EmbeddingGateway,
    on_progress: Optional[ProgressCallback] = None,
) -> BuildResult:
    """Bring an agent's index up to date with its source files.

    Only new or modified files are re-chunked and re-embedded; entries of
    deleted files are dropped. When the configured embedding model differs
    from the one that built the index, every entry is removed first so all
    current files count as stale.

    The index is saved only after embedding and upsert succeed. On failure
    the cached copy is unloaded and the previously saved index stays intact.

    Args:
        store: The agent's vector store
        agent: Agent whose sources to index
        settings: Global settings (embedding defaults, provider credentials)
        documents: Document repository
        gateway: Embedding gateway
        on_progress: Optional observer for progress reports

    Returns:
        BuildResult with counts of chunks indexed and files processed
    """
    start_time = time.time()
    embedding_model = resolve_embedding_model(agent, settings)
    provider = resolve_provider(agent, settings)

    _report(on_progress, "resolving", 0, 0, "Resolving source files...")
    # Never index the index itself
    files = [
        f for f in resolve_globs(agent.config.sources, documents)
        if f.path != store.index_path
    ]
    if not files:
        logger.info("No source files matched for agent %s", agent.id)
        return BuildResult(time_taken=time.time() - start_time)

    files_by_path = {f.path: f for f in files}
    current_files = {f.path: f.mtime for f in files}

    try:
        index = store.load()
        if index.entries and index.embedding_model != embedding_model:
            logger.info(
                "Embedding model changed (%s -> %s), rebuilding index for %s",
                index.embedding_model or "<none>", embedding_model, agent.id,
            )
            store.remove([e.id for e in index.entries])

        stale, removed = store.get_stale_files(current_files)

        removed_chunks = 0
        if removed:
            removed_chunks = store.remove_paths(removed)
            logger.info("Removed %s chunks for %s deleted file(s)", removed_chunks, len(removed))

        if not stale:
            store.set_embedding_model(embedding_model)
            store.save()
            logger.info("Index for %s is up to date (%s unchanged files)", agent.id, len(files))
            return BuildResult(files_removed=len(removed), time_taken=time.time() - start_time)

        logger.info("Found %s files to index (%s unchanged, skipping)", len(stale), len(files) - len(stale))
        _report(on_progress, "chunking", 0, len(stale), f"Chunking {len(stale)} files...")

        pending: list[tuple[Chunk, float]] = []
        files_processed = 0
        for i, path in enumerate(stale, start=1):
            file = files_by_path[path]
            try:
                content = documents.read_text(file)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Skipping unreadable file %s: %s", path, e)
                continue

            chunks = chunk_file(path, content)
            # Drop old chunks so deleted headings leave no orphans
            store.remove_paths([path])
            pending.extend((chunk, file.mtime) for chunk in chunks)
            files_processed += 1

            _report(on_progress, "chunking", i, len(stale), f"Chunked {path}")

        if not pending:
            store.set_embedding_model(embedding_model)
            store.save()
            return BuildResult(
                files_processed=files_processed,
                files_removed=len(removed),
                time_taken=time.time() - start_time,
            )

        _report(on_progress, "embedding", 0, len(pending), f"Embedding {len(pending)} chunks...")
        vectors = gateway.embed([chunk.content for chunk, _ in pending], embedding_model, provider)
        _report(on_progress, "embedding", len(pending), len(pending), "Embeddings complete")

        entries = [
            VectorEntry(
                id=chunk.id,
                vector=vector,
                metadata=VectorEntryMetadata(
                    file_path=chunk.file_path,
                    heading_path=chunk.heading_path,
                    content=chunk.content,
                    char_count=chunk.char_count,
                    last_modified=mtime,
                ),
            )
            for (chunk, mtime), vector in zip(pending, vectors)
        ]
        store.upsert(entries)
        store.set_embedding_model(embedding_model)

        _report(on_progress, "saving", 0, 1, "Saving index...")
        store.save()
    except Exception:
        store.unload()
        raise

    elapsed = time.time() - start_time
    logger.info(
        "Index built for %s: %s files, %s chunks in %.1fs",
        agent.id, files_processed, len(entries), elapsed,
    )
    return BuildResult(
        chunks_indexed=len(entries),
        files_processed=files_processed,
        files_removed=len(removed),
        time_taken=elapsed,
    )
