"""CLI tool for building and managing an agent's RAG index.

Usage:
    python -m vault_agents.rag build --agent agents/writer --source "notes/**/*.md"
    python -m vault_agents.rag rebuild --agent agents/writer --source "notes/**/*.md"
    python -m vault_agents.rag stats --agent agents/writer
    python -m vault_agents.rag clear --agent agents/writer
    python -m vault_agents.rag query "how do I deploy?" --agent agents/writer --source "notes/**/*.md"
    python -m vault_agents.rag watch --agent agents/writer --source "notes/**/*.md"
"""

import argparse
import sys
import time
from datetime import datetime
from pathlib import Path

from ..config import Agent, AgentConfig, AgentStrategy, Settings, load_settings
from ..documents import FileSystemDocuments, matches_any
from ..logging_config import setup_logging
from .indexer import IndexProgress
from .pipeline import RagPipeline
from .vectorstore import index_path_for


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--vault", type=str, default=".", help="Vault root directory (default: current directory)")
    parser.add_argument("--agent", type=str, required=True, help="Agent folder relative to the vault, e.g. agents/writer")
    parser.add_argument("--source", action="append", default=[], help="Glob pattern of knowledge files (repeatable)")
    parser.add_argument("--model", type=str, default="", help="Embedding model (default: from settings)")
    parser.add_argument("--provider", type=str, default="", help="Embedding provider: ollama, openrouter, local")
    parser.add_argument("--top-k", type=int, default=None, help="Maximum number of chunks to retrieve")
    parser.add_argument("--threshold", type=float, default=None, help="Minimum similarity score")
    parser.add_argument("--max-tokens", type=int, default=0, help="Context budget in tokens (default: 4000)")
    parser.add_argument("--config", type=str, default="config.json", help="Settings file (default: config.json)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m vault_agents.rag",
        description="Build and manage the RAG index for an agent's knowledge files",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    _add_common_args(subparsers.add_parser("build", help="Update the index incrementally"))
    _add_common_args(subparsers.add_parser("rebuild", help="Clear the index and build it from scratch"))
    _add_common_args(subparsers.add_parser("stats", help="Show index statistics"))
    _add_common_args(subparsers.add_parser("clear", help="Delete the index"))

    query_parser = subparsers.add_parser("query", help="Print the context retrieved for a message")
    query_parser.add_argument("text", type=str, help="Message to retrieve context for")
    _add_common_args(query_parser)

    watch_parser = subparsers.add_parser("watch", help="Watch knowledge files and update the index")
    _add_common_args(watch_parser)
    watch_parser.add_argument("--debounce", type=int, default=10, help="Debounce time in seconds (default: 10)")

    return parser


def agent_from_args(args: argparse.Namespace) -> Agent:
    folder = args.agent.replace("\\", "/").strip("/")
    return Agent(
        id=folder.rsplit("/", 1)[-1],
        folder_path=folder,
        config=AgentConfig(
            name=folder.rsplit("/", 1)[-1],
            sources=args.source,
            strategy=AgentStrategy.RAG,
            max_context_tokens=args.max_tokens,
            rag_embedding_model=args.model,
            rag_embedding_provider=args.provider,
            rag_top_k=args.top_k,
            rag_similarity_threshold=args.threshold,
        ),
    )


def print_progress(progress: IndexProgress) -> None:
    if progress.total:
        print(f"  [{progress.phase}] {progress.current}/{progress.total} {progress.message}")
    else:
        print(f"  [{progress.phase}] {progress.message}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for RAG CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    settings = load_settings(args.config)
    setup_logging(settings.log_level, settings.log_file)

    documents = FileSystemDocuments(Path(args.vault))
    agent = agent_from_args(args)
    pipeline = RagPipeline()

    try:
        if args.command in ("build", "rebuild"):
            if args.command == "rebuild":
                pipeline.clear_index(agent, documents)
            print(f"Building index for: {agent.folder_path}")
            result = pipeline.build_index(agent, settings, documents, on_progress=print_progress)
            print("\n✓ Index up to date")
            print(f"  Files processed: {result.files_processed}")
            print(f"  Files removed: {result.files_removed}")
            print(f"  Chunks indexed: {result.chunks_indexed}")
            print(f"  Time taken: {result.time_taken:.2f}s")
            return 0

        elif args.command == "stats":
            store = pipeline.get_store_for_agent(agent, documents)
            store.load()
            stats = store.get_stats()
            print("\nIndex Statistics")
            print("=" * 50)
            print(f"  Agent: {agent.folder_path}")
            print(f"  Total files: {stats.total_files}")
            print(f"  Total chunks: {stats.total_chunks}")
            print(f"  Embedding model: {stats.embedding_model or 'None'}")
            print(f"  Index size: {stats.index_size_bytes} bytes")
            if stats.last_indexed:
                last = datetime.fromisoformat(stats.last_indexed)
                print(f"  Last indexed: {last.strftime('%Y-%m-%d %H:%M:%S')}")
            else:
                print("  Last indexed: Never")
            print("=" * 50)
            return 0

        elif args.command == "clear":
            pipeline.clear_index(agent, documents)
            print(f"✓ Index cleared for {agent.folder_path}")
            return 0

        elif args.command == "query":
            context = pipeline.query(args.text, agent, settings, documents)
            print(context if context else "No relevant context found.")
            return 0

        elif args.command == "watch":
            print(f"Watching knowledge files for: {agent.folder_path}")
            print(f"   Debounce: {args.debounce}s")
            print("   Press Ctrl+C to stop")
            return watch_files(pipeline, agent, settings, documents, debounce_seconds=args.debounce)

    except KeyboardInterrupt:
        print("\nStopped")
        return 0
    except Exception as e:
        print(f"\n❌ Error: {e}", file=sys.stderr)
        return 1

    return 1


def should_reindex(rel_path: str, agent: Agent) -> bool:
    """Whether a changed vault file should trigger an index update.

    The agent's own rag/ output and dot-prefixed paths never do, so saving
    the index cannot retrigger a build.
    """
    rag_folder = index_path_for(agent.folder_path).rsplit("/", 1)[0] + "/"
    if rel_path.startswith(rag_folder):
        return False
    if any(part.startswith(".") for part in rel_path.split("/")):
        return False
    return matches_any(rel_path, agent.config.sources)


def watch_files(
    pipeline: RagPipeline,
    agent: Agent,
    settings: Settings,
    documents: FileSystemDocuments,
    debounce_seconds: int = 10,
) -> int:
    """Watch the vault and update the index once changes settle.

    Returns:
        Exit code
    """
    try:
        from watchdog.events import FileSystemEventHandler
        from watchdog.observers import Observer
    except ImportError:
        print("\n❌ Error: watchdog package not installed", file=sys.stderr)
        print("   Install with: pip install vault-agents[watch]", file=sys.stderr)
        return 1

    pending_changes: set[str] = set()
    last_change = time.time()
    vault_root = documents.root

    class IndexUpdateHandler(FileSystemEventHandler):
        def on_any_event(self, event):
            nonlocal last_change
            if event.is_directory:
                return
            try:
                rel_path = Path(event.src_path).resolve().relative_to(vault_root).as_posix()
            except ValueError:
                return
            if not should_reindex(rel_path, agent):
                return
            pending_changes.add(rel_path)
            last_change = time.time()

    # Bring the index up to date before waiting for changes
    pipeline.build_index(agent, settings, documents)

    observer = Observer()
    observer.schedule(IndexUpdateHandler(), str(vault_root), recursive=True)
    observer.start()
    print("✓ Watching started")

    try:
        while True:
            time.sleep(1)
            if pending_changes and time.time() - last_change >= debounce_seconds:
                print(f"\nUpdating index ({len(pending_changes)} file(s) changed)...")
                pending_changes.clear()
                try:
                    result = pipeline.build_index(agent, settings, documents)
                    print(
                        f"✓ Index updated: {result.files_processed} files, "
                        f"{result.chunks_indexed} chunks ({result.time_taken:.2f}s)"
                    )
                except Exception as e:
                    print(f"❌ Update failed: {e}")
    except KeyboardInterrupt:
        print("\nStopped")
        return 0
    finally:
        observer.stop()
        observer.join()


if __name__ == "__main__":
    sys.exit(main())
