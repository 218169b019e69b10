"""Knowledge resolution: expand source globs and load file content.

Used directly by inject-all agents and by the RAG pipeline to find the
files it should index.
"""

from typing import Optional

from .documents import DocumentFile, FileSystemDocuments
from .logging_config import get_logger

logger = get_logger(__name__)

# Rough characters-per-token estimate for budgeting
CHARS_PER_TOKEN = 4


def resolve_globs(sources: list[str], documents: FileSystemDocuments) -> list[DocumentFile]:
    """Expand glob patterns against the vault, sorted by path."""
    if not sources:
        return []
    return documents.match_globs(sources)


def wrap_block(path: str, content: str) -> str:
    """Wrap file content in a labelled block for the LLM context."""
    return f"--- START: {path} ---\n{content}\n--- END: {path} ---"


def accumulate_within_budget(blocks: list[str], max_chars: float) -> list[str]:
    """Greedily keep blocks in order until the next one would exceed the budget.

    The first block is always kept, even when it alone is over budget.
    """
    kept = []
    total = 0
    for block in blocks:
        if kept and total + len(block) > max_chars:
            break
        kept.append(block)
        total += len(block)
    return kept


def load_knowledge_content(
    sources: list[str],
    documents: FileSystemDocuments,
    max_tokens: Optional[int] = None,
) -> str:
    """Load glob-matched files as labelled blocks within a token budget.

    Most recently modified files are kept first when the budget is tight;
    the kept blocks are emitted in path order.

    Args:
        sources: Glob patterns
        documents: Document repository
        max_tokens: Approximate token budget (None or 0 for unlimited)

    Returns:
        Blocks joined by blank lines, or "" when nothing matches
    """
    files = resolve_globs(sources, documents)
    if not files:
        return ""

    entries = []
    for file in files:
        try:
            content = documents.read_text(file)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Skipping unreadable knowledge file %s: %s", file.path, e)
            continue
        entries.append((file, wrap_block(file.path, content)))

    entries.sort(key=lambda e: e[0].mtime, reverse=True)

    max_chars = max_tokens * CHARS_PER_TOKEN if max_tokens else float("inf")
    kept = accumulate_within_budget([block for _, block in entries], max_chars)
    included = sorted(entries[:len(kept)], key=lambda e: e[0].path)

    return "\n\n".join(block for _, block in included)
