"""File-system document repository.

Serves vault-relative POSIX paths rooted at a directory. The RAG engine only
talks to this interface, so another backend can stand in for it as long as
it offers the same methods.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from .logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DocumentFile:
    """A file in the vault."""

    path: str  # vault-relative, forward slashes
    mtime: float


BRACE_PATTERN = re.compile(r'\{([^{}]*,[^{}]*)\}')


def expand_braces(pattern: str) -> list[str]:
    """Expand bash-style brace groups into multiple glob patterns.

    E.g., "notes/*.{md,txt}" -> ["notes/*.md", "notes/*.txt"]
    """
    brace_match = BRACE_PATTERN.search(pattern)
    if not brace_match:
        return [pattern]

    options = brace_match.group(1).split(',')
    prefix = pattern[:brace_match.start()]
    suffix = pattern[brace_match.end():]

    # Recursively expand in case of multiple brace groups
    expanded = []
    for opt in options:
        expanded.extend(expand_braces(prefix + opt.strip() + suffix))
    return expanded


def _segment_regex(pattern: str) -> str:
    pattern = pattern.strip().replace("\\", "/").lstrip("/")
    if pattern.startswith("./"):
        pattern = pattern[2:]

    regex = re.escape(pattern)
    regex = regex.replace(r"\*\*/", "GLOB_ANY_DIRS")
    regex = regex.replace(r"\*\*", "GLOB_ANY")
    regex = regex.replace(r"\*", r"[^/]*")
    regex = regex.replace(r"\?", r"[^/]")
    regex = regex.replace("GLOB_ANY_DIRS", r"(?:.*/)?")
    regex = regex.replace("GLOB_ANY", r".*")
    return regex


@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> re.Pattern:
    """Compile a glob pattern into an anchored regex.

    `*` and `?` never cross a `/`; `**` spans any number of segments,
    including none, so `notes/**/*.md` also matches `notes/a.md`.
    Brace groups such as `*.{md,txt}` match any of their options.
    """
    alternatives = [_segment_regex(p) for p in expand_braces(pattern)]
    return re.compile("^(?:" + "|".join(alternatives) + ")$")


def matches_any(path: str, patterns: list[str]) -> bool:
    return any(glob_to_regex(p).match(path) for p in patterns if p.strip())


class FileSystemDocuments:
    """Document repository backed by a local directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        """Map a vault-relative path to an absolute one inside the root."""
        rel = Path(path.replace("\\", "/").lstrip("/"))
        if rel.is_absolute() or ".." in rel.parts:
            raise ValueError(f"Path escapes the vault root: {path}")
        return self.root / rel

    def _to_file(self, abs_path: Path) -> DocumentFile:
        rel_path = abs_path.relative_to(self.root).as_posix()
        return DocumentFile(path=rel_path, mtime=abs_path.stat().st_mtime)

    def list_files(self) -> list[DocumentFile]:
        """List every file under the root, skipping dot-prefixed paths."""
        files = []
        for abs_path in self.root.rglob("*"):
            if not abs_path.is_file():
                continue
            rel_parts = abs_path.relative_to(self.root).parts
            if any(part.startswith(".") for part in rel_parts):
                continue
            try:
                files.append(self._to_file(abs_path))
            except OSError:
                # Vanished between listing and stat
                continue
        return sorted(files, key=lambda f: f.path)

    def get_file(self, path: str) -> DocumentFile | None:
        abs_path = self._resolve(path)
        if not abs_path.is_file():
            return None
        return self._to_file(abs_path)

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def match_globs(self, patterns: list[str]) -> list[DocumentFile]:
        """Return files matching any pattern, deduplicated and sorted by path."""
        if not patterns:
            return []
        return [f for f in self.list_files() if matches_any(f.path, patterns)]

    def read_text(self, file: DocumentFile | str) -> str:
        path = file.path if isinstance(file, DocumentFile) else file
        return self._resolve(path).read_text(encoding="utf-8")

    def ensure_folder(self, path: str) -> None:
        self._resolve(path).mkdir(parents=True, exist_ok=True)

    def write_file(self, path: str, content: str) -> None:
        """Create a new file. Fails if it already exists."""
        abs_path = self._resolve(path)
        abs_path.parent.mkdir(parents=True, exist_ok=True)
        with open(abs_path, "x", encoding="utf-8") as f:
            f.write(content)

    def overwrite_file(self, path: str, content: str) -> None:
        abs_path = self._resolve(path)
        abs_path.parent.mkdir(parents=True, exist_ok=True)
        abs_path.write_text(content, encoding="utf-8")

    def delete_file(self, path: str) -> None:
        abs_path = self._resolve(path)
        if abs_path.exists():
            abs_path.unlink()
            logger.debug("Deleted %s", path)
