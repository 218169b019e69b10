"""Heading-aware chunking of Markdown documents."""

import hashlib
import json
import re
from dataclasses import dataclass, asdict
from typing import Optional

ROOT_HEADING = "(root)"
MAX_CHUNK_CHARS = 2000
CHUNK_ID_LENGTH = 32

# H1-H3 only; "####" fails because the fourth "#" is not whitespace
HEADING_PATTERN = re.compile(r'^(#{1,3})\s+(.+)$')
FENCE_PATTERN = re.compile(r'^\s*(```|~~~)')
PARAGRAPH_BREAK = re.compile(r'\n\s*\n')


@dataclass(frozen=True)
class Chunk:
    """A heading-scoped span of a document."""

    id: str
    file_path: str
    heading_path: str  # "Setup > Installation" or "(root)"
    content: str
    char_count: int

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return asdict(self)


def chunk_id(file_path: str, heading_path: str, part: Optional[int | str] = None) -> str:
    """Generate a stable alphanumeric ID for a chunk.

    Args:
        file_path: Vault-relative path of the source file
        heading_path: Breadcrumb of the chunk
        part: Sequence suffix when a section is split or repeated

    Returns:
        Hex digest truncated to 32 characters
    """
    # JSON keeps the fields apart even when a heading contains the separator
    fields = [file_path, heading_path] if part is None else [file_path, heading_path, str(part)]
    raw = json.dumps(fields, ensure_ascii=False)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:CHUNK_ID_LENGTH]


def chunk_file(
    file_path: str,
    content: str,
    max_chars: int = MAX_CHUNK_CHARS,
) -> list[Chunk]:
    """Split a Markdown file into chunks by H1-H3 headings.

    Each chunk carries the breadcrumb of headings open at that point.
    Text before the first heading gets the "(root)" breadcrumb. Sections
    longer than `max_chars` are split at paragraph boundaries.

    Args:
        file_path: Vault-relative path of the file
        content: File content
        max_chars: Size threshold for splitting a section

    Returns:
        List of Chunk objects, in document order
    """
    if not content.strip():
        return []

    sections: list[tuple[str, str]] = []
    heading_stack: list[tuple[int, str]] = []
    current_heading = ROOT_HEADING
    current_lines: list[str] = []
    in_fence = False

    def flush():
        text = '\n'.join(current_lines).strip()
        if text:
            sections.append((current_heading, text))

    for line in content.split('\n'):
        if FENCE_PATTERN.match(line):
            in_fence = not in_fence
            current_lines.append(line)
            continue

        match = None if in_fence else HEADING_PATTERN.match(line)
        if not match:
            current_lines.append(line)
            continue

        flush()
        current_lines = []

        level = len(match.group(1))
        title = match.group(2).strip()
        while heading_stack and heading_stack[-1][0] >= level:
            heading_stack.pop()
        heading_stack.append((level, title))
        current_heading = " > ".join(t for _, t in heading_stack)

    flush()

    # Only headings and no body: keep the whole text searchable
    if not sections:
        sections.append((ROOT_HEADING, content.strip()))

    chunks = []
    seen: dict[str, int] = {}
    for heading_path, text in sections:
        occurrence = seen.get(heading_path, 0)
        seen[heading_path] = occurrence + 1
        chunks.extend(_section_chunks(file_path, heading_path, text, occurrence, max_chars))
    return chunks


def chunk_files(files: list[dict], max_chars: int = MAX_CHUNK_CHARS) -> list[Chunk]:
    """Chunk several files. Each dict needs "path" and "content" keys."""
    chunks = []
    for file in files:
        chunks.extend(chunk_file(file["path"], file["content"], max_chars=max_chars))
    return chunks


def _section_chunks(
    file_path: str,
    heading_path: str,
    text: str,
    occurrence: int,
    max_chars: int,
) -> list[Chunk]:
    """Build chunks for one section, splitting oversized ones by paragraph."""
    if len(text) <= max_chars:
        return [_make_chunk(file_path, heading_path, text, occurrence)]

    parts = []
    buffer = ""
    for paragraph in PARAGRAPH_BREAK.split(text):
        if buffer and len(buffer) + len(paragraph) + 2 > max_chars:
            parts.append(buffer.strip())
            buffer = paragraph
        else:
            buffer = f"{buffer}\n\n{paragraph}" if buffer else paragraph
    if buffer.strip():
        parts.append(buffer.strip())

    if len(parts) == 1:
        # A single oversized paragraph is never broken up
        return [_make_chunk(file_path, heading_path, parts[0], occurrence)]

    return [
        _make_chunk(file_path, heading_path, part_text, occurrence, n)
        for n, part_text in enumerate(parts, start=1)
    ]


def _make_chunk(
    file_path: str,
    heading_path: str,
    content: str,
    occurrence: int,
    part: Optional[int] = None,
) -> Chunk:
    # Ids hash the breadcrumb without the part marker. The unsplit first
    # occurrence has no suffix so its id stays stable when a duplicate
    # heading is added later in the file; every other chunk carries a
    # tagged "o<occurrence>p<part>" suffix (p0 = unsplit).
    if occurrence or part is not None:
        suffix = f"o{occurrence}p{part or 0}"
    else:
        suffix = None
    return Chunk(
        id=chunk_id(file_path, heading_path, suffix),
        file_path=file_path,
        heading_path=heading_path if part is None else f"{heading_path} (part {part})",
        content=content,
        char_count=len(content),
    )
