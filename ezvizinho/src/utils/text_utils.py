"""
Ezvizinho - Documentation Text Utilities
=========================================
Turns crawled SDK markdown files into ``DocumentationChunk`` objects.

  • ``chunk_markdown_by_headers`` — one chunk per ATX header section.
  • ``build_documentation_chunks`` — adds the breadcrumb context prefix,
    the pseudo-URL and the deterministic chunk id.
  • ``iter_markdown_files`` — recursive ``.md`` discovery.

These helpers are stateless and side-effect-free apart from reading the
files they are pointed at.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from pathlib import Path

from ezvizinho.src.database.models import DocumentationChunk, DocumentationMetadata, documentation_chunk_id

_HEADER_RE = re.compile(r"^(#{1,6})\s+(.+)$")
_DEFAULT_SECTION_TITLE = "Introduction"
_DEFAULT_SOURCE = "unknown"
_DEFAULT_DOC_TYPE = "guide"
_URL_PREFIX = "ezviz://sdk/"


@dataclass(frozen=True)
class MarkdownSection:
    title: str
    content: str


def chunk_markdown_by_headers(markdown: str) -> list[MarkdownSection]:
    """
    Split markdown at every ``#``–``######`` header.

    The header line stays in its section's content.  Text before the
    first header becomes an ``"Introduction"`` section; sections that
    are only whitespace are dropped.
    """
    sections: list[MarkdownSection] = []
    title = _DEFAULT_SECTION_TITLE
    lines: list[str] = []

    def flush() -> None:
        if "".join(lines).strip():
            sections.append(MarkdownSection(title=title, content="\n".join(lines).strip()))

    for line in markdown.splitlines():
        match = _HEADER_RE.match(line)
        if match:
            flush()
            title = match.group(2).strip()
            lines = [line]
        else:
            lines.append(line)

    flush()
    return sections


def iter_markdown_files(docs_root: Path) -> list[Path]:
    """All ``.md`` files under *docs_root*, sorted for a stable ingestion order."""
    return sorted(p for p in Path(docs_root).rglob("*.md") if p.is_file())


def build_documentation_chunks(file_path: Path, docs_root: Path) -> list[DocumentationChunk]:
    """
    Chunk one markdown file into store-ready documentation chunks.

    ``source`` is the top-level folder under *docs_root* (e.g. ``"iOS SDK"``).
    The breadcrumb comes from a leading ``"> "`` line when the crawler
    wrote one, otherwise from the relative path.
    """
    content = Path(file_path).read_text(encoding="utf-8")
    relative = Path(file_path).relative_to(docs_root)
    parts = relative.parts

    source = parts[0] if len(parts) > 1 else _DEFAULT_SOURCE

    first_line = content.splitlines()[0].strip() if content else ""
    if first_line.startswith("> "):
        breadcrumb = first_line[2:].strip()
    else:
        breadcrumb = " > ".join(parts).removesuffix(".md")

    url = _URL_PREFIX + relative.with_suffix("").as_posix()

    chunks: list[DocumentationChunk] = []
    for section in chunk_markdown_by_headers(content):
        section_path = f"{breadcrumb} > {section.title}"
        text = f"Context: {section_path}\n\n{section.content}"
        metadata = DocumentationMetadata(
            source=source,
            title=section.title,
            url=url,
            section_path=section_path,
            type=_DEFAULT_DOC_TYPE,
            hash=hashlib.md5(text.encode("utf-8")).hexdigest(),
        )
        chunks.append(DocumentationChunk(id=documentation_chunk_id(url, section.title), text=text, metadata=metadata))

    return chunks
