"""Utility helpers for working with files."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from termfinder.models import Document

TEXT_SUFFIXES = frozenset({".txt", ".md", ".html", ".htm"})


def iter_text_paths(inputs: Iterable[Path]) -> Iterator[Path]:
    """Yield text document paths from input paths, descending into directories."""
    for item in inputs:
        if item.is_dir():
            yield from iter_text_paths(
                sorted(child for child in item.rglob("*") if child.is_file())
            )
        elif item.is_file() and item.suffix.lower() in TEXT_SUFFIXES:
            yield item


def document_sha256(document: Document) -> str:
    """Compute SHA256 hash over the indexed fields of a document."""
    sha = hashlib.sha256()
    for part in (document.title, document.content, *document.tags):
        sha.update(part.encode("utf-8"))
        sha.update(b"\0")
    return sha.hexdigest()


def load_document(
    path: Path, *, tags: Sequence[str] = (), encoding: str = "utf-8"
) -> Document:
    """Read a text file into a Document keyed by its path."""
    content = path.read_text(encoding=encoding, errors="replace")
    return Document(id=str(path), title=path.stem, content=content, tags=tuple(tags))
