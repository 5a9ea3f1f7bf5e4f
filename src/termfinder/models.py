"""Core TermFinder data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(slots=True, frozen=True)
class Document:
    """A searchable document as kept by the document store."""

    id: str
    title: str
    content: str
    tags: Tuple[str, ...] = field(default_factory=tuple)

    def text(self) -> str:
        """Title, content and tags joined into one blob for tokenizing."""
        return " ".join([self.title, self.content, *self.tags])


@dataclass(slots=True)
class TermStatistic:
    """Corpus-wide document frequency of a term."""

    term: str
    total_documents: int
    idf: float


@dataclass(slots=True)
class IndexEntry:
    """Weight of one term inside one document."""

    term: str
    document_id: str
    tf: float
    tf_idf: float


@dataclass(slots=True)
class Similarity:
    """Cosine score of a document against a query."""

    document_id: str
    cosine: float
