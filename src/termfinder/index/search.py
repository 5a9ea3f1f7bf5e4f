"""Vector-space search interface."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List

from termfinder.index.storage import SQLiteIndexStore
from termfinder.index.weighting import cosine_similarity
from termfinder.models import Similarity
from termfinder.utils.text import Tokenizer

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SearchResult:
    document_id: str
    title: str
    score: float


class Searcher:
    """Ranks indexed documents by cosine similarity to a free-text query."""

    def __init__(
        self,
        store: SQLiteIndexStore,
        *,
        tokenizer_factory: Callable[[], Tokenizer] = Tokenizer,
    ) -> None:
        self.store = store
        self.tokenizer_factory = tokenizer_factory

    def query_terms(self, text: str) -> List[str]:
        """Distinct non-separator terms of ``text`` in first-occurrence order."""
        tokenizer = self.tokenizer_factory()
        tokenizer.set_text(text)
        found: set[str] = set()
        terms: List[str] = []
        while tokenizer.has_next():
            token = tokenizer.next()
            if token.text in found or token.is_space():
                continue
            found.add(token.text)
            terms.append(token.text)
        return terms

    def query(self, text: str) -> List[str]:
        """Return ids of matching documents, most relevant first."""
        return [similarity.document_id for similarity in self.rank(text)]

    def rank(self, text: str) -> List[Similarity]:
        terms = self.query_terms(text)
        candidates = self.store.distinct_document_ids(terms)
        LOGGER.debug("Query terms %s matched %d documents", terms, len(candidates))
        if not candidates:
            return []

        query_vector = self._query_vector(terms)
        results = [
            Similarity(
                document_id=document_id,
                cosine=cosine_similarity(query_vector, self._document_vector(document_id, terms)),
            )
            for document_id in candidates
        ]
        # Negative cosines (from idf below zero) tie with zero at the bottom.
        results.sort(key=lambda similarity: (-max(similarity.cosine, 0.0), similarity.document_id))
        return results

    def _query_vector(self, terms: List[str]) -> Dict[str, float]:
        # Terms unknown to the corpus weigh 0.
        return {term: self.store.get_idf(term) or 0.0 for term in terms}

    def _document_vector(self, document_id: str, terms: List[str]) -> Dict[str, float]:
        return {
            entry.term: entry.tf_idf
            for entry in self.store.entries_for_document(document_id, terms)
        }

    def search(self, text: str, *, top_k: int = 10) -> List[SearchResult]:
        """Rank documents and attach their titles, keeping the ``top_k`` best."""
        results: List[SearchResult] = []
        for similarity in self.rank(text)[:top_k]:
            document = self.store.get_document(similarity.document_id)
            results.append(
                SearchResult(
                    document_id=similarity.document_id,
                    title=document.title if document is not None else "",
                    score=similarity.cosine,
                )
            )
        return results
