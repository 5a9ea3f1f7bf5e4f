"""Document indexing pipeline."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence

from termfinder.index.storage import SQLiteIndexStore
from termfinder.index.weighting import (
    euclidean_norm,
    inverse_document_frequency,
    term_frequency,
    tf_idf,
)
from termfinder.models import Document, IndexEntry, TermStatistic
from termfinder.utils.files import document_sha256
from termfinder.utils.text import Tokenizer

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class IndexStats:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    processed_documents: list[str] = field(default_factory=list)

    def increment(self, status: str, document_id: str) -> None:
        if status == "inserted":
            self.inserted += 1
        elif status == "updated":
            self.updated += 1
        elif status == "skipped":
            self.skipped += 1
        else:
            self.failed += 1
        self.processed_documents.append(document_id)


class Indexer:
    """Maintains term statistics and inverted index entries for documents."""

    def __init__(
        self,
        store: SQLiteIndexStore,
        *,
        tokenizer_factory: Callable[[], Tokenizer] = Tokenizer,
    ) -> None:
        self.store = store
        self.tokenizer_factory = tokenizer_factory

    def count_occurrences(self, text: str) -> Counter[str]:
        """Count terms in ``text``, ignoring separators and markup."""
        tokenizer = self.tokenizer_factory()
        tokenizer.set_text(text)
        frequency: Counter[str] = Counter()
        while tokenizer.has_next():
            token = tokenizer.next()
            if token.is_space() or token.is_markup():
                continue
            frequency[token.text] += 1
        return frequency

    def add_indexes(self, document: Document) -> None:
        """Index a document that is not indexed yet.

        Not idempotent: calling it twice for the same document counts the
        document twice in every term statistic. Use :meth:`reindex` when
        the document may already be indexed.
        """
        frequency = self.count_occurrences(document.text())
        if not frequency:
            LOGGER.debug("No terms found in document %s", document.id)
            return

        norm = euclidean_norm(frequency)
        with self.store.transaction():
            self._update_idf(frequency)
            self._new_indexes(frequency, document.id, norm)
        LOGGER.debug("Indexed %d distinct terms for %s", len(frequency), document.id)

    def _total_documents(self) -> int:
        # Documents indexed before being stored still count as one.
        return max(self.store.count_documents(), 1)

    def _update_idf(self, frequency: Counter[str]) -> None:
        total_documents = self._total_documents()
        for term in frequency:
            statistic = self.store.get_term_statistic(term)
            if statistic is None:
                self.store.insert_term_statistic(
                    TermStatistic(
                        term=term,
                        total_documents=1,
                        idf=inverse_document_frequency(1, total_documents),
                    )
                )
            else:
                term_documents = statistic.total_documents + 1
                self.store.update_term_statistic(
                    TermStatistic(
                        term=term,
                        total_documents=term_documents,
                        idf=inverse_document_frequency(term_documents, total_documents),
                    )
                )

    def _new_indexes(self, frequency: Counter[str], document_id: str, norm: float) -> None:
        for term, occurrences in frequency.items():
            idf = self.store.get_idf(term) or 0.0
            tf = term_frequency(occurrences, norm)
            self.store.insert_index_entry(
                IndexEntry(term=term, document_id=document_id, tf=tf, tf_idf=tf_idf(tf, idf))
            )

    def remove_indexes(self, document: Document) -> int:
        """Remove a document's index entries and release its term counts.

        Releases every term that has an entry for this document id, whatever
        content the entries were built from. Returns the number of removed
        entries.
        """
        with self.store.transaction():
            indexed = {entry.term for entry in self.store.entries_for_document(document.id)}
            total_documents = self._total_documents()
            for term in indexed:
                statistic = self.store.get_term_statistic(term)
                if statistic is None:
                    continue
                if statistic.total_documents <= 1:
                    self.store.delete_term_statistic(term)
                else:
                    term_documents = statistic.total_documents - 1
                    self.store.update_term_statistic(
                        TermStatistic(
                            term=term,
                            total_documents=term_documents,
                            idf=inverse_document_frequency(term_documents, total_documents),
                        )
                    )
            removed = self.store.remove_entries(document.id)
        LOGGER.debug("Removed %d index entries for %s", removed, document.id)
        return removed

    def reindex(self, document: Document) -> None:
        """Index a document, first releasing any existing entries for it."""
        with self.store.transaction():
            if self.store.has_entries(document.id):
                self.remove_indexes(document)
            self.add_indexes(document)

    def reindex_all(self, documents: Iterable[Document] | None = None) -> int:
        """Apply :meth:`add_indexes` to every document.

        Meant for populating an empty index. Defaults to all stored documents;
        documents passed explicitly should be stored as well, otherwise a
        term can count more documents than the corpus holds.
        """
        if documents is None:
            documents = list(self.store.iter_documents())
        count = 0
        for document in documents:
            self.add_indexes(document)
            count += 1
        LOGGER.info("Indexed %d documents", count)
        return count

    def rebuild(self) -> int:
        """Clear the index and build it again from the stored documents."""
        with self.store.transaction():
            self.store.clear_index()
            return self.reindex_all()

    def refresh_weights(self) -> int:
        """Recompute every idf and tf_idf against the current corpus size.

        Weights of previously indexed documents are otherwise left as they
        were when each document was indexed.
        """
        with self.store.transaction():
            total_documents = self._total_documents()
            for statistic in list(self.store.iter_term_statistics()):
                statistic.idf = inverse_document_frequency(
                    statistic.total_documents, total_documents
                )
                self.store.update_term_statistic(statistic)
            updated = self.store.recompute_tf_idf()
        LOGGER.info("Refreshed weights of %d index entries", updated)
        return updated

    def index(self, documents: Sequence[Document]) -> IndexStats:
        """Store and index documents, skipping those whose content is unchanged."""
        if not documents:
            LOGGER.warning("No documents to index")
            return IndexStats()

        stats = IndexStats()
        for document in documents:
            try:
                LOGGER.info("Processing: %s", document.id)
                status = self._index_single(document)
                stats.increment(status, document.id)
            except Exception as exc:
                LOGGER.error("Failed to index %s: %s", document.id, exc)
                stats.failed += 1
                stats.processed_documents.append(document.id)
        return stats

    def _index_single(self, document: Document) -> str:
        sha256 = document_sha256(document)
        with self.store.transaction():
            existing_sha = self.store.get_document_sha256(document.id)
            if existing_sha == sha256:
                return "skipped"

            previous = self.store.get_document(document.id)
            if previous is not None:
                self.remove_indexes(previous)
            self.store.upsert_document(document, sha256=sha256)
            self.add_indexes(document)
        return "updated" if previous is not None else "inserted"

    def delete(self, document_id: str) -> bool:
        """Remove a document from the index and the document store."""
        with self.store.transaction():
            document = self.store.get_document(document_id)
            if document is None:
                return False
            self.store.delete_document(document_id)
            self.remove_indexes(document)
        return True
