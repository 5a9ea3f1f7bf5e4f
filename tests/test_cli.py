"""Tests for CLI commands."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from termfinder.cli import _ensure_db_parent, _setup_logging, app
from termfinder.index.search import SearchResult


runner = CliRunner()


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "alpha.txt").write_text("cat dog", encoding="utf-8")
    (docs / "bravo.md").write_text("cat cat fish", encoding="utf-8")
    (docs / "ignored.pdf").write_bytes(b"%PDF-1.4")
    return docs


@pytest.fixture
def indexed_db(tmp_path: Path, docs_dir: Path) -> Path:
    db_path = tmp_path / "index.db"
    result = runner.invoke(app, ["index", str(docs_dir), "--db", str(db_path)])
    assert result.exit_code == 0
    return db_path


class TestSetupLogging:
    """Tests for _setup_logging helper."""

    def test_setup_logging_verbose(self) -> None:
        """Verbose mode sets DEBUG level."""
        with patch("termfinder.cli.logging.basicConfig") as mock_config:
            _setup_logging(verbose=True)
            mock_config.assert_called_once()
            assert mock_config.call_args[1]["level"] == logging.DEBUG

    def test_setup_logging_normal(self) -> None:
        """Normal mode sets INFO level."""
        with patch("termfinder.cli.logging.basicConfig") as mock_config:
            _setup_logging(verbose=False)
            assert mock_config.call_args[1]["level"] == logging.INFO


class TestEnsureDbParent:
    """Tests for _ensure_db_parent helper."""

    def test_ensure_db_parent_creates_directory(self, tmp_path: Path) -> None:
        db_path = tmp_path / "subdir" / "test.db"
        _ensure_db_parent(db_path)
        assert db_path.parent.exists()


class TestIndexCommand:
    """Tests for the index command."""

    def test_index_no_documents_found(self, tmp_path: Path) -> None:
        empty_dir = tmp_path / "empty"
        empty_dir.mkdir()

        result = runner.invoke(app, ["index", str(empty_dir), "--db", str(tmp_path / "t.db")])

        assert result.exit_code == 0
        assert "No text documents found" in result.stdout

    def test_index_documents(self, tmp_path: Path, docs_dir: Path) -> None:
        db_path = tmp_path / "nested" / "index.db"

        result = runner.invoke(app, ["index", str(docs_dir), "--db", str(db_path), "-v"])

        assert result.exit_code == 0
        assert "Inserted: 2" in result.stdout
        assert db_path.exists()

    def test_index_twice_skips_unchanged(self, indexed_db: Path, docs_dir: Path) -> None:
        result = runner.invoke(app, ["index", str(docs_dir), "--db", str(indexed_db)])

        assert result.exit_code == 0
        assert "skipped: 2" in result.stdout

    @patch("termfinder.cli.Indexer")
    def test_index_passes_tags(
        self, mock_indexer_class: MagicMock, tmp_path: Path, docs_dir: Path
    ) -> None:
        mock_stats = MagicMock(inserted=2, updated=0, skipped=0, failed=0)
        mock_indexer_class.return_value.index.return_value = mock_stats

        result = runner.invoke(
            app,
            ["index", str(docs_dir), "--db", str(tmp_path / "t.db"), "--tag", "pets"],
        )

        assert result.exit_code == 0
        documents = mock_indexer_class.return_value.index.call_args[0][0]
        assert all(document.tags == ("pets",) for document in documents)


class TestSearchCommand:
    """Tests for the search command."""

    def test_search_database_not_found(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["search", "cat", "--db", str(tmp_path / "missing.db")])
        assert result.exit_code != 0

    def test_search_with_results(self, indexed_db: Path) -> None:
        result = runner.invoke(app, ["search", "dog", "--db", str(indexed_db)])

        assert result.exit_code == 0
        assert "alpha" in result.stdout
        assert "bravo" not in result.stdout

    def test_search_no_results(self, indexed_db: Path) -> None:
        result = runner.invoke(app, ["search", "zebra", "--db", str(indexed_db)])

        assert result.exit_code == 0
        assert "No matches found" in result.stdout

    @patch("termfinder.cli.Searcher")
    def test_search_top_k(self, mock_searcher_class: MagicMock, indexed_db: Path) -> None:
        mock_searcher_class.return_value.search.return_value = [
            SearchResult(document_id="doc1", title="First", score=0.5)
        ]

        result = runner.invoke(app, ["search", "cat", "--db", str(indexed_db), "--top-k", "3"])

        assert result.exit_code == 0
        mock_searcher_class.return_value.search.assert_called_once_with("cat", top_k=3)
        assert "0.5000" in result.stdout


class TestMaintenanceCommands:
    """Tests for remove, rebuild, refresh and stats."""

    def test_stats(self, indexed_db: Path) -> None:
        result = runner.invoke(app, ["stats", "--db", str(indexed_db)])

        assert result.exit_code == 0
        assert "Documents: 2" in result.stdout
        assert "terms: 5" in result.stdout

    def test_remove(self, indexed_db: Path, docs_dir: Path) -> None:
        document_id = str(docs_dir.resolve() / "alpha.txt")

        result = runner.invoke(app, ["remove", document_id, "--db", str(indexed_db)])

        assert result.exit_code == 0
        stats = runner.invoke(app, ["stats", "--db", str(indexed_db)])
        assert "Documents: 1" in stats.stdout

    def test_remove_missing(self, indexed_db: Path) -> None:
        result = runner.invoke(app, ["remove", "nope", "--db", str(indexed_db)])

        assert result.exit_code == 1
        assert "Document not found" in result.stdout

    def test_rebuild(self, indexed_db: Path) -> None:
        result = runner.invoke(app, ["rebuild", "--db", str(indexed_db)])

        assert result.exit_code == 0
        assert "Rebuilt index for 2 documents" in result.stdout

    def test_refresh(self, indexed_db: Path) -> None:
        result = runner.invoke(app, ["refresh", "--db", str(indexed_db)])

        assert result.exit_code == 0
        assert "Refreshed 6 index entries" in result.stdout

    def test_maintenance_database_not_found(self, tmp_path: Path) -> None:
        for command in ("rebuild", "refresh", "stats"):
            result = runner.invoke(app, [command, "--db", str(tmp_path / "missing.db")])
            assert result.exit_code != 0


class TestWebCommand:
    """Tests for the web command."""

    @patch("uvicorn.run")
    def test_web_starts_server(self, mock_run: MagicMock, indexed_db: Path) -> None:
        result = runner.invoke(app, ["web", "--db", str(indexed_db), "--port", "9000"])

        assert result.exit_code == 0
        assert mock_run.call_args[1]["port"] == 9000
        assert "Starting web API" in result.stdout
