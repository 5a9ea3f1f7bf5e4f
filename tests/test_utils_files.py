"""Tests for file utility functions."""

from __future__ import annotations

import hashlib
from pathlib import Path

from termfinder.models import Document
from termfinder.utils.files import (
    document_sha256,
    iter_text_paths,
    load_document,
)


class TestIterTextPaths:
    """Test iter_text_paths function."""

    def test_single_text_file(self, tmp_path: Path) -> None:
        """Should yield a single text file."""
        doc = tmp_path / "note.txt"
        doc.write_text("cat")

        assert list(iter_text_paths([doc])) == [doc]

    def test_directory_filters_suffixes(self, tmp_path: Path) -> None:
        """Should keep only supported text suffixes."""
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "b.md").write_text("b")
        (tmp_path / "c.HTML").write_text("c")
        (tmp_path / "d.pdf").write_text("d")
        (tmp_path / "e.py").write_text("e")

        names = {path.name for path in iter_text_paths([tmp_path])}

        assert names == {"a.txt", "b.md", "c.HTML"}

    def test_nested_directories(self, tmp_path: Path) -> None:
        """Should descend into nested directories in sorted order."""
        subdir = tmp_path / "sub"
        subdir.mkdir()
        (tmp_path / "root.txt").write_text("root")
        (subdir / "nested.txt").write_text("nested")

        paths = list(iter_text_paths([tmp_path]))

        assert [path.name for path in paths] == ["root.txt", "nested.txt"]

    def test_nonexistent_path(self, tmp_path: Path) -> None:
        assert list(iter_text_paths([tmp_path / "missing.txt"])) == []

    def test_empty_input(self) -> None:
        assert list(iter_text_paths([])) == []


class TestHashing:
    """Test SHA256 helpers."""

    def test_document_sha256_digest(self) -> None:
        document = Document(id="a", title="t", content="cat dog", tags=("x",))

        expected = hashlib.sha256(b"t\0cat dog\0x\0").hexdigest()
        assert document_sha256(document) == expected

    def test_document_sha256_changes_with_content(self) -> None:
        first = Document(id="a", title="t", content="cat")
        second = Document(id="a", title="t", content="dog")

        assert document_sha256(first) != document_sha256(second)

    def test_document_sha256_ignores_id(self) -> None:
        first = Document(id="a", title="t", content="cat", tags=("x",))
        second = Document(id="b", title="t", content="cat", tags=("x",))

        assert document_sha256(first) == document_sha256(second)

    def test_document_sha256_separates_fields(self) -> None:
        first = Document(id="a", title="ab", content="c")
        second = Document(id="a", title="a", content="bc")

        assert document_sha256(first) != document_sha256(second)


class TestLoadDocument:
    """Test load_document function."""

    def test_load_document(self, tmp_path: Path) -> None:
        path = tmp_path / "cats.md"
        path.write_text("cat dog", encoding="utf-8")

        document = load_document(path, tags=["pets"])

        assert document.id == str(path)
        assert document.title == "cats"
        assert document.content == "cat dog"
        assert document.tags == ("pets",)

    def test_load_document_replaces_undecodable_bytes(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.txt"
        path.write_bytes(b"cat \xff dog")

        document = load_document(path)

        assert "cat" in document.content
        assert "dog" in document.content
