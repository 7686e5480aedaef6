"""Tests for corpus version tokens."""

from __future__ import annotations

import os

from docquery.index.fingerprint import EMPTY_VERSION, MISSING_VERSION, corpus_version


class TestCorpusVersion:
    def test_missing_directory(self, tmp_path) -> None:
        """Returns the missing marker for an absent directory."""
        assert corpus_version(tmp_path / "nope") == MISSING_VERSION

    def test_empty_directory(self, tmp_path) -> None:
        """Returns the empty marker for an empty directory."""
        assert corpus_version(tmp_path) == EMPTY_VERSION

    def test_unsupported_files_only(self, tmp_path) -> None:
        """Should ignore unsupported files."""
        (tmp_path / "image.png").write_bytes(b"\x89PNG")
        assert corpus_version(tmp_path) == EMPTY_VERSION

    def test_token_counts_supported_files(self, tmp_path) -> None:
        """Should prefix the token with the file count."""
        (tmp_path / "a.txt").write_text("alpha")
        (tmp_path / "b.csv").write_text("x\n1\n")

        assert corpus_version(tmp_path).startswith("2-")

    def test_adding_file_changes_token(self, tmp_path) -> None:
        """Should change when a file is added."""
        (tmp_path / "a.txt").write_text("alpha")
        before = corpus_version(tmp_path)

        (tmp_path / "b.txt").write_text("beta")

        assert corpus_version(tmp_path) != before

    def test_modifying_file_changes_token(self, tmp_path) -> None:
        """Should change when a file's mtime moves."""
        target = tmp_path / "a.txt"
        target.write_text("alpha")
        os.utime(target, ns=(1_000_000_000, 1_000_000_000))
        before = corpus_version(tmp_path)

        os.utime(target, ns=(2_000_000_000, 2_000_000_000))

        assert corpus_version(tmp_path) != before
        assert corpus_version(tmp_path) == "1-2000000000"

    def test_unsupported_file_does_not_change_token(self, tmp_path) -> None:
        """Should ignore new unsupported files."""
        (tmp_path / "a.txt").write_text("alpha")
        before = corpus_version(tmp_path)

        other = tmp_path / "scratch.docx"
        other.write_text("ignored")

        assert corpus_version(tmp_path) == before
