"""Tests for context packing."""

from __future__ import annotations

from conftest import make_document

from docquery.models import FileType
from docquery.search.context import CONTEXT_HEADER, pack


class TestPack:
    """Test pack function."""

    def test_includes_headers_and_metadata(self) -> None:
        """Should pack ranked documents under their headers."""
        docs = [
            make_document("budget.csv", "travel budget 1200", filetype=FileType.TABULAR),
            make_document("notes.txt", "unrelated text", doc_id=2),
        ]

        text, included = pack(docs, "budget", max_docs=5, max_chars=10_000)

        assert text.startswith(CONTEXT_HEADER)
        assert "[budget.csv]\ntravel budget 1200" in text
        assert "[notes.txt]" in text
        assert [ref.filename for ref in included] == ["budget.csv", "notes.txt"]
        assert included[0].filetype is FileType.TABULAR
        assert included[0].score > included[1].score

    def test_respects_max_docs(self) -> None:
        """Should stop at max_docs."""
        docs = [make_document(f"d{i}.txt", "budget", doc_id=i) for i in range(6)]

        _, included = pack(docs, "budget", max_docs=3, max_chars=10_000)

        assert len(included) == 3

    def test_truncation_marker_stops_packing(self) -> None:
        """Should end with a truncation marker once the budget is spent."""
        docs = [
            make_document("first.txt", "budget " + "a" * 100, doc_id=1),
            make_document("second.txt", "budget " + "b" * 500, doc_id=2),
            make_document("third.txt", "budget", doc_id=3),
        ]

        text, included = pack(docs, "budget", max_docs=3, max_chars=300)

        assert [ref.filename for ref in included] == ["third.txt", "first.txt"]
        assert "more documents available but truncated" in text
        assert "[second.txt]" not in text
        assert text.rstrip().endswith("]")

    def test_later_documents_never_follow_marker(self) -> None:
        """Should not pack smaller documents after the marker."""
        docs = [
            make_document("big.txt", "budget " + "b" * 1000, doc_id=1),
            make_document("small.txt", "x", doc_id=2),
        ]

        text, included = pack(docs, "budget", max_docs=2, max_chars=200, window_size=1000)

        assert included == []
        assert "[small.txt]" not in text
        assert "[2 more documents available but truncated]" in text

    def test_window_limits_each_block(self) -> None:
        """Should cut each document down to its window."""
        doc = make_document("long.txt", "budget " + "z" * 5000)

        text, _ = pack([doc], "budget", max_docs=1, max_chars=10_000, window_size=100)

        assert len(text) < 200
