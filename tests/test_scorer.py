"""Tests for keyword relevance scoring."""

from __future__ import annotations

import math

from conftest import make_document

from docquery.search.scorer import BODY_WEIGHT, FILENAME_WEIGHT, query_tokens, score, score_document


class TestQueryTokens:
    def test_deduplicates_in_order(self) -> None:
        """Should drop repeated tokens and keep order."""
        assert query_tokens("Invoice budget invoice") == ["invoice", "budget"]

    def test_short_tokens_dropped(self) -> None:
        """Should drop short tokens."""
        assert query_tokens("is it ok") == []


class TestScoreDocument:
    """Test score_document function."""

    def test_body_hits_weighted_and_normalized(self) -> None:
        """Should weight body hits and normalize by length."""
        content = "invoice " + "x" * 92  # 100 chars
        scored = score_document(make_document("a.txt", content), ["invoice"])

        assert scored.score == BODY_WEIGHT * 1 / math.sqrt(100)
        assert scored.offsets == [0]

    def test_filename_hits_weighted(self) -> None:
        """Should weight filename hits."""
        content = "y" * 100
        scored = score_document(make_document("invoice.txt", content), ["invoice"])

        assert scored.score == FILENAME_WEIGHT / math.sqrt(100)
        assert scored.offsets == []

    def test_case_insensitive_offsets(self) -> None:
        """Should record offsets of case-insensitive matches."""
        content = "Invoice one. INVOICE two. budget."
        scored = score_document(make_document("a.txt", content), ["invoice", "budget"])

        assert scored.offsets == [0, 13, 26]

    def test_no_match_scores_zero(self) -> None:
        """Should score zero without matches."""
        scored = score_document(make_document("a.txt", "nothing here"), ["invoice"])
        assert scored.score == 0.0

    def test_empty_content_does_not_divide_by_zero(self) -> None:
        """Should score empty content without dividing by zero."""
        scored = score_document(make_document("invoice.txt", ""), ["invoice"])
        assert scored.score == FILENAME_WEIGHT


class TestScore:
    """Test ranking of documents."""

    def test_filename_hit_outranks_two_body_hits(self) -> None:
        """One filename hit (+5) beats two body hits (+4) at equal length."""
        body_doc = make_document("report.txt", ("invoice " * 2).ljust(300, "x"), doc_id=1)
        name_doc = make_document("invoice.txt", "z" * 300, doc_id=2)

        ranked = score("invoice", [body_doc, name_doc])

        assert [item.filename for item in ranked] == ["invoice.txt", "report.txt"]
        assert ranked[0].score > ranked[1].score

    def test_shorter_document_wins_with_equal_hits(self) -> None:
        """Should rank the shorter document first on equal hits."""
        long_doc = make_document("long.txt", "budget " + "x" * 2000, doc_id=1)
        short_doc = make_document("short.txt", "budget " + "x" * 20, doc_id=2)

        ranked = score("budget", [long_doc, short_doc])

        assert ranked[0].filename == "short.txt"

    def test_no_usable_tokens_keeps_order(self) -> None:
        """Should keep corpus order when the query has no tokens."""
        docs = [make_document(f"{name}.txt", "content", doc_id=i) for i, name in enumerate("abc")]

        ranked = score("a an of", docs)

        assert [item.filename for item in ranked] == ["a.txt", "b.txt", "c.txt"]
        assert all(item.score == 0 for item in ranked)

    def test_ties_keep_iteration_order(self) -> None:
        """Should keep corpus order on ties."""
        docs = [
            make_document("first.txt", "budget plan", doc_id=1),
            make_document("second.txt", "budget plan", doc_id=2),
        ]

        ranked = score("budget", docs)

        assert [item.filename for item in ranked] == ["first.txt", "second.txt"]

    def test_empty_document_list(self) -> None:
        """Returns an empty ranking for no documents."""
        assert score("invoice", []) == []
