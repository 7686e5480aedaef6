"""Tests for text utility functions."""

from __future__ import annotations

from docquery.utils.text import normalize_query, normalize_whitespace, preview, tokenize


class TestTokenize:
    """Test tokenize function."""

    def test_splits_on_whitespace_and_punctuation(self) -> None:
        """Should split on whitespace and punctuation."""
        assert tokenize("Budget, travel-costs; Q3!") == ["budget", "travel", "costs"]

    def test_drops_short_tokens(self) -> None:
        """Tokens of two characters or fewer are noise."""
        assert tokenize("is it an invoice of mine") == ["invoice", "mine"]

    def test_lowercases(self) -> None:
        """Should lowercase tokens."""
        assert tokenize("INVOICE Invoice") == ["invoice", "invoice"]

    def test_empty_query(self) -> None:
        """Returns no tokens for empty input."""
        assert tokenize("") == []
        assert tokenize("?? .. !") == []


class TestNormalizeQuery:
    """Cache-key normalization folds case and whitespace only."""

    def test_case_and_space_variants_match(self) -> None:
        """Should normalize case and surrounding space."""
        variants = ["Budget?", " budget? ", "BUDGET?"]
        assert {normalize_query(v) for v in variants} == {"budget?"}

    def test_internal_whitespace_collapsed(self) -> None:
        """Should collapse internal whitespace."""
        assert normalize_query("what  is\tthe \n budget") == "what is the budget"

    def test_punctuation_is_significant(self) -> None:
        """Should keep punctuation."""
        assert normalize_query("Budget") == normalize_query("budget ")
        assert normalize_query("Budget") != normalize_query("budget?")


class TestNormalizeWhitespace:
    """Test normalize_whitespace function."""

    def test_strips_and_drops_blank_lines(self) -> None:
        """Should strip lines and drop blank ones."""
        assert normalize_whitespace(["  line 1  ", "", "   ", "line 2"]) == "line 1\nline 2"

    def test_empty_input(self) -> None:
        """Returns an empty string for no lines."""
        assert normalize_whitespace([]) == ""


class TestPreview:
    def test_short_text_unchanged(self) -> None:
        """Returns short text unchanged."""
        assert preview("short", 10) == "short"

    def test_long_text_truncated_with_marker(self) -> None:
        """Should truncate long text with a marker."""
        assert preview("a" * 20, 5) == "aaaaa..."
