"""Text helpers for query handling and extracted content."""

from __future__ import annotations

import re
from typing import Iterable, List

_TOKEN_SPLIT = re.compile(r"[\W_]+", re.UNICODE)
_WHITESPACE = re.compile(r"\s+")

MIN_TOKEN_LENGTH = 3


def tokenize(text: str, *, min_length: int = MIN_TOKEN_LENGTH) -> List[str]:
    """Split text on whitespace and punctuation into lowercase tokens.

    Tokens shorter than ``min_length`` are dropped as noise.
    """
    return [
        token
        for token in _TOKEN_SPLIT.split(text.lower())
        if len(token) >= min_length
    ]


def normalize_query(query: str) -> str:
    """Lowercase, trim and collapse internal whitespace."""
    return _WHITESPACE.sub(" ", query.strip().lower())


def normalize_whitespace(lines: Iterable[str]) -> str:
    """Collapse whitespace and join lines."""
    return "\n".join(line.strip() for line in lines if line.strip())


def preview(text: str, length: int) -> str:
    """Return the first ``length`` characters, marking truncation."""
    if len(text) <= length:
        return text
    return text[:length] + "..."
