"""Selection of the densest excerpt of a scored document."""

from __future__ import annotations

from bisect import bisect_left
from typing import Sequence

from docquery.models import ScoredDocument

ELLIPSIS = "..."


def densest_offset(offsets: Sequence[int], window_size: int) -> int:
    """Offset whose forward window holds the most matches; earliest wins ties."""
    ordered = sorted(offsets)
    best, best_count = ordered[0], 0
    for position, offset in enumerate(ordered):
        count = bisect_left(ordered, offset + window_size) - position
        if count > best_count:
            best, best_count = offset, count
    return best


def extract_window(scored: ScoredDocument, window_size: int) -> str:
    content = scored.document.content
    if not scored.offsets:
        return content[:window_size]

    anchor = densest_offset(scored.offsets, window_size)
    start = max(0, anchor - window_size // 4)
    end = min(len(content), start + window_size)
    if end - start < window_size:
        start = max(0, end - window_size)

    snippet = content[start:end]
    if start > 0:
        snippet = ELLIPSIS + snippet
    if end < len(content):
        snippet = snippet + ELLIPSIS
    return snippet
