"""Assembly of bounded context blocks for the LLM backend."""

from __future__ import annotations

from typing import List, Sequence, Tuple

from docquery.models import DocumentRecord, SourceRef
from docquery.search.scorer import score
from docquery.search.snippets import extract_window

CONTEXT_HEADER = "=== DOCUMENTS ===\n\n"
DEFAULT_WINDOW = 1000


def truncation_marker(remaining: int) -> str:
    return f"\n[{remaining} more documents available but truncated]\n"


def pack(
    documents: Sequence[DocumentRecord],
    query: str,
    max_docs: int,
    max_chars: int,
    *,
    window_size: int = DEFAULT_WINDOW,
) -> Tuple[str, List[SourceRef]]:
    """Pack the best windows of the top ``max_docs`` documents into ``max_chars``.

    Blocks are appended in rank order; the first block that would overflow
    the budget is replaced by a truncation marker and packing stops.
    """
    ranked = score(query, documents)[:max_docs]
    parts = [CONTEXT_HEADER]
    total = len(CONTEXT_HEADER)
    included: List[SourceRef] = []

    for position, scored in enumerate(ranked):
        block = f"[{scored.filename}]\n{extract_window(scored, window_size)}\n\n"
        if total + len(block) > max_chars:
            parts.append(truncation_marker(len(ranked) - position))
            break
        parts.append(block)
        total += len(block)
        included.append(
            SourceRef(
                filename=scored.filename,
                filetype=scored.document.filetype,
                score=scored.score,
            )
        )

    return "".join(parts), included
