"""Keyword relevance ranking."""

from __future__ import annotations

import math
import re
from typing import Iterable, List, Sequence

from docquery.models import DocumentRecord, ScoredDocument
from docquery.utils.text import tokenize

BODY_WEIGHT = 2
FILENAME_WEIGHT = 5


def query_tokens(query: str) -> List[str]:
    """Distinct usable tokens of ``query`` in first-seen order."""
    return list(dict.fromkeys(tokenize(query)))


def score_document(document: DocumentRecord, tokens: Sequence[str]) -> ScoredDocument:
    body = document.content.lower()
    filename = document.filename.lower()
    raw = 0
    offsets: List[int] = []
    for token in tokens:
        pattern = re.compile(re.escape(token))
        hits = [match.start() for match in pattern.finditer(body)]
        offsets.extend(hits)
        raw += BODY_WEIGHT * len(hits)
        raw += FILENAME_WEIGHT * len(pattern.findall(filename))

    offsets.sort()
    value = raw / math.sqrt(max(len(body), 1)) if raw else 0.0
    return ScoredDocument(document=document, score=value, offsets=offsets)


def score(query: str, documents: Iterable[DocumentRecord]) -> List[ScoredDocument]:
    """Rank ``documents`` against ``query``, highest score first.

    Body hits weigh 2, filename hits weigh 5, and the raw total is divided
    by the square root of the content length. The sort is stable, so ties
    (including the all-zero case of a query without usable tokens) keep
    the iteration order.
    """
    tokens = query_tokens(query)
    if not tokens:
        return [ScoredDocument(document=document) for document in documents]
    ranked = [score_document(document, tokens) for document in documents]
    ranked.sort(key=lambda item: item.score, reverse=True)
    return ranked
