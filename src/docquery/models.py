"""Core docquery data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple


class FileType(str, Enum):
    TEXT = "text"
    PDF = "pdf"
    TABULAR = "tabular"
    SLIDE = "slide"


@dataclass(frozen=True, slots=True)
class DocumentRecord:
    """Extracted text of one corpus file."""

    id: int
    filename: str
    filetype: FileType
    content: str

    @property
    def content_length(self) -> int:
        return len(self.content)


@dataclass(slots=True)
class ScoredDocument:
    """Document annotated with a relevance score for a single query."""

    document: DocumentRecord
    score: float = 0.0
    offsets: List[int] = field(default_factory=list)

    @property
    def filename(self) -> str:
        return self.document.filename


@dataclass(frozen=True, slots=True)
class SourceRef:
    filename: str
    filetype: FileType
    score: float | None = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"filename": self.filename, "filetype": self.filetype.value}
        if self.score is not None:
            payload["score"] = round(self.score, 4)
        return payload


@dataclass(frozen=True, slots=True)
class SearchAnswer:
    """Outcome of the two-stage pipeline."""

    answer: str
    sources: Tuple[SourceRef, ...] = ()
    documents_selected: int = 0


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: Tuple[str, str]
    answer: SearchAnswer
