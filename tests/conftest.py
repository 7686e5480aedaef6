"""Shared fixtures and fakes for the docquery test suite."""

from __future__ import annotations

from typing import Any, Dict, List

import pytest

from docquery.config import AppConfig
from docquery.models import DocumentRecord, FileType


def make_document(
    filename: str,
    content: str,
    *,
    doc_id: int = 1,
    filetype: FileType = FileType.TEXT,
) -> DocumentRecord:
    return DocumentRecord(id=doc_id, filename=filename, filetype=filetype, content=content)


class FakeBackend:
    """Scripted LLM backend: each call pops the next reply or raises it."""

    def __init__(self, *replies: Any, configured: bool = True) -> None:
        self.replies: List[Any] = list(replies)
        self.calls: List[Dict[str, Any]] = []
        self._configured = configured

    @property
    def configured(self) -> bool:
        return self._configured

    async def complete(self, messages, *, model, temperature, max_tokens, timeout) -> str:
        self.calls.append(
            {
                "messages": messages,
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "timeout": timeout,
            }
        )
        if not self.replies:
            raise AssertionError("FakeBackend ran out of scripted replies")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def config(tmp_path) -> AppConfig:
    docs = tmp_path / "docs"
    docs.mkdir()
    return AppConfig(documents_path=docs, db_path=tmp_path / "store.db", api_key="test-key")


@pytest.fixture
def corpus() -> List[DocumentRecord]:
    return [
        make_document(
            "budget.csv",
            "Columns: item, cost\n\nRow 1: item: travel, cost: 1200",
            doc_id=1,
            filetype=FileType.TABULAR,
        ),
        make_document("roadmap.txt", "The roadmap covers the launch plan.", doc_id=2),
        make_document(
            "invoice_march.pdf",
            "Payment terms are net thirty days.",
            doc_id=3,
            filetype=FileType.PDF,
        ),
        make_document("notes.txt", "Team notes about hiring and onboarding.", doc_id=4),
        make_document(
            "slides.pptx",
            "Quarterly review of the invoice backlog.",
            doc_id=5,
            filetype=FileType.SLIDE,
        ),
        make_document("misc.txt", "Nothing relevant here at all.", doc_id=6),
    ]
