"""Two-stage select-then-answer pipeline.

Stage A asks the backend for a shortlist of relevant filenames, falling
back to keyword ranking whenever the backend cannot help. Stage B asks the
backend to answer from the shortlisted documents only, with citations.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import Any, Dict, List, Sequence, Tuple

from docquery.config import AppConfig
from docquery.errors import BackendError, MalformedBackendOutput, RateLimitedByBackend
from docquery.llm.backend import LLMBackend, Message
from docquery.models import DocumentRecord, SearchAnswer
from docquery.search.context import pack
from docquery.search.scorer import score
from docquery.utils.text import preview

LOGGER = logging.getLogger(__name__)

EMPTY_CORPUS_MESSAGE = (
    "No documents found. Please add documents to the documents folder and try again."
)

SELECT_SYSTEM_PROMPT = (
    "You are a document retrieval assistant. Given a list of documents and a user "
    "query, pick the documents most likely to contain the answer. Respond with a "
    "JSON array of filenames only, most relevant first, for example "
    '["report.pdf", "notes.txt"]. If no document is relevant, respond with [].'
)

ANSWER_SYSTEM_PROMPT = (
    "You are an AI document search assistant. Answer the user's query strictly from "
    "the documents provided. If the documents do not contain the answer, say so "
    "explicitly instead of guessing. After every factual claim, cite the source "
    "document's filename in square brackets, for example [budget.csv]."
)

SELECT_MAX_TOKENS = 256
WRAPPER_KEYS = ("documents", "filenames", "files", "selected", "relevant_documents", "results")
_QUOTED_FILENAME = re.compile(r"""["'`]([^"'`\n\[\]{}]+?\.[A-Za-z0-9]{1,5})["'`]""")
_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class PipelineState(str, Enum):
    IDLE = "idle"
    SELECTING = "selecting_documents"
    GENERATING = "generating_answer"
    DONE = "done"
    FAILED = "failed"


class ParseKind(str, Enum):
    ARRAY = "array"
    OBJECT_WRAPPED = "object_wrapped"
    UNPARSEABLE = "unparseable"


@dataclass(frozen=True, slots=True)
class SelectionParse:
    kind: ParseKind
    names: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Selection:
    documents: Tuple[DocumentRecord, ...]
    strategy: str


@dataclass(slots=True)
class PipelineRun:
    """Progress of one query through the pipeline."""

    query: str
    state: PipelineState = PipelineState.IDLE
    history: List[PipelineState] = field(default_factory=list)
    selection: Selection | None = None
    result: SearchAnswer | None = None
    error: Exception | None = None

    def advance(self, state: PipelineState) -> None:
        LOGGER.debug("Pipeline %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)


def _decode_json(raw: str) -> Any:
    text = _CODE_FENCE.sub("", raw.strip())
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    for opener, closer in ("[]", "{}"):
        start, end = text.find(opener), text.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(text[start : end + 1])
            except json.JSONDecodeError:
                continue
    raise MalformedBackendOutput(f"Selection is not valid JSON: {raw[:120]!r}")


def _names(items: Sequence[Any]) -> Tuple[str, ...]:
    return tuple(str(item).strip() for item in items if isinstance(item, (str, int, float)))


def parse_selection(raw: str) -> SelectionParse:
    """Interpret the Stage A reply.

    Accepts a bare array, an object wrapping the array under a common key,
    and otherwise falls back to quoted filename-like substrings.
    """
    try:
        decoded = _decode_json(raw)
    except MalformedBackendOutput as exc:
        LOGGER.debug("%s", exc)
        decoded = None

    if isinstance(decoded, list):
        return SelectionParse(ParseKind.ARRAY, _names(decoded))
    if isinstance(decoded, dict):
        for key in WRAPPER_KEYS:
            value = decoded.get(key)
            if isinstance(value, list):
                return SelectionParse(ParseKind.OBJECT_WRAPPED, _names(value))
        lists = [value for value in decoded.values() if isinstance(value, list)]
        if len(lists) == 1:
            return SelectionParse(ParseKind.OBJECT_WRAPPED, _names(lists[0]))

    return SelectionParse(ParseKind.UNPARSEABLE, tuple(_QUOTED_FILENAME.findall(raw)))


def resolve_names(
    names: Sequence[str], documents: Sequence[DocumentRecord], limit: int
) -> List[DocumentRecord]:
    """Map backend-supplied names onto real documents, dropping unknown ones."""
    by_name: Dict[str, DocumentRecord] = {}
    for document in documents:
        by_name.setdefault(document.filename, document)
        by_name.setdefault(document.filename.lower(), document)

    chosen: List[DocumentRecord] = []
    for name in names:
        base = PurePath(name.strip()).name
        document = by_name.get(base) or by_name.get(base.lower())
        if document is None:
            LOGGER.debug("Ignoring unknown document %r from selection", name)
            continue
        if document not in chosen:
            chosen.append(document)
        if len(chosen) >= limit:
            break
    return chosen


def build_preview_context(documents: Sequence[DocumentRecord], excerpt: int, budget: int) -> str:
    lines = ["=== AVAILABLE DOCUMENTS ===", ""]
    total = sum(len(line) + 1 for line in lines)
    for position, document in enumerate(documents):
        excerpt_text = preview(document.content, excerpt).replace("\n", " ")
        block = f"- {document.filename} ({document.filetype.value}): {excerpt_text}"
        if total + len(block) + 1 > budget:
            lines.append(f"[{len(documents) - position} more documents not shown]")
            break
        lines.append(block)
        total += len(block) + 1
    return "\n".join(lines)


class AnswerPipeline:
    """Runs Stage A and Stage B for one query at a time per call."""

    def __init__(self, backend: LLMBackend, config: AppConfig) -> None:
        self.backend = backend
        self.config = config

    async def search(self, query: str, documents: Sequence[DocumentRecord]) -> SearchAnswer:
        run = await self.run(query, documents)
        return run.result  # type: ignore[return-value]

    async def run(self, query: str, documents: Sequence[DocumentRecord]) -> PipelineRun:
        run = PipelineRun(query=query)
        if not documents:
            run.result = SearchAnswer(answer=EMPTY_CORPUS_MESSAGE)
            run.advance(PipelineState.DONE)
            return run

        try:
            run.advance(PipelineState.SELECTING)
            run.selection = await self.select_documents(query, documents)
            run.advance(PipelineState.GENERATING)
            run.result = await self.generate_answer(query, run.selection.documents)
        except Exception as exc:
            run.error = exc
            run.advance(PipelineState.FAILED)
            raise
        run.advance(PipelineState.DONE)
        return run

    def fallback_selection(self, query: str, documents: Sequence[DocumentRecord]) -> Selection:
        ranked = score(query, documents)[: self.config.select_count]
        return Selection(tuple(item.document for item in ranked), "keyword")

    async def select_documents(
        self, query: str, documents: Sequence[DocumentRecord]
    ) -> Selection:
        """Stage A. Always yields a non-empty shortlist for a non-empty corpus."""
        limit = self.config.select_count
        context = build_preview_context(
            documents, self.config.preview_chars, self.config.preview_budget
        )
        messages: List[Message] = [
            {"role": "system", "content": SELECT_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"{context}\n\nQuery: {query}\n\n"
                f"Return up to {limit} filenames as a JSON array.",
            },
        ]
        try:
            raw = await self.backend.complete(
                messages,
                model=self.config.model,
                temperature=0.0,
                max_tokens=SELECT_MAX_TOKENS,
                timeout=self.config.select_timeout,
            )
        except BackendError as exc:
            LOGGER.warning("[Select] Backend selection failed (%s), using keyword ranking", exc)
            return self.fallback_selection(query, documents)

        parsed = parse_selection(raw)
        chosen = resolve_names(parsed.names, documents, limit)
        if not chosen:
            LOGGER.info(
                "[Select] No usable filenames in %s reply, using keyword ranking",
                parsed.kind.value,
            )
            return self.fallback_selection(query, documents)

        LOGGER.info(
            "[Select] Backend selected %d documents (%s): %s",
            len(chosen),
            parsed.kind.value,
            ", ".join(document.filename for document in chosen),
        )
        return Selection(tuple(chosen), "llm")

    def _answer_messages(self, query: str, context: str) -> List[Message]:
        return [
            {"role": "system", "content": ANSWER_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"{context}\n\nQuery: {query}\n\n"
                "Answer using only the documents above and cite filenames for every claim.",
            },
        ]

    async def generate_answer(
        self, query: str, documents: Sequence[DocumentRecord]
    ) -> SearchAnswer:
        """Stage B. Timeouts are terminal; a backend rate limit gets one smaller retry."""
        config = self.config
        context, sources = pack(
            documents,
            query,
            len(documents),
            config.answer_budget,
            window_size=config.window_chars,
        )
        LOGGER.info("[Answer] Calling backend, context size %d chars", len(context))
        try:
            answer = await self.backend.complete(
                self._answer_messages(query, context),
                model=config.model,
                temperature=config.temperature,
                max_tokens=config.answer_max_tokens,
                timeout=config.answer_timeout,
            )
        except RateLimitedByBackend as exc:
            LOGGER.warning("[Answer] %s; retrying with smaller context", exc)
            subset = documents[: config.retry_documents]
            context, sources = pack(
                subset,
                query,
                len(subset),
                config.retry_budget,
                window_size=config.window_chars,
            )
            answer = await self.backend.complete(
                self._answer_messages(query, context),
                model=config.fallback_model,
                temperature=config.temperature,
                max_tokens=config.retry_max_tokens,
                timeout=config.answer_timeout,
            )

        return SearchAnswer(
            answer=answer,
            sources=tuple(sources),
            documents_selected=len(documents),
        )
