"""Search service wiring the index, cache, limiter and pipeline together.

One ``SearchService`` is built at process start and handed to the CLI or
web handlers; it owns every piece of shared mutable state.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

from docquery.cache import ResponseCache
from docquery.config import AppConfig
from docquery.errors import ConfigurationError, ValidationError
from docquery.index.document_index import DocumentIndex
from docquery.index.storage import SQLiteDocumentStore
from docquery.ingestion.ingestor import IngestStats, Ingestor
from docquery.llm.backend import LLMBackend, OpenAIChatBackend
from docquery.models import DocumentRecord, SourceRef
from docquery.ratelimit import AdmissionController
from docquery.search.pipeline import AnswerPipeline
from docquery.utils.text import preview

LOGGER = logging.getLogger(__name__)

LOCAL_CLIENT = "local"


@dataclass(frozen=True, slots=True)
class SearchResponse:
    query: str
    answer: str
    sources: Tuple[SourceRef, ...] = ()
    documents_searched: int = 0
    documents_selected: int = 0
    processing_ms: int = 0
    cached: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "query": self.query,
            "response": self.answer,
            "sources": [source.to_dict() for source in self.sources],
            "metadata": {
                "documentsSearched": self.documents_searched,
                "documentsSelected": self.documents_selected,
                "processingTimeMs": self.processing_ms,
                "cached": self.cached,
            },
        }


@dataclass(slots=True)
class CorpusView:
    documents: Tuple[DocumentRecord, ...]
    corpus_version: str
    storage_mode: str = "filesystem"


def store_version(documents: Sequence[DocumentRecord]) -> str:
    digest = hashlib.sha256()
    for document in documents:
        digest.update(document.filename.encode("utf-8"))
        digest.update(b"\0")
        digest.update(document.content.encode("utf-8"))
        digest.update(b"\0")
    return f"db-{len(documents)}-{digest.hexdigest()[:16]}"


class SearchService:
    def __init__(
        self,
        config: AppConfig,
        *,
        index: DocumentIndex,
        cache: ResponseCache,
        limiter: AdmissionController,
        pipeline: AnswerPipeline,
        store: SQLiteDocumentStore | None = None,
    ) -> None:
        self.config = config
        self.index = index
        self.cache = cache
        self.limiter = limiter
        self.pipeline = pipeline
        self.store = store
        self._store_view: CorpusView | None = None
        self._store_generation = 0

    @classmethod
    def from_config(
        cls, config: AppConfig, *, backend: LLMBackend | None = None
    ) -> "SearchService":
        store = None
        if config.use_store:
            db_path = config.resolve_db_path(Path.cwd())
            try:
                db_path.parent.mkdir(parents=True, exist_ok=True)
                store = SQLiteDocumentStore(db_path)
            except (OSError, sqlite3.Error) as exc:
                LOGGER.warning("Document store unavailable at %s: %s", db_path, exc)

        return cls(
            config,
            index=DocumentIndex(config.documents_path),
            cache=ResponseCache(config.cache_size),
            limiter=AdmissionController(
                config.rate_limit_max,
                config.rate_limit_window,
                max_clients=config.rate_limit_max_clients,
            ),
            pipeline=AnswerPipeline(backend or OpenAIChatBackend.from_config(config), config),
            store=store,
        )

    def close(self) -> None:
        if self.store is not None:
            self.store.close()

    @property
    def llm_configured(self) -> bool:
        return self.pipeline.backend.configured

    def validate_query(self, query: Any) -> str:
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("Please provide a non-empty query string")
        if len(query) > self.config.max_query_length:
            raise ValidationError(
                f"Query must be less than {self.config.max_query_length} characters"
            )
        return query.strip()

    async def _load_store_view(self) -> CorpusView | None:
        """Store contents and version, read once per ingestion."""
        if self.store is None:
            return None
        view = self._store_view
        if view is not None:
            return view
        generation = self._store_generation
        try:
            stored = await asyncio.to_thread(self.store.get_all_documents)
        except sqlite3.Error as exc:
            LOGGER.warning("[Search] Document store unavailable, using filesystem index: %s", exc)
            return None
        view = CorpusView(tuple(stored), store_version(stored), storage_mode="db")
        if generation == self._store_generation:
            self._store_view = view
        return view

    async def corpus(self) -> CorpusView:
        """Current documents and their version, preferring a non-empty store."""
        stored = await self._load_store_view()
        if stored is not None and stored.documents:
            return stored
        snapshot = await self.index.snapshot()
        return CorpusView(snapshot.documents, snapshot.corpus_version)

    async def search(self, query: Any, client_id: str = LOCAL_CLIENT) -> SearchResponse:
        started = time.perf_counter()
        decision = self.limiter.admit(client_id)
        text = self.validate_query(query)
        LOGGER.info(
            "[Search] Query %r from %s (%d requests left)", text[:100], client_id, decision.remaining
        )

        view = await self.corpus()
        documents = view.documents

        def elapsed() -> int:
            return int((time.perf_counter() - started) * 1000)

        if not documents:
            answer = await self.pipeline.search(text, documents)
            return SearchResponse(query=text, answer=answer.answer, processing_ms=elapsed())

        cached = self.cache.get(text, view.corpus_version)
        if cached is not None:
            LOGGER.info("[Search] Cache hit")
            return SearchResponse(
                query=text,
                answer=cached.answer,
                sources=cached.sources,
                documents_searched=len(documents),
                documents_selected=cached.documents_selected,
                processing_ms=elapsed(),
                cached=True,
            )

        LOGGER.debug("[Search] Cache miss for corpus version %s", view.corpus_version)
        if not self.llm_configured:
            raise ConfigurationError(
                "LLM API key not configured. Set GROQ_API_KEY or DOCQUERY_API_KEY."
            )

        answer = await self.pipeline.search(text, documents)
        self.cache.set(text, view.corpus_version, answer)
        LOGGER.info("[Search] Answered in %dms", elapsed())
        return SearchResponse(
            query=text,
            answer=answer.answer,
            sources=answer.sources,
            documents_searched=len(documents),
            documents_selected=answer.documents_selected,
            processing_ms=elapsed(),
        )

    async def rebuild_index(self) -> Dict[str, Any]:
        LOGGER.info("[Index] Manual rebuild requested")
        count = await self.index.rebuild()
        return {
            "count": count,
            "corpusVersion": self.index.corpus_version,
            "lastUpdated": _isoformat(self.index.last_built),
        }

    async def ingest(self) -> IngestStats:
        if self.store is None:
            raise ConfigurationError("No document store configured; enable DOCQUERY_USE_STORE")
        ingestor = Ingestor(self.store, self.config.documents_path)
        try:
            stats = await asyncio.to_thread(ingestor.ingest)
        finally:
            self._store_generation += 1
            self._store_view = None
        self.index.invalidate()
        self.cache.clear()
        LOGGER.info("[Ingest] Index invalidated and cache cleared after corpus update")
        return stats

    async def list_documents(self) -> List[Dict[str, Any]]:
        view = await self.corpus()
        return [
            {
                "id": document.id,
                "filename": document.filename,
                "filetype": document.filetype.value,
                "contentPreview": preview(document.content, 200),
                "contentLength": document.content_length,
            }
            for document in view.documents
        ]

    async def health_snapshot(self) -> Dict[str, Any]:
        view = await self.corpus()
        return {
            "status": "ok",
            "storageMode": view.storage_mode,
            "documentCount": len(view.documents),
            "llmConfigured": self.llm_configured,
            "lastIndexed": _isoformat(self.index.last_built),
            "corpusVersion": view.corpus_version,
            "cacheStats": self.cache.stats(),
        }


def _isoformat(value: Any) -> str | None:
    return value.isoformat() if value is not None else None
