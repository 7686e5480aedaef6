"""In-memory document index built from the corpus directory."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Tuple

from docquery.errors import ExtractionError
from docquery.index.fingerprint import corpus_version
from docquery.ingestion.extractors import extract
from docquery.models import DocumentRecord, FileType
from docquery.utils.files import list_supported_files

LOGGER = logging.getLogger(__name__)

Extractor = Callable[[Path], Tuple[str, FileType]]


@dataclass(frozen=True, slots=True)
class IndexSnapshot:
    """A complete, immutable view of the indexed corpus."""

    documents: Tuple[DocumentRecord, ...]
    corpus_version: str
    built_at: datetime


class DocumentIndex:
    """Holds the extracted corpus and swaps it atomically on rebuild.

    Readers always receive a whole snapshot: either the one that existed
    before a rebuild started or the one it produced.
    """

    def __init__(self, documents_path: Path, *, extractor: Extractor = extract) -> None:
        self.documents_path = Path(documents_path)
        self._extractor = extractor
        self._snapshot: IndexSnapshot | None = None
        self._generation = 0
        self._lock = asyncio.Lock()

    @property
    def corpus_version(self) -> str | None:
        snapshot = self._snapshot
        return snapshot.corpus_version if snapshot else None

    @property
    def last_built(self) -> datetime | None:
        snapshot = self._snapshot
        return snapshot.built_at if snapshot else None

    @property
    def is_built(self) -> bool:
        return self._snapshot is not None

    async def snapshot(self) -> IndexSnapshot:
        """Return the current snapshot, building it first if needed."""
        current = self._snapshot
        if current is not None:
            return current
        async with self._lock:
            if self._snapshot is not None:
                return self._snapshot
            return await self._build()

    async def get(self) -> Tuple[DocumentRecord, ...]:
        return (await self.snapshot()).documents

    async def rebuild(self) -> int:
        """Re-extract the corpus and publish the new snapshot."""
        async with self._lock:
            snapshot = await self._build()
        return len(snapshot.documents)

    def invalidate(self) -> None:
        """Drop the current snapshot so the next read rebuilds it."""
        self._generation += 1
        self._snapshot = None
        LOGGER.info("[Index] Document index invalidated")

    async def _build(self) -> IndexSnapshot:
        generation = self._generation
        started = time.perf_counter()
        LOGGER.info("[Index] Building in-memory document index from %s", self.documents_path)

        # Taken before extraction so an edit during the build changes the next token.
        version = await asyncio.to_thread(corpus_version, self.documents_path)
        try:
            paths = await asyncio.to_thread(list_supported_files, self.documents_path)
        except FileNotFoundError:
            LOGGER.warning("[Index] Documents directory not found: %s", self.documents_path)
            paths = []

        documents: List[DocumentRecord] = []
        for path in paths:
            try:
                content, filetype = await asyncio.to_thread(self._extractor, path)
            except ExtractionError as exc:
                LOGGER.warning("[Index] Skipping %s: %s", path.name, exc)
                continue
            documents.append(
                DocumentRecord(
                    id=len(documents) + 1,
                    filename=path.name,
                    filetype=FileType(filetype),
                    content=content,
                )
            )

        if await asyncio.to_thread(corpus_version, self.documents_path) != version:
            LOGGER.info("[Index] Corpus changed during rebuild, keeping version %s", version)

        snapshot = IndexSnapshot(
            documents=tuple(documents),
            corpus_version=version,
            built_at=datetime.now(timezone.utc),
        )
        if generation == self._generation:
            self._snapshot = snapshot
        else:
            LOGGER.info("[Index] Index invalidated during rebuild, result not published")

        LOGGER.info(
            "[Index] Built index with %d documents in %dms (corpus version %s)",
            len(documents),
            (time.perf_counter() - started) * 1000,
            version,
        )
        return snapshot
