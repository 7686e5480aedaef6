"""Bulk ingestion of the corpus directory into the durable store."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Tuple

from docquery.errors import ExtractionError
from docquery.index.storage import SQLiteDocumentStore
from docquery.ingestion.extractors import extract, supported_extensions
from docquery.models import FileType
from docquery.utils.files import list_supported_files

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class IngestStats:
    success: int = 0
    failed: int = 0
    files: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"success": self.success, "failed": self.failed, "files": list(self.files)}


class Ingestor:
    """Extracts every supported file and writes it to the store."""

    def __init__(
        self,
        store: SQLiteDocumentStore,
        documents_path: Path,
        *,
        extractor: Callable[[Path], Tuple[str, FileType]] = extract,
    ) -> None:
        self.store = store
        self.documents_path = Path(documents_path)
        self._extractor = extractor

    def ingest(self, *, clear_existing: bool = True) -> IngestStats:
        try:
            paths = list_supported_files(self.documents_path)
        except FileNotFoundError:
            LOGGER.warning("Documents directory not found: %s", self.documents_path)
            paths = []

        stats = IngestStats()
        if not paths:
            LOGGER.warning("No documents found to ingest")
            return stats

        LOGGER.info(
            "Ingesting %d documents from %s (formats: %s)",
            len(paths),
            self.documents_path,
            ", ".join(supported_extensions()),
        )
        with self.store.transaction() as conn:
            if clear_existing:
                conn.execute("DELETE FROM documents")
            for path in paths:
                try:
                    content, filetype = self._extractor(path)
                except ExtractionError as exc:
                    LOGGER.error("Failed to ingest %s: %s", path.name, exc)
                    stats.failed += 1
                    continue
                filetype = FileType(filetype)
                self.store.insert_document(path.name, filetype, content)
                stats.success += 1
                stats.files.append(path.name)
                LOGGER.info("Ingested %s (%s) - %d chars", path.name, filetype.value, len(content))

        LOGGER.info("Ingestion complete: %d succeeded, %d failed", stats.success, stats.failed)
        return stats
