"""Text extraction for the supported corpus formats.

PDFs go through PyMuPDF (fitz), slide decks through python-pptx and CSV
files are rendered as readable row listings.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Tuple

import fitz  # PyMuPDF
from pptx import Presentation

from docquery.errors import ExtractionError, UnsupportedType
from docquery.models import FileType
from docquery.utils.text import normalize_whitespace

LOGGER = logging.getLogger(__name__)


def extract_text(path: Path) -> str:
    return path.read_text(encoding="utf-8").strip()


def iter_pdf_pages(path: Path) -> Iterator[str]:
    """Yield normalized text from a PDF file page by page."""
    doc = fitz.open(path)
    try:
        for index in range(len(doc)):
            normalized = normalize_whitespace([doc[index].get_text() or ""])
            if normalized:
                yield normalized
    finally:
        doc.close()


def extract_pdf(path: Path) -> str:
    return "\n".join(iter_pdf_pages(path)).strip()


def extract_csv(path: Path) -> str:
    """Render a CSV file as a column header line followed by one line per row."""
    with path.open(newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        headers = list(reader.fieldnames or [])
        rows = list(reader)

    lines: List[str] = []
    if headers:
        lines.append(f"Columns: {', '.join(headers)}")
        lines.append("")
    lines.append(f"Data ({len(rows)} rows):")
    for number, row in enumerate(rows, start=1):
        parts = ", ".join(f"{key}: {value}" for key, value in row.items())
        lines.append(f"Row {number}: {parts}")
    return "\n".join(lines).strip()


def extract_pptx(path: Path) -> str:
    """Concatenate paragraph text of every slide, slides separated by blank lines."""
    presentation = Presentation(str(path))
    slides: List[str] = []
    for slide in presentation.slides:
        parts = [
            paragraph.text
            for shape in slide.shapes
            if shape.has_text_frame
            for paragraph in shape.text_frame.paragraphs
            if paragraph.text.strip()
        ]
        if parts:
            slides.append("\n".join(parts))
    return "\n\n".join(slides).strip()


EXTRACTORS: Dict[str, Tuple[Callable[[Path], str], FileType]] = {
    ".txt": (extract_text, FileType.TEXT),
    ".pdf": (extract_pdf, FileType.PDF),
    ".csv": (extract_csv, FileType.TABULAR),
    ".pptx": (extract_pptx, FileType.SLIDE),
}


def supported_extensions() -> List[str]:
    return list(EXTRACTORS)


def is_supported(path: Path | str) -> bool:
    return Path(path).suffix.lower() in EXTRACTORS


def extract(path: Path) -> Tuple[str, FileType]:
    """Extract the text content of ``path`` and report its file type.

    Raises:
        UnsupportedType: no extractor handles the file extension.
        ExtractionError: the file could not be read or parsed.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    try:
        reader, filetype = EXTRACTORS[suffix]
    except KeyError:
        raise UnsupportedType(f"Unsupported file type: {suffix or path.name}") from None

    try:
        content = reader(path)
    except Exception as exc:
        LOGGER.debug("Extractor for %s failed", path, exc_info=True)
        raise ExtractionError(f"Failed to extract {path.name}: {exc}") from exc
    return content, filetype
