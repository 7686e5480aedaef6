"""Utility helpers for working with the corpus directory."""

from __future__ import annotations

from pathlib import Path
from typing import List

from docquery.ingestion.extractors import is_supported


def list_supported_files(directory: Path) -> List[Path]:
    """Return supported files directly under ``directory``, sorted by name.

    Raises ``FileNotFoundError`` when the directory does not exist.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Documents directory not found: {directory}")
    return sorted(
        (child for child in directory.iterdir() if child.is_file() and is_supported(child)),
        key=lambda child: child.name,
    )
