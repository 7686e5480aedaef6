"""Corpus version tokens derived from the supported files on disk."""

from __future__ import annotations

from pathlib import Path

from docquery.utils.files import list_supported_files

EMPTY_VERSION = "empty"
MISSING_VERSION = "missing"


def corpus_version(directory: Path) -> str:
    """Summarize the corpus as ``<file count>-<latest mtime in ns>``.

    Only supported files participate, so unrelated files in the directory
    never change the token.
    """
    try:
        files = list_supported_files(directory)
    except FileNotFoundError:
        return MISSING_VERSION

    if not files:
        return EMPTY_VERSION

    latest = max(path.stat().st_mtime_ns for path in files)
    return f"{len(files)}-{latest}"
