"""Command line interface for docquery."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from docquery.config import AppConfig
from docquery.errors import DocQueryError, Throttled
from docquery.service import SearchService

console = Console()
app = typer.Typer(help="docquery - ask questions about a folder of documents")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _build_config(
    docs: Optional[Path] = None,
    db: Optional[Path] = None,
    use_store: Optional[bool] = None,
) -> AppConfig:
    config = AppConfig.from_env()
    if docs is not None:
        config.documents_path = docs
    if db is not None:
        config.db_path = db
        config.use_store = True
    if use_store is not None:
        config.use_store = use_store
    return config


def _fail(exc: DocQueryError) -> NoReturn:
    message = f"[red]{type(exc).__name__}:[/red] {exc}"
    if isinstance(exc, Throttled):
        message += f" (retry after {exc.retry_after}s)"
    console.print(message)
    raise typer.Exit(code=1)


DocsOption = typer.Option(None, "--docs", help="Directory with documents to search")
DbOption = typer.Option(None, "--db", help="SQLite document store path")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Verbose logging")


@app.command()
def search(
    query: str = typer.Argument(..., help="Question to answer from the documents"),
    docs: Optional[Path] = DocsOption,
    db: Optional[Path] = DbOption,
    verbose: bool = VerboseOption,
) -> None:
    """Answer a question using the two-stage pipeline."""
    _setup_logging(verbose)
    service = SearchService.from_config(_build_config(docs, db))
    try:
        response = asyncio.run(service.search(query))
    except DocQueryError as exc:
        _fail(exc)
    finally:
        service.close()

    console.print(Markdown(response.answer))
    if response.sources:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Source")
        table.add_column("Type")
        table.add_column("Score")
        for source in response.sources:
            score = "" if source.score is None else f"{source.score:.4f}"
            table.add_row(source.filename, source.filetype.value, score)
        console.print(table)
    console.print(
        f"Selected {response.documents_selected} of {response.documents_searched} documents "
        f"in {response.processing_ms}ms{' (cached)' if response.cached else ''}"
    )


@app.command()
def rebuild(
    docs: Optional[Path] = DocsOption,
    verbose: bool = VerboseOption,
) -> None:
    """Rebuild the in-memory index and print the corpus version."""
    _setup_logging(verbose)
    service = SearchService.from_config(_build_config(docs, use_store=False))
    result = asyncio.run(service.rebuild_index())
    console.print(
        f"Indexed [bold]{result['count']}[/bold] documents "
        f"(corpus version {result['corpusVersion']})"
    )


@app.command()
def ingest(
    docs: Optional[Path] = DocsOption,
    db: Optional[Path] = DbOption,
    verbose: bool = VerboseOption,
) -> None:
    """Extract the documents folder into the SQLite store."""
    _setup_logging(verbose)
    service = SearchService.from_config(_build_config(docs, db, use_store=True))
    try:
        stats = asyncio.run(service.ingest())
    except DocQueryError as exc:
        _fail(exc)
    finally:
        service.close()
    console.print(f"Ingested: {stats.success}, failed: {stats.failed}")


@app.command()
def documents(
    docs: Optional[Path] = DocsOption,
    db: Optional[Path] = DbOption,
) -> None:
    """List indexed documents."""
    service = SearchService.from_config(_build_config(docs, db))
    try:
        listing = asyncio.run(service.list_documents())
    finally:
        service.close()

    if not listing:
        console.print("[yellow]No documents found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID")
    table.add_column("Document")
    table.add_column("Type")
    table.add_column("Length")
    for item in listing:
        table.add_row(
            str(item["id"]), item["filename"], item["filetype"], str(item["contentLength"])
        )
    console.print(table)


@app.command()
def health(
    docs: Optional[Path] = DocsOption,
    db: Optional[Path] = DbOption,
) -> None:
    """Print the service health snapshot as JSON."""
    service = SearchService.from_config(_build_config(docs, db))
    try:
        snapshot = asyncio.run(service.health_snapshot())
    finally:
        service.close()
    console.print_json(json.dumps(snapshot))


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(5001, help="Server port"),
) -> None:
    """Start the HTTP API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    console.print(f"Starting docquery API on http://{host}:{port}")
    uvicorn.run(
        "docquery.web.app:app",
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":  # pragma: no cover
    app()
