"""Command line interface for TermFinder."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import typer
from rich.console import Console
from rich.table import Table

from termfinder.config import AppConfig
from termfinder.index.indexer import Indexer
from termfinder.index.search import Searcher
from termfinder.index.storage import SQLiteIndexStore
from termfinder.utils.files import iter_text_paths, load_document
from termfinder.web.app import app as web_app


console = Console()
app = typer.Typer(help="TermFinder - TF-IDF search over text documents")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _resolve_db(db: Path | None) -> Path:
    config = AppConfig(db_path=db if db is not None else AppConfig().db_path)
    return config.resolve_db_path(Path.cwd())


def _open_existing_store(db: Path | None) -> SQLiteIndexStore:
    resolved_db = _resolve_db(db)
    if not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")
    return SQLiteIndexStore(resolved_db)


@app.command()
def index(
    inputs: List[Path] = typer.Argument(
        ..., help="Text files or directories to index.", resolve_path=True
    ),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    tag: List[str] = typer.Option([], "--tag", "-t", help="Tag added to every document"),
    encoding: str = typer.Option(AppConfig().encoding, help="Text file encoding"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Index one or more text files or directories."""
    _setup_logging(verbose)
    resolved_db = _resolve_db(db)
    _ensure_db_parent(resolved_db)

    paths = list(iter_text_paths(inputs))
    if not paths:
        console.print("[yellow]No text documents found.[/yellow]")
        return

    documents = [load_document(path, tags=tag, encoding=encoding) for path in paths]
    store = SQLiteIndexStore(resolved_db)
    try:
        console.print(f"Indexing into [bold]{resolved_db}[/bold]...")
        stats = Indexer(store).index(documents)
    finally:
        store.close()
    console.print(
        f"Inserted: {stats.inserted}, updated: {stats.updated}, "
        f"skipped: {stats.skipped}, failed: {stats.failed}"
    )


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    top_k: int = typer.Option(AppConfig().top_k, help="Number of results to display"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Rank indexed documents against a query."""
    _setup_logging(verbose)
    store = _open_existing_store(db)
    try:
        results = Searcher(store).search(query, top_k=top_k)
    finally:
        store.close()

    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Rank")
    table.add_column("Score")
    table.add_column("Document")
    table.add_column("Title")

    for rank, result in enumerate(results, start=1):
        table.add_row(str(rank), f"{result.score:.4f}", result.document_id, result.title)

    console.print(table)


@app.command()
def remove(
    document_id: str = typer.Argument(..., help="Id of the document to remove"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Remove a document and its index entries."""
    store = _open_existing_store(db)
    try:
        removed = Indexer(store).delete(document_id)
    finally:
        store.close()

    if not removed:
        console.print(f"[yellow]Document not found: {document_id}[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"Removed {document_id}.")


@app.command()
def rebuild(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Clear the index and rebuild it from the stored documents."""
    _setup_logging(verbose)
    store = _open_existing_store(db)
    try:
        count = Indexer(store).rebuild()
    finally:
        store.close()
    console.print(f"Rebuilt index for {count} documents.")


@app.command()
def refresh(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Recompute term weights against the current corpus size."""
    store = _open_existing_store(db)
    try:
        updated = Indexer(store).refresh_weights()
    finally:
        store.close()
    console.print(f"Refreshed {updated} index entries.")


@app.command()
def stats(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Show corpus and index sizes."""
    store = _open_existing_store(db)
    try:
        values = store.get_stats()
    finally:
        store.close()
    console.print(
        f"Documents: {values['document_count']}, terms: {values['term_count']}, "
        f"index entries: {values['entry_count']}"
    )


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Start the web API."""
    import uvicorn

    resolved_db = _resolve_db(db)
    if not resolved_db.exists():
        console.print("[yellow]Warning: database not found, searches might fail.[/yellow]")

    web_app.state.db_path = resolved_db
    console.print(f"Starting web API on http://{host}:{port} (database: {resolved_db})")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
