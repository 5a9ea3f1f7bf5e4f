"""FastAPI application exposing TermFinder over HTTP."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, List

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from termfinder.config import AppConfig
from termfinder.index.indexer import Indexer
from termfinder.index.search import Searcher, SearchResult
from termfinder.index.storage import SQLiteIndexStore, StoreUnavailableError
from termfinder.models import Document

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="TermFinder Web", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.state.db_path = None


class SearchPayload(BaseModel):
    query: str
    db: Path | None = None
    top_k: int = 10


class DocumentPayload(BaseModel):
    id: str
    title: str = ""
    content: str = ""
    tags: List[str] = []
    db: Path | None = None


def _resolve_db_path(db: Path | None) -> Path:
    default = app.state.db_path if app.state.db_path is not None else AppConfig().db_path
    config = AppConfig(db_path=db if db is not None else default)
    return config.resolve_db_path(Path.cwd())


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _open_existing_store(db: Path | None) -> SQLiteIndexStore:
    resolved_db = _resolve_db_path(db)
    if not resolved_db.exists():
        raise HTTPException(
            status_code=404,
            detail=f"Database not found at {resolved_db}. Index some documents first.",
        )
    return SQLiteIndexStore(resolved_db)


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    LOGGER.error("Store unavailable during %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": f"Store unavailable: {exc}"})


@app.post("/search")
async def search_documents(payload: SearchPayload) -> dict[str, List[SearchResult]]:
    query = payload.query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Empty query")

    top_k = max(1, min(payload.top_k, 50))

    store = _open_existing_store(payload.db)
    try:
        results = Searcher(store).search(query, top_k=top_k)
    finally:
        store.close()
    return {"results": results}


@app.get("/documents")
async def list_documents(db: Path | None = None) -> dict[str, Any]:
    """List all stored documents with index statistics."""
    resolved_db = _resolve_db_path(db)
    if not resolved_db.exists():
        return {
            "documents": [],
            "stats": {"document_count": 0, "term_count": 0, "entry_count": 0},
        }

    store = SQLiteIndexStore(resolved_db)
    try:
        documents = store.list_documents()
        stats = store.get_stats()
    finally:
        store.close()

    return {"documents": documents, "stats": stats}


def _run_index_job(document: Document, resolved_db: Path) -> dict[str, Any]:
    store = SQLiteIndexStore(resolved_db)
    try:
        stats = Indexer(store).index([document])
    finally:
        store.close()

    return {
        "inserted": stats.inserted,
        "updated": stats.updated,
        "skipped": stats.skipped,
        "failed": stats.failed,
    }


@app.post("/documents")
async def add_document(payload: DocumentPayload) -> dict[str, Any]:
    """Store a document and index it, replacing any previous version."""
    if not payload.id.strip():
        raise HTTPException(status_code=400, detail="Document id must not be empty")

    resolved_db = _resolve_db_path(payload.db)
    _ensure_db_parent(resolved_db)

    document = Document(
        id=payload.id,
        title=payload.title,
        content=payload.content,
        tags=tuple(payload.tags),
    )
    stats = await asyncio.to_thread(_run_index_job, document, resolved_db)
    if stats["failed"]:
        raise HTTPException(status_code=500, detail=f"Indexing failed for {payload.id}")
    return {"status": "ok", "db": str(resolved_db), "stats": stats}


@app.delete("/documents/{doc_id:path}")
async def delete_document(doc_id: str, db: Path | None = None) -> dict[str, Any]:
    """Delete a document and release its index entries."""
    store = _open_existing_store(db)
    try:
        deleted = Indexer(store).delete(doc_id)
    finally:
        store.close()

    if not deleted:
        raise HTTPException(status_code=404, detail=f"Document with ID {doc_id} not found")

    return {"status": "ok", "deleted_id": doc_id}


@app.post("/index/rebuild")
async def rebuild_index(db: Path | None = None) -> dict[str, Any]:
    store = _open_existing_store(db)
    try:
        count = Indexer(store).rebuild()
    finally:
        store.close()
    return {"status": "ok", "indexed": count}


@app.post("/index/refresh")
async def refresh_weights(db: Path | None = None) -> dict[str, Any]:
    store = _open_existing_store(db)
    try:
        updated = Indexer(store).refresh_weights()
    finally:
        store.close()
    return {"status": "ok", "updated": updated}
