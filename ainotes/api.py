"""
HTTP API for ainotes.

This is the surface the browser extension (context menu, popup, search page,
options page) talks to. Each route maps onto one NoteService call:

    GET    /health
    POST   /notes                 capture a fragment
    GET    /notes/recent?limit=
    GET    /notes/search?q=
    GET    /notes/similar?q=&limit=
    GET    /notes/{id}
    PATCH  /notes/{id}            replace content and/or tags
    DELETE /notes/{id}
    DELETE /notes                 delete everything
    GET    /tags
    GET    /tags/{tag}/notes
    POST   /ask
    GET    /config
    PUT    /config

Run with:  uvicorn ainotes.api:app
"""

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ainotes.errors import (
    BackendReselectedError,
    ConfigurationError,
    NoteNotFoundError,
    NotInitializedError,
    StorageError,
    WriteRejectedError,
)
from ainotes.service import NoteService
from ainotes.types import NoteRecord

logger = logging.getLogger(__name__)

app = FastAPI(title="ainotes")

_service: Optional[NoteService] = None


def get_service() -> NoteService:
    """Process-wide NoteService bound to the process-wide backend selector."""
    global _service
    if _service is None:
        _service = NoteService()
    return _service


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class CaptureRequest(BaseModel):
    content: str = Field(..., min_length=1)
    url: str = ""
    title: str = "Untitled"
    timestamp: Optional[int] = None


class UpdateRequest(BaseModel):
    content: Optional[str] = None
    tags: Optional[List[str]] = None


class AskRequest(BaseModel):
    question: str = Field(..., min_length=1)
    limit: int = Field(5, ge=1)


class ConfigRequest(BaseModel):
    backend: Optional[str] = None
    local_path: Optional[str] = None
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    table: Optional[str] = None


def _public(note: NoteRecord) -> Dict[str, Any]:
    data: Dict[str, Any] = dict(note)
    data.pop("embedding", None)
    return data


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def _error_body(exc: Exception) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": str(exc)}
    if isinstance(exc, StorageError):
        body.update({"code": exc.code, "hint": exc.hint, "details": exc.details})
    return body


@app.exception_handler(NoteNotFoundError)
async def _not_found(request: Request, exc: NoteNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content=_error_body(exc))


@app.exception_handler(NotInitializedError)
@app.exception_handler(BackendReselectedError)
async def _unavailable(request: Request, exc: StorageError) -> JSONResponse:
    return JSONResponse(status_code=503, content=_error_body(exc))


@app.exception_handler(WriteRejectedError)
async def _rejected(request: Request, exc: WriteRejectedError) -> JSONResponse:
    return JSONResponse(status_code=502, content=_error_body(exc))


@app.exception_handler(StorageError)
async def _storage_error(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("Storage error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content=_error_body(exc))


@app.exception_handler(ConfigurationError)
@app.exception_handler(ValueError)
async def _bad_request(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=400, content=_error_body(exc))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health")
def health_check() -> dict:
    return {"status": "ok"}


@app.post("/notes", status_code=201)
async def capture_note(body: CaptureRequest, service: NoteService = Depends(get_service)) -> dict:
    note = await service.capture(body.content, url=body.url, title=body.title, timestamp=body.timestamp)
    return _public(note)


@app.get("/notes/recent")
async def recent_notes(
    limit: int = Query(10, ge=1), service: NoteService = Depends(get_service)
) -> dict:
    return {"notes": [_public(n) for n in await service.recent(limit)]}


@app.get("/notes/search")
async def search_notes(q: str, service: NoteService = Depends(get_service)) -> dict:
    return {"notes": [_public(n) for n in await service.search(q)]}


@app.get("/notes/similar")
async def similar_notes(
    q: str, limit: int = Query(10, ge=1), service: NoteService = Depends(get_service)
) -> dict:
    return {"notes": [_public(n) for n in await service.similar(q, limit)]}


@app.get("/notes/{note_id}")
async def get_note(note_id: str, service: NoteService = Depends(get_service)) -> dict:
    note = await service.get(note_id)
    if note is None:
        raise HTTPException(status_code=404, detail=f"Note not found: {note_id}")
    return _public(note)


@app.patch("/notes/{note_id}")
async def update_note(
    note_id: str, body: UpdateRequest, service: NoteService = Depends(get_service)
) -> dict:
    note = await service.update(note_id, content=body.content, tags=body.tags)
    return _public(note)


@app.delete("/notes/{note_id}")
async def delete_note(note_id: str, service: NoteService = Depends(get_service)) -> dict:
    await service.delete(note_id)
    return {"success": True}


@app.delete("/notes")
async def delete_all_notes(service: NoteService = Depends(get_service)) -> dict:
    count = await service.delete_all()
    return {"success": True, "deletedCount": count}


@app.get("/tags")
async def list_tags(service: NoteService = Depends(get_service)) -> dict:
    return {"tags": await service.tags()}


@app.get("/tags/{tag}/notes")
async def notes_by_tag(tag: str, service: NoteService = Depends(get_service)) -> dict:
    return {"notes": [_public(n) for n in await service.by_tag(tag)]}


@app.post("/ask")
async def ask_question(body: AskRequest, service: NoteService = Depends(get_service)) -> dict:
    return dict(await service.ask(body.question, body.limit))


@app.get("/config")
def read_config(service: NoteService = Depends(get_service)) -> dict:
    return service.get_config().describe()


@app.put("/config")
async def write_config(body: ConfigRequest, service: NoteService = Depends(get_service)) -> dict:
    changes = {k: v for k, v in body.model_dump().items() if v is not None}
    config = replace(service.get_config(), **changes)
    changed = await service.set_config(config)
    return {"success": True, "changed": changed, "config": config.describe()}
