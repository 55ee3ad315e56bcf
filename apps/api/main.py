"""FastAPI service for the editable page, snapshot saves and draft preview."""

from __future__ import annotations

import importlib.metadata
import json
import logging
import os
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import (
    HTMLResponse,
    JSONResponse,
    PlainTextResponse,
    RedirectResponse,
    Response,
)
from pydantic import TypeAdapter, ValidationError

from core.content.models import FieldEdit, LatestContent, SnapshotCreated
from core.fields.registry import FieldRegistry, load_field_registry
from core.render.models import (
    PageView,
    draft_unavailable_view,
    preview_view,
    published_view,
)
from core.render.page_cache import PageCache
from core.render.page_renderer import render_page
from core.store.snapshot_store import JsonSnapshotStore
from core.utils.errors import InvalidationError, SnapshotLookupError

app = FastAPI(title="malleable-page API", version="0.1.0")
logger = logging.getLogger("malleable.api")

PREVIEW_COOKIE = "__malleable_preview"
REQUEST_ID_HEADER = "X-Malleable-Request-Id"

_DEFAULT_STORE_PATH = Path("data") / "snapshots.json"
# Edit batches are a handful of short strings; keep the body cap small.
_DEFAULT_MAX_BODY_BYTES = 256 * 1024
_PUBLISHED_PATH = "/"

_DRAFT_MISSING_MESSAGE = "The requested preview edit does not exist!"
_DRAFT_STORE_ERROR_MESSAGE = (
    "An error has occurred while connecting to the snapshot store. "
    "Please refresh the page to try again."
)

_edit_batch_adapter = TypeAdapter(list[FieldEdit])


@dataclass
class _Runtime:
    store_path: Path
    fields_path: Path | None
    store: JsonSnapshotStore
    registry: FieldRegistry
    page_cache: PageCache


_runtime_lock = threading.Lock()
_runtime_cache: _Runtime | None = None


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Ensure every response has a request id header."""

    request_id = uuid.uuid4().hex
    request.state.request_id = request_id
    try:
        response = await call_next(request)
    except Exception:  # noqa: BLE001
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="INTERNAL_ERROR",
            status_code=500,
            failure_stage="middleware",
        )
        response = _error_response(
            status_code=500,
            error_code="INTERNAL_ERROR",
            message="internal server error",
            request_id=request_id,
            detail={"path": request.url.path},
        )
    response.headers.setdefault(REQUEST_ID_HEADER, request_id)
    return response


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    """Liveness endpoint."""

    return {"status": "ok"}


@app.get("/", response_class=HTMLResponse)
async def page(request: Request) -> HTMLResponse:
    """Published page, or the draft named by the preview cookie."""

    request_id = _request_id_from_request(request)
    runtime = _get_runtime()
    snapshot_id = request.cookies.get(PREVIEW_COOKIE)

    if not snapshot_id:
        html = runtime.page_cache.get(_PUBLISHED_PATH)
        return HTMLResponse(content=html, headers={"X-Malleable-Page-Mode": "published"})

    view = _preview_page_view(runtime, snapshot_id, request_id)
    return HTMLResponse(
        content=render_page(runtime.registry, view),
        headers={"X-Malleable-Page-Mode": view.mode, "Cache-Control": "no-store"},
    )


@app.post("/api/save", response_model=None)
async def save(request: Request) -> JSONResponse | PlainTextResponse:
    """Store an edit batch as a new snapshot and return its id."""

    request_id = _request_id_from_request(request)
    failure_stage = "read_body"
    try:
        body = await request.body()
        max_body_bytes = _max_body_bytes()
        if len(body) > max_body_bytes:
            _log_event(
                logging.ERROR,
                "error",
                request_id,
                error_code="PAYLOAD_TOO_LARGE",
                status_code=413,
                failure_stage=failure_stage,
                received_bytes=len(body),
            )
            return PlainTextResponse("Payload Too Large", status_code=413)

        failure_stage = "validate_edits"
        try:
            edits = _edit_batch_adapter.validate_json(body)
        except ValidationError as exc:
            _log_event(
                logging.ERROR,
                "error",
                request_id,
                error_code="INVALID_EDITS",
                status_code=400,
                failure_stage=failure_stage,
                error_count=exc.error_count(),
            )
            return PlainTextResponse(
                "Request body must be a JSON array of {id, text} objects", status_code=400
            )

        failure_stage = "store_write"
        snapshot = _get_runtime().store.create(edits)
    except Exception as exc:  # noqa: BLE001
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="INTERNAL_ERROR",
            status_code=500,
            failure_stage=failure_stage,
            error=str(exc),
        )
        return PlainTextResponse("Internal Server Error", status_code=500)

    _log_event(
        logging.INFO,
        "saved",
        request_id,
        snapshot_id=snapshot.snapshot_id,
        field_count=len(snapshot.edits),
    )
    created = SnapshotCreated(snapshot_id=snapshot.snapshot_id)
    return JSONResponse(status_code=200, content=created.model_dump(by_alias=True))


@app.post("/api/revalidate", response_model=None)
async def revalidate(request: Request) -> JSONResponse | PlainTextResponse:
    """Regenerate the cached published page."""

    request_id = _request_id_from_request(request)
    try:
        _get_runtime().page_cache.revalidate(_PUBLISHED_PATH)
    except InvalidationError as exc:
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="REVALIDATE_FAILED",
            status_code=500,
            failure_stage="revalidate",
            error=exc.message,
        )
        return PlainTextResponse("Internal Server Error", status_code=500)

    _log_event(logging.INFO, "revalidated", request_id, path=_PUBLISHED_PATH)
    return JSONResponse(status_code=200, content={"revalidated": True})


@app.get("/api/content/latest")
async def latest_content() -> JSONResponse:
    """Edits of the most recent snapshot; empty before the first save."""

    snapshot = _get_runtime().store.latest()
    if snapshot is None:
        payload = LatestContent()
    else:
        payload = LatestContent(snapshot_id=snapshot.snapshot_id, edits=snapshot.edits)
    return JSONResponse(status_code=200, content=payload.model_dump(mode="json", by_alias=True))


@app.get("/api/snapshots/{snapshot_id}")
async def snapshot_lookup(snapshot_id: str, request: Request) -> JSONResponse:
    request_id = _request_id_from_request(request)
    try:
        snapshot = _get_runtime().store.get(snapshot_id)
    except SnapshotLookupError:
        return _error_response(
            status_code=404,
            error_code="SNAPSHOT_NOT_FOUND",
            message="snapshot not found",
            request_id=request_id,
            detail={"snapshot_id": snapshot_id},
        )
    return JSONResponse(status_code=200, content=snapshot.model_dump(mode="json", by_alias=True))


@app.get("/api/share/{snapshot_id}")
async def enter_preview(snapshot_id: str, request: Request) -> RedirectResponse:
    """Enter preview mode for one snapshot and show the page."""

    request_id = _request_id_from_request(request)
    _log_event(logging.INFO, "preview_enter", request_id, snapshot_id=snapshot_id)
    response = RedirectResponse(url=_PUBLISHED_PATH, status_code=307)
    response.set_cookie(PREVIEW_COOKIE, snapshot_id, httponly=True, samesite="lax", path="/")
    return response


@app.get("/api/exit")
async def exit_preview(request: Request) -> RedirectResponse:
    request_id = _request_id_from_request(request)
    _log_event(logging.INFO, "preview_exit", request_id)
    response = RedirectResponse(url=_PUBLISHED_PATH, status_code=307)
    response.delete_cookie(PREVIEW_COOKIE, path="/")
    return response


@app.get("/api/fields")
async def fields() -> dict[str, Any]:
    """Editable field ids in render order."""

    registry = _get_runtime().registry
    return {
        "fields": [item.model_dump() for item in registry],
        "version": _package_version(),
    }


@app.get("/static/editor.js")
async def editor_script() -> Response:
    script_path = Path(__file__).resolve().parent / "static" / "editor.js"
    return Response(
        content=script_path.read_text(encoding="utf-8"),
        media_type="application/javascript",
    )


def _preview_page_view(runtime: _Runtime, snapshot_id: str, request_id: str) -> PageView:
    try:
        snapshot = runtime.store.get(snapshot_id)
    except SnapshotLookupError:
        _log_event(
            logging.WARNING,
            "preview_unavailable",
            request_id,
            snapshot_id=snapshot_id,
            reason="not_found",
        )
        return draft_unavailable_view(snapshot_id, _DRAFT_MISSING_MESSAGE)
    except Exception as exc:  # noqa: BLE001
        _log_event(
            logging.ERROR,
            "preview_unavailable",
            request_id,
            snapshot_id=snapshot_id,
            reason="store_error",
            error=str(exc),
        )
        return draft_unavailable_view(snapshot_id, _DRAFT_STORE_ERROR_MESSAGE)
    return preview_view(snapshot, runtime.registry)


def _get_runtime() -> _Runtime:
    """Build or reuse the store, registry and page cache for current settings."""

    global _runtime_cache

    store_path = _store_path()
    fields_path = _fields_path()

    with _runtime_lock:
        if (
            _runtime_cache is not None
            and _runtime_cache.store_path == store_path
            and _runtime_cache.fields_path == fields_path
        ):
            return _runtime_cache

        store = JsonSnapshotStore(store_path)
        registry = load_field_registry(fields_path)

        def _render_published(path: str) -> str:
            return render_page(registry, published_view(store.latest(), registry))

        _runtime_cache = _Runtime(
            store_path=store_path,
            fields_path=fields_path,
            store=store,
            registry=registry,
            page_cache=PageCache(_render_published),
        )
        return _runtime_cache


def _store_path() -> Path:
    raw = os.getenv("MALLEABLE_STORE_PATH")
    if raw is None or not raw.strip():
        return _DEFAULT_STORE_PATH
    return Path(raw.strip())


def _fields_path() -> Path | None:
    raw = os.getenv("MALLEABLE_FIELDS_PATH")
    if raw is None or not raw.strip():
        return None
    return Path(raw.strip())


def _max_body_bytes() -> int:
    raw = os.getenv("MALLEABLE_MAX_BODY_BYTES")
    if raw is None:
        return _DEFAULT_MAX_BODY_BYTES
    try:
        parsed = int(raw)
    except ValueError:
        return _DEFAULT_MAX_BODY_BYTES
    return parsed if parsed > 0 else _DEFAULT_MAX_BODY_BYTES


def _request_id_from_request(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    generated = uuid.uuid4().hex
    request.state.request_id = generated
    return generated


def _package_version() -> str:
    try:
        return importlib.metadata.version("malleable-page")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def _error_response(
    *,
    status_code: int,
    error_code: str,
    message: str,
    request_id: str,
    detail: dict[str, Any] | None = None,
) -> JSONResponse:
    payload_detail = dict(detail or {})
    payload_detail["request_id"] = request_id

    return JSONResponse(
        status_code=status_code,
        headers={REQUEST_ID_HEADER: request_id},
        content={
            "error_code": error_code,
            "message": message,
            "detail": payload_detail,
        },
    )


def _dump_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def _log_event(level: int, event: str, request_id: str, **fields: Any) -> None:
    payload = {
        "event": event,
        "request_id": request_id,
        **fields,
    }
    logger.log(level, _dump_json(payload))
