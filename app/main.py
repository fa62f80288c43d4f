"""FastAPI app serving page-layout blocks and the field pool."""

from __future__ import annotations

import logging
import os
import re
import sys
import time
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


_load_env_file(ROOT / "app" / ".env")

from app.db import get_db_stats, reset_db_stats
from app.layout_validate import validate_save_records
from app.stores import MemoryLayoutStore, MemoryMetadataStore
from app.stores_db import DbLayoutStore, DbMetadataStore
from layout_model import LayoutState
from layout_pool import available_fields, available_related_lists
from layout_reconcile import LayoutStoreError
from layoutkit.fingerprint import layout_fingerprint


app = FastAPI(title="layoutdesk")
logger = logging.getLogger("layoutdesk")
logging.basicConfig(level=logging.INFO)

APP_ENV = os.getenv("APP_ENV", os.getenv("ENV", "dev")).strip().lower() or "dev"
IS_DEV = APP_ENV == "dev"
USE_DB = os.getenv("USE_DB", "").strip() == "1"
REQ_SLOW_MS = float(os.getenv("LAYOUTDESK_REQ_SLOW_MS", "250"))

_LOCAL_CORS_REGEX = re.compile(r"^http://(localhost|127\.0\.0\.1):\d+$")
_CORS_ORIGINS = {
    origin.strip().rstrip("/")
    for origin in os.getenv("LAYOUTDESK_CORS_ORIGINS", "").split(",")
    if origin.strip()
}

if USE_DB:
    layout_store = DbLayoutStore()
    metadata_store = DbMetadataStore()
else:
    layout_store = MemoryLayoutStore()
    metadata_store = MemoryMetadataStore()

logger.info("layoutdesk_start env=%s use_db=%s", APP_ENV, USE_DB)


@app.middleware("http")
async def local_cors_fallback_middleware(request: Request, call_next):
    origin = request.headers.get("origin")
    if request.method == "OPTIONS":
        response = JSONResponse({}, status_code=200)
    else:
        response = await call_next(request)
    normalized_origin = origin.rstrip("/") if isinstance(origin, str) else origin
    if normalized_origin and (normalized_origin in _CORS_ORIGINS or _LOCAL_CORS_REGEX.match(normalized_origin)):
        response.headers.setdefault("Access-Control-Allow-Origin", origin)
        response.headers.setdefault("Access-Control-Allow-Credentials", "true")
        response.headers.setdefault("Access-Control-Allow-Headers", "*")
        response.headers.setdefault("Access-Control-Allow-Methods", "*")
        response.headers.setdefault("Vary", "Origin")
    return response


@app.middleware("http")
async def timing_middleware(request: Request, call_next):
    reset_db_stats()
    start = time.perf_counter()
    response = await call_next(request)
    total_ms = (time.perf_counter() - start) * 1000
    db_stats = get_db_stats()
    logger.info(
        "%s %s %s total_ms=%.1f db_ms=%.1f db_q=%s",
        request.method,
        request.url.path,
        response.status_code,
        total_ms,
        db_stats.get("total_ms", 0.0),
        db_stats.get("queries", 0),
    )
    if total_ms >= REQ_SLOW_MS:
        logger.warning("slow_request method=%s path=%s total_ms=%.1f status=%s", request.method, request.url.path, total_ms, response.status_code)
    if IS_DEV:
        response.headers["X-Req-MS"] = f"{total_ms:.1f}"
        response.headers["X-Queries"] = str(db_stats.get("queries", 0))
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error path=%s", request.url.path)
    return _error_response("INTERNAL_ERROR", "Unexpected server error", detail={"error": str(exc)}, status=500)


def _error_response(code: str, message: str, path: str | None = None, detail: dict | None = None, status: int = 400) -> JSONResponse:
    body = {
        "ok": False,
        "errors": [{"code": code, "message": message, "path": path, "detail": detail}],
        "warnings": [],
    }
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _errors_response(errors: list[dict], status: int = 400) -> JSONResponse:
    body = {"ok": False, "errors": errors, "warnings": []}
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _ok_response(payload: dict, warnings: list | None = None, status: int = 200) -> JSONResponse:
    body = {"ok": True, **payload, "errors": [], "warnings": warnings or []}
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _valid_object_key(object_key: str) -> bool:
    return isinstance(object_key, str) and bool(re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]{0,62}", object_key))


def _layout_payload(rows: list[dict]) -> dict:
    state = LayoutState(rows)
    return {
        "blocks": rows,
        "sections": state.sections(),
        "fingerprint": layout_fingerprint(state.blocks),
    }


@app.get("/health")
async def health() -> dict:
    return {"ok": True}


@app.get("/objects/{object_key}/layout")
async def get_layout(object_key: str):
    if not _valid_object_key(object_key):
        return _error_response("OBJECT_KEY_INVALID", "object_key is invalid", "object_key")
    rows = layout_store.fetch_layout_blocks(object_key)
    return _ok_response(_layout_payload(rows))


@app.put("/objects/{object_key}/layout")
async def put_layout(object_key: str, request: Request):
    if not _valid_object_key(object_key):
        return _error_response("OBJECT_KEY_INVALID", "object_key is invalid", "object_key")
    try:
        body = await request.json()
    except ValueError:
        return _error_response("BODY_INVALID", "Request body must be JSON", "body")
    records = body.get("blocks") if isinstance(body, dict) else None
    errors = validate_save_records(records)
    if errors:
        return _errors_response(errors)
    try:
        rows = layout_store.save_layout_blocks(object_key, records)
    except LayoutStoreError as exc:
        logger.warning("layout_save_rejected object=%s code=%s", object_key, exc.code)
        return _error_response(exc.code, exc.message, "blocks", exc.detail, status=400 if exc.code != "LAYOUT_DB_ERROR" else 500)
    logger.info("layout_saved object=%s blocks=%s", object_key, len(rows))
    return _ok_response(_layout_payload(rows))


@app.get("/objects/{object_key}/layout/pool")
async def get_layout_pool(object_key: str, q: str | None = None):
    if not _valid_object_key(object_key):
        return _error_response("OBJECT_KEY_INVALID", "object_key is invalid", "object_key")
    placed = layout_store.fetch_layout_blocks(object_key)
    return _ok_response(
        {
            "fields": available_fields(metadata_store.list_fields(object_key), placed, q),
            "related_lists": available_related_lists(metadata_store.list_related_lists(object_key), placed, q),
        }
    )


@app.get("/objects/{object_key}/fields")
async def list_fields(object_key: str):
    if not _valid_object_key(object_key):
        return _error_response("OBJECT_KEY_INVALID", "object_key is invalid", "object_key")
    return _ok_response({"fields": metadata_store.list_fields(object_key)})


@app.get("/objects/{object_key}/related-lists")
async def list_related_lists(object_key: str):
    if not _valid_object_key(object_key):
        return _error_response("OBJECT_KEY_INVALID", "object_key is invalid", "object_key")
    return _ok_response({"related_lists": metadata_store.list_related_lists(object_key)})
