from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from assistdesk.core.config import get_settings
from assistdesk.core.db import db_health, init_db
from assistdesk.core.errors import DeskError
from assistdesk.core.logging import configure_logging, emit, set_request_id
from assistdesk.modules.bookings.router import router as bookings_router
from assistdesk.modules.catalog.router import router as catalog_router
from assistdesk.modules.catalog.service import seed_default_assistance_types
from assistdesk.modules.comments.router import router as comments_router
from assistdesk.modules.notifications.router import router as notifications_router


@asynccontextmanager
async def _lifespan(app: FastAPI):
    configure_logging()
    init_db()
    seed_default_assistance_types()
    yield


app = FastAPI(title="Assistance Desk API", version=get_settings().app_version, lifespan=_lifespan)

# Contract:
# - X-Request-Id in/out (missing -> generated; always echoed back; also on errors)
# - Error envelope keys: error, message, request_id, details


def _err_envelope(error: str, message: str, request_id: Optional[str], details: Any, status_code: int):
    headers = {}
    if request_id:
        headers["X-Request-Id"] = request_id
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "request_id": request_id,
            "details": details,
        },
        headers=headers,
    )


@app.middleware("http")
async def _request_id_mw(request: Request, call_next):
    rid = request.headers.get("X-Request-Id") or uuid.uuid4().hex.upper()
    request.state.request_id = rid
    set_request_id(rid)
    emit("info", "http.request.start", f"{request.method} {request.url.path}", __name__)
    try:
        resp = await call_next(request)
    except Exception as e:
        emit("error", "http.request.exception", str(e), __name__)
        raise
    resp.headers["X-Request-Id"] = rid
    emit("info", "http.request.end", f"{request.method} {request.url.path} -> {getattr(resp, 'status_code', None)}", __name__)
    return resp


@app.exception_handler(DeskError)
async def _desk_exc_handler(request: Request, exc: DeskError):
    rid = getattr(request.state, "request_id", None)
    details = dict(exc.details)
    if exc.retryable:
        details["retryable"] = True
    return _err_envelope(exc.code, exc.message, rid, details, exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def _http_exc_handler(request: Request, exc: StarletteHTTPException):
    rid = getattr(request.state, "request_id", None)
    return _err_envelope("http_error", str(exc.detail), rid, {"status_code": exc.status_code}, exc.status_code)


@app.exception_handler(RequestValidationError)
async def _validation_exc_handler(request: Request, exc: RequestValidationError):
    rid = getattr(request.state, "request_id", None)
    return _err_envelope("validation_error", "request validation failed", rid, exc.errors(), 422)


@app.exception_handler(Exception)
async def _unhandled_exc_handler(request: Request, exc: Exception):
    rid = getattr(request.state, "request_id", None)
    emit("error", "http.unhandled", str(exc), __name__, type=type(exc).__name__)
    return _err_envelope("internal_error", "internal server error", rid, {"type": type(exc).__name__}, 500)


app.include_router(catalog_router)
app.include_router(bookings_router)
app.include_router(comments_router)
app.include_router(notifications_router)


@app.get("/health")
def health():
    return {
        "status": "ok",
        "version": get_settings().app_version,
        "db": db_health(),
        "last_error_summary": None,
    }
