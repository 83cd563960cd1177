from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from stats_api.core.config import (
    expose_error_details,
    get_app_env,
    get_app_version,
    get_frontend_url,
    get_host,
    get_port,
)
from stats_api.core.db import get_database_url
from stats_api.core.logs import emit, now_iso
from stats_api.modules.stats.router import router as stats_router
from stats_api.modules.stats.schemas import HealthOut
from stats_api.modules.stats.store import StatsStore, StoreError

ENDPOINTS = {
    "health": "GET /api/health",
    "getStats": "GET /api/user-stats/:userId/:characterId",
    "saveStats": "POST /api/user-stats",
    "deleteStats": "DELETE /api/user-stats/:userId/:characterId",
    "getUserCharacters": "GET /api/user-stats/:userId",
}

REQUIRED_FIELDS = ("userId", "username", "characterId", "characterName")


# Contract locks:
# - X-Request-Id in/out (missing -> generated; always echoed back; also on errors)
# - Error envelope keys: success, error, message, request_id, details
def _err_envelope(error: str, message: str, request_id: Optional[str], details: Any, status_code: int):
    headers = {}
    if request_id:
        headers["X-Request-Id"] = request_id
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error,
            "message": message,
            "request_id": request_id,
            "details": details,
        },
        headers=headers,
    )


def _validation_message(errors: List[Dict[str, Any]]) -> str:
    missing_required = False
    bad_stats = False
    for err in errors:
        loc = tuple(err.get("loc") or ())
        if len(loc) < 2 or loc[0] != "body":
            continue
        if loc[1] in REQUIRED_FIELDS and len(loc) == 2:
            missing_required = True
        elif loc[1] == "stats" and len(loc) == 2:
            bad_stats = True
    if missing_required:
        return "Missing required fields: " + ", ".join(REQUIRED_FIELDS)
    if bad_stats:
        return "Stats object is required"
    return "request validation failed"


def _install_observability(app: FastAPI) -> None:
    @app.middleware("http")
    async def _request_id_mw(request: Request, call_next):
        rid = request.headers.get("X-Request-Id") or uuid.uuid4().hex.upper()
        request.state.request_id = rid
        emit("info", "http.request.start", f"{request.method} {request.url.path}", rid, __name__)
        try:
            resp = await call_next(request)
        except Exception as e:
            emit("error", "http.request.exception", str(e), rid, __name__)
            raise
        resp.headers["X-Request-Id"] = rid
        emit("info", "http.request.end", f"{request.method} {request.url.path} -> {getattr(resp, 'status_code', None)}", rid, __name__)
        return resp

    @app.exception_handler(StarletteHTTPException)
    async def _http_exc_handler(request: Request, exc: StarletteHTTPException):
        rid = getattr(request.state, "request_id", None)
        if isinstance(exc.detail, dict):
            error = str(exc.detail.get("error") or "http_error")
            message = str(exc.detail.get("message") or "")
            details = exc.detail.get("details")
        elif exc.status_code == 404:
            error, message, details = "not_found", f"Route {request.url.path} not found", None
        else:
            error, message, details = "http_error", str(exc.detail), None

        if exc.status_code >= 500 and not expose_error_details():
            details = None
        return _err_envelope(error, message, rid, details, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _validation_exc_handler(request: Request, exc: RequestValidationError):
        rid = getattr(request.state, "request_id", None)
        errors = exc.errors()
        details = [{"loc": list(e.get("loc") or ()), "msg": e.get("msg"), "type": e.get("type")} for e in errors]
        return _err_envelope("validation_error", _validation_message(errors), rid, details, 400)

    @app.exception_handler(StoreError)
    async def _store_exc_handler(request: Request, exc: StoreError):
        rid = getattr(request.state, "request_id", None)
        details = {"reason": str(exc)} if expose_error_details() else None
        return _err_envelope("store_error", "Internal server error", rid, details, 500)

    @app.exception_handler(Exception)
    async def _unhandled_exc_handler(request: Request, exc: Exception):
        rid = getattr(request.state, "request_id", None)
        details = {"type": type(exc).__name__}
        if expose_error_details():
            details["reason"] = str(exc)
        return _err_envelope("internal_error", "internal server error", rid, details, 500)


def create_app(store: Optional[StatsStore] = None) -> FastAPI:
    """
    Build the API.

    ``store`` is used as-is when given (and left open on shutdown); otherwise
    one is opened from DATABASE_URL at startup and disposed at shutdown.
    Schema creation failure aborts startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = store is None
        s = StatsStore.from_url(get_database_url()) if owned else store
        try:
            s.init_schema()
        except StoreError:
            if owned:
                s.close()
            raise
        app.state.store = s
        emit(
            "info",
            "app.startup",
            "Wuthering Waves Stats API ready",
            None,
            __name__,
            env=get_app_env(),
            frontend_url=get_frontend_url(),
            db=s.engine.url.database,
        )
        try:
            yield
        finally:
            emit("info", "app.shutdown", "shutting down", None, __name__)
            if owned:
                s.close()

    app = FastAPI(title="Wuthering Waves Stats API", version=get_app_version(), lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[get_frontend_url()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-Id"],
    )
    _install_observability(app)

    @app.get("/")
    def index() -> Dict[str, Any]:
        return {
            "success": True,
            "message": "Wuthering Waves Stats API",
            "version": get_app_version(),
            "endpoints": ENDPOINTS,
        }

    @app.get("/api/health", response_model=HealthOut)
    def health(request: Request) -> HealthOut:
        return HealthOut(
            timestamp=now_iso(),
            version=get_app_version(),
            db=request.app.state.store.health(),
        )

    app.include_router(stats_router, prefix="/api")
    return app


def run() -> None:
    import uvicorn

    uvicorn.run(create_app(), host=get_host(), port=get_port())


if __name__ == "__main__":
    run()
