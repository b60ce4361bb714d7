import uuid
import time
import json
import logging
from datetime import datetime, timezone
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from examsim.core.config import settings
from examsim.routers import exams, health, quota
from examsim.services.exam_registry import close_registry

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-origin",
}

ERROR_CODES = {
    403: "forbidden",
    404: "not_found",
    409: "invalid_transition",
    422: "invalid_option",
    503: "not_ready",
}

WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


def _csv(value: str | None) -> list[str]:
    return [x.strip() for x in str(value or "").split(",") if x.strip()]


def _error(status_code: int, error_code: str, error_message: str, rid: str | None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "ok": False,
            "error_code": error_code,
            "error_message": error_message,
            "request_id": rid,
        },
        headers=headers,
    )


def _request_id(request: Request) -> str | None:
    rid = str(getattr(request.state, "request_id", "") or "").strip()
    return rid or None


def create_app() -> FastAPI:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logger = logging.getLogger("examsim")

    app = FastAPI(title="ExamSim API", version="1.0.0")

    allow_origins = _csv(settings.cors_allow_origins)
    if "*" in allow_origins:
        raise RuntimeError("CORS_ALLOW_ORIGINS must not include '*' when allow_credentials=true")
    is_prod = (settings.app_env or "").strip().lower() in {"prod", "production"}

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        t0 = time.perf_counter()
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = rid
        path = request.url.path
        status_code: int | None = None
        try:
            origin = (request.headers.get("origin") or "").strip()
            if request.method in WRITE_METHODS and origin and origin not in allow_origins:
                response = _error(403, "forbidden", "invalid origin", rid)
            else:
                response = await call_next(request)
            status_code = response.status_code
        except Exception:
            status_code = 500
            raise
        finally:
            if not path.startswith("/health"):
                entry = {
                    "ts": datetime.now(timezone.utc).isoformat(),
                    "rid": rid,
                    "method": request.method,
                    "path": path,
                    "status": status_code,
                    "duration_ms": int((time.perf_counter() - t0) * 1000),
                }
                logger.info(json.dumps(entry, ensure_ascii=False))

        response.headers["X-Request-ID"] = rid
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if is_prod:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        status_code = int(exc.status_code)
        return _error(
            status_code,
            ERROR_CODES.get(status_code, "http_error"),
            str(exc.detail or "request failed"),
            _request_id(request),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        rid = _request_id(request)
        logger.exception("unhandled exception", extra={"rid": rid})
        return _error(500, "internal_error", "internal server error", rid)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["content-type", "x-request-id"],
    )

    app.include_router(health.router)
    app.include_router(exams.router)
    app.include_router(quota.router)

    @app.on_event("shutdown")
    async def _close_sessions() -> None:
        # Cancels every session countdown still running on this loop.
        close_registry()

    return app

app = create_app()
