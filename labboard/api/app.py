"""FastAPI application for the LabBoard research-lab job board.

Endpoints:
  GET    /labs                               List labs visible to the caller
  GET    /labs/{lab_id}                      Get a lab
  POST   /labs                               Create a lab (Admin)
  PUT    /labs/{lab_id}                      Update a lab
  DELETE /labs/{lab_id}                      Delete a lab (Admin)
  POST   /labs/{lab_id}/members              Add a user to a lab
  DELETE /labs/{lab_id}/members/{user_id}    Remove a user from a lab
  GET    /jobs                               List jobs visible to the caller
  GET    /jobs/{job_id}                      Get a job
  POST   /jobs                               Create a job
  PUT    /jobs/{job_id}                      Update a job
  DELETE /jobs/{job_id}                      Delete a job
  GET    /public-jobs                        Preview open public jobs (no auth)
  GET    /public-jobs/{job_id}               Preview one open public job (no auth)
  POST   /jobs/{job_id}/applications         Apply to a job (Student)
  GET    /jobs/{job_id}/applications         List applications for a job
  GET    /applications/mine                  Caller's own applications (Student)
  PUT    /applications/{id}/status           Move an application through review
  GET    /users                              List users visible to the caller
  PUT    /users/{user_id}/roles              Set a user's roles (Admin)
  PUT    /users/{user_id}/status             Enable/disable a user (Admin)
  GET    /health                             Health check
  GET    /metrics                            Prometheus metrics
"""

from __future__ import annotations

import logging
import os
import time
import warnings
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

# slowapi still calls asyncio.iscoroutinefunction, deprecated since 3.14
warnings.filterwarnings(
    "ignore",
    message=r".*asyncio\.iscoroutinefunction.*",
    category=DeprecationWarning,
    module=r"slowapi\..*",
)
from prometheus_fastapi_instrumentator import Instrumentator  # noqa: E402
from slowapi import Limiter  # noqa: E402
from slowapi.errors import RateLimitExceeded  # noqa: E402
from slowapi.middleware import SlowAPIMiddleware  # noqa: E402
from slowapi.util import get_remote_address  # noqa: E402

import labboard  # noqa: E402
from labboard.api.routes import applications, jobs, labs, users  # noqa: E402
from labboard.auth import require_auth  # noqa: E402
from labboard.config import settings  # noqa: E402
from labboard.exceptions import LabBoardError  # noqa: E402
from labboard.identity import GroupDirectory, create_directory  # noqa: E402
from labboard.logging_config import log_startup_info, setup_logging  # noqa: E402
from labboard.storage import create_store  # noqa: E402
from labboard.storage.base import DocumentStore  # noqa: E402

logger = logging.getLogger("labboard")
_audit_logger = logging.getLogger("labboard.audit")

_OPENAPI_TAGS = [
    {"name": "Health", "description": "Health checks and version info"},
    {"name": "Labs", "description": "Labs and lab membership"},
    {"name": "Jobs", "description": "Research position postings"},
    {"name": "Public", "description": "Unauthenticated job previews"},
    {"name": "Applications", "description": "Student applications and review status"},
    {"name": "Users", "description": "User directory and role management"},
    {"name": "Metrics", "description": "Prometheus metrics endpoint"},
]


def _create_limiter() -> Limiter:
    rate_limit = os.environ.get("LB_RATE_LIMIT", settings.rate_limit)
    enabled = rate_limit.lower() != "none"
    return Limiter(
        key_func=get_remote_address,
        default_limits=[rate_limit] if enabled else [],
        enabled=enabled,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.started_at = time.monotonic()
    setup_logging()
    await app.state.store.connect()
    log_startup_info(app.state.storage_backend, app.state.directory.name)
    yield
    logger.info("Closing document store")
    await app.state.store.close()
    logger.info("LabBoard stopped")


def create_app(
    store: DocumentStore | None = None,
    directory: GroupDirectory | None = None,
) -> FastAPI:
    """Build the application around an injected store and group directory.

    Both default to the configured backends.  The lifespan connects and
    closes the store; callers that skip the lifespan (e.g. tests using
    ``ASGITransport``) connect it themselves.
    """
    app = FastAPI(
        title="LabBoard",
        description="University research-lab job board.",
        version=labboard.__version__,
        lifespan=lifespan,
        dependencies=[Depends(require_auth)],
        openapi_tags=_OPENAPI_TAGS,
    )

    store = store if store is not None else create_store()
    app.state.store = store
    app.state.directory = directory if directory is not None else create_directory()
    app.state.storage_backend = getattr(store, "backend_name", type(store).__name__)
    app.state.cas_retries = int(os.environ.get("LB_CAS_RETRIES", settings.cas_retries))
    app.state.started_at = time.monotonic()
    app.state.limiter = _create_limiter()

    # -----------------------------------------------------------------------
    # Error handlers
    # -----------------------------------------------------------------------
    @app.exception_handler(LabBoardError)
    async def labboard_error_handler(request: Request, exc: LabBoardError) -> JSONResponse:
        """Centralized handler for LabBoard exceptions."""
        request_id = getattr(request.state, "request_id", "unknown")
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", exc.error_type, request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.error_type,
                "message": exc.message,
                "request_id": request_id,
            },
        )

    # Must stay sync: SlowAPIMiddleware calls it without awaiting.
    @app.exception_handler(RateLimitExceeded)
    def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        """Render slowapi rejections in the common error body."""
        request_id = getattr(request.state, "request_id", "unknown")
        _audit_logger.warning(
            "Rate limit exceeded: %s %s from %s",
            request.method,
            request.url.path,
            get_remote_address(request),
            extra={"event_category": "audit", "action": "rate_limit_exceeded"},
        )
        response = JSONResponse(
            status_code=429,
            content={
                "error": "rate_limit_exceeded",
                "message": str(exc.detail),
                "request_id": request_id,
            },
        )
        response.headers["Retry-After"] = "60"
        return response

    # -----------------------------------------------------------------------
    # Middleware (last added runs first)
    # -----------------------------------------------------------------------
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)

    @app.middleware("http")
    async def security_headers_middleware(request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        return response

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next) -> Response:
        request_id = str(uuid4())[:8]
        request.state.request_id = request_id
        start = time.monotonic()
        response: Response = await call_next(request)
        elapsed_ms = round((time.monotonic() - start) * 1000, 1)
        auth = getattr(request.state, "auth", None)
        logger.info(
            "%s %s %s %.1fms [%s]",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id,
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "user_id": auth.identity if auth is not None else None,
            },
        )
        response.headers["X-Request-ID"] = request_id
        return response

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------
    @app.get("/health", tags=["Health"], summary="Health check")
    async def health(request: Request):
        uptime_s = time.monotonic() - request.app.state.started_at
        return {
            "status": "ok",
            "version": labboard.__version__,
            "uptime_seconds": round(uptime_s, 1),
            "storage_backend": request.app.state.storage_backend,
        }

    app.include_router(labs.router)
    app.include_router(jobs.router)
    app.include_router(jobs.public_router)
    app.include_router(applications.router)
    app.include_router(users.router)

    Instrumentator(
        excluded_handlers=["/metrics"],
        should_respect_env_var=False,
    ).instrument(app).expose(app, endpoint="/metrics", tags=["Metrics"])

    return app


app = create_app()
