"""
Lyceum philosophy curriculum platform: ASGI entry point.

Run with ``uvicorn lyceum.main:app`` or ``python -m lyceum.main``.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lyceum.api.middleware.rate_limit import RateLimitMiddleware
from lyceum.api.middleware.request_id import REQUEST_ID_HEADER, RequestIdMiddleware
from lyceum.api.v1 import router as api_v1_router
from lyceum.config import get_settings
from lyceum.database import close_db, init_db
from lyceum.errors import AppError
from lyceum.logging_config import configure_logging, get_logger
from lyceum.schemas.common import HealthResponse

settings = get_settings()
logger = get_logger(__name__)

API_DESCRIPTION = """
Lyceum: a structured philosophy curriculum.

Lectures are ordered within categories and linked by prerequisite edges.
Each learner moves through a lecture as

LOCKED → READY → STARTED → WATCHED → INITIAL_REFLECTION → MASTERY_TESTING → MASTERED

with required prerequisites gating the start, written reflections between
stages and a mastery score of 70 or more completing the lecture. Philosophers,
concepts, movements and eras form a knowledge graph linked to lectures.
"""

CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )
    logger.info("Starting %s v%s (%s)", settings.project_name, settings.version, settings.environment)
    await init_db()

    yield

    await close_db()
    logger.info("Shutdown complete")


def _json_error(
    request: Request,
    status_code: int,
    content: Dict[str, Any],
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Error body with the request id in both the payload and the header."""
    request_id = getattr(request.state, "request_id", None)
    merged = dict(headers or {})
    if request_id:
        content.setdefault("request_id", request_id)
        merged[REQUEST_ID_HEADER] = request_id
    return JSONResponse(status_code=status_code, content=content, headers=merged)


async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Application error: %s", exc.message)
    else:
        logger.info(
            "Request rejected",
            extra={"code": exc.code, "status_code": exc.status_code, "path": request.url.path},
        )
    return _json_error(request, exc.status_code, exc.to_dict())


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    return _json_error(request, exc.status_code, {"detail": exc.detail}, exc.headers)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return _json_error(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        {"detail": "Validation error", "errors": errors},
    )


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    content: Dict[str, Any] = {"detail": "Internal server error"}
    if settings.debug:
        content.update(detail=str(exc), type=type(exc).__name__)
    return _json_error(request, status.HTTP_500_INTERNAL_SERVER_ERROR, content)


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.project_name,
        description=API_DESCRIPTION,
        version=settings.version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Last added runs first: CORS wraps request ids, which wrap rate limiting
    application.add_middleware(RateLimitMiddleware)
    application.add_middleware(RequestIdMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_exception_handler(AppError, handle_app_error)
    application.add_exception_handler(HTTPException, handle_http_exception)
    application.add_exception_handler(RequestValidationError, handle_validation_error)
    application.add_exception_handler(Exception, handle_unexpected)

    application.include_router(api_v1_router, prefix=settings.api_v1_prefix)

    @application.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check():
        return HealthResponse(status="ok", version=settings.version, database="connected")

    @application.get("/", tags=["Root"])
    async def root():
        return {
            "name": settings.project_name,
            "version": settings.version,
            "docs": "/docs" if settings.debug else "disabled",
            "api": {"v1": settings.api_v1_prefix},
        }

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("lyceum.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
