"""FastAPI application entry point.

``create_app`` wires middleware, error handlers and routes; the module
level ``app`` is what uvicorn serves.
"""

import uuid
from contextlib import asynccontextmanager
from time import perf_counter
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lexiforge import __version__
from lexiforge.api import router
from lexiforge.api.dependencies import ServiceContainer
from lexiforge.config import Settings, get_settings
from lexiforge.errors import ErrorCode, ErrorDetail, LexiforgeError, RateLimitError
from lexiforge.observ import clear_context, get_logger, log_api_request, set_request_id

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _error_response(status_code: int, detail: ErrorDetail, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": detail.model_dump(mode="json")},
        headers=headers
    )


# ═════════════════════════════════════════════════════════════════════════════
# Error Handlers
# ═════════════════════════════════════════════════════════════════════════════

async def lexiforge_error_handler(request: Request, exc: LexiforgeError) -> JSONResponse:
    """Application errors carry their own status code and detail."""
    logger.warning(
        "application_error",
        error_code=exc.code.value,
        error_message=exc.message,
        path=request.url.path
    )
    headers = None
    if isinstance(exc, RateLimitError) and exc.context.get("retry_after"):
        headers = {"Retry-After": str(int(exc.context["retry_after"]))}
    return _error_response(exc.status_code, exc.to_detail(), headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies are 400 with one entry per schema error."""
    errors = exc.errors()
    logger.warning("validation_error", path=request.url.path, error_count=len(errors))
    details = [{"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in errors]
    return _error_response(400, ErrorDetail(
        code=ErrorCode.INVALID_INPUT,
        message="Invalid request data",
        context={"details": details}
    ))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning("http_error", status_code=exc.status_code, path=request.url.path, detail=exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": "http_error", "message": exc.detail}}
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_error",
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=request.url.path,
        exc_info=True
    )
    return _error_response(500, ErrorDetail(code=ErrorCode.INTERNAL_ERROR, message="An unexpected error occurred"))


# ═════════════════════════════════════════════════════════════════════════════
# Middleware
# ═════════════════════════════════════════════════════════════════════════════

async def request_context_middleware(request: Request, call_next) -> Response:
    """Bind a request id (the caller's, if sent) and log the request with timing."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    set_request_id(request_id)

    start = perf_counter()
    try:
        response = await call_next(request)
        log_api_request(
            logger,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=(perf_counter() - start) * 1000
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    finally:
        clear_context()


# ═════════════════════════════════════════════════════════════════════════════
# Application
# ═════════════════════════════════════════════════════════════════════════════

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("application_startup", version=app.version, cache_backend=settings.cache_backend)
        await ServiceContainer.initialize(settings)
        yield
        logger.info("application_shutdown")
        await ServiceContainer.cleanup()

    app = FastAPI(
        title="Lexiforge API",
        description="Validation-gated constructed language generation",
        version=__version__,
        lifespan=lifespan
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.middleware("http")(request_context_middleware)

    app.add_exception_handler(LexiforgeError, lexiforge_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run("lexiforge.main:app", host=_settings.api_host, port=_settings.api_port, reload=_settings.debug)
