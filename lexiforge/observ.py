"""Structured logging for lexiforge, built on structlog.

Every entry carries the ids bound in the current context: the HTTP
request, the language being generated and the pipeline step in flight.
Development renders coloured console lines; anything else renders JSON.

Usage:
    from lexiforge.observ import get_logger

    logger = get_logger(__name__)
    logger.info("operation_cache_hit", operation="generate_lexicon")
"""

import logging
import sys
from contextvars import ContextVar
from time import perf_counter
from typing import Optional

import structlog
from structlog.typing import EventDict, WrappedLogger

from lexiforge.config import get_settings


request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
language_id_var: ContextVar[Optional[str]] = ContextVar("language_id", default=None)
pipeline_step_var: ContextVar[Optional[str]] = ContextVar("pipeline_step", default=None)

_CONTEXT_FIELDS = (
    ("request_id", request_id_var),
    ("language_id", language_id_var),
    ("pipeline_step", pipeline_step_var),
)

# Chatty third-party loggers; the model client logs its own calls.
_QUIET_LOGGERS = ("httpx", "httpcore")


# ═════════════════════════════════════════════════════════════════════════════
# Structlog Configuration
# ═════════════════════════════════════════════════════════════════════════════

def add_context_fields(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict
) -> EventDict:
    """Copy bound context ids into the entry unless it sets them itself."""
    for key, var in _CONTEXT_FIELDS:
        value = var.get()
        if value is not None:
            event_dict.setdefault(key, value)
    return event_dict


def configure_logging(level: Optional[str] = None, console: Optional[bool] = None) -> None:
    """Configure structlog; arguments default to the application settings."""
    settings = get_settings()
    level = (level or settings.log_level).upper()
    if console is None:
        console = settings.debug or level == "DEBUG"

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=getattr(logging, level))
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        add_context_fields,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if console:
        processors += [structlog.dev.set_exc_info, structlog.dev.ConsoleRenderer(colors=True)]
    else:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


# ═════════════════════════════════════════════════════════════════════════════
# Context Management
# ═════════════════════════════════════════════════════════════════════════════

def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def set_language_id(language_id: str) -> None:
    """Tag later entries in this context with the language being worked on."""
    language_id_var.set(language_id)


def set_pipeline_step(step: Optional[str]) -> None:
    pipeline_step_var.set(step)


def clear_context() -> None:
    for _, var in _CONTEXT_FIELDS:
        var.set(None)


# ═════════════════════════════════════════════════════════════════════════════
# Timing
# ═════════════════════════════════════════════════════════════════════════════

class timer:
    """Log the duration of a block as ``<event>_completed`` or ``<event>_failed``.

    Example:
        with timer(logger, "cli_generate", language_id="lang_01") as t:
            ...
        t.duration_ms
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger, event: str, **context):
        self.logger = logger
        self.event = event
        self.context = context
        self.duration_ms: float = 0.0
        self._start = 0.0

    def __enter__(self) -> "timer":
        self._start = perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.duration_ms = round((perf_counter() - self._start) * 1000, 2)
        if exc_type is None:
            self.logger.info(f"{self.event}_completed", duration_ms=self.duration_ms, **self.context)
        else:
            self.logger.error(
                f"{self.event}_failed",
                duration_ms=self.duration_ms,
                error=str(exc_val),
                error_type=exc_type.__name__,
                **self.context
            )
        return False


# ═════════════════════════════════════════════════════════════════════════════
# Standard Entries
# ═════════════════════════════════════════════════════════════════════════════

def _level_for_status(status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code >= 400:
        return "warning"
    return "info"


def log_api_request(
    logger: structlog.stdlib.BoundLogger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    **extra
) -> None:
    getattr(logger, _level_for_status(status_code))(
        "api_request",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=round(duration_ms, 2),
        **extra
    )


def log_model_call(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    duration_ms: float,
    success: bool = True,
    **extra
) -> None:
    """One completed (or abandoned) provider call, including transport retries."""
    log = logger.info if success else logger.error
    log("model_call", operation=operation, duration_ms=round(duration_ms, 2), success=success, **extra)


def log_validation_result(
    logger: structlog.stdlib.BoundLogger,
    valid: bool,
    error_count: int,
    warning_count: int,
    duration_ms: float,
    **extra
) -> None:
    logger.debug(
        "validation_completed",
        valid=valid,
        error_count=error_count,
        warning_count=warning_count,
        duration_ms=round(duration_ms, 2),
        **extra
    )
