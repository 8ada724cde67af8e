"""Type-safe exception hierarchy and error codes.

Provides structured error handling with:
- Domain-specific exception taxonomy
- HTTP status code mapping
- Structured error details
- FastAPI integration via exception handlers

The rule validator never raises; these exceptions come from the
tokenizer, template expansion, the model client, the gated executor
and the pipeline orchestrator.
"""

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Type-safe error codes for API responses."""

    # Validation errors (400)
    INVALID_INPUT = "invalid_input"
    INVALID_IPA = "invalid_ipa"
    UNKNOWN_SYMBOL = "unknown_symbol"
    INVALID_TEMPLATE = "invalid_template"

    # Resource errors (404)
    OPERATION_NOT_FOUND = "operation_not_found"

    # Processing errors (422)
    RESPONSE_PARSE_FAILED = "response_parse_failed"
    OPERATION_EXHAUSTED = "operation_exhausted"
    PIPELINE_FAILED = "pipeline_failed"
    PIPELINE_CANCELLED = "pipeline_cancelled"

    # Service errors (500)
    MODEL_TRANSPORT_ERROR = "model_transport_error"
    MODEL_REQUEST_REJECTED = "model_request_rejected"
    CACHE_ERROR = "cache_error"
    INTERNAL_ERROR = "internal_error"

    # Resource limits (429)
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"


class ErrorDetail(BaseModel):
    """Structured error information for API responses."""

    code: ErrorCode
    message: str
    field: Optional[str] = None
    context: dict = Field(default_factory=dict)


class LexiforgeError(Exception):
    """Base exception for all application errors.

    Provides structured error information and HTTP status mapping.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        field: Optional[str] = None,
        status_code: int = 500,
        **context
    ):
        self.code = code
        self.message = message
        self.field = field
        self.status_code = status_code
        self.context = context
        super().__init__(message)

    def to_detail(self) -> ErrorDetail:
        """Convert to API error detail."""
        return ErrorDetail(
            code=self.code,
            message=self.message,
            field=self.field,
            context=self.context
        )


# ═════════════════════════════════════════════════════════════════════════════
# Validation Errors (400)
# ═════════════════════════════════════════════════════════════════════════════

class ValidationError(LexiforgeError):
    """Invalid input data."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INVALID_INPUT,
        field: Optional[str] = None,
        **context
    ):
        super().__init__(
            code=code,
            message=message,
            field=field,
            status_code=400,
            **context
        )


class InvalidIPAError(ValidationError):
    """IPA string is malformed or empty."""

    def __init__(self, ipa: str, reason: Optional[str] = None):
        message = f"Invalid IPA: {ipa}"
        if reason:
            message += f" ({reason})"
        super().__init__(
            message=message,
            code=ErrorCode.INVALID_IPA,
            field="phonological_form",
            ipa=ipa,
            reason=reason
        )


class UnknownSymbolError(ValidationError):
    """Tokenizer hit a character sequence that matches no inventory symbol."""

    def __init__(self, form: str, position: int):
        self.form = form
        self.position = position
        remainder = form[position:position + 3]
        super().__init__(
            message=f'"{form}" contains symbols not in the inventory (at position {position}: "{remainder}")',
            code=ErrorCode.UNKNOWN_SYMBOL,
            field="phonological_form",
            form=form,
            position=position
        )


class TemplateConfigError(ValidationError):
    """Syllable template is malformed (bad alphabet, nested or repeated groups)."""

    def __init__(self, template: str, reason: str):
        self.template = template
        super().__init__(
            message=f'Syllable template "{template}" is malformed: {reason}',
            code=ErrorCode.INVALID_TEMPLATE,
            field="syllable_templates",
            template=template,
            reason=reason
        )


# ═════════════════════════════════════════════════════════════════════════════
# Resource Errors (404)
# ═════════════════════════════════════════════════════════════════════════════

class ResourceNotFoundError(LexiforgeError):
    """Requested resource does not exist."""

    def __init__(
        self,
        resource_type: str,
        identifier: str,
        code: ErrorCode = ErrorCode.OPERATION_NOT_FOUND
    ):
        super().__init__(
            code=code,
            message=f"{resource_type} not found: {identifier}",
            status_code=404,
            resource_type=resource_type,
            identifier=identifier
        )


# ═════════════════════════════════════════════════════════════════════════════
# Processing Errors (422)
# ═════════════════════════════════════════════════════════════════════════════

class ProcessingError(LexiforgeError):
    """Data processing or generation failed."""

    def __init__(
        self,
        operation: str,
        reason: str,
        code: ErrorCode = ErrorCode.OPERATION_EXHAUSTED,
        **context
    ):
        super().__init__(
            code=code,
            message=f"{operation} failed: {reason}",
            status_code=422,
            operation=operation,
            reason=reason,
            **context
        )


class ResponseParseError(ProcessingError):
    """Model output is not well-formed for the operation's response schema."""

    def __init__(self, operation: str, reason: str):
        self.reason = reason
        super().__init__(
            operation=operation,
            reason=reason,
            code=ErrorCode.RESPONSE_PARSE_FAILED
        )


class OperationExhaustedError(ProcessingError):
    """Every semantic attempt of a gated operation failed.

    Carries the full per-attempt feedback history: ``retry_reasons[i]``
    holds the feedback lines produced by attempt ``i + 1``.
    """

    def __init__(
        self,
        operation: str,
        attempt: int,
        final_error: str,
        retry_reasons: list[list[str]],
        failure_kinds: list[str],
        duration_ms: float
    ):
        self.operation = operation
        self.attempt = attempt
        self.final_error = final_error
        self.retry_reasons = retry_reasons
        self.failure_kinds = failure_kinds
        self.duration_ms = duration_ms
        super().__init__(
            operation=operation,
            reason=final_error,
            code=ErrorCode.OPERATION_EXHAUSTED,
            attempt=attempt,
            retry_reasons=retry_reasons,
            failure_kinds=failure_kinds,
            duration_ms=duration_ms
        )


class PipelineError(ProcessingError):
    """Generation pipeline stopped at a step."""

    def __init__(
        self,
        pipeline: str,
        step: str,
        reason: str,
        partial: Any = None,
        **context
    ):
        self.step = step
        self.partial = partial
        super().__init__(
            operation=f"Pipeline '{pipeline}' at step '{step}'",
            reason=reason,
            code=ErrorCode.PIPELINE_FAILED,
            pipeline=pipeline,
            step=step,
            **context
        )


class PipelineCancelledError(PipelineError):
    """Caller cancelled the pipeline between steps."""

    def __init__(self, pipeline: str, step: str):
        super().__init__(pipeline=pipeline, step=step, reason="cancelled by caller")
        self.code = ErrorCode.PIPELINE_CANCELLED


# ═════════════════════════════════════════════════════════════════════════════
# Service Errors (500)
# ═════════════════════════════════════════════════════════════════════════════

class ServiceError(LexiforgeError):
    """Internal service or infrastructure failure."""

    def __init__(
        self,
        service: str,
        reason: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        **context
    ):
        super().__init__(
            code=code,
            message=f"Service error in {service}: {reason}",
            status_code=500,
            service=service,
            reason=reason,
            **context
        )


class TransportError(ServiceError):
    """Model call failed after transport-level retries (timeouts, 5xx)."""

    def __init__(self, operation: str, reason: str, attempts: int = 0):
        super().__init__(
            service="model",
            reason=f"{operation}: {reason}",
            code=ErrorCode.MODEL_TRANSPORT_ERROR,
            operation=operation,
            attempts=attempts
        )


class ModelRequestError(ServiceError):
    """Provider rejected the request (4xx other than rate limiting); not retried."""

    def __init__(self, operation: str, status: int, reason: str):
        self.status = status
        super().__init__(
            service="model",
            reason=f"{operation}: HTTP {status}: {reason}",
            code=ErrorCode.MODEL_REQUEST_REJECTED,
            operation=operation,
            status=status
        )


# ═════════════════════════════════════════════════════════════════════════════
# Rate Limiting (429)
# ═════════════════════════════════════════════════════════════════════════════

class RateLimitError(LexiforgeError):
    """Rate limit still exceeded after backoff."""

    def __init__(self, limit: int, window: str, retry_after: Optional[float] = None):
        message = f"Rate limit exceeded: {limit} attempts per {window}"
        if retry_after:
            message += f". Retry after {retry_after}s"

        super().__init__(
            code=ErrorCode.RATE_LIMIT_EXCEEDED,
            message=message,
            status_code=429,
            limit=limit,
            window=window,
            retry_after=retry_after
        )
